"""
dil-core unit tests for the validation engine

File: tests/unit/validation/test_engine.py

Purpose
- Validate state aggregation, the spec-version gate, and byte-exact golden reports.

What this test file should cover
- Aggregation precedence across outcome statuses and the leak flag.
- Unsupported versions short-circuit with a single structured error.
- Golden fixtures round-trip to identical bytes.
- Valid reports never carry errors; output is stable across repeated runs.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dil_core.domain.models import (
    OutcomeStatus,
    ReportState,
    ValidationOutcome,
)
from dil_core.spec_ingestion import parse_dil
from dil_core.validation import (
    aggregate_state,
    read_failure_report,
    validate_core,
    validate_text,
)

FIXTURES = Path(__file__).resolve().parents[2] / "fixtures"


def _outcome(status: OutcomeStatus) -> ValidationOutcome:
    reason = "not decidable" if status is OutcomeStatus.UNKNOWN else None
    return ValidationOutcome(validation_id="V-M1", status=status, reason=reason)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("statuses", "leaked", "expected"),
    [
        ([OutcomeStatus.SATISFIED], False, ReportState.VALID),
        ([OutcomeStatus.SATISFIED, OutcomeStatus.INAPPLICABLE], False, ReportState.VALID),
        ([OutcomeStatus.SATISFIED, OutcomeStatus.UNKNOWN], False, ReportState.UNDECIDABLE),
        ([OutcomeStatus.UNKNOWN, OutcomeStatus.UNSATISFIED], False, ReportState.INVALID),
        ([OutcomeStatus.UNKNOWN], True, ReportState.INVALID),
        ([], False, ReportState.VALID),
    ],
)
def test_aggregate_state_precedence(
    statuses: list[OutcomeStatus], leaked: bool, expected: ReportState
) -> None:
    outcomes = [_outcome(status) for status in statuses]

    assert aggregate_state(outcomes, leaked=leaked) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("name", "exit_code"),
    [
        ("failure_seed", 1),
        ("minimal_valid", 0),
        ("undecidable_seed", 2),
        ("future_version", 1),
    ],
)
def test_golden_reports_match_byte_for_byte(name: str, exit_code: int) -> None:
    raw = (FIXTURES / "specs" / f"{name}.dil").read_text(encoding="utf-8")
    golden = (FIXTURES / "golden" / f"{name}.json").read_text(encoding="utf-8")

    emitted = validate_text(raw)

    assert emitted.text + "\n" == golden
    assert emitted.exit_code == exit_code


@pytest.mark.unit
def test_unsupported_version_short_circuits_rules() -> None:
    raw = (FIXTURES / "specs" / "future_version.dil").read_text(encoding="utf-8")

    report, exit_code = validate_core(parse_dil(raw))

    assert report.state is ReportState.INVALID
    assert report.outcomes == ()
    assert [error.code for error in report.errors] == ["UNSUPPORTED_SPEC_VERSION"]
    assert exit_code == 1


@pytest.mark.unit
def test_missing_header_is_treated_as_unsupported_version() -> None:
    report, _ = validate_core(parse_dil('system "DIL.NoHeader" {\n}\n'))

    assert report.spec_version == "unknown"
    assert report.errors[0].refs["spec"] == "unknown"


@pytest.mark.unit
def test_undecidable_report_carries_no_errors() -> None:
    raw = (FIXTURES / "specs" / "undecidable_seed.dil").read_text(encoding="utf-8")

    emitted = validate_text(raw)

    assert emitted.report.state is ReportState.UNDECIDABLE
    assert emitted.report.errors == ()


@pytest.mark.unit
def test_read_failure_report_shape() -> None:
    exc = FileNotFoundError(2, "No such file or directory")

    report = read_failure_report("/missing/spec.dil", exc)

    assert report.state is ReportState.INVALID
    assert report.spec_version == "unknown"
    assert report.system_id == "unknown"
    assert report.outcomes == ()
    (error,) = report.errors
    assert error.code == "PARSE_ERROR"
    assert error.message == "Unable to read input file."
    assert error.refs == {"location": "/missing/spec.dil", "hint": "No such file or directory"}


_IDENT = st.from_regex(r"[A-Z][0-9]{1,2}", fullmatch=True)


@settings(max_examples=60, deadline=None)
@given(
    intents=st.lists(_IDENT, max_size=4, unique=True),
    supports=st.lists(_IDENT, max_size=3),
    leak=st.booleans(),
)
@pytest.mark.unit
def test_validation_is_deterministic_and_valid_means_no_errors(
    intents: list[str], supports: list[str], leak: bool
) -> None:
    intent_blocks = "".join(
        f"    intent {intent_id} {{\n      validations: [V1]\n    }}\n" for intent_id in intents
    )
    notes = "  implementation_notes {\n    use an LRU\n  }\n" if leak else ""
    raw = (
        "DIL:spec v0\n"
        'system "DIL.Generated" {\n'
        f"  intents {{\n{intent_blocks}  }}\n"
        "  decisions {\n"
        "    decision D1 {\n"
        f"      supports: [{', '.join(supports)}]\n"
        "    }\n"
        "  }\n"
        f"{notes}"
        "}\n"
    )

    first = validate_text(raw)
    second = validate_text(raw)

    assert first.text == second.text
    assert first.exit_code == second.exit_code
    if first.report.state is ReportState.VALID:
        assert first.report.errors == ()
    if leak:
        assert first.report.state is ReportState.INVALID
