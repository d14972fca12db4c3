"""
dil-core unit tests for canonical report emission

File: tests/unit/report/test_canonical.py

Purpose
- Validate ordering rules, key sorting, omission of absent optionals, and input immutability.
"""

from __future__ import annotations

import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dil_core.domain.models import (
    CanonicalReport,
    EvidenceItem,
    OutcomeStatus,
    ReportState,
    StructuredError,
    ValidationOutcome,
)
from dil_core.report import (
    canonical_json_dumps,
    deep_sort_keys,
    emit_canonical_report,
    normalize_report,
    stable_stringify,
)


def _report(
    outcomes: tuple[ValidationOutcome, ...] = (),
    errors: tuple[StructuredError, ...] = (),
    state: ReportState = ReportState.INVALID,
) -> CanonicalReport:
    return CanonicalReport(
        spec_version="DIL:spec v0",
        system_id="DIL.Canon",
        state=state,
        outcomes=outcomes,
        errors=errors,
    )


@pytest.mark.unit
def test_outcomes_sort_by_id_then_sorted_targets() -> None:
    report = _report(
        outcomes=(
            ValidationOutcome("V-M3", OutcomeStatus.SATISFIED, targets=("b", "a")),
            ValidationOutcome("V-M1", OutcomeStatus.SATISFIED, targets=("z",)),
            ValidationOutcome("V-M1", OutcomeStatus.SATISFIED, targets=("a", "b")),
        )
    )

    normalized = normalize_report(report)

    assert [(item["validation_id"], item["targets"]) for item in normalized["outcomes"]] == [
        ("V-M1", ["a", "b"]),
        ("V-M1", ["z"]),
        ("V-M3", ["a", "b"]),
    ]
    assert report.outcomes[0].targets == ("b", "a")


@pytest.mark.unit
def test_errors_sort_by_code_then_stringified_refs() -> None:
    report = _report(
        errors=(
            StructuredError("B_CODE", "m", refs={"x": "2"}),
            StructuredError("A_CODE", "m", refs={"x": "2"}),
            StructuredError("B_CODE", "m", refs={"x": "1", "a": "9"}),
        )
    )

    normalized = normalize_report(report)

    assert [(item["code"], item["refs"]) for item in normalized["errors"]] == [
        ("A_CODE", {"x": "2"}),
        ("B_CODE", {"a": "9", "x": "1"}),
        ("B_CODE", {"x": "2"}),
    ]


@pytest.mark.unit
def test_absent_optionals_are_omitted() -> None:
    report = _report(
        outcomes=(
            ValidationOutcome("V-M5", OutcomeStatus.SATISFIED, targets=("system",)),
            ValidationOutcome(
                "V-M4",
                OutcomeStatus.UNKNOWN,
                targets=("validations.V1",),
                reason="missing capability",
            ),
        ),
        state=ReportState.UNDECIDABLE,
    )

    payload = json.loads(emit_canonical_report(report))

    assert "notes" not in payload
    assert "extensions" not in payload
    assert payload["outcomes"][1] == {
        "status": "satisfied",
        "targets": ["system"],
        "validation_id": "V-M5",
    }
    assert payload["outcomes"][0]["reason"] == "missing capability"
    assert "null" not in emit_canonical_report(report)


@pytest.mark.unit
def test_emitted_text_has_sorted_keys_and_no_trailing_newline() -> None:
    report = _report(
        outcomes=(
            ValidationOutcome(
                "V-M5",
                OutcomeStatus.UNSATISFIED,
                targets=("system",),
                evidence=(EvidenceItem(kind="excerpt", value="LRU"),),
            ),
        )
    )

    text = emit_canonical_report(report)

    assert not text.endswith("\n")
    assert text.startswith('{\n  "errors": [],\n  "outcomes": [')
    assert text == json.dumps(json.loads(text), indent=2, sort_keys=True, ensure_ascii=False)


@pytest.mark.unit
def test_mapping_input_is_validated_and_normalized() -> None:
    payload = {
        "spec_version": "DIL:spec v0",
        "system_id": "DIL.Canon",
        "state": "valid",
        "outcomes": [{"validation_id": "V-M2", "status": "satisfied", "targets": []}],
        "errors": [],
    }

    assert emit_canonical_report(payload) == emit_canonical_report(
        CanonicalReport.from_dict(payload)
    )


@pytest.mark.unit
def test_non_ascii_is_emitted_verbatim() -> None:
    assert canonical_json_dumps({"k": "é"}) == '{\n  "k": "é"\n}'


@pytest.mark.unit
def test_stable_stringify_is_compact_and_key_sorted() -> None:
    assert stable_stringify({"b": [{"d": 1, "c": 2}], "a": None}) == (
        '{"a":null,"b":[{"c":2,"d":1}]}'
    )
    assert deep_sort_keys([{"b": 1, "a": 2}]) == [{"a": 2, "b": 1}]


_TARGETS = st.lists(st.sampled_from(["intents.I1", "intents.I2", "system"]), max_size=3)
_OUTCOMES = st.lists(
    st.builds(
        ValidationOutcome,
        validation_id=st.sampled_from(["V-M1", "V-M2", "V-M3"]),
        status=st.just(OutcomeStatus.UNSATISFIED),
        targets=_TARGETS.map(tuple),
    ),
    max_size=6,
)
_ERRORS = st.lists(
    st.builds(
        StructuredError,
        code=st.sampled_from(["BROKEN_REFERENCE", "UNTRACED_DECISION"]),
        message=st.just("m"),
        refs=st.dictionaries(st.sampled_from(["a", "b"]), st.sampled_from(["1", "2"])),
    ),
    max_size=6,
)


@settings(max_examples=80, deadline=None)
@given(outcomes=_OUTCOMES, errors=_ERRORS, data=st.data())
@pytest.mark.unit
def test_emission_is_independent_of_input_order(
    outcomes: list[ValidationOutcome], errors: list[StructuredError], data: st.DataObject
) -> None:
    shuffled_outcomes = data.draw(st.permutations(outcomes))
    shuffled_errors = data.draw(st.permutations(errors))

    first = emit_canonical_report(_report(tuple(outcomes), tuple(errors)))
    second = emit_canonical_report(_report(tuple(shuffled_outcomes), tuple(shuffled_errors)))

    assert first == second
