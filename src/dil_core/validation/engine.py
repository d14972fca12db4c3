"""
dil-core validation engine

File: src/dil_core/validation/engine.py

Purpose
- Runs the spec-version gate and the five mandatory rules, then aggregates the
  three-valued report state.

Functional requirements
- Unsupported spec versions short-circuit to ``invalid`` with a single
  ``UNSUPPORTED_SPEC_VERSION`` error and no outcomes.
- Aggregation precedence: leak or any unsatisfied -> invalid; else any unknown ->
  undecidable; else valid.
- A valid report never carries errors.
- Read failures at the caller boundary become a ``PARSE_ERROR`` report.

Non-functional requirements
- Pure: no I/O, clock, or randomness inside ``validate_core``.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Final, NamedTuple

import structlog

from dil_core.constants import SUPPORTED_SPEC_VERSIONS, UNKNOWN
from dil_core.domain.models import (
    CanonicalReport,
    OutcomeStatus,
    ReportState,
    StructuredError,
    ValidationOutcome,
    exit_code_for_state,
)
from dil_core.report.canonical import emit_canonical_report
from dil_core.spec_ingestion.parsed_spec import PARSE_ERROR_CODE, ParsedSpec
from dil_core.spec_ingestion.parser import parse_dil
from dil_core.validation.rules import MANDATORY_RULES

logger = structlog.get_logger(__name__)

UNSUPPORTED_SPEC_VERSION: Final[str] = "UNSUPPORTED_SPEC_VERSION"


class CoreValidation(NamedTuple):
    report: CanonicalReport
    exit_code: int


class EmittedReport(NamedTuple):
    text: str
    exit_code: int
    report: CanonicalReport


def aggregate_state(outcomes: Iterable[ValidationOutcome], *, leaked: bool = False) -> ReportState:
    statuses = {outcome.status for outcome in outcomes}
    if leaked or OutcomeStatus.UNSATISFIED in statuses:
        return ReportState.INVALID
    if OutcomeStatus.UNKNOWN in statuses:
        return ReportState.UNDECIDABLE
    return ReportState.VALID


def validate_core(parsed: ParsedSpec) -> CoreValidation:
    """Classify ``parsed`` as valid, invalid or undecidable."""

    if parsed.spec_version not in SUPPORTED_SPEC_VERSIONS:
        report = CanonicalReport(
            spec_version=parsed.spec_version,
            system_id=parsed.system_id,
            state=ReportState.INVALID,
            errors=(
                StructuredError(
                    code=UNSUPPORTED_SPEC_VERSION,
                    message="Validator does not support the declared spec version.",
                    refs={"spec": parsed.spec_version, "supported": list(SUPPORTED_SPEC_VERSIONS)},
                ),
            ),
        )
        logger.debug("validation_completed", state=report.state.value, exit_code=1, gated=True)
        return CoreValidation(report=report, exit_code=report.exit_code)

    outcomes: list[ValidationOutcome] = []
    errors: list[StructuredError] = []
    leaked = False
    for _, rule in MANDATORY_RULES:
        result = rule(parsed)
        outcomes.append(result.outcome)
        errors.extend(result.errors)
        leaked = leaked or result.leaked

    state = aggregate_state(outcomes, leaked=leaked)
    if state is ReportState.VALID:
        errors.clear()

    report = CanonicalReport(
        spec_version=parsed.spec_version,
        system_id=parsed.system_id,
        state=state,
        outcomes=tuple(outcomes),
        errors=tuple(errors),
    )
    exit_code = exit_code_for_state(state)
    logger.debug("validation_completed", state=state.value, exit_code=exit_code)
    return CoreValidation(report=report, exit_code=exit_code)


def validate_text(raw_text: str) -> EmittedReport:
    """Parse, validate and emit canonical JSON in one call."""

    report, exit_code = validate_core(parse_dil(raw_text))
    return EmittedReport(text=emit_canonical_report(report), exit_code=exit_code, report=report)


def read_failure_report(path: Path | str, exc: BaseException) -> CanonicalReport:
    """Report for an input that could not be read at all."""

    hint = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
    return CanonicalReport(
        spec_version=UNKNOWN,
        system_id=UNKNOWN,
        state=ReportState.INVALID,
        errors=(
            StructuredError(
                code=PARSE_ERROR_CODE,
                message="Unable to read input file.",
                refs={"location": str(path), "hint": hint},
            ),
        ),
    )


__all__ = [
    "UNSUPPORTED_SPEC_VERSION",
    "CoreValidation",
    "EmittedReport",
    "aggregate_state",
    "read_failure_report",
    "validate_core",
    "validate_text",
]
