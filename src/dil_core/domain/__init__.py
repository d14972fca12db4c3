"""Domain types shared by the validator, report emitter, and CLI."""

from dil_core.domain.models import (
    CanonicalReport,
    EvidenceItem,
    EvidenceKind,
    JSONScalar,
    JSONValue,
    OutcomeStatus,
    ReportState,
    StructuredError,
    ValidationOutcome,
    exit_code_for_state,
)

__all__ = [
    "CanonicalReport",
    "EvidenceItem",
    "EvidenceKind",
    "JSONScalar",
    "JSONValue",
    "OutcomeStatus",
    "ReportState",
    "StructuredError",
    "ValidationOutcome",
    "exit_code_for_state",
]
