"""Mandatory semantic validation of parsed DIL specs."""

from dil_core.validation.engine import (
    UNSUPPORTED_SPEC_VERSION,
    CoreValidation,
    EmittedReport,
    aggregate_state,
    read_failure_report,
    validate_core,
    validate_text,
)
from dil_core.validation.rules import MANDATORY_RULES, RuleResult

__all__ = [
    "MANDATORY_RULES",
    "UNSUPPORTED_SPEC_VERSION",
    "CoreValidation",
    "EmittedReport",
    "RuleResult",
    "aggregate_state",
    "read_failure_report",
    "validate_core",
    "validate_text",
]
