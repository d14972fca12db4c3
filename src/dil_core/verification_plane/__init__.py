"""Verification plane: run the file, command and HTTP checks declared in a spec."""

from dil_core.verification_plane.checkers import (
    DEFAULT_CHECKER_REGISTRY,
    CheckerContext,
    CheckerRegistry,
    CheckOutcome,
    CheckStatus,
)
from dil_core.verification_plane.predicates import (
    ParsedParams,
    PlannedCheck,
    extract_predicates,
    filter_checks,
    parse_predicate_params,
    select_checks,
    validate_params,
)
from dil_core.verification_plane.receipt import (
    CheckRecord,
    VerificationReceipt,
    VerificationState,
    aggregate_verification_state,
    emit_verification_receipt,
    verification_exit_code,
)
from dil_core.verification_plane.runner import VerificationSettings, run_checks, verify_text

__all__ = [
    "DEFAULT_CHECKER_REGISTRY",
    "CheckOutcome",
    "CheckRecord",
    "CheckStatus",
    "CheckerContext",
    "CheckerRegistry",
    "ParsedParams",
    "PlannedCheck",
    "VerificationReceipt",
    "VerificationSettings",
    "VerificationState",
    "aggregate_verification_state",
    "emit_verification_receipt",
    "extract_predicates",
    "filter_checks",
    "parse_predicate_params",
    "run_checks",
    "select_checks",
    "validate_params",
    "verification_exit_code",
    "verify_text",
]
