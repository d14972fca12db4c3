"""DIL text ingestion: tolerant parser and the immutable artifact table it produces."""

from dil_core.spec_ingestion.parsed_spec import (
    PARSE_ERROR_CODE,
    ParsedConstraint,
    ParsedDecision,
    ParsedIntent,
    ParsedSpec,
    ParsedValidation,
    ParseIssue,
)
from dil_core.spec_ingestion.parser import parse_dil

__all__ = [
    "PARSE_ERROR_CODE",
    "ParseIssue",
    "ParsedConstraint",
    "ParsedDecision",
    "ParsedIntent",
    "ParsedSpec",
    "ParsedValidation",
    "parse_dil",
]
