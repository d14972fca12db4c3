"""Stable constants shared across the parser, validator, and verification planes."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Spec header versions accepted by the validator.
SUPPORTED_SPEC_VERSIONS: Final[tuple[str, ...]] = ("DIL:spec v0",)
UNKNOWN: Final[str] = "unknown"

# Top-level blocks recognized directly inside ``system "<id>" { ... }``.
SECTION_NAMES: Final[tuple[str, ...]] = (
    "about",
    "capabilities",
    "intents",
    "constraints",
    "decisions",
    "validations",
    "change",
    "implementation_notes",
)

# Mandatory validation identifiers, in evaluation order.
MANDATORY_VALIDATIONS: Final[tuple[str, ...]] = ("V-M1", "V-M2", "V-M3", "V-M4", "V-M5")

# Verification receipts.
VERIFICATION_RECEIPT_TYPE: Final[str] = "verification"
VERIFICATION_RECEIPT_VERSION: Final[str] = "DIL:verify v0"
MISSING_RECEIPT_REF: Final[str] = "missing"

CHECK_FILE_EXISTS: Final[str] = "check_file_exists"
CHECK_COMMAND_EXIT: Final[str] = "check_command_exit"
CHECK_HTTP_ENDPOINT: Final[str] = "check_http_endpoint"
VERIFICATION_CAPABILITIES: Final[tuple[str, ...]] = (
    CHECK_COMMAND_EXIT,
    CHECK_FILE_EXISTS,
    CHECK_HTTP_ENDPOINT,
)

DEFAULT_COMMAND_TIMEOUT_MS: Final[int] = 30_000
DEFAULT_HTTP_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_MAX_OUTPUT_CHARS: Final[int] = 4096
DEFAULT_MAX_CONCURRENCY: Final[int] = 4

# Default runtime paths (relative to the config file directory unless overridden).
RECEIPTS_DIR: Final[PurePosixPath] = PurePosixPath(".dil/receipts")
VERIFICATION_DIR: Final[PurePosixPath] = PurePosixPath(".dil/verification")
RUNS_DIR: Final[PurePosixPath] = PurePosixPath(".dil/runs")

CONFIG_SCHEMA_VERSION: Final[int] = 1

__all__ = [
    "CHECK_COMMAND_EXIT",
    "CHECK_FILE_EXISTS",
    "CHECK_HTTP_ENDPOINT",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_COMMAND_TIMEOUT_MS",
    "DEFAULT_HTTP_TIMEOUT_MS",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_OUTPUT_CHARS",
    "MANDATORY_VALIDATIONS",
    "MISSING_RECEIPT_REF",
    "RECEIPTS_DIR",
    "RUNS_DIR",
    "SECTION_NAMES",
    "SUPPORTED_SPEC_VERSIONS",
    "UNKNOWN",
    "VERIFICATION_CAPABILITIES",
    "VERIFICATION_DIR",
    "VERIFICATION_RECEIPT_TYPE",
    "VERIFICATION_RECEIPT_VERSION",
]
