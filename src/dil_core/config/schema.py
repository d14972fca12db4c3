"""
dil-core configuration schema and validation.

File: src/dil_core/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Unknown sections and keys are rejected; schema version mismatches carry migration text.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from dil_core.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_COMMAND_TIMEOUT_MS,
    DEFAULT_HTTP_TIMEOUT_MS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_OUTPUT_CHARS,
    RECEIPTS_DIR,
    RUNS_DIR,
    VERIFICATION_DIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("console", "json")

# Config paths that are normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "receipts_dir"),
    ("paths", "verification_dir"),
    ("paths", "runs_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    receipts_dir: str
    verification_dir: str
    runs_dir: str


class VerificationConfig(TypedDict):
    max_concurrency: int
    command_timeout_ms: int
    http_timeout_ms: int
    max_output_chars: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["console", "json"]


class DilConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    verification: VerificationConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[DilConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "paths": {
        "receipts_dir": str(RECEIPTS_DIR),
        "verification_dir": str(VERIFICATION_DIR),
        "runs_dir": str(RUNS_DIR),
    },
    "verification": {
        "max_concurrency": DEFAULT_MAX_CONCURRENCY,
        "command_timeout_ms": DEFAULT_COMMAND_TIMEOUT_MS,
        "http_timeout_ms": DEFAULT_HTTP_TIMEOUT_MS,
        "max_output_chars": DEFAULT_MAX_OUTPUT_CHARS,
    },
    "observability": {
        "log_level": "WARNING",
        "log_format": "console",
    },
}

@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "unknown validation failure"))


class _Invalid(Exception):
    """Internal signal carrying the message for one rejected field."""


_FieldCheck = Callable[[object], object]


def default_config() -> DilConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade dil.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the dil-core runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; neither input is mutated."""

    merged = {key: _copy_value(value) for key, value in sorted(base.items())}
    for key, value in sorted(overlay.items()):
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = _copy_value(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return issues ordered by section, then by field path."""

    if not isinstance(config, Mapping):
        issue = ConfigValidationIssue("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=(issue,))

    issues: list[ConfigValidationIssue] = []
    _check_keys(config, _SCHEMA, "", issues)
    normalized: dict[str, Any] = {}
    for section, fields in sorted(_SCHEMA.items()):
        raw_section = config.get(section)
        if raw_section is None:
            continue
        if not isinstance(raw_section, Mapping):
            issues.append(
                ConfigValidationIssue(
                    section, f"expected object, got {type(raw_section).__name__}"
                )
            )
            continue
        _check_keys(raw_section, fields, section, issues)
        normalized[section] = {}
        for name, check in sorted(fields.items()):
            if name not in raw_section:
                continue
            try:
                normalized[section][name] = check(raw_section[name])
            except _Invalid as exc:
                issues.append(ConfigValidationIssue(f"{section}.{name}", str(exc)))

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _check_keys(
    payload: Mapping[Any, object],
    expected: Mapping[str, object],
    prefix: str,
    issues: list[ConfigValidationIssue],
) -> None:
    seen = {str(key) for key in payload}
    for key in sorted(seen | set(expected)):
        path = f"{prefix}.{key}" if prefix else key
        if key not in expected:
            issues.append(ConfigValidationIssue(path, "unknown field"))
        elif key not in seen:
            issues.append(ConfigValidationIssue(path, "missing required field"))


def _positive_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _Invalid(f"expected integer, got {type(value).__name__}")
    if value < 1:
        raise _Invalid("must be >= 1")
    return value


def _schema_version(value: object) -> int:
    version = _positive_int(value)
    if version != ConfigSchemaVersion:
        raise _Invalid(migration_guidance(version))
    return version


def _text(value: object) -> str:
    if not isinstance(value, str):
        raise _Invalid(f"expected string, got {type(value).__name__}")
    text = value.strip()
    if not text:
        raise _Invalid("must not be empty")
    return text


def _path_text(value: object) -> str:
    text = _text(value)
    if "\x00" in text:
        raise _Invalid("must not contain NUL bytes")
    return text


def _choice(allowed: tuple[str, ...], *, fold_case: bool = False) -> _FieldCheck:
    def check(value: object) -> str:
        text = _text(value)
        if fold_case:
            text = text.upper()
        if text not in allowed:
            raise _Invalid(f"invalid value {text!r}; expected one of: {', '.join(sorted(allowed))}")
        return text

    return check


def _copy_value(value: object) -> object:
    if isinstance(value, Mapping):
        return {key: _copy_value(item) for key, item in sorted(value.items())}
    return copy.deepcopy(value)


_SCHEMA: Final[dict[str, dict[str, _FieldCheck]]] = {
    "meta": {"schema_version": _schema_version},
    "paths": {name: _path_text for name in ("receipts_dir", "verification_dir", "runs_dir")},
    "verification": {
        name: _positive_int
        for name in ("max_concurrency", "command_timeout_ms", "http_timeout_ms", "max_output_chars")
    },
    "observability": {
        "log_level": _choice(LOG_LEVELS, fold_case=True),
        "log_format": _choice(LOG_FORMATS),
    },
}


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DilConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
