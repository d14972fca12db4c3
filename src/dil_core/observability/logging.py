"""
dil-core structured logging

File: src/dil_core/observability/logging.py

Purpose
- Configure ``structlog`` once at the CLI boundary.

Functional requirements
- Log lines go to stderr only; stdout is reserved for receipt paths and report JSON.
- ``console`` renders human-readable lines, ``json`` renders one JSON object per line.
- Secret-looking keys and bearer tokens are redacted before rendering.
- Timestamps appear in log lines only, never in reports or receipts.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import MutableMapping
from typing import IO, Any, Final

import structlog

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._~+/-]+=*")
_URL_USERINFO_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\b(https?://)[^/@\s]+@")

LOG_FORMATS: Final[tuple[str, ...]] = ("console", "json")


def configure_logging(
    level: int | str = "WARNING",
    fmt: str = "console",
    *,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog for the current process.

    Safe to call more than once; the latest call wins.
    """

    if fmt not in LOG_FORMATS:
        raise ValueError(f"unsupported log format {fmt!r}; expected one of {LOG_FORMATS}")

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_event,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(parse_log_level(level)),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


def parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def redact_event(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that masks secret-looking fields."""

    for key in list(event_dict):
        event_dict[key] = _redact_value(event_dict[key], key_context=key)
    return event_dict


def _redact_value(value: object, *, key_context: str | None) -> object:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, list | tuple):
        return [_redact_value(item, key_context=None) for item in value]
    if isinstance(value, dict):
        return {key: _redact_value(item, key_context=str(key)) for key, item in value.items()}
    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", text)
    return _URL_USERINFO_PATTERN.sub(lambda match: f"{match.group(1)}{_REDACTED_VALUE}@", redacted)


__all__ = ["LOG_FORMATS", "configure_logging", "parse_log_level", "redact_event"]
