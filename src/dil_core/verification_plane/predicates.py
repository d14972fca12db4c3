"""
dil-core verification predicates

File: src/dil_core/verification_plane/predicates.py

Purpose
- Pull ``predicate: "..."`` strings out of the ``validations`` block, decide which
  validations are runnable checks, and turn predicate text into checker parameters.

Functional requirements
- Predicate and parameter problems are reported as reason strings, never raised.
- Parameter validation order is fixed: missing required keys, then unknown keys,
  then per-value checks.
- Integers must round-trip exactly through ``str(int(text))``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final

import httpx

from dil_core.constants import (
    CHECK_COMMAND_EXIT,
    CHECK_FILE_EXISTS,
    CHECK_HTTP_ENDPOINT,
    VERIFICATION_CAPABILITIES,
)
from dil_core.spec_ingestion.parsed_spec import ParsedSpec
from dil_core.spec_ingestion.parser import strip_comment
from dil_core.verification_plane.checkers.base import parse_exact_int

CHECK_ID_PREFIX: Final[str] = "validations."

_LINE_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"\r?\n", re.ASCII)
_VALIDATIONS_OPEN_RE: Final[re.Pattern[str]] = re.compile(r"^validations\s*\{", re.ASCII)
_VALIDATE_RE: Final[re.Pattern[str]] = re.compile(
    r"^validate\s+([A-Za-z][A-Za-z0-9_\-]*)\b", re.ASCII
)
_PREDICATE_RE: Final[re.Pattern[str]] = re.compile(r'^predicate\s*:\s*"([^"]+)"', re.ASCII)

_HTTP_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})
_HTTP_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD"})
_FILE_TYPES: Final[frozenset[str]] = frozenset({"file", "directory"})


@dataclass(frozen=True, slots=True)
class PlannedCheck:
    """One validation that will be executed as a verification check."""

    validation_id: str
    capability: str
    predicate: str

    @property
    def check_id(self) -> str:
        return f"{CHECK_ID_PREFIX}{self.validation_id}"


@dataclass(frozen=True, slots=True)
class ParsedParams:
    """Token parse result: either ``params`` or a ``reason`` explaining the rejection."""

    params: Mapping[str, str] = field(default_factory=dict)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(frozen=True, slots=True)
class _ParamRules:
    required: tuple[str, ...]
    known: frozenset[str]
    check_values: Callable[[Mapping[str, str]], str | None]


def extract_predicates(raw_text: str) -> dict[str, str]:
    """Map validation id to its quoted predicate text, in declaration order."""

    predicates: dict[str, str] = {}
    in_validations = False
    depth = 0
    current_id: str | None = None

    for raw_line in _LINE_SPLIT_RE.split(raw_text):
        line = strip_comment(raw_line).strip()

        if _VALIDATIONS_OPEN_RE.match(line):
            in_validations = True
            depth = 1
            continue
        if not in_validations:
            continue

        depth += line.count("{") - line.count("}")
        if depth <= 0:
            in_validations = False
            current_id = None
            continue

        validate_match = _VALIDATE_RE.match(line)
        if validate_match is not None:
            current_id = validate_match.group(1)
            continue

        predicate_match = _PREDICATE_RE.match(line)
        if predicate_match is not None and current_id is not None:
            predicates[current_id] = predicate_match.group(1)

    return predicates


def select_checks(parsed: ParsedSpec, predicates: Mapping[str, str]) -> list[PlannedCheck]:
    """Validations whose capability is a verification capability and whose predicate
    starts with that capability name."""

    planned: list[PlannedCheck] = []
    for validation_id, validation in parsed.validations.items():
        capability = validation.requires_capability
        if capability not in VERIFICATION_CAPABILITIES:
            continue
        predicate = predicates.get(validation_id)
        if predicate is None:
            continue
        tokens = predicate.split()
        if not tokens or tokens[0] != capability:
            continue
        planned.append(
            PlannedCheck(validation_id=validation_id, capability=capability, predicate=predicate)
        )
    return planned


def filter_checks(
    checks: Iterable[PlannedCheck],
    *,
    only_ids: Sequence[str] | None = None,
    only_prefixes: Sequence[str] | None = None,
) -> list[PlannedCheck]:
    """Exact id selection wins over prefix selection; neither means keep everything."""

    selected = list(checks)
    if only_ids:
        wanted = set(only_ids)
        return [check for check in selected if check.validation_id in wanted]
    if only_prefixes:
        prefixes = tuple(only_prefixes)
        return [check for check in selected if check.validation_id.startswith(prefixes)]
    return selected


def parse_predicate_params(predicate: str, capability: str) -> ParsedParams:
    tokens = predicate.strip().split()
    first = tokens[0] if tokens else ""
    if first != capability:
        return ParsedParams(reason=f"capability_mismatch:expected={capability},actual={first}")

    params: dict[str, str] = {}
    for token in tokens[1:]:
        key, sep, value = token.partition("=")
        if not sep:
            return ParsedParams(reason=f"malformed_token:{token}")
        if not key:
            return ParsedParams(reason=f"empty_key:{token}")
        params[key] = value
    return ParsedParams(params=params)


def validate_params(capability: str, params: Mapping[str, str]) -> str | None:
    """Return the first rejection reason for ``params``, or ``None`` when they are usable."""

    rules = _PARAM_RULES.get(capability)
    if rules is None:
        return f"unsupported_capability:{capability}"

    for key in rules.required:
        if key not in params:
            return f"missing_required_key:{key}"
    for key in params:
        if key not in rules.known:
            return f"unknown_key:{key}"
    return rules.check_values(params)


def parse_params_for(check: PlannedCheck) -> ParsedParams:
    """Token parse followed by capability validation."""

    parsed = parse_predicate_params(check.predicate, check.capability)
    if not parsed.ok:
        return parsed
    reason = validate_params(check.capability, parsed.params)
    if reason is not None:
        return ParsedParams(reason=reason)
    return parsed


def _check_file_values(params: Mapping[str, str]) -> str | None:
    if not params["path"].startswith("/"):
        return "invalid_path:not_absolute"
    file_type = params.get("type")
    if file_type and file_type not in _FILE_TYPES:
        return "invalid_value:type"
    if "min_size_bytes" in params:
        size = parse_exact_int(params["min_size_bytes"])
        if size is None or size < 0:
            return "invalid_value:min_size_bytes"
    return None


def _check_command_values(params: Mapping[str, str]) -> str | None:
    if "expected_exit" in params and parse_exact_int(params["expected_exit"]) is None:
        return "invalid_value:expected_exit"
    return _check_timeout(params)


def _check_http_values(params: Mapping[str, str]) -> str | None:
    url_reason = _check_url(params["url"])
    if url_reason is not None:
        return url_reason
    if "method" in params and params["method"].upper() not in _HTTP_METHODS:
        return f"invalid_method:{params['method']}"
    if "expected_status" in params:
        status = parse_exact_int(params["expected_status"])
        if status is None or not 100 <= status <= 599:
            return "invalid_value:expected_status"
    return _check_timeout(params)


def _check_url(raw_url: str) -> str | None:
    try:
        url = httpx.URL(raw_url)
    except (httpx.InvalidURL, ValueError):
        return "invalid_url:parse_error"
    if not url.scheme:
        return "invalid_url:parse_error"
    if url.scheme not in _HTTP_SCHEMES:
        return f"invalid_scheme:{url.scheme}"
    if not url.host:
        return "invalid_url:parse_error"
    return None


def _check_timeout(params: Mapping[str, str]) -> str | None:
    if "timeout_ms" in params:
        timeout = parse_exact_int(params["timeout_ms"])
        if timeout is None or timeout <= 0:
            return "invalid_value:timeout_ms"
    return None


_PARAM_RULES: Final[dict[str, _ParamRules]] = {
    CHECK_FILE_EXISTS: _ParamRules(
        required=("path",),
        known=frozenset({"path", "type", "min_size_bytes"}),
        check_values=_check_file_values,
    ),
    CHECK_COMMAND_EXIT: _ParamRules(
        required=("cmd", "args"),
        known=frozenset({"cmd", "args", "expected_exit", "timeout_ms"}),
        check_values=_check_command_values,
    ),
    CHECK_HTTP_ENDPOINT: _ParamRules(
        required=("url",),
        known=frozenset({"url", "method", "expected_status", "timeout_ms"}),
        check_values=_check_http_values,
    ),
}


__all__ = [
    "CHECK_ID_PREFIX",
    "ParsedParams",
    "PlannedCheck",
    "extract_predicates",
    "filter_checks",
    "parse_params_for",
    "parse_predicate_params",
    "select_checks",
    "validate_params",
]
