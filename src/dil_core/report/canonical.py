"""
dil-core canonical report emitter

File: src/dil_core/report/canonical.py

Purpose
- Turns a ``CanonicalReport`` into byte-stable JSON text.

Functional requirements
- Outcome targets are sorted; outcomes sort by ``validation_id`` then joined targets.
- Errors sort by ``code`` then the stable stringification of their ``refs``.
- Object keys are sorted at every depth; array order set by the steps above is kept.
- Absent optionals are omitted, never emitted as ``null``.
- Normalization builds a new object graph and never mutates its input.

Non-functional requirements
- No timestamps, random identifiers, or locale-dependent comparisons.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Final

from dil_core.domain.models import (
    CanonicalReport,
    JSONValue,
    StructuredError,
    ValidationOutcome,
)

_TARGET_JOINER: Final[str] = "\0"


def deep_sort_keys(value: JSONValue) -> JSONValue:
    """Return a copy with object keys sorted at every depth; arrays keep their order."""

    if isinstance(value, list):
        return [deep_sort_keys(item) for item in value]
    if isinstance(value, dict):
        return {key: deep_sort_keys(value[key]) for key in sorted(value)}
    return value


def stable_stringify(value: JSONValue) -> str:
    """Compact key-sorted JSON used as a sort key."""

    return json.dumps(deep_sort_keys(value), separators=(",", ":"), ensure_ascii=False)


def canonical_json_dumps(value: JSONValue) -> str:
    """Indented key-sorted JSON without a trailing newline."""

    return json.dumps(deep_sort_keys(value), indent=2, ensure_ascii=False)


def normalize_outcome(outcome: ValidationOutcome) -> dict[str, JSONValue]:
    payload = outcome.to_dict()
    payload["targets"] = sorted(outcome.targets)
    return payload


def normalize_error(error: StructuredError) -> dict[str, JSONValue]:
    return error.to_dict()


def _outcome_sort_key(payload: Mapping[str, JSONValue]) -> tuple[str, str]:
    targets = payload["targets"]
    assert isinstance(targets, list)
    return str(payload["validation_id"]), _TARGET_JOINER.join(str(item) for item in targets)


def _error_sort_key(payload: Mapping[str, JSONValue]) -> tuple[str, str]:
    return str(payload["code"]), stable_stringify(payload.get("refs") or {})


def normalize_report(report: CanonicalReport | Mapping[str, object]) -> dict[str, JSONValue]:
    """Build the sorted, key-ordered object graph for ``report``."""

    if not isinstance(report, CanonicalReport):
        report = CanonicalReport.from_dict(report)

    outcomes = sorted(
        (normalize_outcome(item) for item in report.outcomes), key=_outcome_sort_key
    )
    errors = sorted((normalize_error(item) for item in report.errors), key=_error_sort_key)

    normalized = report.to_dict()
    normalized["outcomes"] = list(outcomes)
    normalized["errors"] = list(errors)
    sorted_graph = deep_sort_keys(normalized)
    assert isinstance(sorted_graph, dict)
    return sorted_graph


def emit_canonical_report(report: CanonicalReport | Mapping[str, object]) -> str:
    """Serialize ``report`` deterministically; callers append the trailing newline."""

    return json.dumps(normalize_report(report), indent=2, ensure_ascii=False)


__all__ = [
    "canonical_json_dumps",
    "deep_sort_keys",
    "emit_canonical_report",
    "normalize_error",
    "normalize_outcome",
    "normalize_report",
    "stable_stringify",
]
