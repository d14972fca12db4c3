"""Deterministic JSON rendering of validation reports."""

from dil_core.report.canonical import (
    canonical_json_dumps,
    deep_sort_keys,
    emit_canonical_report,
    normalize_report,
    stable_stringify,
)

__all__ = [
    "canonical_json_dumps",
    "deep_sort_keys",
    "emit_canonical_report",
    "normalize_report",
    "stable_stringify",
]
