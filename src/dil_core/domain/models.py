"""Report dataclasses with strict validation and JSON-ready export."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import NoReturn, TypeVar

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=StrEnum)
TItem = TypeVar("TItem")


class ReportState(StrEnum):
    VALID = "valid"
    INVALID = "invalid"
    UNDECIDABLE = "undecidable"


class OutcomeStatus(StrEnum):
    SATISFIED = "satisfied"
    UNSATISFIED = "unsatisfied"
    UNKNOWN = "unknown"
    INAPPLICABLE = "inapplicable"


class EvidenceKind(StrEnum):
    REF = "ref"
    EXCERPT = "excerpt"


_STATE_EXIT_CODES: dict[ReportState, int] = {
    ReportState.VALID: 0,
    ReportState.INVALID: 1,
    ReportState.UNDECIDABLE: 2,
}


def exit_code_for_state(state: ReportState | str) -> int:
    """Map a report state onto the ``0/1/2`` process exit-code contract."""

    return _STATE_EXIT_CODES[_as_enum(ReportState, state, "state")]


@dataclass(frozen=True, slots=True)
class EvidenceItem:
    """One piece of supporting evidence: a reference or a verbatim excerpt."""

    kind: EvidenceKind
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", _as_enum(EvidenceKind, self.kind, "EvidenceItem.kind"))
        object.__setattr__(self, "value", _as_text(self.value, "EvidenceItem.value"))

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> EvidenceItem:
        parsed = _expect_object(payload, "EvidenceItem", required={"kind", "value"}, optional=set())
        return cls(kind=parsed["kind"], value=parsed["value"])  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, JSONValue]:
        return {"kind": self.kind.value, "value": self.value}


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Result of one mandatory validation rule.

    ``reason`` is required exactly when ``status`` is ``unknown``.
    """

    validation_id: str
    status: OutcomeStatus
    targets: tuple[str, ...] = ()
    reason: str | None = None
    evidence: tuple[EvidenceItem, ...] | None = None
    notes: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "validation_id", _as_str(self.validation_id, "ValidationOutcome.validation_id")
        )
        object.__setattr__(
            self, "status", _as_enum(OutcomeStatus, self.status, "ValidationOutcome.status")
        )
        object.__setattr__(
            self, "targets", _as_str_tuple(self.targets, "ValidationOutcome.targets")
        )
        object.__setattr__(
            self, "reason", _as_optional_text(self.reason, "ValidationOutcome.reason")
        )
        object.__setattr__(
            self, "evidence", _as_evidence(self.evidence, "ValidationOutcome.evidence")
        )
        object.__setattr__(
            self, "notes", _as_optional_str_tuple(self.notes, "ValidationOutcome.notes")
        )
        if self.status is OutcomeStatus.UNKNOWN and not self.reason:
            _fail("ValidationOutcome.reason", "is required when status is 'unknown'")
        if self.status is not OutcomeStatus.UNKNOWN and self.reason:
            _fail("ValidationOutcome.reason", "is only allowed when status is 'unknown'")

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ValidationOutcome:
        parsed = _expect_object(
            payload,
            "ValidationOutcome",
            required={"validation_id", "status", "targets"},
            optional={"reason", "evidence", "notes"},
        )
        return cls(
            validation_id=parsed["validation_id"],  # type: ignore[arg-type]
            status=parsed["status"],  # type: ignore[arg-type]
            targets=parsed["targets"],  # type: ignore[arg-type]
            reason=parsed.get("reason"),  # type: ignore[arg-type]
            evidence=_evidence_from_payload(parsed.get("evidence"), "ValidationOutcome.evidence"),
            notes=parsed.get("notes"),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, JSONValue]:
        """JSON-safe export; absent optionals are omitted, never ``null``."""

        out: dict[str, JSONValue] = {
            "validation_id": self.validation_id,
            "status": self.status.value,
            "targets": list(self.targets),
        }
        if self.reason:
            out["reason"] = self.reason
        if self.evidence is not None:
            out["evidence"] = [item.to_dict() for item in self.evidence]
        if self.notes is not None:
            out["notes"] = list(self.notes)
        return out


@dataclass(frozen=True, slots=True)
class StructuredError:
    """Machine-readable rule violation. Errors are data, never raised."""

    code: str
    message: str
    refs: Mapping[str, JSONValue] = field(default_factory=dict)
    evidence: tuple[EvidenceItem, ...] | None = None
    notes: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", _as_str(self.code, "StructuredError.code"))
        object.__setattr__(self, "message", _as_text(self.message, "StructuredError.message"))
        object.__setattr__(self, "refs", _as_json_object(self.refs, "StructuredError.refs"))
        object.__setattr__(
            self, "evidence", _as_evidence(self.evidence, "StructuredError.evidence")
        )
        object.__setattr__(
            self, "notes", _as_optional_str_tuple(self.notes, "StructuredError.notes")
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> StructuredError:
        parsed = _expect_object(
            payload,
            "StructuredError",
            required={"code", "message"},
            optional={"refs", "evidence", "notes"},
        )
        return cls(
            code=parsed["code"],  # type: ignore[arg-type]
            message=parsed["message"],  # type: ignore[arg-type]
            refs=parsed.get("refs") or {},  # type: ignore[arg-type]
            evidence=_evidence_from_payload(parsed.get("evidence"), "StructuredError.evidence"),
            notes=parsed.get("notes"),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "code": self.code,
            "message": self.message,
            "refs": _copy_json(dict(self.refs)),
        }
        if self.evidence is not None:
            out["evidence"] = [item.to_dict() for item in self.evidence]
        if self.notes is not None:
            out["notes"] = list(self.notes)
        return out


@dataclass(frozen=True, slots=True)
class CanonicalReport:
    """Top-level validation report before canonical normalization."""

    spec_version: str
    system_id: str
    state: ReportState
    outcomes: tuple[ValidationOutcome, ...] = ()
    errors: tuple[StructuredError, ...] = ()
    notes: tuple[str, ...] | None = None
    extensions: Mapping[str, JSONValue] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "spec_version", _as_text(self.spec_version, "CanonicalReport.spec_version")
        )
        object.__setattr__(
            self, "system_id", _as_text(self.system_id, "CanonicalReport.system_id")
        )
        object.__setattr__(self, "state", _as_enum(ReportState, self.state, "CanonicalReport.state"))
        object.__setattr__(
            self,
            "outcomes",
            _as_instance_tuple(self.outcomes, ValidationOutcome, "CanonicalReport.outcomes"),
        )
        object.__setattr__(
            self,
            "errors",
            _as_instance_tuple(self.errors, StructuredError, "CanonicalReport.errors"),
        )
        object.__setattr__(
            self, "notes", _as_optional_str_tuple(self.notes, "CanonicalReport.notes")
        )
        if self.extensions is not None:
            object.__setattr__(
                self,
                "extensions",
                _as_json_object(self.extensions, "CanonicalReport.extensions"),
            )
        if self.state is ReportState.VALID and self.errors:
            _fail("CanonicalReport.errors", "must be empty when state is 'valid'")

    @property
    def exit_code(self) -> int:
        return exit_code_for_state(self.state)

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> CanonicalReport:
        parsed = _expect_object(
            payload,
            "CanonicalReport",
            required={"spec_version", "system_id", "state", "outcomes", "errors"},
            optional={"notes", "extensions"},
        )
        outcomes = _as_sequence(parsed["outcomes"], "CanonicalReport.outcomes")
        errors = _as_sequence(parsed["errors"], "CanonicalReport.errors")
        return cls(
            spec_version=parsed["spec_version"],  # type: ignore[arg-type]
            system_id=parsed["system_id"],  # type: ignore[arg-type]
            state=parsed["state"],  # type: ignore[arg-type]
            outcomes=tuple(ValidationOutcome.from_dict(item) for item in outcomes),  # type: ignore[arg-type]
            errors=tuple(StructuredError.from_dict(item) for item in errors),  # type: ignore[arg-type]
            notes=parsed.get("notes"),  # type: ignore[arg-type]
            extensions=parsed.get("extensions"),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "spec_version": self.spec_version,
            "system_id": self.system_id,
            "state": self.state.value,
            "outcomes": [item.to_dict() for item in self.outcomes],
            "errors": [item.to_dict() for item in self.errors],
        }
        if self.notes is not None:
            out["notes"] = list(self.notes)
        if self.extensions is not None:
            out["extensions"] = _copy_json(dict(self.extensions))
        return out


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str],
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object key must be string, got {type(key).__name__}")
        out[key] = item

    unknown = sorted(key for key in out if key not in required and key not in optional)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in out)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return out


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(item.value for item in enum_type)
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if not value.strip():
        _fail(path, "must not be empty")
    return value


def _as_text(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _as_optional_text(value: object, path: str) -> str | None:
    if value is None:
        return None
    return _as_text(value, path)


def _as_sequence(value: object, path: str) -> list[object]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        _fail(path, f"expected array, got {type(value).__name__}")
    return list(value)


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    return tuple(
        _as_text(item, f"{path}[{index}]") for index, item in enumerate(_as_sequence(value, path))
    )


def _as_optional_str_tuple(value: object, path: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    return _as_str_tuple(value, path)


def _as_instance_tuple(value: object, item_type: type[TItem], path: str) -> tuple[TItem, ...]:
    items = _as_sequence(value, path)
    for index, item in enumerate(items):
        if not isinstance(item, item_type):
            _fail(f"{path}[{index}]", f"expected {item_type.__name__}, got {type(item).__name__}")
    return tuple(items)


def _as_evidence(value: object, path: str) -> tuple[EvidenceItem, ...] | None:
    if value is None:
        return None
    return _as_instance_tuple(value, EvidenceItem, path)


def _evidence_from_payload(value: object, path: str) -> tuple[EvidenceItem, ...] | None:
    if value is None:
        return None
    return tuple(
        EvidenceItem.from_dict(item)  # type: ignore[arg-type]
        for item in _as_sequence(value, path)
    )


def _as_json_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Mapping):
        return _as_json_object(value, path)
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [_as_json_value(item, f"{path}[{index}]") for index, item in enumerate(value)]
    _fail(path, f"value is not JSON-serializable ({type(value).__name__})")


def _as_json_object(value: object, path: str) -> dict[str, JSONValue]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    parsed: dict[str, JSONValue] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object key must be string, got {type(key).__name__}")
        parsed[key] = _as_json_value(item, f"{path}.{key}")
    return parsed


def _copy_json(value: JSONValue) -> JSONValue:
    if isinstance(value, dict):
        return {key: _copy_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy_json(item) for item in value]
    return value


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
