"""
dil-core verification receipt

File: src/dil_core/verification_plane/receipt.py

Purpose
- Typed verification receipt and its deterministic JSON rendering.

Functional requirements
- Checks are emitted sorted by ``check_id``; object keys are sorted everywhere.
- Absent ``reason``/``evidence`` and ``None`` evidence values are omitted.
- No timestamps or other run-varying fields.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import NoReturn

from dil_core.constants import VERIFICATION_RECEIPT_TYPE, VERIFICATION_RECEIPT_VERSION
from dil_core.domain.models import JSONValue
from dil_core.report.canonical import canonical_json_dumps
from dil_core.verification_plane.checkers.base import CheckOutcome, CheckStatus, EvidenceScalar


class VerificationState(StrEnum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    UNKNOWN = "unknown"


_STATE_EXIT_CODES: dict[VerificationState, int] = {
    VerificationState.VERIFIED: 0,
    VerificationState.UNVERIFIED: 1,
    VerificationState.UNKNOWN: 2,
}


def verification_exit_code(state: VerificationState | str) -> int:
    return _STATE_EXIT_CODES[VerificationState(state)]


def aggregate_verification_state(statuses: Iterable[CheckStatus | str]) -> VerificationState:
    """``failed`` dominates ``unknown``, which dominates ``passed``; no checks is verified."""

    seen = {CheckStatus(status) for status in statuses}
    if CheckStatus.FAILED in seen:
        return VerificationState.UNVERIFIED
    if CheckStatus.UNKNOWN in seen:
        return VerificationState.UNKNOWN
    return VerificationState.VERIFIED


@dataclass(frozen=True, slots=True)
class CheckRecord:
    check_id: str
    capability: str
    status: CheckStatus
    reason: str | None = None
    evidence: Mapping[str, EvidenceScalar] | None = None

    def __post_init__(self) -> None:
        if not self.check_id:
            _fail("CheckRecord.check_id", "must be a non-empty string")
        object.__setattr__(self, "status", CheckStatus(self.status))

    @classmethod
    def from_outcome(cls, check_id: str, capability: str, outcome: CheckOutcome) -> CheckRecord:
        return cls(
            check_id=check_id,
            capability=capability,
            status=outcome.status,
            reason=outcome.reason,
            evidence=outcome.evidence,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "capability": self.capability,
            "check_id": self.check_id,
            "status": self.status.value,
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.evidence is not None:
            payload["evidence"] = {
                key: value for key, value in self.evidence.items() if value is not None
            }
        return payload


@dataclass(frozen=True, slots=True)
class VerificationReceipt:
    spec_version: str
    system_id: str
    spec_hash: str
    validation_receipt_ref: str
    state: VerificationState
    checks: tuple[CheckRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "state", VerificationState(self.state))
        object.__setattr__(
            self, "checks", tuple(sorted(self.checks, key=lambda record: record.check_id))
        )

    @property
    def exit_code(self) -> int:
        return verification_exit_code(self.state)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "checks": [record.to_dict() for record in self.checks],
            "receipt_type": VERIFICATION_RECEIPT_TYPE,
            "receipt_version": VERIFICATION_RECEIPT_VERSION,
            "spec_hash": self.spec_hash,
            "spec_version": self.spec_version,
            "state": self.state.value,
            "system_id": self.system_id,
            "validation_receipt_ref": self.validation_receipt_ref,
        }


def emit_verification_receipt(receipt: VerificationReceipt) -> str:
    return canonical_json_dumps(receipt.to_dict())


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "CheckRecord",
    "VerificationReceipt",
    "VerificationState",
    "aggregate_verification_state",
    "emit_verification_receipt",
    "verification_exit_code",
]
