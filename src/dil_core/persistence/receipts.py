"""
dil-core receipt store

File: src/dil_core/persistence/receipts.py

Purpose
- Persist validation and verification receipts and per-run artifacts on disk.

Storage layout
- `<receipts_dir>/<spec_sha256>.validation.json`
- `<verification_dir>/<spec_sha256>.verification.json`
- `<runs_dir>/<run_id>/` with `receipt.path`, `executor.stdout.log`, `executor.stderr.log`

Functional requirements
- Receipts are content-addressed by the SHA-256 of the spec bytes.
- Every write is atomic; I/O failures surface as ``ReceiptStoreError``.
- Receipt text is written verbatim followed by exactly one newline.
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import structlog

from dil_core.utils.fs import atomic_write, ensure_directory
from dil_core.utils.hashing import is_sha256_hex

logger = structlog.get_logger(__name__)

PathLike = str | os.PathLike[str]

VALIDATION_SUFFIX: Final[str] = ".validation.json"
VERIFICATION_SUFFIX: Final[str] = ".verification.json"
RECEIPT_POINTER_FILE: Final[str] = "receipt.path"
EXECUTOR_STDOUT_LOG: Final[str] = "executor.stdout.log"
EXECUTOR_STDERR_LOG: Final[str] = "executor.stderr.log"
_RUN_ID_HASH_CHARS: Final[int] = 16
_RUN_ID_ENTROPY_BYTES: Final[int] = 4


class ReceiptStoreError(RuntimeError):
    """Raised when a receipt or run artifact cannot be written."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


@dataclass(frozen=True, slots=True)
class RunWorkspace:
    run_id: str
    path: Path

    @property
    def receipt_pointer(self) -> Path:
        return self.path / RECEIPT_POINTER_FILE

    @property
    def stdout_log(self) -> Path:
        return self.path / EXECUTOR_STDOUT_LOG

    @property
    def stderr_log(self) -> Path:
        return self.path / EXECUTOR_STDERR_LOG


def generate_run_id(spec_hash: str, *, entropy: str | None = None) -> str:
    """``<first 16 hex of spec hash>-<8 random hex>``."""

    if not is_sha256_hex(spec_hash):
        raise ValueError("spec_hash must be a lowercase SHA-256 hex digest")
    suffix = entropy if entropy is not None else secrets.token_hex(_RUN_ID_ENTROPY_BYTES)
    return f"{spec_hash[:_RUN_ID_HASH_CHARS]}-{suffix}"


class ReceiptStore:
    """Filesystem store for receipts, rooted at the configured directories."""

    __slots__ = ("_receipts_dir", "_runs_dir", "_verification_dir")

    def __init__(
        self,
        *,
        receipts_dir: PathLike,
        verification_dir: PathLike,
        runs_dir: PathLike,
    ) -> None:
        self._receipts_dir = Path(receipts_dir).expanduser()
        self._verification_dir = Path(verification_dir).expanduser()
        self._runs_dir = Path(runs_dir).expanduser()

    @property
    def receipts_dir(self) -> Path:
        return self._receipts_dir

    @property
    def verification_dir(self) -> Path:
        return self._verification_dir

    @property
    def runs_dir(self) -> Path:
        return self._runs_dir

    def validation_receipt_path(self, spec_hash: str) -> Path:
        return self._receipts_dir / f"{_checked_hash(spec_hash)}{VALIDATION_SUFFIX}"

    def verification_receipt_path(self, spec_hash: str) -> Path:
        return self._verification_dir / f"{_checked_hash(spec_hash)}{VERIFICATION_SUFFIX}"

    def find_validation_receipt(self, spec_hash: str) -> Path | None:
        candidate = self.validation_receipt_path(spec_hash)
        return candidate if candidate.is_file() else None

    def write_validation_receipt(
        self, spec_hash: str, text: str, *, out: PathLike | None = None
    ) -> Path:
        target = Path(out) if out is not None else self.validation_receipt_path(spec_hash)
        return self._write(target, text)

    def write_verification_receipt(
        self, spec_hash: str, text: str, *, out: PathLike | None = None
    ) -> Path:
        target = Path(out) if out is not None else self.verification_receipt_path(spec_hash)
        return self._write(target, text)

    def create_run(self, spec_hash: str, *, entropy: str | None = None) -> RunWorkspace:
        run_id = generate_run_id(spec_hash, entropy=entropy)
        path = self._runs_dir / run_id
        try:
            ensure_directory(path)
        except OSError as exc:
            raise ReceiptStoreError(path, f"unable to create run directory: {exc}") from exc
        return RunWorkspace(run_id=run_id, path=path)

    def write_run_file(self, target: Path, text: str) -> Path:
        try:
            return atomic_write(target, text, make_parents=True)
        except OSError as exc:
            raise ReceiptStoreError(target, f"unable to write run artifact: {exc}") from exc

    def _write(self, target: Path, text: str) -> Path:
        payload = text if text.endswith("\n") else f"{text}\n"
        try:
            written = atomic_write(target, payload, make_parents=True)
        except OSError as exc:
            raise ReceiptStoreError(target, f"unable to write receipt: {exc}") from exc
        logger.info("receipt_written", path=str(written))
        return written


def _checked_hash(spec_hash: str) -> str:
    if not is_sha256_hex(spec_hash):
        raise ValueError("spec_hash must be a lowercase SHA-256 hex digest")
    return spec_hash


__all__ = [
    "EXECUTOR_STDERR_LOG",
    "EXECUTOR_STDOUT_LOG",
    "RECEIPT_POINTER_FILE",
    "ReceiptStore",
    "ReceiptStoreError",
    "RunWorkspace",
    "VALIDATION_SUFFIX",
    "VERIFICATION_SUFFIX",
    "generate_run_id",
]
