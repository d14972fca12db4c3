"""
dil-core unit tests for the receipt store

File: tests/unit/persistence/test_receipts.py

Purpose
- Validate content-addressed receipt paths, newline handling, run workspaces, and
  error wrapping.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from dil_core.persistence import ReceiptStore, ReceiptStoreError, generate_run_id
from dil_core.utils.hashing import sha256_bytes

SPEC_HASH = sha256_bytes(b"DIL:spec v0\n")


def _store(root: Path) -> ReceiptStore:
    return ReceiptStore(
        receipts_dir=root / "receipts",
        verification_dir=root / "verification",
        runs_dir=root / "runs",
    )


@pytest.mark.unit
def test_validation_receipt_is_content_addressed(tmp_path: Path) -> None:
    store = _store(tmp_path)

    assert store.find_validation_receipt(SPEC_HASH) is None
    written = store.write_validation_receipt(SPEC_HASH, '{\n  "state": "valid"\n}')

    assert written == tmp_path / "receipts" / f"{SPEC_HASH}.validation.json"
    assert written.read_text(encoding="utf-8") == '{\n  "state": "valid"\n}\n'
    assert store.find_validation_receipt(SPEC_HASH) == written


@pytest.mark.unit
def test_receipt_text_gets_exactly_one_trailing_newline(tmp_path: Path) -> None:
    store = _store(tmp_path)

    written = store.write_verification_receipt(SPEC_HASH, "{}\n")

    assert written.name == f"{SPEC_HASH}.verification.json"
    assert written.read_text(encoding="utf-8") == "{}\n"


@pytest.mark.unit
def test_out_override_replaces_default_location(tmp_path: Path) -> None:
    store = _store(tmp_path)
    target = tmp_path / "custom" / "report.json"

    written = store.write_validation_receipt(SPEC_HASH, "{}", out=target)

    assert written == target
    assert not (tmp_path / "receipts").exists()


@pytest.mark.unit
def test_create_run_uses_hash_prefix_and_entropy(tmp_path: Path) -> None:
    store = _store(tmp_path)

    run = store.create_run(SPEC_HASH, entropy="0badcafe")

    assert run.run_id == f"{SPEC_HASH[:16]}-0badcafe"
    assert run.path.is_dir()
    assert run.receipt_pointer.name == "receipt.path"
    assert run.stdout_log.name == "executor.stdout.log"
    assert run.stderr_log.name == "executor.stderr.log"

    store.write_run_file(run.receipt_pointer, "/tmp/receipt.json\n")
    assert run.receipt_pointer.read_text(encoding="utf-8") == "/tmp/receipt.json\n"


@pytest.mark.unit
def test_generated_run_ids_are_unique() -> None:
    first = generate_run_id(SPEC_HASH)
    second = generate_run_id(SPEC_HASH)

    assert first != second
    assert first.startswith(SPEC_HASH[:16] + "-")
    assert len(first.split("-")[1]) == 8


@pytest.mark.unit
def test_malformed_hash_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="SHA-256"):
        _store(tmp_path).validation_receipt_path("ABC")
    with pytest.raises(ValueError, match="SHA-256"):
        generate_run_id("not-a-hash")


@pytest.mark.unit
def test_write_failures_surface_as_store_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "receipts"
    blocker.write_text("not a directory", encoding="utf-8")
    store = _store(tmp_path)

    with pytest.raises(ReceiptStoreError) as exc_info:
        store.write_validation_receipt(SPEC_HASH, "{}")

    assert exc_info.value.path == blocker / f"{SPEC_HASH}.validation.json"
