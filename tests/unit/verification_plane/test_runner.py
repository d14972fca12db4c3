"""
dil-core unit tests for the verification runner and receipt

File: tests/unit/verification_plane/test_runner.py

Purpose
- Validate end-to-end verification over a DIL document with fake collaborators.

What this test file should cover
- Check selection, parameter rejection as ``unknown``, and id-sorted receipts.
- State aggregation: failed > unknown > passed; no checks is verified.
- Concurrency bound and the "each check runs exactly once" contract.
- Receipt JSON is key-sorted and omits absent fields.

Functional requirements
- No real subprocesses or network; use a fake executor and ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from dil_core.verification_plane import (
    CheckStatus,
    VerificationSettings,
    VerificationState,
    aggregate_verification_state,
    emit_verification_receipt,
    verification_exit_code,
    verify_text,
)
from dil_core.verification_plane.checkers import CommandExecutor, CommandResult, CommandSpec
from dil_core.verification_plane.receipt import CheckRecord, VerificationReceipt

SPEC_HASH = "a" * 64


class FakeExecutor(CommandExecutor):
    """Deterministic executor keyed by argv, tracking concurrent use."""

    def __init__(self, exits: dict[tuple[str, ...], int], *, delay: float = 0.0) -> None:
        self.exits = exits
        self.delay = delay
        self.calls: list[CommandSpec] = []
        self.active = 0
        self.peak = 0

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return CommandResult(argv=spec.argv, exit_code=self.exits.get(spec.argv, 0), stdout="ok\n")


def _spec(*validations: tuple[str, str, str]) -> str:
    blocks = "".join(
        f"    validate {validation_id} {{\n"
        f'      requires_capability: "{capability}"\n'
        f'      predicate: "{predicate}"\n'
        "    }\n"
        for validation_id, capability, predicate in validations
    )
    return f'DIL:spec v0\nsystem "DIL.Verify" {{\n  validations {{\n{blocks}  }}\n}}\n'


async def _verify(raw: str, **kwargs: object) -> VerificationReceipt:
    return await verify_text(
        raw, spec_hash=SPEC_HASH, validation_receipt_ref="missing", **kwargs  # type: ignore[arg-type]
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        ([], VerificationState.VERIFIED),
        (["passed", "passed"], VerificationState.VERIFIED),
        (["passed", "unknown"], VerificationState.UNKNOWN),
        (["unknown", "failed", "passed"], VerificationState.UNVERIFIED),
    ],
)
def test_aggregate_verification_state(statuses: list[str], expected: VerificationState) -> None:
    assert aggregate_verification_state(statuses) is expected


@pytest.mark.unit
def test_verification_exit_codes() -> None:
    assert [verification_exit_code(state) for state in VerificationState] == [0, 1, 2]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_no_runnable_checks_is_verified() -> None:
    receipt = await _verify(_spec(("V1", "emit_structured_report", "emit_structured_report x")))

    assert receipt.state is VerificationState.VERIFIED
    assert receipt.checks == ()
    assert receipt.exit_code == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receipt_mixes_real_file_fake_command_and_mock_http(tmp_path: Path) -> None:
    present = tmp_path / "present.txt"
    present.write_text("data", encoding="utf-8")
    executor = FakeExecutor({("deploy", "--check"): 2})
    transport = httpx.MockTransport(lambda request: httpx.Response(200))

    raw = _spec(
        ("V-FILE", "check_file_exists", f"check_file_exists path={present} type=file"),
        ("V-CMD", "check_command_exit", "check_command_exit cmd=deploy args=--check"),
        ("V-HTTP", "check_http_endpoint", "check_http_endpoint url=http://svc.test/health"),
        ("V-BAD", "check_file_exists", "check_file_exists path=relative"),
    )
    receipt = await _verify(raw, command_executor=executor, http_transport=transport)

    assert [record.check_id for record in receipt.checks] == [
        "validations.V-BAD",
        "validations.V-CMD",
        "validations.V-FILE",
        "validations.V-HTTP",
    ]
    by_id = {record.check_id: record for record in receipt.checks}
    assert by_id["validations.V-BAD"].status is CheckStatus.UNKNOWN
    assert by_id["validations.V-BAD"].reason == "invalid_path:not_absolute"
    assert by_id["validations.V-CMD"].reason == "exit_mismatch:expected=0,actual=2"
    assert by_id["validations.V-FILE"].status is CheckStatus.PASSED
    assert by_id["validations.V-HTTP"].evidence == {"actual_status": 200}
    assert receipt.state is VerificationState.UNVERIFIED
    assert [spec.argv for spec in executor.calls] == [("deploy", "--check")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejected_parameters_never_reach_the_executor() -> None:
    executor = FakeExecutor({})
    raw = _spec(
        ("V1", "check_command_exit", "check_command_exit cmd=true"),
        ("V2", "check_command_exit", "check_command_exit cmd=true args= expected_exit=01"),
    )

    receipt = await _verify(raw, command_executor=executor)

    assert executor.calls == []
    assert [record.reason for record in receipt.checks] == [
        "missing_required_key:args",
        "invalid_value:expected_exit",
    ]
    assert receipt.state is VerificationState.UNKNOWN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_filters_and_concurrency_bound_are_applied() -> None:
    executor = FakeExecutor({}, delay=0.01)
    raw = _spec(
        *(
            (f"V-SMOKE-{index}", "check_command_exit", f"check_command_exit cmd=c{index} args=")
            for index in range(6)
        ),
        ("V-DEEP", "check_command_exit", "check_command_exit cmd=deep args="),
    )

    receipt = await _verify(
        raw,
        command_executor=executor,
        only_prefixes=["V-SMOKE"],
        settings=VerificationSettings(max_concurrency=2),
    )

    assert len(receipt.checks) == 6
    assert len(executor.calls) == 6
    assert executor.peak == 2
    assert ("deep",) not in [spec.argv for spec in executor.calls]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_command_timeout_setting_flows_to_executor() -> None:
    executor = FakeExecutor({})
    raw = _spec(
        ("V1", "check_command_exit", "check_command_exit cmd=a args="),
        ("V2", "check_command_exit", "check_command_exit cmd=b args= timeout_ms=250"),
    )

    await _verify(
        raw,
        command_executor=executor,
        settings=VerificationSettings(command_timeout_ms=1500),
    )

    timeouts = {spec.argv[0]: spec.timeout_seconds for spec in executor.calls}
    assert timeouts == {"a": 1.5, "b": 0.25}


@pytest.mark.unit
def test_settings_validation_and_config_mapping() -> None:
    with pytest.raises(ValueError, match="VerificationSettings.max_concurrency"):
        VerificationSettings(max_concurrency=0)

    settings = VerificationSettings.from_config({"verification": {"http_timeout_ms": 900}})
    assert settings.http_timeout_ms == 900
    assert settings.max_concurrency == 4


@pytest.mark.unit
def test_receipt_json_is_sorted_and_omits_absent_fields() -> None:
    receipt = VerificationReceipt(
        spec_version="DIL:spec v0",
        system_id="DIL.Verify",
        spec_hash=SPEC_HASH,
        validation_receipt_ref="/r/a.validation.json",
        state="unknown",
        checks=(
            CheckRecord("validations.V2", "check_http_endpoint", "unknown", reason="dns_failure"),
            CheckRecord(
                "validations.V1",
                "check_file_exists",
                "passed",
                evidence={"actual_type": "directory", "actual_size_bytes": None, "exists": True},
            ),
        ),
    )

    text = emit_verification_receipt(receipt)
    payload = json.loads(text)

    assert list(payload) == sorted(payload)
    assert payload["receipt_type"] == "verification"
    assert payload["receipt_version"] == "DIL:verify v0"
    assert payload["checks"] == [
        {
            "capability": "check_file_exists",
            "check_id": "validations.V1",
            "evidence": {"actual_type": "directory", "exists": True},
            "status": "passed",
        },
        {
            "capability": "check_http_endpoint",
            "check_id": "validations.V2",
            "reason": "dns_failure",
            "status": "unknown",
        },
    ]
    assert not text.endswith("\n")
