"""
dil-core command exit checker

File: src/dil_core/verification_plane/checkers/command_exit.py

Purpose
- Implements ``check_command_exit``: run ``cmd`` with comma-separated ``args`` (no shell)
  and compare the exit status.

Functional requirements
- ``command_not_found`` is a confirmed negative; permission and other spawn errors
  are ``unknown``.
- On timeout the process is killed and the result is ``unknown``.
- Captured stdout/stderr are cut to the configured character limit with no marker.
"""

from __future__ import annotations

import errno
from collections.abc import Mapping

from dil_core.constants import CHECK_COMMAND_EXIT
from dil_core.verification_plane.checkers.base import (
    BaseChecker,
    CheckerContext,
    CheckOutcome,
    CommandResult,
    CommandSpec,
    EvidenceScalar,
    errno_name,
    register_builtin_checker,
)

# Exit status reported when the process ended without one (killed by a signal).
SIGNALLED_EXIT_CODE = 1


def build_argv(cmd: str, args: str) -> tuple[str, ...]:
    """``cmd`` followed by the non-empty comma-separated ``args`` entries."""

    return (cmd, *(part for part in args.split(",") if part))


@register_builtin_checker(CHECK_COMMAND_EXIT)
class CommandExitChecker(BaseChecker):
    """Process exit status against ``expected_exit``."""

    capability = CHECK_COMMAND_EXIT

    async def check(self, params: Mapping[str, str], context: CheckerContext) -> CheckOutcome:
        expected_exit = int(params["expected_exit"]) if "expected_exit" in params else 0
        timeout_ms = (
            int(params["timeout_ms"]) if "timeout_ms" in params else context.command_timeout_ms
        )
        spec = CommandSpec(
            argv=build_argv(params["cmd"], params["args"]),
            timeout_seconds=timeout_ms / 1000,
        )

        result = await context.require_executor().run(spec)
        if result.spawn_failed:
            return _spawn_failure(result.spawn_errno)

        output = _output_evidence(result, context.max_output_chars)
        if result.timed_out:
            return CheckOutcome.unknown("timeout_exceeded", output)

        actual_exit = _effective_exit_code(result.exit_code)
        evidence: dict[str, EvidenceScalar] = {"actual_exit": actual_exit, **output}
        if actual_exit != expected_exit:
            return CheckOutcome.failed(
                f"exit_mismatch:expected={expected_exit},actual={actual_exit}",
                evidence,
            )
        return CheckOutcome.passed(evidence)


def _spawn_failure(code: int | None) -> CheckOutcome:
    if code == errno.ENOENT:
        return CheckOutcome.failed("command_not_found")
    if code == errno.EACCES:
        return CheckOutcome.unknown("permission_denied")
    return CheckOutcome.unknown(f"spawn_error:{errno_name(code)}")


def _effective_exit_code(exit_code: int | None) -> int:
    if exit_code is None or exit_code < 0:
        return SIGNALLED_EXIT_CODE
    return exit_code


def _output_evidence(result: CommandResult, max_chars: int) -> dict[str, EvidenceScalar]:
    return {
        "stdout_truncated": result.stdout[:max_chars],
        "stderr_truncated": result.stderr[:max_chars],
    }


__all__ = ["SIGNALLED_EXIT_CODE", "CommandExitChecker", "build_argv"]
