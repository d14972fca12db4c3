"""
dil-core verification checker interface

File: src/dil_core/verification_plane/checkers/base.py

Purpose
- Defines the checker protocol, the result envelope, the async subprocess executor,
  and the registry that maps capability names onto checker classes.

Functional requirements
- A checker runs exactly once per invocation; retries belong to the caller.
- ``failed`` means a confirmed negative; anything indeterminate is ``unknown``.
- Timeouts always yield ``unknown``.

Non-functional requirements
- Output is deterministic given the same observed world.
"""

from __future__ import annotations

import asyncio
import errno
import inspect
from collections.abc import Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, NoReturn, Protocol, TypeVar, runtime_checkable

from dil_core.constants import (
    DEFAULT_COMMAND_TIMEOUT_MS,
    DEFAULT_HTTP_TIMEOUT_MS,
    DEFAULT_MAX_OUTPUT_CHARS,
)

if TYPE_CHECKING:
    import httpx

EvidenceScalar = str | int | float | bool | None
CheckerFactory = Callable[[], "BaseChecker"]

_UNKNOWN_ERRNO = -1
_READ_CHUNK_BYTES = 64 * 1024
_DRAIN_GRACE_SECONDS = 1.0


class CheckStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    """What one checker observed.

    Evidence values of ``None`` mean "not applicable" and are dropped on export.
    """

    status: CheckStatus
    reason: str | None = None
    evidence: Mapping[str, EvidenceScalar] | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "status", CheckStatus(self.status))
        except ValueError:
            _fail("CheckOutcome.status", f"unsupported value {self.status!r}")
        if self.reason is not None and (not isinstance(self.reason, str) or not self.reason):
            _fail("CheckOutcome.reason", "must be a non-empty string when present")
        if self.evidence is not None:
            object.__setattr__(self, "evidence", dict(self.evidence))

    @classmethod
    def passed(cls, evidence: Mapping[str, EvidenceScalar] | None = None) -> CheckOutcome:
        return cls(status=CheckStatus.PASSED, evidence=evidence)

    @classmethod
    def failed(
        cls, reason: str, evidence: Mapping[str, EvidenceScalar] | None = None
    ) -> CheckOutcome:
        return cls(status=CheckStatus.FAILED, reason=reason, evidence=evidence)

    @classmethod
    def unknown(
        cls, reason: str, evidence: Mapping[str, EvidenceScalar] | None = None
    ) -> CheckOutcome:
        return cls(status=CheckStatus.UNKNOWN, reason=reason, evidence=evidence)


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Portable command invocation: argv only, never a shell string."""

    argv: tuple[str, ...]
    timeout_seconds: float | None = None
    cwd: str | None = None
    env: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        if not self.argv or not all(isinstance(item, str) for item in self.argv):
            _fail("CommandSpec.argv", "must be a non-empty sequence of strings")
        object.__setattr__(self, "argv", tuple(self.argv))
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            _fail("CommandSpec.timeout_seconds", "must be > 0")


@dataclass(frozen=True, slots=True)
class CommandResult:
    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    spawn_errno: int | None = None

    @property
    def spawn_failed(self) -> bool:
        return self.spawn_errno is not None


@runtime_checkable
class CommandExecutor(Protocol):
    """Pluggable async command execution interface for checkers."""

    async def run(self, spec: CommandSpec) -> CommandResult: ...


class LocalSubprocessExecutor(CommandExecutor):
    """Async local subprocess executor with bounded capture and kill-on-timeout."""

    def __init__(self, *, max_output_chars: int | None = DEFAULT_MAX_OUTPUT_CHARS) -> None:
        if max_output_chars is not None and max_output_chars <= 0:
            raise ValueError("max_output_chars must be > 0")
        self._max_output_chars = max_output_chars

    async def run(self, spec: CommandSpec) -> CommandResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=spec.cwd,
                env=dict(spec.env) if spec.env is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                spawn_errno=exc.errno if exc.errno is not None else _UNKNOWN_ERRNO,
            )
        except ValueError:
            # Embedded NUL byte in argv.
            return CommandResult(argv=spec.argv, exit_code=None, spawn_errno=_UNKNOWN_ERRNO)

        stdout_bytes = bytearray()
        stderr_bytes = bytearray()
        readers = (
            asyncio.create_task(_drain(process.stdout, stdout_bytes)),
            asyncio.create_task(_drain(process.stderr, stderr_bytes)),
        )
        timed_out = await _wait_or_kill(process, readers, spec.timeout_seconds)

        return CommandResult(
            argv=spec.argv,
            exit_code=None if timed_out else process.returncode,
            stdout=_truncate_text(_normalize_output_text(stdout_bytes), self._max_output_chars),
            stderr=_truncate_text(_normalize_output_text(stderr_bytes), self._max_output_chars),
            timed_out=timed_out,
        )


@dataclass(slots=True)
class CheckerContext:
    """Shared execution settings and collaborators for one verification run."""

    command_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS
    http_timeout_ms: int = DEFAULT_HTTP_TIMEOUT_MS
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS
    command_executor: CommandExecutor | None = None
    http_transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        for name in ("command_timeout_ms", "http_timeout_ms", "max_output_chars"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                _fail(f"CheckerContext.{name}", "must be a positive integer")
        if self.command_executor is None:
            self.command_executor = LocalSubprocessExecutor(
                max_output_chars=self.max_output_chars
            )
        elif not isinstance(self.command_executor, CommandExecutor):
            _fail("CheckerContext.command_executor", "must implement CommandExecutor")

    def require_executor(self) -> CommandExecutor:
        if self.command_executor is None:
            _fail("CheckerContext.command_executor", "command executor is required")
        return self.command_executor


@runtime_checkable
class BaseChecker(Protocol):
    """Checker protocol implemented by each verification capability."""

    capability: str

    async def check(self, params: Mapping[str, str], context: CheckerContext) -> CheckOutcome: ...


@dataclass(frozen=True, slots=True)
class CheckerRegistration:
    capability: str
    factory: CheckerFactory


@dataclass(slots=True)
class CheckerRegistry:
    """Deterministic capability -> checker factory registry."""

    _registrations: dict[str, CheckerRegistration] = field(default_factory=dict)

    def register(self, capability: str, factory: CheckerFactory) -> None:
        if not isinstance(capability, str) or not capability.strip():
            _fail("capability", "must be a non-empty string")
        if not callable(factory):
            _fail("factory", "must be callable")
        if capability in self._registrations:
            _fail("capability", f"{capability!r} is already registered")
        self._registrations[capability] = CheckerRegistration(
            capability=capability, factory=factory
        )

    def contains(self, capability: str) -> bool:
        return capability in self._registrations

    def create(self, capability: str) -> BaseChecker:
        registration = self._registrations.get(capability)
        if registration is None:
            known = ", ".join(self.registered_capabilities())
            _fail("capability", f"unknown capability {capability!r}; registered: [{known}]")
        checker = registration.factory()
        if not isinstance(checker, BaseChecker):
            _fail("factory", f"{capability!r} factory did not return a BaseChecker")
        return checker

    def registered_capabilities(self) -> tuple[str, ...]:
        return tuple(sorted(self._registrations))


CheckerType = TypeVar("CheckerType", bound=BaseChecker)

DEFAULT_CHECKER_REGISTRY = CheckerRegistry()


def register_builtin_checker(
    capability: str,
    *,
    registry: CheckerRegistry | None = None,
) -> Callable[[type[CheckerType]], type[CheckerType]]:
    """Class decorator that registers a zero-argument checker under ``capability``."""

    target = registry if registry is not None else DEFAULT_CHECKER_REGISTRY

    def decorator(checker_cls: type[CheckerType]) -> type[CheckerType]:
        _validate_zero_arg_constructor(checker_cls, capability=capability)
        target.register(capability, factory=lambda: checker_cls())
        return checker_cls

    return decorator


def errno_name(code: int | None) -> str:
    """Symbolic errno (``ENOENT``), or ``unknown``."""

    if code is None:
        return "unknown"
    return errno.errorcode.get(code, "unknown")


def parse_exact_int(text: str) -> int | None:
    """Parse ``text`` only if it round-trips exactly (``"007"`` and ``"+1"`` are rejected)."""

    try:
        value = int(text, 10)
    except ValueError:
        return None
    return value if str(value) == text else None


async def _drain(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    if stream is None:
        return
    while chunk := await stream.read(_READ_CHUNK_BYTES):
        sink.extend(chunk)


async def _wait_or_kill(
    process: asyncio.subprocess.Process,
    readers: tuple[asyncio.Task[None], ...],
    timeout_seconds: float | None,
) -> bool:
    """Wait for exit and both output readers; return True if the deadline killed it.

    Output read before a kill stays in the readers' buffers.
    """

    try:
        await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
    except TimeoutError:
        with suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        # Descendants may still hold the pipes open after the kill.
        _, pending = await asyncio.wait(readers, timeout=_DRAIN_GRACE_SECONDS)
        for reader in pending:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
        return True
    except asyncio.CancelledError:
        with suppress(ProcessLookupError):
            process.kill()
        for reader in readers:
            reader.cancel()
        await process.wait()
        raise
    await asyncio.gather(*readers)
    return False


def _normalize_output_text(raw: bytes | bytearray | None) -> str:
    if not raw:
        return ""
    return raw.decode("utf-8", errors="replace")


def _truncate_text(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    return text[:max_chars]


def _validate_zero_arg_constructor(checker_cls: type[object], *, capability: str) -> None:
    signature = inspect.signature(checker_cls)
    for parameter in signature.parameters.values():
        if parameter.default is inspect.Parameter.empty and parameter.kind in {
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.KEYWORD_ONLY,
        }:
            _fail("checker_cls", f"{capability!r} checker must be constructible without arguments")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "DEFAULT_CHECKER_REGISTRY",
    "BaseChecker",
    "CheckOutcome",
    "CheckStatus",
    "CheckerContext",
    "CheckerFactory",
    "CheckerRegistration",
    "CheckerRegistry",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "EvidenceScalar",
    "LocalSubprocessExecutor",
    "errno_name",
    "parse_exact_int",
    "register_builtin_checker",
]
