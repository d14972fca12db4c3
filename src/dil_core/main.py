"""
dil-core process entrypoint

File: src/dil_core/main.py

Purpose
- Turn whatever the CLI router returns or raises into a process exit status.

Functional requirements
- 0 valid/verified, 1 invalid/unverified/usage error, 2 undecidable/unknown,
  3 configuration error, 4 internal error.
- ``dil run`` returns the wrapped command's status unchanged (0..255).
- Internal errors print a traceback on stderr; config errors print only their message.
"""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterator, Sequence
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    REJECTED = 1
    UNDECIDABLE = 2
    CONFIG_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m dil_core`` and the ``dil`` script."""

    try:
        from dil_core.ui.cli import run_cli

        status: object = run_cli(argv)
    except SystemExit as exc:
        status = exc.code
    except Exception as exc:  # noqa: BLE001 - last-resort boundary
        return _report_crash(exc)
    return _as_process_status(status)


def _as_process_status(status: object) -> int:
    if status is None:
        return ExitCode.SUCCESS
    if isinstance(status, int) and not isinstance(status, bool) and 0 <= status <= 255:
        return status
    if isinstance(status, str) and status.strip():
        print(status.strip(), file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _report_crash(exc: Exception) -> int:
    from dil_core.config import ConfigLoadError, ConfigValidationError

    if any(isinstance(link, (ConfigLoadError, ConfigValidationError)) for link in _causes(exc)):
        print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return ExitCode.CONFIG_ERROR
    traceback.print_exception(exc, file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    link: BaseException | None = exc
    while link is not None and id(link) not in seen:
        seen.add(id(link))
        yield link
        link = link.__cause__ or (None if link.__suppress_context__ else link.__context__)


__all__ = ["ExitCode", "cli_entrypoint"]
