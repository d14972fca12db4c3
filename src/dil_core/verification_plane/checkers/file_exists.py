"""
dil-core file existence checker

File: src/dil_core/verification_plane/checkers/file_exists.py

Purpose
- Implements ``check_file_exists``: stat an absolute path and compare its kind and size.

Functional requirements
- A missing path is a confirmed negative (``failed``); permission and other
  filesystem errors are indeterminate (``unknown``).
- Symlinks are followed.
- ``min_size_bytes`` is only compared for regular files.
"""

from __future__ import annotations

import asyncio
import errno
import os
import stat
from collections.abc import Mapping

from dil_core.constants import CHECK_FILE_EXISTS
from dil_core.verification_plane.checkers.base import (
    BaseChecker,
    CheckerContext,
    CheckOutcome,
    EvidenceScalar,
    errno_name,
    register_builtin_checker,
)


@register_builtin_checker(CHECK_FILE_EXISTS)
class FileExistsChecker(BaseChecker):
    """Filesystem presence, type and minimum size."""

    capability = CHECK_FILE_EXISTS

    async def check(self, params: Mapping[str, str], context: CheckerContext) -> CheckOutcome:
        del context
        path = params["path"]
        expected_type = params.get("type") or None
        min_size = int(params["min_size_bytes"]) if "min_size_bytes" in params else None

        try:
            stat_result = await asyncio.to_thread(os.stat, path)
        except OSError as exc:
            return _stat_failure(exc)
        except ValueError:
            # Embedded NUL byte in the path.
            return CheckOutcome.unknown(f"filesystem_error:{errno_name(None)}")

        actual_type = _describe_mode(stat_result.st_mode)
        actual_size = stat_result.st_size if actual_type == "file" else None
        evidence: dict[str, EvidenceScalar] = {
            "actual_type": actual_type,
            "actual_size_bytes": actual_size,
            "exists": True,
        }

        if expected_type is not None and actual_type != expected_type:
            return CheckOutcome.failed(
                f"type_mismatch:expected={expected_type},actual={actual_type}",
                evidence,
            )
        if min_size is not None and actual_size is not None and actual_size < min_size:
            return CheckOutcome.failed(
                f"size_below_minimum:expected={min_size},actual={actual_size}",
                evidence,
            )
        return CheckOutcome.passed(evidence)


def _stat_failure(exc: OSError) -> CheckOutcome:
    if exc.errno == errno.ENOENT:
        return CheckOutcome.failed("path_not_found", {"exists": False})
    if exc.errno == errno.EACCES:
        return CheckOutcome.unknown("permission_denied")
    return CheckOutcome.unknown(f"filesystem_error:{errno_name(exc.errno)}")


def _describe_mode(mode: int) -> str:
    if stat.S_ISDIR(mode):
        return "directory"
    if stat.S_ISREG(mode):
        return "file"
    return "other"


__all__ = ["FileExistsChecker"]
