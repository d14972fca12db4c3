"""
dil-core filesystem utilities

File: src/dil_core/utils/fs.py

Purpose
- Atomic writes for receipts and run artifacts.

Functional requirements
- Writes go to a temp file in the destination directory and replace the target in
  one step; a crash never leaves a half-written receipt behind.
- Missing parent directories are created on request.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = ["atomic_write", "ensure_directory"]


def ensure_directory(path: PathLike) -> Path:
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    make_parents: bool = False,
) -> Path:
    """
    Atomically write ``data`` to ``path`` and return the target path.

    The temp file lives beside the target so ``os.replace`` never crosses devices.
    """

    target = Path(path)
    if make_parents:
        ensure_directory(target.parent)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    payload = data if isinstance(data, bytes) else data.encode(encoding)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise
    return target


def _fsync_directory(path: Path) -> None:
    # Not every platform supports fsync on a directory handle.
    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
