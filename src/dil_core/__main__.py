"""Module entrypoint for ``python -m dil_core``."""

from __future__ import annotations

from dil_core.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
