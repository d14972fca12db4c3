"""Plain-text summaries for ``dil --summary``.

File: src/dil_core/ui/render.py

Purpose
- Human-readable per-outcome and per-check tables, written to stderr so stdout
  stays machine-readable.

Non-functional requirements
- No dependencies beyond the standard library.
- Deterministic: rows follow the canonical order of the report or receipt.
"""

from __future__ import annotations

import sys
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dil_core.domain.models import CanonicalReport
    from dil_core.verification_plane.receipt import VerificationReceipt


class CLIRenderer:
    """Thin plain-text renderer bound to one output stream."""

    def __init__(self, *, stream: IO[str] | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> IO[str]:
        return self._stream if self._stream is not None else sys.stderr

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}", file=self.stream)

    def text(self, line: str) -> None:
        print(line, file=self.stream)

    def section(self, title: str) -> None:
        print(f"\n{title}", file=self.stream)

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table; nothing is printed for zero rows."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts = [
                (str(cells[i]) if i < len(cells) else "").ljust(widths[i])
                for i in range(col_count)
            ]
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        self.text(f"  {_pad(list(headers))}")
        self.text(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            self.text(f"  {_pad(list(row))}")


def create_renderer(*, stream: IO[str] | None = None) -> CLIRenderer:
    return CLIRenderer(stream=stream)


def render_report_summary(report: CanonicalReport, renderer: CLIRenderer) -> None:
    renderer.kv("System", report.system_id)
    renderer.kv("Spec version", report.spec_version)
    renderer.kv("State", f"{report.state.value} (exit {report.exit_code})")

    outcome_rows = [
        [
            outcome.validation_id,
            outcome.status.value,
            ", ".join(sorted(outcome.targets)),
            outcome.reason or "",
        ]
        for outcome in sorted(report.outcomes, key=lambda item: item.validation_id)
    ]
    renderer.table(("VALIDATION", "STATUS", "TARGETS", "REASON"), outcome_rows, title="Outcomes:")

    error_rows = [
        [error.code, error.message]
        for error in sorted(report.errors, key=lambda item: item.code)
    ]
    renderer.table(("CODE", "MESSAGE"), error_rows, title="Errors:")


def render_verification_summary(receipt: VerificationReceipt, renderer: CLIRenderer) -> None:
    renderer.kv("System", receipt.system_id)
    renderer.kv("State", f"{receipt.state.value} (exit {receipt.exit_code})")
    renderer.kv("Validation receipt", receipt.validation_receipt_ref)
    if not receipt.checks:
        renderer.text("No verification checks selected.")
        return
    rows = [
        [record.check_id, record.capability, record.status.value, record.reason or ""]
        for record in receipt.checks
    ]
    renderer.table(("CHECK", "CAPABILITY", "STATUS", "REASON"), rows, title="Checks:")


__all__ = [
    "CLIRenderer",
    "create_renderer",
    "render_report_summary",
    "render_verification_summary",
]
