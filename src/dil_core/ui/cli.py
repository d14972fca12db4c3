"""Command-line interface router for dil-core."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import structlog

from dil_core.config import (
    ConfigLoadError,
    ConfigValidationError,
    config_path,
    dump_effective_config,
    load_config,
)
from dil_core.constants import MISSING_RECEIPT_REF
from dil_core.main import ExitCode
from dil_core.observability import configure_logging
from dil_core.persistence import ReceiptStore, ReceiptStoreError
from dil_core.report import emit_canonical_report
from dil_core.ui.render import create_renderer, render_report_summary, render_verification_summary
from dil_core.utils.hashing import sha256_bytes
from dil_core.validation import EmittedReport, read_failure_report, validate_text
from dil_core.verification_plane import (
    VerificationSettings,
    emit_verification_receipt,
    verify_text,
)
from dil_core.verification_plane.checkers.base import (
    CommandSpec,
    LocalSubprocessExecutor,
    errno_name,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SPEC_PATH_ENV = "DIL_SPEC_PATH"
RECEIPT_PATH_ENV = "DIL_RECEIPT_PATH"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = ExitCode.REJECTED

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _LoadedSpec:
    path: Path
    text: str
    spec_hash: str


class _ArgumentParser(argparse.ArgumentParser):
    """Routes usage errors through ``CLIError`` so they exit with 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        raise CLIError(f"{self.prog}: {message}", exit_code=ExitCode.REJECTED)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = _ArgumentParser(
        prog="dil",
        description=(
            "dil - validate and verify DIL intent specifications.\n\n"
            "Common workflows:\n"
            "  dil validate spec.dil           Write a validation receipt\n"
            "  dil verify spec.dil             Run declared verification checks\n"
            "  dil run spec.dil -- make test   Validate, then run a command\n"
            "  dil config                      Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = _ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a dil TOML config (default: ./dil.toml if present).",
    )
    common.add_argument(
        "--log-level",
        default=None,
        help="Log level for stderr diagnostics (DEBUG, INFO, WARNING, ...).",
    )
    common.add_argument(
        "--log-format",
        choices=("console", "json"),
        default=None,
        help="Log line format.",
    )

    report_flags = _ArgumentParser(add_help=False)
    report_flags.add_argument("--out", default=None, help="Write the receipt to this path")
    report_flags.add_argument(
        "--json",
        action="store_true",
        help="Print the receipt JSON on stdout instead of its path",
    )
    report_flags.add_argument(
        "--summary",
        action="store_true",
        help="Print a plain-text summary on stderr",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common, report_flags],
        help="Validate a spec and write its canonical report",
        description=(
            "Run the mandatory validations and write the canonical report as a receipt.\n\n"
            "Exit codes: 0 valid, 1 invalid, 2 undecidable.\n\n"
            "Examples:\n"
            "  dil validate spec.dil\n"
            "  dil validate spec.dil --json --summary\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument("spec_path", help="Path to the DIL spec")
    validate_parser.set_defaults(handler=_cmd_validate)

    # verify --------------------------------------------------------------
    verify_parser = subparsers.add_parser(
        "verify",
        parents=[common, report_flags],
        help="Run the file, command and HTTP checks declared in a spec",
        description=(
            "Execute every validation whose predicate names a verification capability.\n\n"
            "Exit codes: 0 verified, 1 unverified, 2 unknown.\n\n"
            "Examples:\n"
            "  dil verify spec.dil\n"
            "  dil verify spec.dil --only-check-prefix V-SMOKE\n"
            "  dil verify spec.dil --only-check-ids V1,V2\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    verify_parser.add_argument("spec_path", help="Path to the DIL spec")
    verify_parser.add_argument(
        "--only-check-prefix",
        dest="only_check_prefixes",
        action="append",
        default=None,
        help="Only run validations whose id starts with this prefix (repeatable)",
    )
    verify_parser.add_argument(
        "--only-check-ids",
        default=None,
        help="Comma-separated validation ids to run (overrides --only-check-prefix)",
    )
    verify_parser.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Maximum number of checks executed at once",
    )
    verify_parser.set_defaults(handler=_cmd_verify)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Validate a spec, then run a command against it",
        description=(
            "Validate first; only a valid spec runs the command. The command sees\n"
            f"{SPEC_PATH_ENV} and {RECEIPT_PATH_ENV} in its environment and its output is\n"
            "stored under the run directory.\n\n"
            "Examples:\n"
            "  dil run spec.dil -- make test\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument("spec_path", help="Path to the DIL spec")
    run_parser.add_argument(
        "command_argv",
        nargs=argparse.REMAINDER,
        help="Command to execute, after --",
    )
    run_parser.set_defaults(handler=_cmd_run)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, file, env and flags.\n\n"
            "Examples:\n"
            "  dil config\n"
            "  DIL_VERIFICATION_MAX_CONCURRENCY=8 dil config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    try:
        namespace = parser.parse_args(list(argv) if argv is not None else None)
        handler = namespace.handler
        return int(handler(namespace))
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _receipt_store(config)

    loaded, failure = _read_spec_or_report(args.spec_path)
    if loaded is None:
        print(failure)
        return ExitCode.REJECTED

    emitted, receipt_path = _validate_and_store(loaded, store, out=args.out)
    if args.summary:
        render_report_summary(emitted.report, create_renderer())
    print(emitted.text if args.json else receipt_path)
    return emitted.exit_code


def _cmd_verify(args: argparse.Namespace) -> int:
    config = _load_effective_config(args, max_concurrency=args.max_concurrency)
    store = _receipt_store(config)

    try:
        loaded = _read_spec(args.spec_path)
    except OSError as exc:
        raise CLIError(
            f"cannot read spec file {args.spec_path}: {_describe_read_error(exc)}",
            exit_code=ExitCode.UNDECIDABLE,
        ) from exc

    existing = store.find_validation_receipt(loaded.spec_hash)
    receipt = asyncio.run(
        verify_text(
            loaded.text,
            spec_hash=loaded.spec_hash,
            validation_receipt_ref=str(existing) if existing is not None else MISSING_RECEIPT_REF,
            settings=VerificationSettings.from_config(config),
            only_ids=_split_csv(args.only_check_ids),
            only_prefixes=args.only_check_prefixes,
        )
    )
    text = emit_verification_receipt(receipt)
    receipt_path = _store_call(
        lambda: store.write_verification_receipt(loaded.spec_hash, text, out=_out_path(args.out))
    )

    if args.summary:
        render_verification_summary(receipt, create_renderer())
    print(text if args.json else receipt_path)
    return receipt.exit_code


def _cmd_run(args: argparse.Namespace) -> int:
    command = list(args.command_argv)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        raise CLIError("run requires a command after --", exit_code=ExitCode.REJECTED)

    config = _load_effective_config(args)
    store = _receipt_store(config)

    loaded, failure = _read_spec_or_report(args.spec_path)
    if loaded is None:
        print(failure)
        return ExitCode.REJECTED

    emitted, receipt_path = _validate_and_store(loaded, store, out=None)
    print(receipt_path)
    if emitted.exit_code != ExitCode.SUCCESS:
        return emitted.exit_code

    workspace = _store_call(lambda: store.create_run(loaded.spec_hash))
    _store_call(lambda: store.write_run_file(workspace.receipt_pointer, f"{receipt_path}\n"))

    env = {**os.environ, SPEC_PATH_ENV: str(loaded.path), RECEIPT_PATH_ENV: str(receipt_path)}
    result = asyncio.run(
        LocalSubprocessExecutor(max_output_chars=None).run(
            CommandSpec(argv=tuple(command), env=env)
        )
    )
    if result.spawn_failed:
        raise CLIError(
            f"unable to start {command[0]!r}: {errno_name(result.spawn_errno)}",
            exit_code=ExitCode.REJECTED,
        )

    _store_call(lambda: store.write_run_file(workspace.stdout_log, result.stdout))
    _store_call(lambda: store.write_run_file(workspace.stderr_log, result.stderr))

    exit_code = _process_exit_status(result.exit_code)
    logger.info("run_completed", run_id=workspace.run_id, exit_code=exit_code)
    print(f"run directory: {workspace.path}", file=sys.stderr)
    return exit_code


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    print(dump_effective_config(config))
    return ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(
    args: argparse.Namespace, *, max_concurrency: int | None = None
) -> dict[str, Any]:
    overrides: dict[str, object] = {
        "observability.log_level": args.log_level,
        "observability.log_format": args.log_format,
        "verification.max_concurrency": max_concurrency,
    }
    try:
        config = load_config(args.config_path, cli_overrides=overrides)
        observability = config["observability"]
        configure_logging(observability["log_level"], observability["log_format"])
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc
    return config


def _receipt_store(config: dict[str, Any]) -> ReceiptStore:
    return ReceiptStore(
        receipts_dir=config_path(config, "receipts_dir"),
        verification_dir=config_path(config, "verification_dir"),
        runs_dir=config_path(config, "runs_dir"),
    )


def _read_spec(spec_arg: str) -> _LoadedSpec:
    path = Path(spec_arg).expanduser().resolve()
    raw = path.read_bytes()
    text = raw.decode("utf-8-sig", errors="replace")
    return _LoadedSpec(path=path, text=text, spec_hash=sha256_bytes(raw))


def _read_spec_or_report(spec_arg: str) -> tuple[_LoadedSpec | None, str]:
    """Loaded spec, or the canonical PARSE_ERROR report for an unreadable one."""

    try:
        return _read_spec(spec_arg), ""
    except OSError as exc:
        logger.warning("spec_unreadable", path=spec_arg, error=_describe_read_error(exc))
        return None, emit_canonical_report(read_failure_report(spec_arg, exc))


def _validate_and_store(
    loaded: _LoadedSpec, store: ReceiptStore, *, out: str | None
) -> tuple[EmittedReport, Path]:
    emitted = validate_text(loaded.text)
    receipt_path = _store_call(
        lambda: store.write_validation_receipt(loaded.spec_hash, emitted.text, out=_out_path(out))
    )
    return emitted, receipt_path


def _store_call(action: Callable[[], T]) -> T:
    try:
        return action()
    except ReceiptStoreError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.INTERNAL_ERROR) from exc


def _out_path(out: str | None) -> Path | None:
    return Path(out).expanduser().resolve() if out else None


def _split_csv(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or None


def _describe_read_error(exc: BaseException) -> str:
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc)


def _process_exit_status(exit_code: int | None) -> int:
    if exit_code is None:
        return ExitCode.REJECTED
    if exit_code < 0:
        # Killed by a signal: follow the shell's 128+N convention.
        return 128 - exit_code
    return exit_code


__all__ = ["CLIError", "build_parser", "run_cli"]
