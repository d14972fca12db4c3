"""
dil-core verification runner

File: src/dil_core/verification_plane/runner.py

Purpose
- Turn a DIL document into a verification receipt: select runnable checks, execute
  them concurrently under a bound, and aggregate their statuses.

Functional requirements
- Each selected check runs exactly once; there are no retries or polling.
- Predicate and parameter problems become ``unknown`` checks without touching the world.
- Execution order is free; reported order is by ``check_id``.
- An empty selection is ``verified``.

Non-functional requirements
- No shared state between checks; a check's result never depends on another's.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

import structlog

from dil_core.constants import (
    DEFAULT_COMMAND_TIMEOUT_MS,
    DEFAULT_HTTP_TIMEOUT_MS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_OUTPUT_CHARS,
)
from dil_core.spec_ingestion.parser import parse_dil
from dil_core.utils.concurrency import gather_bounded
from dil_core.verification_plane.checkers import DEFAULT_CHECKER_REGISTRY
from dil_core.verification_plane.checkers.base import (
    CheckerContext,
    CheckerRegistry,
    CheckOutcome,
    CommandExecutor,
)
from dil_core.verification_plane.predicates import (
    PlannedCheck,
    extract_predicates,
    filter_checks,
    parse_params_for,
    select_checks,
)
from dil_core.verification_plane.receipt import (
    CheckRecord,
    VerificationReceipt,
    aggregate_verification_state,
)

if TYPE_CHECKING:
    import httpx

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class VerificationSettings:
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    command_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS
    http_timeout_ms: int = DEFAULT_HTTP_TIMEOUT_MS
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS

    def __post_init__(self) -> None:
        for item in fields(self):
            name = item.name
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"VerificationSettings.{name}: must be a positive integer")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> VerificationSettings:
        section = config.get("verification", {})
        return cls(
            max_concurrency=section.get("max_concurrency", DEFAULT_MAX_CONCURRENCY),
            command_timeout_ms=section.get("command_timeout_ms", DEFAULT_COMMAND_TIMEOUT_MS),
            http_timeout_ms=section.get("http_timeout_ms", DEFAULT_HTTP_TIMEOUT_MS),
            max_output_chars=section.get("max_output_chars", DEFAULT_MAX_OUTPUT_CHARS),
        )


async def run_check(
    check: PlannedCheck,
    *,
    context: CheckerContext,
    registry: CheckerRegistry = DEFAULT_CHECKER_REGISTRY,
) -> CheckRecord:
    parsed = parse_params_for(check)
    if parsed.reason is not None:
        outcome = CheckOutcome.unknown(parsed.reason)
    else:
        checker = registry.create(check.capability)
        outcome = await checker.check(parsed.params, context)

    logger.info(
        "check_completed",
        check_id=check.check_id,
        status=outcome.status.value,
        reason=outcome.reason,
    )
    return CheckRecord.from_outcome(check.check_id, check.capability, outcome)


async def run_checks(
    checks: Sequence[PlannedCheck],
    *,
    context: CheckerContext,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    registry: CheckerRegistry = DEFAULT_CHECKER_REGISTRY,
) -> list[CheckRecord]:
    async def _worker(check: PlannedCheck) -> CheckRecord:
        return await run_check(check, context=context, registry=registry)

    return await gather_bounded(checks, _worker, max_concurrency=max_concurrency)


async def verify_text(
    raw_text: str,
    *,
    spec_hash: str,
    validation_receipt_ref: str,
    settings: VerificationSettings | None = None,
    only_ids: Sequence[str] | None = None,
    only_prefixes: Sequence[str] | None = None,
    registry: CheckerRegistry = DEFAULT_CHECKER_REGISTRY,
    command_executor: CommandExecutor | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> VerificationReceipt:
    """Run every selected verification check in ``raw_text`` and build the receipt."""

    effective = settings or VerificationSettings()
    parsed = parse_dil(raw_text)
    planned = filter_checks(
        select_checks(parsed, extract_predicates(raw_text)),
        only_ids=only_ids,
        only_prefixes=only_prefixes,
    )
    context = CheckerContext(
        command_timeout_ms=effective.command_timeout_ms,
        http_timeout_ms=effective.http_timeout_ms,
        max_output_chars=effective.max_output_chars,
        command_executor=command_executor,
        http_transport=http_transport,
    )

    records = await run_checks(
        planned,
        context=context,
        max_concurrency=effective.max_concurrency,
        registry=registry,
    )
    receipt = VerificationReceipt(
        spec_version=parsed.spec_version,
        system_id=parsed.system_id,
        spec_hash=spec_hash,
        validation_receipt_ref=validation_receipt_ref,
        state=aggregate_verification_state(record.status for record in records),
        checks=tuple(records),
    )
    logger.info(
        "verification_completed",
        state=receipt.state.value,
        exit_code=receipt.exit_code,
        checks=len(records),
    )
    return receipt


__all__ = [
    "VerificationSettings",
    "run_check",
    "run_checks",
    "verify_text",
]
