"""
dil-core HTTP endpoint checker

File: src/dil_core/verification_plane/checkers/http_endpoint.py

Purpose
- Implements ``check_http_endpoint``: issue one GET or HEAD request and compare the
  response status.

Functional requirements
- Exactly one request; redirects are not followed and the body is not read.
- ``connection_refused`` and status mismatches are confirmed negatives; DNS, TLS,
  timeout and other network failures are ``unknown``.
- Proxy environment variables are ignored so results depend only on the target.
"""

from __future__ import annotations

import asyncio
import errno
import socket
import ssl
from collections.abc import Iterator, Mapping
from typing import Final

import httpx

from dil_core.constants import CHECK_HTTP_ENDPOINT
from dil_core.verification_plane.checkers.base import (
    BaseChecker,
    CheckerContext,
    CheckOutcome,
    errno_name,
    register_builtin_checker,
)

DEFAULT_METHOD: Final[str] = "GET"
DEFAULT_EXPECTED_STATUS: Final[int] = 200

_UNREACHABLE_ERRNOS: Final[frozenset[int]] = frozenset({errno.ENETUNREACH, errno.EHOSTUNREACH})
_DNS_MESSAGE_HINTS: Final[tuple[str, ...]] = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


@register_builtin_checker(CHECK_HTTP_ENDPOINT)
class HttpEndpointChecker(BaseChecker):
    """Single-request HTTP status check."""

    capability = CHECK_HTTP_ENDPOINT

    async def check(self, params: Mapping[str, str], context: CheckerContext) -> CheckOutcome:
        method = (params.get("method") or DEFAULT_METHOD).upper()
        expected_status = (
            int(params["expected_status"])
            if "expected_status" in params
            else DEFAULT_EXPECTED_STATUS
        )
        timeout_ms = int(params["timeout_ms"]) if "timeout_ms" in params else context.http_timeout_ms
        timeout_seconds = timeout_ms / 1000

        try:
            async with asyncio.timeout(timeout_seconds):
                actual_status = await _request_status(
                    method,
                    params["url"],
                    timeout_seconds=timeout_seconds,
                    transport=context.http_transport,
                )
        except (TimeoutError, httpx.TimeoutException):
            return CheckOutcome.unknown("timeout_exceeded")
        except (httpx.InvalidURL, httpx.UnsupportedProtocol):
            return CheckOutcome.unknown("invalid_url:parse_error")
        except httpx.HTTPError as exc:
            return classify_transport_error(exc)

        evidence = {"actual_status": actual_status}
        if actual_status != expected_status:
            return CheckOutcome.failed(
                f"status_mismatch:expected={expected_status},actual={actual_status}",
                evidence,
            )
        return CheckOutcome.passed(evidence)


async def _request_status(
    method: str,
    url: str,
    *,
    timeout_seconds: float,
    transport: httpx.AsyncBaseTransport | None,
) -> int:
    async with httpx.AsyncClient(
        transport=transport,
        follow_redirects=False,
        timeout=httpx.Timeout(timeout_seconds),
        trust_env=False,
    ) as client:
        async with client.stream(method, url) as response:
            return response.status_code


def classify_transport_error(exc: BaseException) -> CheckOutcome:
    """Map an httpx transport failure onto a check outcome."""

    chain = list(_exception_chain(exc))
    errnos = [item.errno for item in chain if isinstance(item, OSError) and item.errno]
    message = " ".join(str(item) for item in chain)

    if any(isinstance(item, ConnectionRefusedError) for item in chain) or (
        errno.ECONNREFUSED in errnos
    ):
        return CheckOutcome.failed("connection_refused")
    if any(isinstance(item, socket.gaierror) for item in chain) or any(
        hint in message.lower() for hint in _DNS_MESSAGE_HINTS
    ):
        return CheckOutcome.unknown("dns_failure")
    if errno.ETIMEDOUT in errnos:
        return CheckOutcome.unknown("timeout_exceeded")
    for code in errnos:
        if code in _UNREACHABLE_ERRNOS:
            return CheckOutcome.unknown(f"network_error:{errno_name(code)}")
    if any(isinstance(item, ssl.SSLError) for item in chain) or "SSL" in message or "TLS" in message:
        return CheckOutcome.unknown("tls_error")
    return CheckOutcome.unknown(f"network_error:{errno_name(errnos[0] if errnos else None)}")


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        if isinstance(current, BaseExceptionGroup):
            pending.extend(current.exceptions)
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)


__all__ = [
    "DEFAULT_EXPECTED_STATUS",
    "DEFAULT_METHOD",
    "HttpEndpointChecker",
    "classify_transport_error",
]
