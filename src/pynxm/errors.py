"""Failure classification.

:func:`classify` maps any exception raised inside the library onto a
:class:`Classification`.  It has no side effects: the supervisor decides
what to do with the result (status change, reconnect, log only).

Transport failures are tagged at the transport boundary
(:class:`~pynxm.exceptions.NxmTransportError` carries either an HTTP
status code or an errno-style network code from :func:`network_code`),
so classification never has to inspect aiohttp exception shapes.
"""

from __future__ import annotations

import asyncio
import errno
import socket
from dataclasses import dataclass
from enum import StrEnum

import aiohttp
from pydantic import ValidationError

from pynxm.exceptions import (
    NxmAuthenticationError,
    NxmCancelledError,
    NxmChannelClosedError,
    NxmConfigError,
    NxmProtocolError,
    NxmTransportError,
)
from pynxm.status import ConnectionStatus


class ErrorKind(StrEnum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_FAULT = "server_fault"
    MALFORMED = "malformed"
    NETWORK_UNREACHABLE = "network_unreachable"
    CONNECTION_RESET = "connection_reset"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of classifying a failure."""

    kind: ErrorKind
    reconnect: bool
    message: str

    @property
    def status(self) -> ConnectionStatus | None:
        """Status the failure implies, or ``None`` when status must not change."""
        if self.kind in (ErrorKind.AUTHENTICATION, ErrorKind.CONFIGURATION):
            return ConnectionStatus.BAD_CONFIG
        if self.kind in (ErrorKind.CANCELLED, ErrorKind.MALFORMED):
            return None
        return ConnectionStatus.DEGRADED

    @property
    def is_error(self) -> bool:
        """Cancellation is an expected outcome and never reported as an error."""
        return self.kind is not ErrorKind.CANCELLED


_AUTH_STATUS_CODES: frozenset[int] = frozenset({401, 403, 511})
# Gateway/unavailable: the appliance is rebooting or its web server is not up yet.
_TRANSIENT_SERVER_CODES: frozenset[int] = frozenset({502, 503, 504})

_NETWORK_MESSAGES: dict[str, tuple[ErrorKind, str]] = {
    "ECONNREFUSED": (ErrorKind.NETWORK_UNREACHABLE, "Connection refused: Device may be offline or unreachable"),
    "ETIMEDOUT": (ErrorKind.NETWORK_UNREACHABLE, "Request timed out: Device not responding (ETIMEDOUT)"),
    "ECONNABORTED": (ErrorKind.NETWORK_UNREACHABLE, "Request timed out: Device not responding (ECONNABORTED)"),
    "ENOTFOUND": (ErrorKind.NETWORK_UNREACHABLE, "DNS resolution failed: Cannot find device hostname (ENOTFOUND)"),
    "EAI_AGAIN": (ErrorKind.NETWORK_UNREACHABLE, "DNS resolution failed: Cannot find device hostname (EAI_AGAIN)"),
    "ENETUNREACH": (ErrorKind.NETWORK_UNREACHABLE, "Network unreachable: Check network connectivity (ENETUNREACH)"),
    "EHOSTUNREACH": (ErrorKind.NETWORK_UNREACHABLE, "Network unreachable: Check network connectivity (EHOSTUNREACH)"),
    "ECONNRESET": (ErrorKind.CONNECTION_RESET, "Connection reset: Device closed connection unexpectedly"),
    "EPIPE": (ErrorKind.CONNECTION_RESET, "Broken pipe: Connection lost during transmission"),
    "ERR_NETWORK": (ErrorKind.NETWORK_UNREACHABLE, "Network error: Check device connection"),
}


def _classify_status(exc: NxmTransportError, status: int) -> Classification:
    if status in _AUTH_STATUS_CODES:
        return Classification(ErrorKind.AUTHENTICATION, False, f"Authentication error {status}: Check credentials")
    if status == 404:
        return Classification(ErrorKind.NOT_FOUND, False, f"Not found {status}: Endpoint may have changed")
    if status == 429:
        return Classification(ErrorKind.RATE_LIMITED, False, f"Rate limited {status}: Too many requests")
    if status >= 500:
        return Classification(
            ErrorKind.SERVER_FAULT,
            status in _TRANSIENT_SERVER_CODES,
            f"Server error {status}: {exc}",
        )
    return Classification(ErrorKind.UNKNOWN, False, f"HTTP {status}: {exc}")


def _classify_network(exc: NxmTransportError, code: str) -> Classification:
    known = _NETWORK_MESSAGES.get(code)
    if known is not None:
        kind, message = known
        return Classification(kind, True, message)
    if code == "ECANCELED":
        return Classification(ErrorKind.CANCELLED, False, "Request cancelled")
    if code == "ERR_BAD_REQUEST":
        return Classification(ErrorKind.UNKNOWN, False, f"Bad request: {exc}")
    if code == "ERR_BAD_RESPONSE":
        return Classification(ErrorKind.MALFORMED, False, f"Invalid response from device: {exc}")
    return Classification(ErrorKind.NETWORK_UNREACHABLE, True, f"Network error ({code}): {exc}")


def network_code(exc: BaseException) -> str:
    """Map a low-level aiohttp/OS failure onto an errno-style code.

    Used at the transport boundary to tag
    :class:`~pynxm.exceptions.NxmTransportError` before it reaches
    :func:`classify`.
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "ETIMEDOUT"
    if isinstance(exc, aiohttp.ServerDisconnectedError):
        return "ECONNRESET"
    if isinstance(exc, aiohttp.ClientConnectorError):
        os_error = exc.os_error
        if isinstance(os_error, socket.gaierror):
            return "EAI_AGAIN" if os_error.errno == socket.EAI_AGAIN else "ENOTFOUND"
        return errno.errorcode.get(os_error.errno or 0, "ERR_NETWORK")
    if isinstance(exc, (aiohttp.ClientPayloadError, aiohttp.ContentTypeError)):
        return "ERR_BAD_RESPONSE"
    if isinstance(exc, OSError) and exc.errno:
        return errno.errorcode.get(exc.errno, "ERR_NETWORK")
    return "ERR_NETWORK"


def _format_validation(exc: ValidationError) -> str:
    issues = "\n  ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return f"Invalid data returned:\n  {issues}"


def classify(exc: BaseException) -> Classification:
    """Classify *exc* into a kind, a reconnect recommendation and a message."""
    if isinstance(exc, (NxmCancelledError, asyncio.CancelledError)):
        return Classification(ErrorKind.CANCELLED, False, "Request cancelled")

    if isinstance(exc, NxmConfigError):
        return Classification(ErrorKind.CONFIGURATION, False, str(exc) or "Invalid configuration")

    if isinstance(exc, ValidationError):
        return Classification(ErrorKind.MALFORMED, False, _format_validation(exc))

    if isinstance(exc, NxmProtocolError):
        cause = exc.__cause__
        if isinstance(cause, ValidationError):
            return Classification(ErrorKind.MALFORMED, False, _format_validation(cause))
        return Classification(ErrorKind.MALFORMED, False, f"Invalid data returned: {exc}")

    if isinstance(exc, NxmAuthenticationError) and exc.status_code is None:
        return Classification(ErrorKind.AUTHENTICATION, False, f"Authentication failed: {exc}")

    if isinstance(exc, NxmTransportError):
        if exc.status_code is not None:
            return _classify_status(exc, exc.status_code)
        if exc.network_code:
            return _classify_network(exc, exc.network_code)
        if isinstance(exc, NxmChannelClosedError):
            return Classification(ErrorKind.CONNECTION_RESET, True, f"Realtime channel lost: {exc}")
        return Classification(ErrorKind.NETWORK_UNREACHABLE, True, f"Network error: {exc}")

    return Classification(ErrorKind.UNKNOWN, False, f"Unknown error: {exc}")
