"""Custom exception hierarchy for pynxm."""

from __future__ import annotations


class NxmError(Exception):
    """Base exception for all pynxm errors."""


class NxmConfigError(NxmError):
    """Invalid or missing configuration (e.g. empty host)."""


class NxmTransportError(NxmError):
    """Transport-level failure.

    Exactly one of ``status_code`` (the appliance answered with an
    HTTP error) or ``network_code`` (no response was received, e.g.
    ``ECONNREFUSED``) is normally set.  The error classifier relies on
    these tags and never inspects the underlying aiohttp exception.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        network_code: str | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.network_code = network_code
        self.endpoint = endpoint
        super().__init__(message)


class NxmAuthenticationError(NxmTransportError):
    """Login rejected or session no longer authorised."""


class NxmChannelClosedError(NxmTransportError):
    """The realtime websocket closed or reported an error."""


class NxmProtocolError(NxmError):
    """Payload could not be parsed or failed schema validation."""


class NxmCancelledError(NxmError):
    """Job was invalidated by a newer connection generation or cancel_all()."""


class NxmDispatcherError(NxmError):
    """The request dispatcher is closed and cannot accept work."""
