"""Connection state machine values and externally visible status."""

from __future__ import annotations

from enum import StrEnum


class ConnectionState(StrEnum):
    """Internal supervisor state.

    Normal progression::

        DISCONNECTED -> CONNECTING -> AUTHENTICATING -> AUTHENTICATED
            -> CHANNEL_OPENING -> LIVE

    Any failure moves to ``BACKOFF``; a reconnect moves back to
    ``CONNECTING``.  Reconfiguration and shutdown move to
    ``DISCONNECTED`` from any state.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CHANNEL_OPENING = "channel_opening"
    LIVE = "live"
    BACKOFF = "backoff"


class ConnectionStatus(StrEnum):
    """The small status enum the adapter layer renders."""

    CONNECTING = "connecting"
    LIVE = "live"
    DEGRADED = "degraded"
    BAD_CONFIG = "bad_config"
