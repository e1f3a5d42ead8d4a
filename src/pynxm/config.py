"""Client configuration for pynxm."""

from __future__ import annotations

import dataclasses
import os
from typing import Any


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class NxmConfig:
    """Client configuration.

    Parameters
    ----------
    host : str
        Hostname or IP address of the appliance.  An empty host is
        accepted here and rejected at connect time so the supervisor can
        surface it as a bad-configuration status.
    username : str
        Web UI login name.
    password : str
        Web UI password.
    allow_self_signed : bool
        Disable TLS certificate verification.  The appliance ships with
        a self-signed certificate.
    request_timeout : float
        Total timeout in seconds for a single HTTP request or websocket
        upgrade.
    request_spacing : float
        Minimum interval in seconds between the start of two dispatcher
        jobs.
    keepalive_interval : float
        Idle seconds after which a keepalive query is sent over the
        realtime channel.
    reconnect_delay : float
        Trailing-edge delay in seconds before a reconnect attempt.
        Bursts of failures within this window collapse into one attempt.
    notify_window : float
        Collapse window in seconds for subsystem change notifications.
    redefine_window : float
        Collapse window in seconds for redefinition-triggering changes.
    """

    host: str
    username: str = ""
    password: str = ""
    allow_self_signed: bool = False
    request_timeout: float = 10.0
    request_spacing: float = 0.05
    keepalive_interval: float = 30.0
    reconnect_delay: float = 5.0
    notify_window: float = 0.05
    redefine_window: float = 5.0

    @property
    def base_url(self) -> str:
        return f"https://{self.host.strip()}"

    @classmethod
    def from_env(cls, **overrides: Any) -> NxmConfig:
        """Create configuration from environment variables.

        Reads ``NXM_HOST``, ``NXM_USERNAME``, ``NXM_PASSWORD``,
        ``NXM_ALLOW_SELF_SIGNED`` and the numeric ``NXM_*`` timing
        variables.  Explicit keyword arguments override environment
        values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "NXM_HOST": "host",
            "NXM_USERNAME": "username",
            "NXM_PASSWORD": "password",
        }
        config_kwargs: dict[str, Any] = {"host": ""}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "NXM_REQUEST_TIMEOUT": "request_timeout",
            "NXM_REQUEST_SPACING": "request_spacing",
            "NXM_KEEPALIVE_INTERVAL": "keepalive_interval",
            "NXM_RECONNECT_DELAY": "reconnect_delay",
            "NXM_NOTIFY_WINDOW": "notify_window",
            "NXM_REDEFINE_WINDOW": "redefine_window",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        if "allow_self_signed" not in overrides:
            config_kwargs["allow_self_signed"] = _env_bool(env.get("NXM_ALLOW_SELF_SIGNED"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
