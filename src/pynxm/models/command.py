"""Outbound command envelope accepted by the supervisor."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class CommandMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    SEND = "SEND"
    """Send over the realtime channel."""


class Command(BaseModel):
    """A request to run against the appliance.

    ``GET`` and ``POST`` go over HTTP.  ``SEND`` writes to the realtime
    channel: a bare ``path`` is sent as a query, a ``payload`` is sent
    as compact JSON.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: CommandMethod
    path: str = ""
    payload: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_target(self) -> Command:
        if self.method is CommandMethod.POST and self.payload is None:
            raise ValueError("POST commands need a payload")
        if self.method is not CommandMethod.SEND and not self.path:
            raise ValueError(f"{self.method} commands need a path")
        if self.method is CommandMethod.SEND and not self.path and self.payload is None:
            raise ValueError("SEND commands need a path or a payload")
        return self

    def channel_text(self) -> str:
        """Text written to the websocket for a ``SEND`` command."""
        if self.payload is not None:
            return json.dumps(self.payload, separators=(",", ":"))
        return self.path
