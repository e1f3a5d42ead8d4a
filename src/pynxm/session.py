"""Session state carried by the authenticated transport."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field


class Session(BaseModel):
    """Mutable session material for one connection attempt.

    Parameters
    ----------
    host : str
        Host the session is bound to.
    authenticated : bool
        Whether the login handshake completed.
    xsrf_token : str or None
        Current anti-forgery token.  Rotated in place whenever a
        response carries a different value.
    cookies : dict
        Session cookies collected from ``Set-Cookie`` headers.
    created_at : float
        Monotonic timestamp (``time.monotonic()``) of creation.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    host: str
    authenticated: bool = False
    xsrf_token: str | None = None
    cookies: dict[str, str] = Field(default_factory=dict)
    created_at: float = Field(default_factory=time.monotonic)

    def rotate_token(self, value: str | None) -> bool:
        """Adopt *value* as the held token if it differs.  Returns ``True`` on rotation."""
        if not value or value == self.xsrf_token:
            return False
        self.xsrf_token = value
        return True

    def cookie_header(self) -> str:
        return "; ".join(f"{k}={v}" for k, v in self.cookies.items())

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at
