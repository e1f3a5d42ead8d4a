"""Helpers for safe debug logging.

Request headers carry the session cookies and the anti-forgery token,
and the login form carries the password.  They are masked before the
transport writes them to DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "passwd",
        "password",
        "cookie",
        "set-cookie",
        "authorization",
        "crest-xsrf-token",
    }
)


def redact_for_log(fields: Mapping[str, Any], *, max_string: int = 200) -> dict[str, str]:
    """Return a copy of a header or form mapping with secrets masked.

    Values are rendered as strings and cut to *max_string* characters.
    """
    redacted: dict[str, str] = {}
    for key, value in fields.items():
        if key.lower() in _SENSITIVE_KEYS:
            redacted[key] = "<redacted>"
            continue
        text = str(value)
        redacted[key] = f"{text[:max_string]}<truncated>" if len(text) > max_string else text
    return redacted
