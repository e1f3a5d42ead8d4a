"""Trailing-edge collapse timer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

_logger = logging.getLogger(__name__)


class TrailingCollapse:
    """Collapse bursts of triggers into one callback on the trailing edge.

    Each :meth:`trigger` re-arms the timer and adds its keys to the
    pending set; when ``window`` seconds pass without a new trigger the
    callback runs once with everything accumulated.
    """

    def __init__(self, window: float, callback: Callable[[set[str]], None]) -> None:
        self._window = window
        self._callback = callback
        self._pending: set[str] = set()
        self._handle: asyncio.TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def trigger(self, keys: Iterable[str] = ()) -> None:
        self._pending.update(keys)
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._window, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending.clear()

    def _fire(self) -> None:
        self._handle = None
        pending, self._pending = self._pending, set()
        try:
            self._callback(pending)
        except Exception:
            _logger.exception("Collapsed callback failed")
