"""Persistent realtime websocket channel.

The channel owns the websocket for one connection generation.  Outbound
sends (resync queries, keepalives, commands) go through the shared
:class:`~pynxm.dispatcher.RequestDispatcher`; inbound text frames are
handed to ``on_message``.  On error or close the channel clears the
dispatcher's queue and reports to ``on_closed``; reopening is left to
the supervisor's reconnect policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import aiohttp

from pynxm._constants import (
    PRIORITY_COMMAND,
    PRIORITY_KEEPALIVE,
    PRIORITY_RESYNC,
    RESYNC_QUERIES,
    WS_KEEPALIVE_QUERY,
    WS_UPGRADE_PATH,
)
from pynxm.dispatcher import Generation, RequestDispatcher
from pynxm.errors import classify, network_code
from pynxm.exceptions import NxmChannelClosedError

_logger = logging.getLogger(__name__)


class RealtimeChannel:
    def __init__(
        self,
        dispatcher: RequestDispatcher,
        generation: Generation,
        *,
        on_message: Callable[[str], None],
        on_closed: Callable[[RealtimeChannel, Exception | None], None],
        keepalive_interval: float = 30.0,
        keepalive_query: str = WS_KEEPALIVE_QUERY,
        resync_queries: Iterable[str] = RESYNC_QUERIES,
    ) -> None:
        self._dispatcher = dispatcher
        self._generation = generation
        self._on_message = on_message
        self._on_closed = on_closed
        self._keepalive_interval = keepalive_interval
        self._keepalive_query = keepalive_query
        self._resync_queries = tuple(resync_queries)
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._keepalive_handle: asyncio.TimerHandle | None = None
        self._closing = False

    @property
    def generation(self) -> Generation:
        return self._generation

    @property
    def is_open(self) -> bool:
        ws = self._ws
        return ws is not None and not ws.closed and not self._closing

    async def open(self, connect: Callable[[], Awaitable[aiohttp.ClientWebSocketResponse]]) -> None:
        """Establish the websocket, start reading and queue the resync queries."""
        self._ws = await connect()
        loop = asyncio.get_running_loop()
        self._reader = loop.create_task(self._read_loop(), name=f"pynxm-ws-reader-{self._generation.number}")
        self._arm_keepalive()
        for query in self._resync_queries:
            self._track(self.send(query, priority=PRIORITY_RESYNC, label=f"resync {query}"))
        _logger.debug("Realtime channel open (generation %d)", self._generation.number)

    def send(self, text: str, *, priority: int = PRIORITY_COMMAND, label: str = "ws send") -> asyncio.Future[None]:
        """Queue *text* for sending; the returned future settles when it was written."""
        return self._dispatcher.enqueue(
            lambda: self._send_now(text),
            generation=self._generation,
            priority=priority,
            label=label,
        )

    async def close(self) -> None:
        """Close deliberately.  ``on_closed`` is not invoked."""
        self._closing = True
        self._cancel_keepalive()
        reader = self._reader
        self._reader = None
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        ws = self._ws
        self._ws = None
        if ws is not None and not ws.closed:
            await ws.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _send_now(self, text: str) -> None:
        ws = self._ws
        if ws is None or ws.closed or self._closing:
            raise NxmChannelClosedError("Realtime channel is not open", endpoint=WS_UPGRADE_PATH)
        try:
            await ws.send_str(text)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise NxmChannelClosedError(
                f"Send failed: {exc}",
                network_code=network_code(exc),
                endpoint=WS_UPGRADE_PATH,
            ) from exc
        _logger.debug("WS -> %s", text[:200])
        self._arm_keepalive()

    def _track(self, future: asyncio.Future[Any]) -> None:
        """Log the outcome of a fire-and-forget send."""

        def _done(fut: asyncio.Future[Any]) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is None:
                return
            classification = classify(exc)
            if classification.is_error:
                _logger.warning("Channel send failed: %s", classification.message)
            else:
                _logger.debug("Channel send cancelled")

        future.add_done_callback(_done)

    def _arm_keepalive(self) -> None:
        self._cancel_keepalive()
        if self._keepalive_interval <= 0 or self._closing:
            return
        loop = asyncio.get_running_loop()
        self._keepalive_handle = loop.call_later(self._keepalive_interval, self._keepalive_due)

    def _cancel_keepalive(self) -> None:
        if self._keepalive_handle is not None:
            self._keepalive_handle.cancel()
            self._keepalive_handle = None

    def _keepalive_due(self) -> None:
        self._keepalive_handle = None
        if not self.is_open or self._generation.cancelled or self._dispatcher.closed:
            return
        self._track(self.send(self._keepalive_query, priority=PRIORITY_KEEPALIVE, label="keepalive"))
        self._arm_keepalive()

    def _deliver(self, text: str) -> None:
        try:
            self._on_message(text)
        except Exception:
            _logger.exception("Realtime message handler failed")

    async def _read_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        error: Exception | None = None
        try:
            while True:
                msg = await ws.receive()
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._deliver(msg.data)
                    continue
                if msg.type == aiohttp.WSMsgType.BINARY:
                    self._deliver(msg.data.decode("utf-8", errors="replace"))
                    continue
                if msg.type == aiohttp.WSMsgType.ERROR:
                    error = NxmChannelClosedError(f"websocket error: {ws.exception()}", endpoint=WS_UPGRADE_PATH)
                    break
                if msg.type in {aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED}:
                    error = NxmChannelClosedError(
                        f"websocket closed (code={ws.close_code})",
                        endpoint=WS_UPGRADE_PATH,
                    )
                    break
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            error = NxmChannelClosedError(
                f"websocket receive failed: {exc}",
                network_code=network_code(exc),
                endpoint=WS_UPGRADE_PATH,
            )
        finally:
            _logger.debug("WS read loop ended (generation %d)", self._generation.number)
        self._handle_closed(error)

    def _handle_closed(self, error: Exception | None) -> None:
        if self._closing:
            return
        self._closing = True
        self._cancel_keepalive()
        # A superseded channel must not clear jobs of the newer generation.
        if not self._generation.cancelled:
            self._dispatcher.cancel_all()
        try:
            self._on_closed(self, error)
        except Exception:
            _logger.exception("Channel close handler failed")
