"""High-level async client: the connection supervisor."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pynxm._constants import (
    DEVICE_PATH,
    PRIORITY_COMMAND,
    PRIORITY_RESYNC,
    PRIORITY_SESSION,
    WS_KEEPALIVE_QUERY,
    WS_UPGRADE_PATH,
)
from pynxm._debounce import TrailingCollapse
from pynxm._transport import SessionTransport, Transport
from pynxm.channel import RealtimeChannel
from pynxm.config import NxmConfig
from pynxm.dispatcher import Generation, RequestDispatcher
from pynxm.errors import ErrorKind, classify
from pynxm.exceptions import (
    NxmCancelledError,
    NxmChannelClosedError,
    NxmDispatcherError,
    NxmError,
    NxmProtocolError,
    NxmTransportError,
)
from pynxm.models.command import Command, CommandMethod
from pynxm.models.device import REDEFINITION_SUBSYSTEMS, Device, parse_partial
from pynxm.state import DeviceStateStore, SubscriptionRegistry
from pynxm.status import ConnectionState, ConnectionStatus

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[[set[str], set[str]], None]
RedefinitionCallback = Callable[[set[str]], None]
StatusCallback = Callable[[ConnectionStatus, str], None]
StateCallback = Callable[[ConnectionState], None]
TransportFactory = Callable[[NxmConfig], Transport]

# States in which the current transport carries an authenticated session.
_SESSION_READY = frozenset({ConnectionState.AUTHENTICATED, ConnectionState.CHANNEL_OPENING, ConnectionState.LIVE})


def _failed(exc: Exception) -> asyncio.Future[Any]:
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    future.set_exception(exc)
    return future


def _register(callbacks: list[Any], callback: Any) -> Callable[[], None]:
    callbacks.append(callback)

    def _remove() -> None:
        with contextlib.suppress(ValueError):
            callbacks.remove(callback)

    return _remove


class NxmClient:
    """Keeps one authenticated connection to the appliance and mirrors its state.

    Usage::

        async with NxmClient(config) as client:
            await client.wait_until_live(timeout=30)
            client.subscribe("AvMatrixRoutingV2", "routing-feedback")
            await client.enqueue_command(Command(method="POST", path="/Device", payload={...}))

    The connect sequence is driven as an explicit state machine (see
    :class:`~pynxm.status.ConnectionState`).  Each attempt runs under a
    fresh :class:`~pynxm.dispatcher.Generation`; superseding it cancels
    every queued job of the old attempt in one step.

    Parameters
    ----------
    config : NxmConfig
        Host, credentials and timing.
    transport_factory : callable, optional
        Builds the transport for each connect attempt.  Defaults to
        :class:`~pynxm._transport.SessionTransport`.
    dispatcher : RequestDispatcher, optional
        Shared request dispatcher.  One is created when omitted.
    http_session : aiohttp.ClientSession, optional
        Externally owned HTTP session handed to the default transport.
    """

    def __init__(
        self,
        config: NxmConfig,
        *,
        transport_factory: TransportFactory | None = None,
        dispatcher: RequestDispatcher | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._http_session = http_session
        self._transport_factory = transport_factory or self._default_transport
        self._dispatcher = dispatcher or RequestDispatcher(spacing=config.request_spacing)
        self._registry = SubscriptionRegistry()
        self._store: DeviceStateStore | None = None
        self._transport: Transport | None = None
        self._channel: RealtimeChannel | None = None
        self._retired: list[tuple[RealtimeChannel | None, Transport | None]] = []
        self._connect_task: asyncio.Task[None] | None = None

        # Quiescent until start(): the initial generation is already stale.
        self._generation = Generation()
        self._generation.cancel()

        self._state = ConnectionState.DISCONNECTED
        self._status = ConnectionStatus.CONNECTING
        self._status_detail = ""
        self._live = asyncio.Event()

        self._reconnect = TrailingCollapse(config.reconnect_delay, self._reconnect_due)
        self._notify = TrailingCollapse(config.notify_window, self._flush_changes)
        self._redefine = TrailingCollapse(config.redefine_window, self._flush_redefinition)

        self._change_callbacks: list[ChangeCallback] = []
        self._redefinition_callbacks: list[RedefinitionCallback] = []
        self._status_callbacks: list[StatusCallback] = []
        self._state_callbacks: list[StateCallback] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> NxmClient:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> NxmConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def status_detail(self) -> str:
        """Human-readable detail for :attr:`status`."""
        return self._status_detail

    @property
    def generation(self) -> Generation:
        return self._generation

    @property
    def device(self) -> Device | None:
        """Typed read-only view of the mirrored state, once loaded."""
        return self._store.device if self._store is not None else None

    def snapshot(self) -> dict[str, Any]:
        """Detached copy of the mirrored state (empty before the first load)."""
        return self._store.snapshot() if self._store is not None else {}

    # ------------------------------------------------------------------
    # Callbacks and subscriptions
    # ------------------------------------------------------------------

    def on_subsystems_changed(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback(changed_subsystems, observer_ids)``.

        Invoked once per notification window with the batched set of
        changed subsystems and the observers subscribed to them.
        Returns a function that removes the callback.
        """
        return _register(self._change_callbacks, callback)

    def on_redefinition_needed(self, callback: RedefinitionCallback) -> Callable[[], None]:
        """Register ``callback(subsystems)`` for inventory-shaping changes."""
        return _register(self._redefinition_callbacks, callback)

    def on_status_changed(self, callback: StatusCallback) -> Callable[[], None]:
        return _register(self._status_callbacks, callback)

    def on_state_changed(self, callback: StateCallback) -> Callable[[], None]:
        return _register(self._state_callbacks, callback)

    def subscribe(self, subsystem: str, observer_id: str) -> None:
        self._registry.subscribe(subsystem, observer_id)

    def unsubscribe(self, subsystem: str, observer_id: str) -> None:
        self._registry.unsubscribe(subsystem, observer_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin connecting.  No-op unless the client is disconnected."""
        if self._state is not ConnectionState.DISCONNECTED:
            return
        self._begin_connect()

    async def reconfigure(self, config: NxmConfig | None = None) -> None:
        """Tear down the current generation and connect again.

        Queued commands of the old generation settle as cancelled.
        """
        if config is not None:
            self._config = config
        _logger.info("Reconfiguring connection to %s", self._config.host or "<no host>")
        await self._disconnect()
        self._begin_connect()

    async def shutdown(self) -> None:
        """Log out, cancel all jobs, close the channel and release timers.

        The client cannot be restarted afterwards.
        """
        self._notify.cancel()
        self._redefine.cancel()
        transport = self._transport
        self._transport = None
        await self._disconnect()

        if transport is not None:
            if not self._dispatcher.closed:
                logout_generation = Generation()
                try:
                    await self._dispatcher.enqueue(
                        transport.logout,
                        generation=logout_generation,
                        priority=PRIORITY_SESSION,
                        label="logout",
                    )
                except NxmError as exc:
                    _logger.debug("Logout skipped: %s", exc)
                finally:
                    logout_generation.cancel()
            await transport.close()

        await self._dispatcher.close()
        _logger.debug("Client shut down")

    async def wait_until_live(self, timeout: float | None = None) -> None:
        """Wait until the state machine reaches ``LIVE``.

        Raises :class:`TimeoutError` when *timeout* elapses first.
        """
        await asyncio.wait_for(self._live.wait(), timeout)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def enqueue_command(self, command: Command, *, priority: int = PRIORITY_COMMAND) -> asyncio.Future[Any]:
        """Queue *command* on the dispatcher under the current generation.

        ``GET``/``POST`` resolve to the decoded JSON response; ``SEND``
        resolves to ``None`` once the frame was written.  A network
        failure rejects only this command and schedules a reconnect.
        Failures to admit the command (not connected, not logged in yet,
        client shut down) are reported through the returned future too.
        """
        generation = self._generation
        try:
            if command.method is CommandMethod.SEND:
                channel = self._channel
                if channel is None or not channel.is_open:
                    return _failed(NxmChannelClosedError("Realtime channel is not open", endpoint=WS_UPGRADE_PATH))
                future = channel.send(command.channel_text(), priority=priority, label=f"SEND {command.path}")
            else:
                transport = self._transport
                if transport is None or generation.cancelled or self._state not in _SESSION_READY:
                    return _failed(NxmTransportError("Not connected", endpoint=command.path))
                if command.method is CommandMethod.GET:

                    async def _call() -> Any:
                        return await transport.get(command.path)

                else:
                    payload = command.payload or {}

                    async def _call() -> Any:
                        return await transport.post(command.path, payload)

                future = self._dispatcher.enqueue(
                    _call,
                    generation=generation,
                    priority=priority,
                    label=f"{command.method} {command.path}",
                )
        except NxmDispatcherError as exc:
            return _failed(exc)
        future.add_done_callback(lambda fut: self._command_done(generation, command, fut))
        return future

    def _command_done(self, generation: Generation, command: Command, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            return
        classification = classify(exc)
        if not classification.is_error:
            _logger.debug("%s %s cancelled", command.method, command.path)
            return
        _logger.warning("%s %s failed: %s", command.method, command.path, classification.message)
        if generation is not self._generation:
            return
        if classification.kind is ErrorKind.AUTHENTICATION and self._state is ConnectionState.LIVE:
            _logger.warning("Session rejected by %s; logging in again", self._config.host)
            self._begin_connect()
        elif classification.reconnect:
            self._handle_failure(generation, exc)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _default_transport(self, config: NxmConfig) -> Transport:
        return SessionTransport(config, http_session=self._http_session)

    def _begin_connect(self) -> None:
        """Supersede the current generation and launch a connect attempt."""
        self._generation.cancel()
        self._dispatcher.cancel_all()
        self._reconnect.cancel()
        previous = self._connect_task
        if previous is not None and not previous.done() and previous is not asyncio.current_task():
            previous.cancel()
        self._retire_connection()
        generation = self._generation = Generation()
        loop = asyncio.get_running_loop()
        self._connect_task = loop.create_task(
            self._run_connect(generation),
            name=f"pynxm-connect-{generation.number}",
        )

    async def _run_connect(self, generation: Generation) -> None:
        config = self._config
        try:
            await self._close_retired()
            self._set_state(ConnectionState.CONNECTING)
            self._set_status(ConnectionStatus.CONNECTING, f"Connecting to {config.host or '<no host>'}")

            transport = self._transport = self._transport_factory(config)
            await transport.connect(config.host)
            self._check_current(generation)

            self._set_state(ConnectionState.AUTHENTICATING)
            await self._dispatcher.enqueue(
                lambda: transport.login(config.username, config.password),
                generation=generation,
                priority=PRIORITY_SESSION,
                label="login",
            )
            self._check_current(generation)

            self._set_state(ConnectionState.AUTHENTICATED)
            payload = await self._dispatcher.enqueue(
                lambda: transport.get(DEVICE_PATH),
                generation=generation,
                priority=PRIORITY_RESYNC,
                label="device document",
            )
            self._check_current(generation)
            self._replace_store(DeviceStateStore.from_payload(payload))

            self._set_state(ConnectionState.CHANNEL_OPENING)
            channel = RealtimeChannel(
                self._dispatcher,
                generation,
                on_message=self._on_channel_message,
                on_closed=self._on_channel_closed,
                keepalive_interval=config.keepalive_interval,
                keepalive_query=WS_KEEPALIVE_QUERY,
            )
            self._channel = channel
            await channel.open(lambda: transport.ws_connect(WS_UPGRADE_PATH))
            self._check_current(generation)

            self._set_state(ConnectionState.LIVE)
            self._set_status(ConnectionStatus.LIVE, f"Connected to {config.host}")
        except Exception as exc:  # noqa: BLE001
            self._handle_failure(generation, exc)

    @staticmethod
    def _check_current(generation: Generation) -> None:
        if generation.cancelled:
            raise NxmCancelledError(f"Connect attempt {generation.number} was superseded")

    def _handle_failure(self, generation: Generation, exc: BaseException) -> None:
        if generation is not self._generation or generation.cancelled:
            _logger.debug("Ignoring failure from stale generation %d: %s", generation.number, exc)
            return
        classification = classify(exc)
        if not classification.is_error:
            _logger.debug("Connect attempt %d cancelled", generation.number)
            return

        self._set_state(ConnectionState.BACKOFF)
        self._set_status(classification.status or ConnectionStatus.DEGRADED, classification.message)
        if classification.reconnect:
            _logger.warning(
                "%s; reconnecting in %.1fs",
                classification.message,
                self._config.reconnect_delay,
            )
            self._reconnect.trigger({str(generation.number)})
        else:
            _logger.error("%s; not retrying until reconfigured", classification.message)

    def _reconnect_due(self, generations: set[str]) -> None:
        generation = self._generation
        if self._state is not ConnectionState.BACKOFF or generation.cancelled:
            return
        if str(generation.number) not in generations:
            return
        _logger.info("Reconnecting to %s", self._config.host)
        self._begin_connect()

    async def _disconnect(self) -> None:
        """Abort the current generation and release the connection."""
        self._generation.cancel()
        self._dispatcher.cancel_all()
        self._reconnect.cancel()
        self._set_state(ConnectionState.DISCONNECTED)
        self._retire_connection()

        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._retire_connection()
        await self._close_retired()

    def _retire_connection(self) -> None:
        """Detach the channel and transport so no new work can reach them."""
        channel, self._channel = self._channel, None
        transport, self._transport = self._transport, None
        if channel is not None or transport is not None:
            self._retired.append((channel, transport))

    async def _close_retired(self) -> None:
        while self._retired:
            channel, transport = self._retired.pop(0)
            if channel is not None:
                await channel.close()
            if transport is not None:
                await transport.close()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        _logger.info("Connection state %s -> %s", self._state, state)
        self._state = state
        if state is ConnectionState.LIVE:
            self._live.set()
        else:
            self._live.clear()
        for callback in list(self._state_callbacks):
            try:
                callback(state)
            except Exception:
                _logger.exception("State callback failed")

    def _set_status(self, status: ConnectionStatus, detail: str) -> None:
        if status is self._status and detail == self._status_detail:
            return
        self._status = status
        self._status_detail = detail
        for callback in list(self._status_callbacks):
            try:
                callback(status, detail)
            except Exception:
                _logger.exception("Status callback failed")

    # ------------------------------------------------------------------
    # Realtime updates
    # ------------------------------------------------------------------

    def _replace_store(self, store: DeviceStateStore) -> None:
        previous = self._store
        self._store = store
        if previous is None:
            changed = set(store.subsystems)
        else:
            old = previous.snapshot()
            new = store.snapshot()
            changed = {key for key in old.keys() | new.keys() if old.get(key) != new.get(key)}
        self._changed(changed)

    def _on_channel_message(self, text: str) -> None:
        store = self._store
        if store is None:
            return
        try:
            changed = store.merge(parse_partial(text))
        except NxmProtocolError as exc:
            _logger.warning("Dropping update: %s", classify(exc).message)
            return
        self._changed(changed)

    def _changed(self, changed: set[str]) -> None:
        if not changed:
            return
        self._notify.trigger(changed)
        redefinition = changed & REDEFINITION_SUBSYSTEMS
        if redefinition:
            self._redefine.trigger(redefinition)

    def _on_channel_closed(self, channel: RealtimeChannel, error: Exception | None) -> None:
        if channel is not self._channel:
            return
        self._handle_failure(channel.generation, error or NxmChannelClosedError("Realtime channel closed"))

    def _flush_changes(self, changed: set[str]) -> None:
        observers = self._registry.resolve(changed)
        _logger.debug("Subsystems changed: %s (observers: %s)", sorted(changed), sorted(observers))
        for callback in list(self._change_callbacks):
            try:
                callback(set(changed), set(observers))
            except Exception:
                _logger.exception("Change callback failed")

    def _flush_redefinition(self, subsystems: set[str]) -> None:
        for callback in list(self._redefinition_callbacks):
            try:
                callback(set(subsystems))
            except Exception:
                _logger.exception("Redefinition callback failed")
