"""Live telemetry connection manager."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pyvtc._constants import POLL_FAILURE_MESSAGE, STREAM_ERROR_MESSAGE
from pyvtc._transport import AiohttpTransport, StreamLink, Transport
from pyvtc.config import TelemetryConfig, TransportMode
from pyvtc.exceptions import VtcError
from pyvtc.ingestion.snapshot import normalize_snapshot
from pyvtc.models.snapshot import DEFAULT_SNAPSHOT, TelemetrySnapshot
from pyvtc.state.connection import (
    ActiveTransport,
    ConnectionEvent,
    ConnectionState,
    ConnectionStatus,
    transition,
)

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[[TelemetrySnapshot], Any]
StateListener = Callable[[ConnectionState], Any]

_UNSET: Any = object()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TelemetryClient:
    """Keeps a live :class:`TelemetrySnapshot` from an ETS2/ATS telemetry server.

    ``connect()`` and ``disconnect()`` return immediately; results arrive
    through the snapshot and state listeners.  Both must be called from a
    running asyncio event loop, which is also where every listener runs.

    In ``auto`` mode the streaming transport is tried first.  Once it closes,
    the reconnect attempt switches to polling and stays there: a missing
    websocket endpoint is more likely absent than flaky, while polling
    recovers by itself when the server comes back.

    ``async with`` opens (and on exit closes) an HTTP session unless one was
    injected.  Without it, pass ``session=`` or ``transport=``.

    Usage::

        async with TelemetryClient(TelemetryConfig()) as client:
            client.add_snapshot_listener(print)
            client.connect()
            ...
    """

    def __init__(
        self,
        config: TelemetryConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        on_snapshot: SnapshotListener | None = None,
        on_state_change: StateListener | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config or TelemetryConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._clock = clock

        self._snapshot: TelemetrySnapshot = DEFAULT_SNAPSHOT
        self._state = ConnectionState()
        self._snapshot_listeners: list[SnapshotListener] = []
        self._state_listeners: list[StateListener] = []
        if on_snapshot is not None:
            self._snapshot_listeners.append(on_snapshot)
        if on_state_change is not None:
            self._state_listeners.append(on_state_change)

        # Bumped by disconnect(); work started under an older generation is stale.
        # Listeners may call disconnect() from inside _apply(), so it is re-checked after each one.
        self._generation = 0
        self._stream_task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._retired_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TelemetryClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = AiohttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Disconnect, wait for transports to wind down, close the owned HTTP session."""
        self.disconnect()
        retired = list(self._retired_tasks)
        if retired:
            await asyncio.gather(*retired, return_exceptions=True)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    # ------------------------------------------------------------------
    # Public state
    # ------------------------------------------------------------------

    @property
    def config(self) -> TelemetryConfig:
        return self._config

    @property
    def snapshot(self) -> TelemetrySnapshot:
        """The most recent snapshot (the all-default one before any data)."""
        return self._snapshot

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def last_error(self) -> str | None:
        return self._state.last_error

    @property
    def last_update(self) -> datetime | None:
        return self._state.last_update

    @property
    def is_job_active(self) -> bool:
        return self._snapshot.is_job_active

    @property
    def is_session_running(self) -> bool:
        return self._snapshot.is_session_running

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_snapshot_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* with every published snapshot.  Returns an unsubscribe callable."""
        self._snapshot_listeners.append(listener)
        return lambda: self._remove(self._snapshot_listeners, listener)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* when status, active transport or last error change.

        Returns an unsubscribe callable.
        """
        self._state_listeners.append(listener)
        return lambda: self._remove(self._state_listeners, listener)

    @staticmethod
    def _remove(listeners: list[Any], listener: Any) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _notify(self, listeners: list[Any], value: Any) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception:
                _logger.debug("Telemetry listener %r failed", listener, exc_info=True)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Start receiving telemetry.

        No-op while connected, connecting, or while a polling loop is alive.
        While a reconnect is pending, the attempt is made immediately.

        Raises
        ------
        RuntimeError
            If no asyncio event loop is running.
        VtcError
            If the client has no transport: it was neither entered with
            ``async with`` nor given a session or transport.
        """
        asyncio.get_running_loop()
        self._require_transport()
        status = self._state.status
        if status in (ConnectionStatus.CONNECTED, ConnectionStatus.CONNECTING):
            _logger.debug("connect() ignored while %s", status)
            return
        if self._poll_task is not None and not self._poll_task.done():
            _logger.debug("connect() ignored; polling loop already running")
            return
        if status == ConnectionStatus.RECONNECTING:
            self._cancel_reconnect()
            self._on_reconnect_timer(self._generation)
            return

        generation = self._generation
        self._apply(ConnectionEvent.CONNECT, last_error=None)
        if generation != self._generation:
            return
        if self._config.mode == TransportMode.POLLING:
            self._start_polling()
        else:
            self._start_stream()

    def disconnect(self) -> None:
        """Stop all transports and timers.  Safe to call repeatedly from any state."""
        self._generation += 1
        self._cancel_reconnect()
        for task in (self._stream_task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
                self._retired_tasks.add(task)
                task.add_done_callback(self._retired_tasks.discard)
        self._stream_task = None
        self._poll_task = None
        self._apply(ConnectionEvent.MANUAL_DISCONNECT, transport=None)

    def _cancel_reconnect(self) -> None:
        handle = self._reconnect_handle
        self._reconnect_handle = None
        if handle is not None:
            handle.cancel()

    def _require_transport(self) -> Transport:
        if self._transport is None:
            if self._http_session is None:
                raise VtcError(
                    "Client not initialized. Use 'async with TelemetryClient(...) as client:' "
                    "or pass a session or transport"
                )
            self._transport = AiohttpTransport(self._config, self._http_session)
        return self._transport

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _apply(
        self,
        event: ConnectionEvent,
        *,
        transport: ActiveTransport | None = _UNSET,
        last_error: str | None = _UNSET,
        last_update: datetime | None = _UNSET,
    ) -> bool:
        """Drive the state machine with *event*; returns False if it was not permitted."""
        previous = self._state
        status = transition(previous.status, event)
        if status is None:
            _logger.debug("Ignoring %s while %s", event, previous.status)
            return False

        update: dict[str, Any] = {"status": status}
        if transport is not _UNSET:
            update["transport"] = transport
        if last_error is not _UNSET:
            update["last_error"] = last_error
        if last_update is not _UNSET:
            update["last_update"] = last_update
        current = previous.model_copy(update=update)
        self._state = current

        if status != previous.status:
            _logger.info("Telemetry connection %s -> %s on %s", previous.status, status, event)
        if (
            current.status != previous.status
            or current.transport != previous.transport
            or current.last_error != previous.last_error
        ):
            self._notify(self._state_listeners, current)
        return True

    def _publish(self, snapshot: TelemetrySnapshot, event: ConnectionEvent, transport: ActiveTransport) -> None:
        generation = self._generation
        self._snapshot = snapshot
        if event == ConnectionEvent.POLL_SUCCESS:
            self._apply(event, transport=transport, last_error=None, last_update=self._clock())
        else:
            self._apply(event, last_update=self._clock())
        if generation != self._generation:
            return
        self._notify(self._snapshot_listeners, snapshot)

    # ------------------------------------------------------------------
    # Streaming transport
    # ------------------------------------------------------------------

    def _start_stream(self) -> None:
        self._stream_task = asyncio.create_task(self._run_stream(self._generation), name="pyvtc-stream")

    async def _run_stream(self, generation: int) -> None:
        url = self._config.stream_url
        try:
            link = await self._require_transport().open_stream(url)
        except Exception as exc:
            _logger.debug("Telemetry stream open failed", exc_info=True)
            if generation == self._generation:
                self._apply(ConnectionEvent.ERROR, last_error=str(exc) or STREAM_ERROR_MESSAGE)
                self._on_stream_closed(generation)
            return

        if generation != self._generation:
            await self._close_link(link)
            return

        self._apply(ConnectionEvent.OPEN, transport=ActiveTransport.STREAMING, last_error=None)
        try:
            while generation == self._generation:
                try:
                    frame = await link.receive()
                except Exception as exc:
                    _logger.debug("Telemetry stream receive failed", exc_info=True)
                    if generation == self._generation:
                        self._apply(ConnectionEvent.ERROR, last_error=str(exc) or STREAM_ERROR_MESSAGE)
                    break
                if frame is None or generation != self._generation:
                    break
                self._publish(normalize_snapshot(frame), ConnectionEvent.MESSAGE, ActiveTransport.STREAMING)
        finally:
            await self._close_link(link)

        if generation == self._generation:
            self._on_stream_closed(generation)

    @staticmethod
    async def _close_link(link: StreamLink) -> None:
        try:
            await link.close()
        except Exception:
            _logger.debug("Telemetry stream close failed", exc_info=True)

    def _on_stream_closed(self, generation: int) -> None:
        self._stream_task = None
        self._apply(ConnectionEvent.CLOSE, transport=None)
        if not self._config.auto_reconnect or generation != self._generation:
            return
        self._apply(ConnectionEvent.SCHEDULE_RECONNECT)
        if generation != self._generation:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(
            self._config.reconnect_delay,
            self._on_reconnect_timer,
            generation,
        )
        _logger.debug("Telemetry reconnect scheduled in %.3fs", self._config.reconnect_delay)

    def _on_reconnect_timer(self, generation: int) -> None:
        self._reconnect_handle = None
        if generation != self._generation:
            return
        if not self._apply(ConnectionEvent.RECONNECT) or generation != self._generation:
            return
        if self._config.mode == TransportMode.AUTO:
            _logger.info("Telemetry stream unavailable; falling back to polling %s", self._config.poll_url)
            self._start_polling()
        else:
            self._start_stream()

    # ------------------------------------------------------------------
    # Polling transport
    # ------------------------------------------------------------------

    def _start_polling(self) -> None:
        self._poll_task = asyncio.create_task(self._run_polling(self._generation), name="pyvtc-poll")

    async def _run_polling(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        interval = self._config.poll_interval
        next_tick = loop.time()
        while generation == self._generation:
            await self._poll_once(generation)
            next_tick += interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Slow request; skip missed ticks instead of bursting.
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def _poll_once(self, generation: int) -> None:
        url = self._config.poll_url
        try:
            body = await self._require_transport().fetch(url)
        except Exception:
            _logger.debug("Telemetry poll of %s failed", url, exc_info=True)
            if generation == self._generation:
                self._apply(
                    ConnectionEvent.POLL_FAILURE,
                    transport=ActiveTransport.POLLING,
                    last_error=POLL_FAILURE_MESSAGE,
                )
            return
        if generation != self._generation:
            return
        self._publish(normalize_snapshot(body), ConnectionEvent.POLL_SUCCESS, ActiveTransport.POLLING)
