from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from pyvtc._constants import POLL_FAILURE_MESSAGE
from pyvtc.client import TelemetryClient
from pyvtc.config import TelemetryConfig
from pyvtc.exceptions import VtcError, VtcTransportError
from pyvtc.models.snapshot import DEFAULT_SNAPSHOT, TelemetrySnapshot
from pyvtc.state.connection import ActiveTransport, ConnectionState, ConnectionStatus
from pyvtc.state.job import JobLifecycleDetector, JobTransition

PAYLOAD = {
    "game": {"connected": True, "paused": False, "game": "ets2"},
    "truck": {"speed": 20, "odometer": 1000, "fuel": 300},
    "job": {"sourceCity": "Berlin", "destinationCity": "Praha", "cargo": "Wood", "cargoMass": 9000},
}
PAYLOAD_TEXT = json.dumps(PAYLOAD)


@dataclass
class FakeLink:
    frames: asyncio.Queue[Any] = field(default_factory=asyncio.Queue)
    closed: bool = False

    async def receive(self) -> str | bytes | None:
        item = await self.frames.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeTelemetryServer:
    """In-memory `Transport` double counting every attempt."""

    stream_available: bool = True
    # Served in order; the last entry repeats.
    poll_responses: list[Any] = field(default_factory=lambda: [PAYLOAD_TEXT])
    stream_opens: int = 0
    fetches: int = 0
    links: list[FakeLink] = field(default_factory=list)

    async def open_stream(self, url: str) -> FakeLink:
        self.stream_opens += 1
        if not self.stream_available:
            raise VtcTransportError(f"WebSocket connection to {url} failed: refused", url=url)
        link = FakeLink()
        self.links.append(link)
        return link

    async def fetch(self, url: str) -> str:
        self.fetches += 1
        response = self.poll_responses[min(self.fetches, len(self.poll_responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def _client(server: FakeTelemetryServer, **config: Any) -> tuple[TelemetryClient, list[ConnectionState]]:
    config.setdefault("reconnect_delay_ms", 10)
    config.setdefault("poll_interval_ms", 10)
    states: list[ConnectionState] = []
    client = TelemetryClient(TelemetryConfig(**config), transport=server, on_state_change=states.append)
    return client, states


def test_connect_requires_running_loop() -> None:
    client = TelemetryClient(transport=FakeTelemetryServer())

    with pytest.raises(RuntimeError):
        client.connect()


@pytest.mark.asyncio
async def test_connect_twice_starts_one_attempt() -> None:
    server = FakeTelemetryServer()
    client, _states = _client(server, mode="streaming")

    client.connect()
    assert client.status == ConnectionStatus.CONNECTING
    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)
    client.connect()
    await asyncio.sleep(0.02)

    assert server.stream_opens == 1
    client.disconnect()


@pytest.mark.asyncio
async def test_stream_messages_are_normalized_and_published() -> None:
    server = FakeTelemetryServer()
    snapshots: list[TelemetrySnapshot] = []
    client, _states = _client(server, mode="streaming")
    client.add_snapshot_listener(snapshots.append)

    client.connect()
    await wait_until(lambda: bool(server.links))
    server.links[0].frames.put_nowait(PAYLOAD_TEXT)
    await wait_until(lambda: len(snapshots) == 1)

    assert client.snapshot.vehicle.speed == pytest.approx(72.0)
    assert client.is_job_active is True
    assert client.is_session_running is True
    assert client.last_update is not None
    assert client.state.transport == ActiveTransport.STREAMING
    assert client.last_error is None
    client.disconnect()


@pytest.mark.asyncio
async def test_malformed_frame_publishes_default_snapshot() -> None:
    server = FakeTelemetryServer()
    snapshots: list[TelemetrySnapshot] = []
    client, _states = _client(server, mode="streaming")
    client.add_snapshot_listener(snapshots.append)

    client.connect()
    await wait_until(lambda: bool(server.links))
    server.links[0].frames.put_nowait(PAYLOAD_TEXT)
    server.links[0].frames.put_nowait("{garbage")
    await wait_until(lambda: len(snapshots) == 2)

    assert snapshots[-1] == DEFAULT_SNAPSHOT
    assert client.status == ConnectionStatus.CONNECTED
    client.disconnect()


@pytest.mark.asyncio
async def test_auto_mode_falls_back_to_polling_after_stream_closes() -> None:
    server = FakeTelemetryServer()
    client, states = _client(server, mode="auto")

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)
    server.links[0].frames.put_nowait(None)
    await wait_until(lambda: client.state.transport == ActiveTransport.POLLING)

    assert [s.status for s in states[:6]] == [
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTED,
        ConnectionStatus.DISCONNECTED,
        ConnectionStatus.RECONNECTING,
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTED,
    ]
    assert server.stream_opens == 1
    assert server.links[0].closed is True
    assert client.snapshot.vehicle.odometer == 1000
    client.disconnect()


@pytest.mark.asyncio
async def test_oversized_number_frame_keeps_stream_alive() -> None:
    server = FakeTelemetryServer()
    snapshots: list[TelemetrySnapshot] = []
    client, _states = _client(server, mode="streaming")
    client.add_snapshot_listener(snapshots.append)

    client.connect()
    await wait_until(lambda: bool(server.links))
    server.links[0].frames.put_nowait('{"truck": {"odometer": ' + "1" * 5000 + "}}")
    server.links[0].frames.put_nowait('{"job": {}}')
    await wait_until(lambda: len(snapshots) == 2)

    assert snapshots[0] == DEFAULT_SNAPSHOT
    assert client.is_job_active is True
    assert client.status == ConnectionStatus.CONNECTED
    assert server.stream_opens == 1
    client.disconnect()


@pytest.mark.asyncio
async def test_listener_disconnect_on_stream_error_is_final() -> None:
    server = FakeTelemetryServer(stream_available=False)
    client, states = _client(server, mode="streaming")

    def stop_on_error(state: ConnectionState) -> None:
        if state.last_error is not None and state.status != ConnectionStatus.DISCONNECTED:
            client.disconnect()

    client.add_state_listener(stop_on_error)
    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.DISCONNECTED)
    await asyncio.sleep(0.05)

    assert [s.status for s in states] == [
        ConnectionStatus.CONNECTING,
        ConnectionStatus.CONNECTING,
        ConnectionStatus.DISCONNECTED,
    ]
    assert client.status == ConnectionStatus.DISCONNECTED
    assert server.stream_opens == 1


@pytest.mark.asyncio
async def test_listener_disconnect_on_poll_success_suppresses_snapshot() -> None:
    server = FakeTelemetryServer()
    snapshots: list[TelemetrySnapshot] = []
    client, _states = _client(server, mode="polling")
    client.add_snapshot_listener(snapshots.append)

    def stop_when_connected(state: ConnectionState) -> None:
        if state.status == ConnectionStatus.CONNECTED:
            client.disconnect()

    client.add_state_listener(stop_when_connected)
    client.connect()
    await wait_until(lambda: server.fetches >= 1)
    await asyncio.sleep(0.05)

    assert snapshots == []
    assert client.status == ConnectionStatus.DISCONNECTED
    assert server.fetches == 1


@pytest.mark.asyncio
async def test_connect_without_session_or_transport_raises() -> None:
    client = TelemetryClient(TelemetryConfig())

    with pytest.raises(VtcError):
        client.connect()

    assert client.status == ConnectionStatus.DISCONNECTED
    assert client._http_session is None  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_failed_stream_open_records_error_then_polls() -> None:
    server = FakeTelemetryServer(stream_available=False)
    client, states = _client(server, mode="auto")

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)

    backoff = [s for s in states if s.status == ConnectionStatus.RECONNECTING]
    assert backoff
    assert backoff[0].last_error is not None
    assert "refused" in backoff[0].last_error
    assert client.state.transport == ActiveTransport.POLLING
    assert client.last_error is None
    assert server.stream_opens == 1
    client.disconnect()


@pytest.mark.asyncio
async def test_streaming_mode_retries_streaming() -> None:
    server = FakeTelemetryServer(stream_available=False)
    client, _states = _client(server, mode="streaming")

    client.connect()
    await wait_until(lambda: server.stream_opens >= 3)

    assert server.fetches == 0
    client.disconnect()


@pytest.mark.asyncio
async def test_no_reconnect_when_disabled() -> None:
    server = FakeTelemetryServer()
    client, _states = _client(server, mode="auto", auto_reconnect=False)

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)
    server.links[0].frames.put_nowait(VtcTransportError("boom"))
    await wait_until(lambda: client.status == ConnectionStatus.DISCONNECTED)
    await asyncio.sleep(0.05)

    assert client.status == ConnectionStatus.DISCONNECTED
    assert client.last_error == "boom"
    assert server.fetches == 0


@pytest.mark.asyncio
async def test_polling_failures_are_transient() -> None:
    failure = VtcTransportError("connection refused")
    server = FakeTelemetryServer(poll_responses=[failure, failure, PAYLOAD_TEXT])
    client, states = _client(server, mode="polling")

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)

    assert server.fetches >= 3
    assert any(
        s.status == ConnectionStatus.DISCONNECTED and s.last_error == POLL_FAILURE_MESSAGE for s in states
    )
    assert client.last_error is None
    assert server.stream_opens == 0
    client.disconnect()


@pytest.mark.asyncio
async def test_connect_is_noop_while_polling_loop_alive() -> None:
    server = FakeTelemetryServer(poll_responses=[VtcTransportError("down")])
    client, _states = _client(server, mode="polling")

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.DISCONNECTED and server.fetches >= 1)
    client.connect()
    await asyncio.sleep(0.03)

    assert client._poll_task is not None  # type: ignore[attr-defined]
    assert server.stream_opens == 0
    client.disconnect()


@pytest.mark.asyncio
async def test_disconnect_during_backoff_prevents_reconnect() -> None:
    server = FakeTelemetryServer(stream_available=False)
    client, states = _client(server, mode="auto", reconnect_delay_ms=50)
    snapshots: list[TelemetrySnapshot] = []
    client.add_snapshot_listener(snapshots.append)

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.RECONNECTING)
    client.disconnect()
    seen = len(states)
    await asyncio.sleep(0.15)

    assert client.status == ConnectionStatus.DISCONNECTED
    assert len(states) == seen
    assert snapshots == []
    assert server.fetches == 0
    assert server.stream_opens == 1


@pytest.mark.asyncio
async def test_disconnect_stops_polling() -> None:
    server = FakeTelemetryServer()
    snapshots: list[TelemetrySnapshot] = []
    client, states = _client(server, mode="polling")
    client.add_snapshot_listener(snapshots.append)

    client.connect()
    await wait_until(lambda: len(snapshots) >= 2)
    client.disconnect()
    published, fetched, seen = len(snapshots), server.fetches, len(states)
    await asyncio.sleep(0.1)

    assert len(snapshots) == published
    assert server.fetches == fetched
    assert len(states) == seen
    assert client.status == ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_disconnect_closes_stream_and_drops_late_frames() -> None:
    server = FakeTelemetryServer()
    snapshots: list[TelemetrySnapshot] = []
    client, _states = _client(server, mode="streaming")
    client.add_snapshot_listener(snapshots.append)

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)
    link = server.links[0]
    client.disconnect()
    link.frames.put_nowait(PAYLOAD_TEXT)
    await wait_until(lambda: link.closed)
    await asyncio.sleep(0.05)

    assert snapshots == []
    assert client.status == ConnectionStatus.DISCONNECTED
    assert server.stream_opens == 1


@pytest.mark.asyncio
async def test_disconnect_is_idempotent() -> None:
    server = FakeTelemetryServer()
    client, states = _client(server)

    client.disconnect()
    client.disconnect()

    assert client.status == ConnectionStatus.DISCONNECTED
    assert states == []


@pytest.mark.asyncio
async def test_connect_while_reconnecting_attempts_immediately() -> None:
    server = FakeTelemetryServer(stream_available=False)
    client, _states = _client(server, mode="streaming", reconnect_delay_ms=10_000)

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.RECONNECTING)
    server.stream_available = True
    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)

    assert server.stream_opens == 2
    client.disconnect()


@pytest.mark.asyncio
async def test_reconnect_after_disconnect() -> None:
    server = FakeTelemetryServer()
    client, _states = _client(server, mode="streaming")

    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)
    client.disconnect()
    client.connect()
    await wait_until(lambda: client.status == ConnectionStatus.CONNECTED)

    assert server.stream_opens == 2
    client.disconnect()


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others() -> None:
    server = FakeTelemetryServer()
    received: list[TelemetrySnapshot] = []

    def broken(_snapshot: TelemetrySnapshot) -> None:
        raise RuntimeError("listener bug")

    client, _states = _client(server, mode="polling")
    client.add_snapshot_listener(broken)
    client.add_snapshot_listener(received.append)

    client.connect()
    await wait_until(lambda: len(received) >= 2)

    assert client.status == ConnectionStatus.CONNECTED
    client.disconnect()


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications() -> None:
    server = FakeTelemetryServer()
    received: list[TelemetrySnapshot] = []
    client, _states = _client(server, mode="polling")
    unsubscribe = client.add_snapshot_listener(received.append)

    client.connect()
    await wait_until(lambda: len(received) >= 1)
    unsubscribe()
    count = len(received)
    await asyncio.sleep(0.05)

    assert len(received) == count
    client.disconnect()


@pytest.mark.asyncio
async def test_detector_attached_to_client_tracks_job() -> None:
    no_job = json.dumps({**PAYLOAD, "job": None, "truck": {"odometer": 1450, "fuel": 250}})
    server = FakeTelemetryServer()
    client, _states = _client(server, mode="streaming")
    transitions: list[JobTransition] = []
    detector = JobLifecycleDetector(on_transition=lambda t, _s: transitions.append(t))
    detector.attach(client)

    client.connect()
    await wait_until(lambda: bool(server.links))
    link = server.links[0]
    link.frames.put_nowait(PAYLOAD_TEXT)
    link.frames.put_nowait(json.dumps({**PAYLOAD, "truck": {"odometer": 1450, "fuel": 250}}))
    await wait_until(lambda: client.snapshot.vehicle.odometer == 1450)

    record = detector.prepare()
    assert record is not None
    assert record.distance_km == 450
    assert record.fuel_consumed == 50
    assert record.cargo_weight == pytest.approx(9.0)

    link.frames.put_nowait(no_job)
    await wait_until(lambda: transitions == [JobTransition.STARTED, JobTransition.ENDED])
    assert detector.prepare() is None
    client.disconnect()


@pytest.mark.asyncio
async def test_context_manager_closes_owned_session() -> None:
    async with TelemetryClient(TelemetryConfig()) as client:
        session = client._http_session  # type: ignore[attr-defined]
        assert session is not None

    assert session.closed
    assert client.status == ConnectionStatus.DISCONNECTED
