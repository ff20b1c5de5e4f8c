"""Connection lifecycle state machine.

The connection manager never flips booleans directly: every change goes
through :func:`transition` with a named :class:`ConnectionEvent`.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pyvtc.models._base import VtcBaseModel


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ActiveTransport(StrEnum):
    STREAMING = "streaming"
    POLLING = "polling"


class ConnectionEvent(StrEnum):
    CONNECT = "connect"
    OPEN = "open"
    MESSAGE = "message"
    ERROR = "error"
    CLOSE = "close"
    SCHEDULE_RECONNECT = "schedule_reconnect"
    RECONNECT = "reconnect"
    POLL_SUCCESS = "poll_success"
    POLL_FAILURE = "poll_failure"
    MANUAL_DISCONNECT = "manual_disconnect"


_D = ConnectionStatus.DISCONNECTED
_CING = ConnectionStatus.CONNECTING
_C = ConnectionStatus.CONNECTED
_R = ConnectionStatus.RECONNECTING

_TRANSITIONS: dict[tuple[ConnectionStatus, ConnectionEvent], ConnectionStatus] = {
    (_D, ConnectionEvent.CONNECT): _CING,
    (_R, ConnectionEvent.RECONNECT): _CING,
    (_CING, ConnectionEvent.OPEN): _C,
    (_CING, ConnectionEvent.POLL_SUCCESS): _C,
    (_C, ConnectionEvent.POLL_SUCCESS): _C,
    (_D, ConnectionEvent.POLL_SUCCESS): _C,
    (_CING, ConnectionEvent.POLL_FAILURE): _D,
    (_C, ConnectionEvent.POLL_FAILURE): _D,
    (_D, ConnectionEvent.POLL_FAILURE): _D,
    (_CING, ConnectionEvent.CLOSE): _D,
    (_C, ConnectionEvent.CLOSE): _D,
    (_D, ConnectionEvent.SCHEDULE_RECONNECT): _R,
}

# Events that never move the status.
_PASSIVE_EVENTS = frozenset({ConnectionEvent.MESSAGE, ConnectionEvent.ERROR})


def transition(status: ConnectionStatus, event: ConnectionEvent) -> ConnectionStatus | None:
    """Return the status reached by *event*, or ``None`` if it is not permitted."""
    if event == ConnectionEvent.MANUAL_DISCONNECT:
        return _D
    if event in _PASSIVE_EVENTS:
        return status
    return _TRANSITIONS.get((status, event))


class ConnectionState(VtcBaseModel):
    """Observable connection state.

    ``last_error`` holds human-readable text for status displays and
    ``last_update`` the time the latest snapshot was published.
    """

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    transport: ActiveTransport | None = None
    last_error: str | None = None
    last_update: datetime | None = None

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED
