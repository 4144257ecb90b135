"""
Connection lifecycle transitions.

Rules:
- Pure function of (state, event, tearing_down).
- No I/O, no clocks, no side effects.
- Returning None means "ignore this event in this state".

Table:
    CONNECT_REQUESTED     Disconnected | Error  -> Connecting
    REMOTE_OPENED         Connecting            -> Connected
    REMOTE_FAILED         Connecting            -> Error
    REMOTE_CLOSED         Connected             -> Disconnected
    REMOTE_ERROR          Connecting | Connected -> Error
    DISCONNECT_REQUESTED  any                   -> Disconnected

While tearing down, every REMOTE_* event is ignored so a closing
session cannot overwrite the explicit Disconnected state.
"""

from __future__ import annotations

from enum import Enum

from session.connection_status import ConnectionState


class LifecycleEvent(str, Enum):
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    REMOTE_OPENED = "REMOTE_OPENED"
    REMOTE_FAILED = "REMOTE_FAILED"
    REMOTE_CLOSED = "REMOTE_CLOSED"
    REMOTE_ERROR = "REMOTE_ERROR"
    DISCONNECT_REQUESTED = "DISCONNECT_REQUESTED"


_REMOTE_EVENTS = frozenset({
    LifecycleEvent.REMOTE_OPENED,
    LifecycleEvent.REMOTE_FAILED,
    LifecycleEvent.REMOTE_CLOSED,
    LifecycleEvent.REMOTE_ERROR,
})

_TRANSITIONS: dict[tuple[ConnectionState, LifecycleEvent], ConnectionState] = {
    (ConnectionState.DISCONNECTED, LifecycleEvent.CONNECT_REQUESTED): ConnectionState.CONNECTING,
    (ConnectionState.ERROR, LifecycleEvent.CONNECT_REQUESTED): ConnectionState.CONNECTING,
    (ConnectionState.CONNECTING, LifecycleEvent.REMOTE_OPENED): ConnectionState.CONNECTED,
    (ConnectionState.CONNECTING, LifecycleEvent.REMOTE_FAILED): ConnectionState.ERROR,
    (ConnectionState.CONNECTING, LifecycleEvent.REMOTE_ERROR): ConnectionState.ERROR,
    (ConnectionState.CONNECTED, LifecycleEvent.REMOTE_CLOSED): ConnectionState.DISCONNECTED,
    (ConnectionState.CONNECTED, LifecycleEvent.REMOTE_ERROR): ConnectionState.ERROR,
}


def next_state(
    state: ConnectionState,
    event: LifecycleEvent,
    *,
    tearing_down: bool = False,
) -> ConnectionState | None:
    """Return the new state, or None if the event is ignored."""
    if event is LifecycleEvent.DISCONNECT_REQUESTED:
        return ConnectionState.DISCONNECTED

    if tearing_down and event in _REMOTE_EVENTS:
        return None

    return _TRANSITIONS.get((state, event))
