"""Stream connection state machine.

Pure transition function: given the current ``ConnectionState`` and a
``StreamEvent`` it returns the next state and the side effect the client must
perform. It knows nothing about sockets or timers, so it is tested on its own.

    DISCONNECTED --CONNECT-----> CONNECTING   (open a new connection)
    CONNECTING   --CONNECT-----> CONNECTING   (no-op, attempt in flight)
    CONNECTING   --OPENED------> CONNECTED    (subscribe, arm forced reconnect)
    CONNECTING   --OPEN_FAILED-> DISCONNECTED (retry after the connect delay)
    CONNECTED    --CLOSED------> DISCONNECTED (retry after the close delay)
    CONNECTED    --ERROR-------> DISCONNECTED (no retry; the close that follows retries)
    any          --STOP--------> DISCONNECTED
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import ConnectionState


class StreamEvent(str, Enum):
    CONNECT = "connect"
    OPENED = "opened"
    OPEN_FAILED = "open_failed"
    CLOSED = "closed"
    ERROR = "error"
    STOP = "stop"


class Action(str, Enum):
    NONE = "none"
    OPEN = "open"
    ON_CONNECTED = "on_connected"
    RETRY_AFTER_FAILURE = "retry_after_failure"
    RETRY_AFTER_CLOSE = "retry_after_close"


@dataclass(frozen=True, slots=True)
class Transition:
    state: ConnectionState
    action: Action = Action.NONE


def transition(state: ConnectionState, event: StreamEvent) -> Transition:
    """Return the next state and the action to perform for ``event``."""
    if event is StreamEvent.STOP:
        return Transition(ConnectionState.DISCONNECTED)

    if event is StreamEvent.CONNECT:
        if state is ConnectionState.CONNECTING:
            return Transition(state)
        return Transition(ConnectionState.CONNECTING, Action.OPEN)

    if event is StreamEvent.OPENED:
        if state is not ConnectionState.CONNECTING:
            return Transition(state)
        return Transition(ConnectionState.CONNECTED, Action.ON_CONNECTED)

    if event is StreamEvent.OPEN_FAILED:
        if state is not ConnectionState.CONNECTING:
            return Transition(state)
        return Transition(ConnectionState.DISCONNECTED, Action.RETRY_AFTER_FAILURE)

    if event is StreamEvent.CLOSED:
        # A close during a new attempt belongs to the connection being replaced.
        if state is ConnectionState.CONNECTING:
            return Transition(state)
        return Transition(ConnectionState.DISCONNECTED, Action.RETRY_AFTER_CLOSE)

    if event is StreamEvent.ERROR:
        if state is ConnectionState.CONNECTED:
            return Transition(ConnectionState.DISCONNECTED)
        return Transition(state)

    raise ValueError(f"unknown stream event: {event!r}")
