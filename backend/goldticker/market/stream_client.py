"""WebSocket quote feed client for the XAU price.

Keeps one streaming connection alive indefinitely:

- reconnects 3s after the connection closes and 5s after a failed attempt
- forces a full reconnect every 5 minutes regardless of health
- writes at most one price per throttle window (leading edge)

The connection lifecycle is driven by the pure ``transition`` function in
``connection.py``; this module only performs the side effects it asks for.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from .connection import Action, StreamEvent, Transition, transition
from .errors import StreamClosed, StreamConnectError, StreamError, StreamMessageError
from .interface import MarketDataSource
from .models import ConnectionState, Symbol
from .store import PriceStore
from .throttle import LeadingEdgeThrottle

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


def parse_quote_frame(frame: str | bytes, code: str) -> str | None:
    """Return the value quoted for ``code`` in one inbound frame.

    Frames are JSON arrays of ``{"c": code, "a": value, ...}`` objects.
    Returns None when the frame carries no quote for ``code``; raises
    StreamMessageError when the frame is malformed.
    """
    try:
        payload = json.loads(frame)
    except (TypeError, ValueError, RecursionError) as e:
        raise StreamMessageError(f"undecodable frame: {e}") from e
    if not isinstance(payload, list):
        raise StreamMessageError(f"expected a JSON array, got {type(payload).__name__}")

    for quote in payload:
        if not isinstance(quote, dict) or quote.get("c") != code:
            continue
        value = quote.get("a")
        if value is None or value == "":
            raise StreamMessageError(f"quote for {code} has no value")
        return value if isinstance(value, str) else str(value)
    return None


async def _cancel(task: asyncio.Task | None) -> None:
    """Cancel a task and wait for it, unless it is the caller itself."""
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def _close_quietly(ws: Any) -> None:
    try:
        await ws.close()
    except Exception as e:
        logger.debug("Ignoring error while closing stream: %s", e)


class StreamClient(MarketDataSource):
    """MarketDataSource for the streaming XAU quote.

    Owns the socket exclusively. Only ``connect()`` opens it, only the
    listener reads it and only teardown closes it.
    """

    def __init__(
        self,
        price_store: PriceStore,
        url: str,
        subscription: dict[str, Any],
        symbol_code: str = "XAU",
        throttle_window: float = 0.2,
        forced_reconnect_interval: float = 300.0,
        connect_retry_delay: float = 5.0,
        close_retry_delay: float = 3.0,
        open_timeout: float = 10.0,
        reset_on_connect: bool = True,
        connector: Connector | None = None,
        throttle: LeadingEdgeThrottle | None = None,
    ) -> None:
        self._store = price_store
        self._url = url
        self._subscription = subscription
        self._code = symbol_code
        self._forced_interval = forced_reconnect_interval
        self._connect_retry_delay = connect_retry_delay
        self._close_retry_delay = close_retry_delay
        self._open_timeout = open_timeout
        self._reset_on_connect = reset_on_connect
        self._connector: Connector = connector or self._open_websocket
        self._throttle = throttle or LeadingEdgeThrottle(throttle_window)

        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._ws: Any = None
        self._listen_task: asyncio.Task | None = None
        self._forced_task: asyncio.Task | None = None
        self._retry_task: asyncio.Task | None = None

        self.metrics = {
            "connect_attempts": 0,
            "connections": 0,
            "messages_received": 0,
            "messages_dropped": 0,
            "prices_written": 0,
        }

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def start(self) -> None:
        self._running = True
        logger.info("Stream client starting: %s", self._url)
        await self.connect()

    async def stop(self) -> None:
        self._running = False
        self._dispatch(StreamEvent.STOP)
        await _cancel(self._retry_task)
        await _cancel(self._forced_task)
        await _cancel(self._listen_task)
        self._retry_task = self._forced_task = self._listen_task = None
        ws, self._ws = self._ws, None
        if ws is not None:
            await _close_quietly(ws)
        logger.info("Stream client stopped")

    def get_symbols(self) -> list[Symbol]:
        return [Symbol.XAU]

    async def connect(self) -> None:
        """Tear down any previous connection and open a new one.

        No-op while an attempt is already in flight or after stop(). Never
        raises: failures schedule a retry instead.
        """
        if not self._running:
            return
        step = self._dispatch(StreamEvent.CONNECT)
        if step.action is not Action.OPEN:
            logger.debug("Stream connect ignored: attempt already in flight")
            return

        self.metrics["connect_attempts"] += 1
        await self._teardown_connection()

        try:
            ws = await self._connector(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_connect_failed(StreamConnectError(f"{type(e).__name__}: {e}"))
            return

        if not self._running:
            await _close_quietly(ws)
            return

        try:
            await ws.send(json.dumps(self._subscription))
        except asyncio.CancelledError:
            await _close_quietly(ws)
            raise
        except Exception as e:
            await _close_quietly(ws)
            self._on_connect_failed(StreamConnectError(f"subscription failed: {e}"))
            return

        self._ws = ws
        self._dispatch(StreamEvent.OPENED)

    # --- Internal ---

    async def _open_websocket(self, url: str) -> Any:
        return await websockets.connect(url, open_timeout=self._open_timeout)

    def _dispatch(self, event: StreamEvent) -> Transition:
        """Apply ``event`` to the state machine and run the resulting action."""
        step = transition(self._state, event)
        if step.state is not self._state:
            logger.info("Stream %s -> %s (%s)", self._state.value, step.state.value, event.value)
            self._state = step.state
            self._store.set_connection_state(step.state)

        if step.action is Action.ON_CONNECTED:
            self._on_connected()
        elif step.action is Action.RETRY_AFTER_FAILURE:
            self._schedule_retry(self._connect_retry_delay)
        elif step.action is Action.RETRY_AFTER_CLOSE:
            self._schedule_retry(self._close_retry_delay)
        return step

    def _on_connected(self) -> None:
        self.metrics["connections"] += 1
        if self._reset_on_connect:
            self._store.set_price(Symbol.XAU, None)
        self._throttle.reset()
        self._listen_task = asyncio.create_task(self._listen(self._ws), name="stream-listener")
        self._forced_task = asyncio.create_task(self._forced_reconnect(), name="stream-forced-reconnect")

    def _on_connect_failed(self, error: StreamConnectError) -> None:
        logger.warning("Stream connect failed: %s (retry in %.1fs)", error, self._connect_retry_delay)
        self._dispatch(StreamEvent.OPEN_FAILED)

    async def _teardown_connection(self) -> None:
        """Drop the previous connection and its timers. Errors are ignored.

        The task running this attempt (a retry or the forced-reconnect timer)
        is left alone and stays reachable so stop() can still cancel it.
        """
        current = asyncio.current_task()
        await _cancel(self._retry_task)
        await _cancel(self._forced_task)
        await _cancel(self._listen_task)
        if self._retry_task is not current:
            self._retry_task = None
        if self._forced_task is not current:
            self._forced_task = None
        self._listen_task = None
        ws, self._ws = self._ws, None
        if ws is not None:
            await _close_quietly(ws)

    def _schedule_retry(self, delay: float) -> None:
        if not self._running:
            return
        if self._retry_task is not None and not self._retry_task.done():
            if self._retry_task is not asyncio.current_task():
                self._retry_task.cancel()
        self._retry_task = asyncio.create_task(self._retry_after(delay), name="stream-retry")

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.connect()

    async def _forced_reconnect(self) -> None:
        await asyncio.sleep(self._forced_interval)
        logger.info("Forcing stream reconnect after %.0fs", self._forced_interval)
        await self.connect()

    async def _listen(self, ws: Any) -> None:
        """Read frames until the connection ends, then report the close."""
        closed = StreamClosed("connection ended")
        try:
            async for frame in ws:
                self._handle_frame(frame)
        except ConnectionClosedError as e:
            self._on_stream_error(StreamError(str(e)))
            closed = StreamClosed(str(e))
        except ConnectionClosed as e:
            closed = StreamClosed(str(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_stream_error(StreamError(f"{type(e).__name__}: {e}"))
            closed = StreamClosed("closed after transport error")

        if self._ws is ws:
            self._ws = None
        await _close_quietly(ws)
        logger.warning("Stream closed: %s (retry in %.1fs)", closed, self._close_retry_delay)
        self._dispatch(StreamEvent.CLOSED)

    def _on_stream_error(self, error: StreamError) -> None:
        logger.warning("Stream error: %s", error)
        self._dispatch(StreamEvent.ERROR)

    def _handle_frame(self, frame: str | bytes) -> None:
        self.metrics["messages_received"] += 1
        try:
            value = parse_quote_frame(frame, self._code)
        except StreamMessageError as e:
            logger.debug("Dropping stream frame: %s", e)
            return
        if value is None:
            return
        if not self._throttle.allow():
            self.metrics["messages_dropped"] += 1
            return
        self._store.set_price(Symbol.XAU, value)
        self.metrics["prices_written"] += 1
