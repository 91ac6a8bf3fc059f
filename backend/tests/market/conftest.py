"""Fixtures for price feed tests.

``FakeConnection`` stands in for a websocket connection: frames pushed with
``push()`` are yielded by ``async for``, ``drop()`` ends the iteration the way
a close does, and ``fail()`` raises from the iterator. ``FakeConnector`` is
passed to StreamClient as its ``connector`` and records every attempt.
"""

import asyncio
import json

import pytest

from goldticker.market.store import PriceStore

_END = object()


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._frames: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("send on closed connection")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self._frames.put_nowait(_END)

    def push(self, frame) -> None:
        if not isinstance(frame, (str, bytes)):
            frame = json.dumps(frame)
        self._frames.put_nowait(frame)

    def drop(self) -> None:
        """Remote side closes the connection cleanly."""
        self._frames.put_nowait(_END)

    def fail(self, exc: BaseException) -> None:
        self._frames.put_nowait(exc)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._frames.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    def __init__(self) -> None:
        self.calls = 0
        self.urls: list[str] = []
        self.connections: list[FakeConnection] = []
        self.failures = 0  # number of upcoming attempts that raise
        self.gate: asyncio.Event | None = None  # when set, attempts wait on it

    async def __call__(self, url: str) -> FakeConnection:
        self.calls += 1
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]


async def _wait_for(predicate, timeout: float = 1.0, step: float = 0.005) -> None:
    """Poll ``predicate`` until it is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(step)


@pytest.fixture
def store() -> PriceStore:
    return PriceStore()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def wait_for():
    return _wait_for
