"""Tests for BankPoller (mocked HTTP transport)."""

import asyncio
import json

import httpx
import pytest

from goldticker.config import BankEndpoint
from goldticker.market.errors import FetchError
from goldticker.market.models import FETCH_FAILED, PLACEHOLDER, Symbol
from goldticker.market.poller import BankPoller, extract_price

ENDPOINTS = {
    Symbol.MINSHENG: BankEndpoint(url="https://quotes.test/minsheng", method="GET"),
    Symbol.ICBC: BankEndpoint(url="https://quotes.test/icbc", method="POST", json_body={"productSku": "icbc"}),
    Symbol.ZHESHANG: BankEndpoint(url="https://quotes.test/zheshang", method="POST", json_body={"productSku": "zs"}),
}

PRICES = {"minsheng": "578.10", "icbc": "578.30", "zheshang": "579.00"}


def _envelope(price) -> dict:
    return {"resultData": {"datas": {"price": price}}}


def _healthy(request: httpx.Request) -> httpx.Response:
    name = request.url.path.rsplit("/", 1)[-1]
    return httpx.Response(200, json=_envelope(PRICES[name]))


def _make_poller(store, handler, poll_interval: float = 60.0, timeout: float = 30.0) -> BankPoller:
    return BankPoller(
        price_store=store,
        endpoints=ENDPOINTS,
        poll_interval=poll_interval,  # Long interval so the loop doesn't auto-poll
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


class TestExtractPrice:
    """Unit tests for response envelope parsing."""

    def test_extracts_nested_price(self):
        """Test that the nested price string is returned unchanged."""
        assert extract_price(Symbol.ICBC, _envelope("0578.30")) == "0578.30"

    def test_numeric_price_stringified(self):
        """Test that a numeric price is passed through as a string."""
        assert extract_price(Symbol.ICBC, _envelope(578.3)) == "578.3"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"resultData": None},
            {"resultData": {"datas": {}}},
            {"resultData": {"datas": {"price": None}}},
            {"resultData": {"datas": {"price": ""}}},
            [],
            "oops",
        ],
    )
    def test_missing_path_raises(self, payload):
        """Test that an incomplete envelope is a FetchError."""
        with pytest.raises(FetchError) as info:
            extract_price(Symbol.MINSHENG, payload)
        assert info.value.symbol is Symbol.MINSHENG


@pytest.mark.asyncio
class TestBankPoller:
    """Unit tests for BankPoller with a mocked transport."""

    async def test_fetch_all_updates_store(self, store):
        """Test that one cycle writes every bank price verbatim."""
        poller = _make_poller(store, _healthy)
        await poller.fetch_all()

        snapshot = store.read()
        assert snapshot.minsheng == "578.10"
        assert snapshot.icbc == "578.30"
        assert snapshot.zheshang == "579.00"
        assert snapshot.xau == PLACEHOLDER

        await poller.stop()

    async def test_request_methods_and_bodies(self, store):
        """Test that GET and POST endpoints are called as configured."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            name = request.url.path.rsplit("/", 1)[-1]
            seen[name] = (request.method, json.loads(request.content) if request.content else None)
            return _healthy(request)

        poller = _make_poller(store, handler)
        await poller.fetch_all()

        assert seen["minsheng"] == ("GET", None)
        assert seen["icbc"] == ("POST", {"productSku": "icbc"})
        assert seen["zheshang"] == ("POST", {"productSku": "zs"})

        await poller.stop()

    async def test_http_500_isolated(self, store):
        """Test that a server error only marks its own symbol as failed."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/icbc"):
                return httpx.Response(500, text="boom")
            return _healthy(request)

        poller = _make_poller(store, handler)
        await poller.fetch_all()

        snapshot = store.read()
        assert snapshot.icbc == FETCH_FAILED
        assert snapshot.minsheng == "578.10"
        assert snapshot.zheshang == "579.00"

        await poller.stop()

    async def test_network_error_isolated(self, store):
        """Test that a transport error degrades only that symbol."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/zheshang"):
                raise httpx.ConnectError("unreachable", request=request)
            return _healthy(request)

        poller = _make_poller(store, handler)
        await poller.fetch_all()

        snapshot = store.read()
        assert snapshot.zheshang == FETCH_FAILED
        assert snapshot.minsheng == "578.10"
        assert snapshot.icbc == "578.30"

        await poller.stop()

    async def test_timeout_is_failure(self, store):
        """Test that a timeout writes the failure sentinel."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        poller = _make_poller(store, handler)
        result = await poller.fetch_one(Symbol.MINSHENG)

        assert result == FETCH_FAILED
        assert store.read().minsheng == FETCH_FAILED

        await poller.stop()

    async def test_undecodable_body_is_failure(self, store):
        """Test that a non-JSON body writes the failure sentinel."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        poller = _make_poller(store, handler)
        await poller.fetch_one(Symbol.ICBC)

        assert store.read().icbc == FETCH_FAILED

        await poller.stop()

    async def test_missing_field_is_failure(self, store):
        """Test that a body without the nested price writes the failure sentinel."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"resultData": {"datas": {}}})

        poller = _make_poller(store, handler)
        await poller.fetch_one(Symbol.ICBC)

        assert store.read().icbc == FETCH_FAILED

        await poller.stop()

    async def test_failure_does_not_touch_other_symbols(self, store):
        """Test that a failed fetch leaves earlier values of other symbols intact."""
        poller = _make_poller(store, _healthy)
        await poller.fetch_all()
        before = store.read()
        await poller.stop()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        failing = _make_poller(store, handler)
        await failing.fetch_one(Symbol.ICBC)

        after = store.read()
        assert after.icbc == FETCH_FAILED
        assert after.minsheng == before.minsheng
        assert after.zheshang == before.zheshang

        await failing.stop()

    async def test_fetch_one_never_raises(self, store):
        """Test that fetch_one swallows every fetch failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.RemoteProtocolError("garbage", request=request)

        poller = _make_poller(store, handler)
        assert await poller.fetch_one(Symbol.ZHESHANG) == FETCH_FAILED

        await poller.stop()

    async def test_unexpected_error_is_failure(self, store):
        """Test that an error outside the HTTP error family still writes the sentinel."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("Cannot send a request, as the client has been closed.")

        poller = _make_poller(store, handler)
        assert await poller.fetch_one(Symbol.MINSHENG) == FETCH_FAILED
        assert store.read().minsheng == FETCH_FAILED

        await poller.stop()

    async def test_deeply_nested_body_is_failure(self, store):
        """Test that a body too deeply nested to decode writes the sentinel."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="[" * 200000)

        poller = _make_poller(store, handler)
        assert await poller.fetch_one(Symbol.ICBC) == FETCH_FAILED
        assert store.read().icbc == FETCH_FAILED

        await poller.stop()

    async def test_whole_request_timeout(self, store):
        """Test that the timeout bounds the whole request, not each phase."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return _healthy(request)

        poller = _make_poller(store, handler, timeout=0.05)
        assert await poller.fetch_one(Symbol.ZHESHANG) == FETCH_FAILED
        assert store.read().zheshang == FETCH_FAILED

        await poller.stop()

    async def test_start_immediate_poll(self, store):
        """Test that start() does an immediate poll before starting the loop."""
        poller = _make_poller(store, _healthy)
        await poller.start()

        assert store.read().icbc == "578.30"

        await poller.stop()

    async def test_polls_on_interval(self, store):
        """Test that cycles keep running on the configured period."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return _healthy(request)

        poller = _make_poller(store, handler, poll_interval=0.02)
        await poller.start()
        await asyncio.sleep(0.15)
        await poller.stop()

        # First cycle plus several timed cycles, three requests each
        assert len(calls) >= 9

    async def test_overrunning_cycle_does_not_block_next(self, store):
        """Test that a slow cycle does not stop the next one from starting."""
        release = asyncio.Event()
        started = []

        async def handler(request: httpx.Request) -> httpx.Response:
            started.append(request.url.path)
            if len(started) > 3:
                await release.wait()
            return _healthy(request)

        poller = _make_poller(store, handler, poll_interval=0.02)
        await poller.start()
        await asyncio.sleep(0.1)

        # Timed cycles keep starting while earlier ones are still blocked
        assert len(started) >= 9

        release.set()
        await poller.stop()

    async def test_stop_cancels_task(self, store):
        """Test that stop() cancels the polling task."""
        poller = _make_poller(store, _healthy, poll_interval=10.0)
        await poller.start()

        assert poller._task is not None
        assert not poller._task.done()

        await poller.stop()
        assert poller._task is None

    async def test_stop_during_first_cycle(self, store):
        """Test that stop() while the first cycle is in flight leaves no poll loop behind."""
        release = asyncio.Event()
        started = []

        async def handler(request: httpx.Request) -> httpx.Response:
            started.append(request.url.path)
            await release.wait()
            return _healthy(request)

        poller = _make_poller(store, handler, poll_interval=0.01)
        starting = asyncio.create_task(poller.start())
        while not started:
            await asyncio.sleep(0.001)

        await poller.stop()
        release.set()
        await starting
        await asyncio.sleep(0.05)

        assert poller._task is None
        assert not poller._cycles
        assert len(started) <= 3
        assert store.read().icbc == PLACEHOLDER

    async def test_start_after_stop_is_noop(self, store):
        """Test that a stopped poller does not start polling again."""
        poller = _make_poller(store, _healthy, poll_interval=0.01)
        await poller.stop()
        await poller.start()

        assert poller._task is None
        assert store.read().minsheng == PLACEHOLDER

    async def test_stop_is_idempotent(self, store):
        """Test that stop() can be called multiple times."""
        poller = _make_poller(store, _healthy)
        await poller.stop()
        await poller.stop()  # Should not raise

    async def test_late_completion_ignored_after_stop(self, store):
        """Test that a response arriving after stop() is not written."""
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return _healthy(request)

        poller = _make_poller(store, handler)
        pending = asyncio.create_task(poller.fetch_one(Symbol.ICBC))
        await asyncio.sleep(0.01)

        await poller.stop()
        release.set()
        await pending

        assert store.read().icbc == PLACEHOLDER

    async def test_get_symbols(self, store):
        """Test getting the list of polled symbols."""
        poller = _make_poller(store, _healthy)
        assert poller.get_symbols() == [Symbol.MINSHENG, Symbol.ICBC, Symbol.ZHESHANG]
        await poller.stop()
