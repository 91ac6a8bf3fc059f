"""HTTP poller for the bank gold-product prices."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..config import BankEndpoint
from .errors import FetchError
from .interface import MarketDataSource
from .models import FETCH_FAILED, Symbol
from .store import PriceStore

logger = logging.getLogger(__name__)


def extract_price(symbol: Symbol, payload: Any) -> str:
    """Pull ``resultData.datas.price`` out of a response body.

    Raises FetchError when the path is missing or the price is empty.
    """
    try:
        price = payload["resultData"]["datas"]["price"]
    except (KeyError, TypeError, IndexError) as e:
        raise FetchError(symbol, f"missing resultData.datas.price ({e!r})") from e
    if price is None or price == "":
        raise FetchError(symbol, "empty price")
    return price if isinstance(price, str) else str(price)


class BankPoller(MarketDataSource):
    """MarketDataSource that polls one REST endpoint per bank symbol.

    Each cycle issues every request concurrently and waits for all of them
    to settle. A failure only degrades its own symbol to the failure
    sentinel. Cycles start on a fixed period whether or not the previous one
    has finished.
    """

    def __init__(
        self,
        price_store: PriceStore,
        endpoints: Mapping[Symbol, BankEndpoint],
        poll_interval: float = 3.0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = price_store
        self._endpoints = dict(endpoints)
        self._interval = poll_interval
        self._timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._task: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()
        self._stopped = False

    async def start(self) -> None:
        if self._stopped:
            return

        # Immediate first cycle so the store has data right away. Tracked like
        # any other cycle so stop() can cancel it mid-flight.
        first = self._spawn_cycle()
        await asyncio.wait({first})
        if self._stopped:
            logger.info("Bank poller stopped before its first cycle settled")
            return

        self._task = asyncio.create_task(self._poll_loop(), name="bank-poller")
        logger.info(
            "Bank poller started: %d symbols, %.1fs interval",
            len(self._endpoints),
            self._interval,
        )

    async def stop(self) -> None:
        self._stopped = True
        pending = [t for t in (self._task, *self._cycles) if t and not t.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._cycles.clear()
        await self._client.aclose()
        logger.info("Bank poller stopped")

    def get_symbols(self) -> list[Symbol]:
        return list(self._endpoints)

    async def fetch_all(self) -> dict[Symbol, str]:
        """Fetch every bank symbol concurrently. Returns what each one stored."""
        symbols = list(self._endpoints)
        results = await asyncio.gather(*(self.fetch_one(s) for s in symbols), return_exceptions=True)

        outcome: dict[Symbol, str] = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, BaseException):
                logger.error("Unexpected error fetching %s", symbol.value, exc_info=result)
                continue
            outcome[symbol] = result
        logger.debug("Bank poll: %s", outcome)
        return outcome

    async def fetch_one(self, symbol: Symbol) -> str:
        """Fetch one symbol and write the price, or the failure sentinel, to the store."""
        try:
            value = await self._request_price(symbol, self._endpoints[symbol])
        except FetchError as e:
            logger.warning("Price fetch failed: %s", e)
            value = FETCH_FAILED
        except Exception as e:
            logger.error("Unexpected error fetching %s: %s", symbol.value, e, exc_info=True)
            value = FETCH_FAILED

        if self._stopped:
            logger.debug("Discarding late result for %s after stop", symbol.value)
            return value
        self._store.set_price(symbol, value)
        return value

    # --- Internal ---

    async def _poll_loop(self) -> None:
        """Start a cycle every interval. First cycle already happened in start()."""
        while True:
            await asyncio.sleep(self._interval)
            self._spawn_cycle()

    def _spawn_cycle(self) -> asyncio.Task:
        cycle = asyncio.create_task(self.fetch_all(), name="bank-poll-cycle")
        self._cycles.add(cycle)
        cycle.add_done_callback(self._cycles.discard)
        return cycle

    async def _request_price(self, symbol: Symbol, endpoint: BankEndpoint) -> str:
        try:
            # The client timeout applies per phase; this bounds the whole request
            response = await asyncio.wait_for(
                self._client.request(
                    endpoint.method,
                    endpoint.url,
                    json=(endpoint.json_body or {}) if endpoint.method == "POST" else None,
                ),
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except asyncio.TimeoutError as e:
            raise FetchError(symbol, f"no response within {self._timeout:g}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(symbol, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(symbol, f"{type(e).__name__}: {e}") from e
        except (ValueError, RecursionError) as e:
            # Body was not JSON, or nested too deeply to decode
            raise FetchError(symbol, f"undecodable body: {e}") from e
        return extract_price(symbol, payload)
