"""Per-window price feed session."""

from __future__ import annotations

import asyncio
import logging

from .interface import MarketDataSource
from .models import PriceSnapshot
from .store import PriceStore

logger = logging.getLogger(__name__)


class PriceFeed:
    """Owns the sources writing into one PriceStore for one display window.

    Lifecycle:
        feed = create_price_feed(store)
        await feed.start()
        snapshot = feed.read()
        await feed.stop()
    """

    def __init__(self, price_store: PriceStore, sources: list[MarketDataSource]) -> None:
        self._store = price_store
        self._sources = list(sources)
        self._started = False

    @property
    def store(self) -> PriceStore:
        return self._store

    @property
    def sources(self) -> list[MarketDataSource]:
        return list(self._sources)

    @property
    def running(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        await asyncio.gather(*(source.start() for source in self._sources))
        logger.info("Price feed started with %d sources", len(self._sources))

    async def stop(self) -> None:
        """Stop every source. Safe to call multiple times."""
        if not self._started:
            return
        self._started = False
        for source in reversed(self._sources):
            try:
                await source.stop()
            except Exception:
                logger.exception("Failed to stop %s", type(source).__name__)
        logger.info("Price feed stopped")

    def read(self) -> PriceSnapshot:
        return self._store.read()
