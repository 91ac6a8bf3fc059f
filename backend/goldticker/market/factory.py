"""Factory for the price feed and its sources."""

from __future__ import annotations

import logging

from ..config import Settings, settings
from .feed import PriceFeed
from .interface import MarketDataSource
from .models import Symbol
from .poller import BankPoller
from .store import PriceStore
from .stream_client import StreamClient

logger = logging.getLogger(__name__)


def create_market_data_sources(price_store: PriceStore, config: Settings | None = None) -> list[MarketDataSource]:
    """Build the HTTP poller for the bank symbols and the stream client for XAU.

    Returns unstarted sources.
    """
    config = config or settings

    poller = BankPoller(
        price_store=price_store,
        endpoints={
            Symbol.MINSHENG: config.minsheng,
            Symbol.ICBC: config.icbc,
            Symbol.ZHESHANG: config.zheshang,
        },
        poll_interval=config.poll_interval,
        timeout=config.fetch_timeout,
    )
    stream = StreamClient(
        price_store=price_store,
        url=config.stream_url,
        subscription=config.subscription_message(),
        symbol_code=config.stream_symbol_code,
        throttle_window=config.throttle_window,
        forced_reconnect_interval=config.forced_reconnect_interval,
        connect_retry_delay=config.connect_retry_delay,
        close_retry_delay=config.close_retry_delay,
        open_timeout=config.stream_open_timeout,
        reset_on_connect=config.reset_xau_on_connect,
    )
    logger.info(
        "Price sources: %d HTTP endpoints every %.1fs, stream %s",
        len(poller.get_symbols()),
        config.poll_interval,
        config.stream_url,
    )
    return [poller, stream]


def create_price_feed(price_store: PriceStore | None = None, config: Settings | None = None) -> PriceFeed:
    """Create an unstarted PriceFeed. Caller must await feed.start()."""
    store = price_store if price_store is not None else PriceStore()
    return PriceFeed(store, create_market_data_sources(store, config))
