"""
goldticker - Main Entry Point

Serves the price ticker window: starts the HTTP poller and the XAU stream
client for the lifetime of the app and exposes the merged prices over REST
and Server-Sent Events.

Usage:
    python -m goldticker.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import create_api_router
from .config import Settings, settings
from .display import SettingsChannel
from .market.factory import create_price_feed
from .market.feed import PriceFeed
from .market.store import PriceStore
from .market.stream import create_stream_router

logger = logging.getLogger(__name__)

FeedFactory = Callable[[PriceStore, Settings], PriceFeed]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Per-request and per-frame logs from the clients are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def create_app(config: Settings | None = None, feed_factory: FeedFactory = create_price_feed) -> FastAPI:
    """Build the app. The price feed is created and started by the lifespan."""
    config = config or settings
    store = PriceStore()
    display = SettingsChannel()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        feed = feed_factory(store, config)
        app.state.feed = feed
        await feed.start()
        try:
            yield
        finally:
            await feed.stop()

    app = FastAPI(title="goldticker", lifespan=lifespan)
    app.state.store = store
    app.state.display = display
    app.include_router(create_api_router(store, display))
    app.include_router(create_stream_router(store, display, interval=config.sse_interval))
    return app


app = create_app()


def main() -> None:
    import uvicorn

    configure_logging(settings.log_level)
    logger.info("Starting goldticker (log level %s)", settings.log_level)
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
