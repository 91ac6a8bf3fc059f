"""SSE streaming endpoint for live price updates."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .store import PriceStore

if TYPE_CHECKING:
    from ..display import SettingsChannel

logger = logging.getLogger(__name__)


def create_stream_router(
    price_store: PriceStore,
    display: SettingsChannel,
    interval: float = 0.5,
) -> APIRouter:
    """Create the SSE streaming router bound to a store and display settings.

    This factory pattern lets us inject both without globals.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.get("/prices")
    async def stream_prices(request: Request) -> StreamingResponse:
        """SSE endpoint for live price updates.

        Pushes the visible prices whenever the store or the display settings
        change. Events look like:

            data: {"prices": {"xau": "2345.67", "icbc": "--", ...},
                   "connection_state": "connected",
                   "settings": {"show_xau": true, ..., "bg_color": "#2c3e50"}}

        Includes a retry directive so the browser auto-reconnects on
        disconnection (EventSource built-in behavior).
        """
        return StreamingResponse(
            _generate_events(price_store, display, request, interval),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


def build_payload(price_store: PriceStore, display: SettingsChannel) -> dict:
    """Snapshot restricted to the rows the user has chosen to show."""
    current = display.get_current_settings()
    snapshot = price_store.read()
    data = snapshot.to_dict(current.visible_symbols())
    return {
        "prices": {k: v for k, v in data.items() if k != "connection_state"},
        "connection_state": data["connection_state"],
        "settings": current.model_dump(),
    }


async def _generate_events(
    price_store: PriceStore,
    display: SettingsChannel,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted price events.

    Checks for changes every `interval` seconds. Stops when the client
    disconnects (detected via request.is_disconnected()).
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_seen = (-1, -1)
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current = (price_store.version, display.revision)
            if current != last_seen:
                last_seen = current
                payload = json.dumps(build_payload(price_store, display))
                yield f"data: {payload}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
