"""REST endpoints for the ticker window: snapshot, display settings, quit."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from .display import DisplaySettings, SettingsChannel
from .market.store import PriceStore

logger = logging.getLogger(__name__)


class ColorRequest(BaseModel):
    color: str


def create_api_router(price_store: PriceStore, display: SettingsChannel) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["ticker"])

    @router.get("/prices")
    async def get_prices() -> dict:
        return price_store.read().to_dict()

    @router.get("/settings")
    async def get_settings() -> DisplaySettings:
        return display.get_current_settings()

    @router.put("/settings")
    async def save_settings(new_settings: DisplaySettings) -> DisplaySettings:
        return display.save_settings(new_settings)

    @router.post("/settings/toggle/{platform}")
    async def toggle_platform(platform: str) -> DisplaySettings:
        try:
            return display.toggle_platform(platform)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @router.post("/settings/bg-color")
    async def set_bg_color(body: ColorRequest) -> DisplaySettings:
        return display.set_bg_color(body.color)

    @router.post("/quit")
    async def quit_app(request: Request) -> dict:
        """Window close: stop every feed task so nothing keeps reconnecting."""
        feed = getattr(request.app.state, "feed", None)
        if feed is not None:
            await feed.stop()
        logger.info("Ticker window closed")
        return {"status": "stopped"}

    return router
