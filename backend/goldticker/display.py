"""Display settings shared between the ticker window and its tray menu.

The window only consumes two operations, ``get_current_settings()`` and
``on_settings_changed(callback)``. Settings live in memory for the lifetime
of the process.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel

from .market.models import Symbol

logger = logging.getLogger(__name__)

# Tray menu names for each toggleable row
PLATFORM_FIELDS: dict[str, str] = {
    "xau": "show_xau",
    "ms": "show_ms",
    "gh": "show_gh",
    "zs": "show_zs",
}

COLOR_PRESETS: dict[str, str] = {
    "dark": "#2c3e50",
    "blue": "#1e3a5f",
    "black": "#000000",
}

SettingsCallback = Callable[["DisplaySettings"], None]


class DisplaySettings(BaseModel):
    show_xau: bool = True
    show_ms: bool = True
    show_gh: bool = True
    show_zs: bool = True
    bg_color: str = COLOR_PRESETS["dark"]

    def visible_symbols(self) -> list[Symbol]:
        flags = {
            Symbol.XAU: self.show_xau,
            Symbol.MINSHENG: self.show_ms,
            Symbol.ICBC: self.show_gh,
            Symbol.ZHESHANG: self.show_zs,
        }
        return [symbol for symbol, shown in flags.items() if shown]


class SettingsChannel:
    """Holds the current DisplaySettings and notifies listeners on change."""

    def __init__(self, initial: DisplaySettings | None = None) -> None:
        self._current = initial or DisplaySettings()
        self._listeners: list[SettingsCallback] = []
        self._revision = 0

    @property
    def revision(self) -> int:
        """Bumped on every save. Useful for SSE change detection."""
        return self._revision

    def get_current_settings(self) -> DisplaySettings:
        return self._current.model_copy()

    def on_settings_changed(self, callback: SettingsCallback) -> Callable[[], None]:
        """Register ``callback``. Returns a function that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def save_settings(self, new_settings: DisplaySettings) -> DisplaySettings:
        self._current = new_settings.model_copy()
        self._revision += 1
        for callback in list(self._listeners):
            try:
                callback(self._current.model_copy())
            except Exception:
                logger.exception("Settings listener failed")
        return self.get_current_settings()

    def toggle_platform(self, platform: str) -> DisplaySettings:
        """Flip visibility of one row (``xau``, ``ms``, ``gh`` or ``zs``)."""
        field = PLATFORM_FIELDS.get(platform)
        if field is None:
            raise ValueError(f"Unknown platform: {platform}")
        current = self.get_current_settings()
        return self.save_settings(current.model_copy(update={field: not getattr(current, field)}))

    def set_bg_color(self, color: str) -> DisplaySettings:
        """Set the background colour. Accepts a preset name or a colour string."""
        color = COLOR_PRESETS.get(color, color)
        return self.save_settings(self.get_current_settings().model_copy(update={"bg_color": color}))
