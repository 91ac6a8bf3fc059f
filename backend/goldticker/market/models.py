"""Data models for the price feed."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

PLACEHOLDER = "--"  # no value known yet
FETCH_FAILED = "fetch failed"  # last fetch for the symbol failed

SENTINELS = frozenset({PLACEHOLDER, FETCH_FAILED})


class Symbol(str, Enum):
    """Tracked instruments. XAU arrives over the stream, the banks over HTTP."""

    XAU = "xau"
    MINSHENG = "minsheng"
    ICBC = "icbc"
    ZHESHANG = "zheshang"


BANK_SYMBOLS: tuple[Symbol, ...] = (Symbol.MINSHENG, Symbol.ICBC, Symbol.ZHESHANG)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class PriceRecord:
    """Latest known value for one symbol.

    ``value`` is ``None`` until the first successful fetch, or after the
    stream resets it on reconnect. It is otherwise passed through exactly as
    the source returned it.
    """

    symbol: Symbol
    value: str | None = None
    last_updated_at: float | None = None  # Unix seconds

    @property
    def display_value(self) -> str:
        return PLACEHOLDER if self.value is None else self.value

    @property
    def is_sentinel(self) -> bool:
        """True when no valid price is currently known."""
        return self.value is None or self.value in SENTINELS

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol.value,
            "value": self.display_value,
            "last_updated_at": self.last_updated_at,
        }


@dataclass(frozen=True, slots=True)
class PriceSnapshot:
    """Read-only view of the whole store handed to the UI."""

    xau: str
    minsheng: str
    icbc: str
    zheshang: str
    connection_state: ConnectionState
    version: int = 0

    def price(self, symbol: Symbol) -> str:
        return getattr(self, symbol.value)

    def to_dict(self, symbols: list[Symbol] | None = None) -> dict:
        """Serialize for JSON / SSE transmission, optionally only ``symbols``."""
        wanted = list(Symbol) if symbols is None else symbols
        data: dict = {symbol.value: self.price(symbol) for symbol in wanted}
        data["connection_state"] = self.connection_state.value
        return data
