"""In-memory store of the latest price per symbol."""

from __future__ import annotations

import time
from threading import Lock

from .models import ConnectionState, PriceRecord, PriceSnapshot, Symbol


class PriceStore:
    """Latest value for each symbol plus the stream connection state.

    Writers: BankPoller (bank symbols) and StreamClient (XAU, connection state).
    Readers: SSE endpoint, snapshot API.
    """

    def __init__(self) -> None:
        self._records: dict[Symbol, PriceRecord] = {symbol: PriceRecord(symbol=symbol) for symbol in Symbol}
        self._connection_state = ConnectionState.DISCONNECTED
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every write

    def set_price(self, symbol: Symbol, value: str | None, timestamp: float | None = None) -> PriceRecord:
        """Record a new value for ``symbol``. ``None`` resets it to the placeholder."""
        with self._lock:
            record = PriceRecord(
                symbol=symbol,
                value=value,
                last_updated_at=None if value is None else (timestamp or time.time()),
            )
            self._records[symbol] = record
            self._version += 1
            return record

    def set_connection_state(self, state: ConnectionState) -> None:
        with self._lock:
            if state is self._connection_state:
                return
            self._connection_state = state
            self._version += 1

    def get(self, symbol: Symbol) -> PriceRecord:
        with self._lock:
            return self._records[symbol]

    def read(self) -> PriceSnapshot:
        """Consistent snapshot of every symbol and the connection state."""
        with self._lock:
            return PriceSnapshot(
                xau=self._records[Symbol.XAU].display_value,
                minsheng=self._records[Symbol.MINSHENG].display_value,
                icbc=self._records[Symbol.ICBC].display_value,
                zheshang=self._records[Symbol.ZHESHANG].display_value,
                connection_state=self._connection_state,
                version=self._version,
            )

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version
