"""Price feed subsystem for goldticker.

Public API:
    Symbol, ConnectionState - Enumerations of tracked instruments and stream states
    PriceRecord, PriceSnapshot - Immutable views of stored prices
    PriceStore          - In-memory latest-price store
    MarketDataSource    - Abstract interface for price providers
    BankPoller          - HTTP poller for the bank symbols
    StreamClient        - WebSocket client for the XAU quote
    PriceFeed           - Per-window session owning both sources
    create_price_feed   - Factory wiring sources from Settings
    create_stream_router - FastAPI router factory for SSE endpoint
"""

from .factory import create_market_data_sources, create_price_feed
from .feed import PriceFeed
from .interface import MarketDataSource
from .models import FETCH_FAILED, PLACEHOLDER, ConnectionState, PriceRecord, PriceSnapshot, Symbol
from .poller import BankPoller
from .store import PriceStore
from .stream import create_stream_router
from .stream_client import StreamClient

__all__ = [
    "FETCH_FAILED",
    "PLACEHOLDER",
    "Symbol",
    "ConnectionState",
    "PriceRecord",
    "PriceSnapshot",
    "PriceStore",
    "MarketDataSource",
    "BankPoller",
    "StreamClient",
    "PriceFeed",
    "create_market_data_sources",
    "create_price_feed",
    "create_stream_router",
]
