"""Failure types raised inside the price feed.

None of these escape the feed: the poller turns a ``FetchError`` into a
failure sentinel and the stream client turns the rest into state transitions
or scheduled retries.
"""

from __future__ import annotations

from .models import Symbol


class FeedError(Exception):
    """Base class for price feed failures."""


class FetchError(FeedError):
    """HTTP price fetch failed: transport, timeout, status, body or shape."""

    def __init__(self, symbol: Symbol, reason: str) -> None:
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{symbol.value}: {reason}")


class StreamConnectError(FeedError):
    """Opening the streaming connection (or sending the subscription) failed."""


class StreamClosed(FeedError):
    """Streaming connection was closed by either side."""


class StreamMessageError(FeedError):
    """Inbound frame could not be interpreted."""


class StreamError(FeedError):
    """Transport-level error on an open streaming connection."""
