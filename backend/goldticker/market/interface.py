"""Abstract interface for price sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Symbol


class MarketDataSource(ABC):
    """Contract for price providers.

    Implementations push values into a shared PriceStore on their own
    schedule. Downstream code never calls a source directly for prices;
    it reads from the store.

    Lifecycle:
        source = BankPoller(store, endpoints)
        await source.start()
        # ... window is open ...
        await source.stop()
    """

    @abstractmethod
    async def start(self) -> None:
        """Begin producing price updates.

        Starts background tasks that write to the PriceStore. Must be called
        exactly once.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Cancel background tasks and release resources.

        Safe to call multiple times. After stop(), the source will not write
        to the store again.
        """

    @abstractmethod
    def get_symbols(self) -> list[Symbol]:
        """Return the symbols this source writes."""
