"""Abstract contracts for exchanges and candlestick storage."""

from __future__ import annotations

import queue
from abc import ABC, abstractmethod

from candlefeed.domain import OHLC, Trade


class Exchange(ABC):
    """A source of live trades."""

    @abstractmethod
    def subscribe_to_trades(
        self, symbols: list[str], trade_queue: queue.Queue[Trade | None]
    ) -> None:
        """Start delivering trades for ``symbols`` into ``trade_queue``.

        Putting ``None`` on the queue marks the end of the stream.
        """

    @abstractmethod
    def wait(self) -> None:
        """Block until every subscription has finished."""


class Storage(ABC):
    """Persistence for finished candlesticks."""

    @abstractmethod
    def save_candlestick(self, symbol: str, candle: OHLC) -> None:
        """Store a candlestick, replacing one with the same key."""

    @abstractmethod
    def get_candlesticks(
        self, symbol: str, start_time: str, end_time: str
    ) -> list[OHLC]:
        """Return candlesticks for ``symbol`` between the two timestamps."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying resources."""