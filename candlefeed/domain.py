"""Trades and their aggregation into one-minute OHLC candlesticks."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Trade:
    """A single trade event reported by an exchange."""

    symbol: str
    price: str
    trade_time: datetime


@dataclass
class OHLC:
    """A one-minute candlestick."""

    symbol: str
    open: str
    high: str
    low: str
    close: str
    volume: str
    timestamp: datetime


SaveFunc = Callable[[str, OHLC], None]


def _truncate_to_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


@dataclass
class CandlestickAggregator:
    """Folds trades for one symbol into candlesticks.

    When a trade arrives for a later minute than the current candlestick,
    the finished candlestick is handed to ``save_func`` and a new one begins.
    Prices are kept as the strings the exchange reported and compared as such.
    """

    symbol: str
    save_func: SaveFunc
    current: OHLC | None = field(default=None, init=False)
    trades: list[str] = field(default_factory=list, init=False)
    _start_time: datetime | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def update(self, trade: Trade) -> None:
        """Apply a trade; raises whatever ``save_func`` raises."""
        with self._lock:
            minute = _truncate_to_minute(trade.trade_time)

            if self.current is None or minute > self._start_time:
                if self.current is not None:
                    self.save_func(self.symbol, self.current)

                self.current = OHLC(
                    symbol=self.symbol,
                    open=trade.price,
                    high=trade.price,
                    low=trade.price,
                    close=trade.price,
                    volume=trade.price,
                    timestamp=minute,
                )
                self._start_time = minute
                self.trades = [trade.price]
                return

            self.trades.append(trade.price)
            if trade.price > self.current.high:
                self.current.high = trade.price
            if trade.price < self.current.low:
                self.current.low = trade.price
            self.current.close = trade.price