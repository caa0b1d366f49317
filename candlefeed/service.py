"""Wires an exchange's trades through aggregators into storage and a feed."""

from __future__ import annotations

import logging
import queue
import threading

from candlefeed.domain import OHLC, CandlestickAggregator, Trade
from candlefeed.interfaces import Exchange, Storage

log = logging.getLogger(__name__)

FEED_CAPACITY = 100


class CandlestickService:
    """Aggregates trades per symbol, saves finished candles and broadcasts them."""

    def __init__(self, exchange: Exchange, storage: Storage) -> None:
        self.exchange = exchange
        self.storage = storage
        self.aggregators: dict[str, CandlestickAggregator] = {}
        self._feed: queue.Queue[OHLC] = queue.Queue(maxsize=FEED_CAPACITY)
        self._worker: threading.Thread | None = None

    def start_aggregation(self, symbols: list[str]) -> None:
        """Subscribe to ``symbols`` and start processing trades in the background."""
        trade_queue: queue.Queue[Trade | None] = queue.Queue()

        for symbol in symbols:
            self.aggregators[symbol] = CandlestickAggregator(
                symbol, self._save_and_broadcast
            )

        self.exchange.subscribe_to_trades(symbols, trade_queue)

        self._worker = threading.Thread(
            target=self._consume, args=(trade_queue,), daemon=True
        )
        self._worker.start()

    def _consume(self, trade_queue: queue.Queue[Trade | None]) -> None:
        while (trade := trade_queue.get()) is not None:
            aggregator = self.aggregators.get(trade.symbol)
            if aggregator is None:
                continue
            try:
                aggregator.update(trade)
            except Exception as exc:
                log.error("Failed to update candlestick for %s: %s", trade.symbol, exc)

    def _save_and_broadcast(self, symbol: str, candle: OHLC) -> None:
        try:
            self.storage.save_candlestick(symbol, candle)
        except Exception as exc:
            log.error("Failed to save candlestick for %s: %s", symbol, exc)
            raise

        try:
            self._feed.put_nowait(candle)
        except queue.Full:
            log.warning("Candlestick feed full, dropping candlestick for %s", symbol)

    def candlesticks(self) -> queue.Queue[OHLC]:
        """The queue on which finished candlesticks are broadcast."""
        return self._feed

    def wait(self) -> None:
        """Block until the exchange has finished."""
        self.exchange.wait()