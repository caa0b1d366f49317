"""Live aggregate-trade streams from Binance."""

from __future__ import annotations

import json
import logging
import queue
import random
import threading
import time
from datetime import datetime, timedelta, timezone

import websocket

from candlefeed.domain import Trade
from candlefeed.interfaces import Exchange

log = logging.getLogger(__name__)

STREAM_URL = "wss://stream.binance.com:9443/ws/{symbol}@aggTrade"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_agg_trade(payload: str | bytes) -> Trade:
    """Turn an aggTrade event into a Trade; raises ValueError if malformed."""
    try:
        event = json.loads(payload)
        return Trade(
            symbol=event["s"],
            price=event["p"],
            trade_time=_EPOCH + timedelta(milliseconds=int(event["T"])),
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise ValueError(f"malformed aggTrade event: {exc}") from exc


class BinanceClient(Exchange):
    """Subscribes to Binance aggTrade streams, reconnecting with backoff."""

    def __init__(self, retry_delay: float | timedelta, max_retries: int) -> None:
        if isinstance(retry_delay, timedelta):
            retry_delay = retry_delay.total_seconds()
        self.retry_delay = float(retry_delay)
        self.max_retries = max_retries
        self._threads: list[threading.Thread] = []

    def subscribe_to_trades(
        self, symbols: list[str], trade_queue: queue.Queue[Trade | None]
    ) -> None:
        """Start one background stream per symbol feeding ``trade_queue``."""
        for symbol in symbols:
            thread = threading.Thread(
                target=self._connect_with_retry,
                args=(symbol, trade_queue),
                name=f"aggtrade-{symbol}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

    def _connect_with_retry(
        self, symbol: str, trade_queue: queue.Queue[Trade | None]
    ) -> None:
        url = STREAM_URL.format(symbol=symbol.lower())
        attempt = 0
        while True:
            if attempt >= self.max_retries:
                log.error("Max retries reached for %s, giving up", symbol)
                return

            try:
                connection = websocket.create_connection(url)
            except Exception as exc:
                log.error("Failed to connect to %s WebSocket: %s", symbol, exc)
                attempt += 1
                delay = self.retry_delay * (1 << attempt)
                jitter = random.random() * delay / 2
                log.info(
                    "Retrying in %.3fs (attempt %d/%d)",
                    delay + jitter,
                    attempt,
                    self.max_retries,
                )
                time.sleep(delay + jitter)
                continue

            attempt = 0
            self._pump(symbol, connection, trade_queue)
            log.warning("WebSocket for %s closed, attempting to reconnect", symbol)
            attempt += 1

    @staticmethod
    def _pump(
        symbol: str, connection, trade_queue: queue.Queue[Trade | None]
    ) -> None:
        try:
            while True:
                message = connection.recv()
                if not message:
                    continue
                try:
                    trade_queue.put(parse_agg_trade(message))
                except ValueError as exc:
                    log.error("Binance WebSocket error for %s: %s", symbol, exc)
        except websocket.WebSocketConnectionClosedException:
            return
        except (websocket.WebSocketException, OSError) as exc:
            log.error("Binance WebSocket error for %s: %s", symbol, exc)
        finally:
            connection.close()

    def wait(self) -> None:
        """Block until every stream has given up."""
        for thread in list(self._threads):
            thread.join()