import queue
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from candlefeed.domain import Trade
from candlefeed.interfaces import Exchange, Storage
from candlefeed.service import CandlestickService

START = datetime(2025, 4, 12, 19, 4, 0, tzinfo=timezone.utc)


class FakeExchange(Exchange):
    def __init__(self):
        self.trade_queue = None
        self.symbols = None
        self.waited = False

    def subscribe_to_trades(self, symbols, trade_queue):
        self.symbols = list(symbols)
        self.trade_queue = trade_queue

    def send(self, trade):
        self.trade_queue.put(trade)

    def wait(self):
        self.waited = True


class FailingExchange(FakeExchange):
    def subscribe_to_trades(self, symbols, trade_queue):
        raise ConnectionError("unreachable")


class FakeStorage(Storage):
    def __init__(self, fail=False):
        self.fail = fail
        self.saved = []
        self._lock = threading.Lock()

    def save_candlestick(self, symbol, candle):
        if self.fail:
            raise OSError("write failed")
        with self._lock:
            self.saved.append((symbol, candle))

    def get_candlesticks(self, symbol, start_time, end_time):
        return [c for s, c in self.saved if s == symbol]

    def close(self):
        pass


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_start_aggregation_simple():
    exchange = FakeExchange()
    storage = FakeStorage()
    service = CandlestickService(exchange, storage)
    service.start_aggregation(["BTCUSDT"])

    exchange.send(Trade("BTCUSDT", "65000.0", START))
    exchange.send(Trade("BTCUSDT", "65100.0", START + timedelta(minutes=1)))

    candle = service.candlesticks().get(timeout=1)
    assert candle.open == "65000.0"
    assert candle.close == "65000.0"

    assert len(storage.saved) == 1
    symbol, saved = storage.saved[0]
    assert symbol == "BTCUSDT"
    assert saved.open == "65000.0"
    assert saved.close == "65000.0"


def test_subscribes_with_given_symbols():
    exchange = FakeExchange()
    service = CandlestickService(exchange, FakeStorage())
    service.start_aggregation(["BTCUSDT", "ETHUSDT"])
    assert exchange.symbols == ["BTCUSDT", "ETHUSDT"]
    assert sorted(service.aggregators) == ["BTCUSDT", "ETHUSDT"]


def test_subscription_error_propagates():
    service = CandlestickService(FailingExchange(), FakeStorage())
    with pytest.raises(ConnectionError):
        service.start_aggregation(["BTCUSDT"])


def test_unknown_symbol_is_ignored():
    exchange = FakeExchange()
    storage = FakeStorage()
    service = CandlestickService(exchange, storage)
    service.start_aggregation(["BTCUSDT"])

    exchange.send(Trade("DOGEUSDT", "1", START))
    exchange.send(Trade("DOGEUSDT", "2", START + timedelta(minutes=1)))
    exchange.send(Trade("BTCUSDT", "10", START))
    exchange.send(Trade("BTCUSDT", "11", START + timedelta(minutes=1)))

    candle = service.candlesticks().get(timeout=1)
    assert candle.symbol == "BTCUSDT"
    assert [s for s, _ in storage.saved] == ["BTCUSDT"]


def test_storage_failure_is_not_broadcast():
    exchange = FakeExchange()
    service = CandlestickService(exchange, FakeStorage(fail=True))
    service.start_aggregation(["BTCUSDT"])

    exchange.send(Trade("BTCUSDT", "10", START))
    exchange.send(Trade("BTCUSDT", "11", START + timedelta(minutes=1)))
    exchange.send(Trade("BTCUSDT", "12", START + timedelta(minutes=2)))

    with pytest.raises(queue.Empty):
        service.candlesticks().get(timeout=0.3)


def test_full_feed_drops_candles():
    exchange = FakeExchange()
    storage = FakeStorage()
    service = CandlestickService(exchange, storage)
    service.start_aggregation(["BTCUSDT"])

    for minute in range(106):
        exchange.send(Trade("BTCUSDT", str(minute), START + timedelta(minutes=minute)))

    assert wait_until(lambda: len(storage.saved) == 105)
    assert service.candlesticks().qsize() == 100
    assert service.candlesticks().get_nowait().open == "0"


def test_wait_delegates_to_exchange():
    exchange = FakeExchange()
    service = CandlestickService(exchange, FakeStorage())
    service.wait()
    assert exchange.waited is True