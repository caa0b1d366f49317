# candlefeed

candlefeed turns a live stream of exchange trades into one-minute OHLC
candlesticks. Finished candles are saved to a SQL database and put on a queue
for live consumers. They can also be queried over HTTP.

## Installation

```
pip install candlefeed
```

To run the test suite:

```
pip install "candlefeed[test]"
pytest
```

## Building blocks

### `candlefeed.domain`

This module defines `Trade` (fields `symbol`, `price`, `trade_time`) and
`OHLC` (fields `symbol`, `open`, `high`, `low`, `close`, `volume`, `timestamp`).
It also defines `CandlestickAggregator(symbol, save_func)`.

`CandlestickAggregator.update(trade)` truncates the trade time to the minute.

- If no candle is in progress, the trade starts a new one.
- If the trade falls in a later minute than the candle in progress, the
  finished candle is first passed to `save_func(symbol, candle)`. Then a new
  candle starts from the trade's price.
- Otherwise the trade updates the high, low and close of the current candle.

Things to know about the aggregator:

- Prices stay as the strings the exchange reported, and they are compared as
  strings.
- A new candle's `volume` is set to the price of its first trade.
- The candle in progress is saved only when a trade for a later minute
  arrives.
- Whatever `save_func` raises is passed on to the caller of `update`.

### `candlefeed.interfaces`

This module holds the two abstract base classes that the service depends on:

- `Exchange`, with `subscribe_to_trades(symbols, trade_queue)` and `wait()`.
- `Storage`, with `save_candlestick(symbol, candle)`,
  `get_candlesticks(symbol, start_time, end_time)` and `close()`.

An exchange puts `Trade` objects on `trade_queue`. Putting `None` on the queue
ends the stream.

### `candlefeed.service`

`CandlestickService(exchange, storage)` connects an exchange to a storage
backend.

- `start_aggregation(symbols)` creates one aggregator per symbol and subscribes
  the exchange. It then processes trades on a background thread. Trades for
  symbols without an aggregator are ignored, and so the symbol names must match
  exactly the `symbol` that the exchange reports.
- Each finished candle is saved to storage and put on a queue that holds at
  most 100 candles. If that queue is full, the candle is not put on it and a
  warning is logged. If saving fails, the error is logged and the candle is not
  put on the queue.
- `candlesticks()` returns that queue.
- `wait()` blocks until the exchange has finished.

### `candlefeed.exchange`

`BinanceClient(retry_delay, max_retries)` is an `Exchange` that reads the
Binance aggregate-trade stream for each symbol over WebSocket. Each symbol runs
on its own thread. `retry_delay` is given in seconds, or as a `timedelta`.

- The stream URL uses the symbol in lower case. The trades carry the symbol as
  Binance reports it, which is usually upper case.
- If a connection attempt fails, the client waits `retry_delay * 2**attempt`
  and then up to half as much again as random jitter.
- A stream that closes is reconnected. After `max_retries` attempts in a row
  without a successful connection, the client gives up on that symbol.
- `wait()` joins every stream thread.

`parse_agg_trade(payload)` turns one aggTrade JSON message into a `Trade`. If
the message is malformed, it raises `ValueError`.

### `candlefeed.storage`

`SQLStorage(dsn)` is a `Storage` backed by SQLAlchemy. It accepts any database
URL that SQLAlchemy accepts, and it creates the `candlestick_models` table if
the table is missing.

- Rows are keyed by symbol and by the RFC 3339 timestamp in UTC, for example
  `2025-04-12T19:04:00Z`. Saving a candle replaces the row with the same key.
- `get_candlesticks(symbol, start_time, end_time)` returns the candles whose
  timestamp string lies between the two bounds, in timestamp order.
- The volume is not stored, so candles read back have an empty `volume`.
- `close()` disposes of the connection pool.

### `candlefeed.api`

`APIHandler(storage)` adds the route `GET /candlesticks/<symbol>` to a Flask
app through `setup_routes(app)`. The route takes the optional query parameters
`start_time` and `end_time`. If they are missing, the range is the last 24
hours up to now.

The response is a JSON list of objects with the keys `Symbol`, `Open`, `High`,
`Low`, `Close`, `Volume` and `Timestamp`. If the storage raises an error, the
response is status 500 with a body of `{"error": "..."}`.

## Example

```python
from flask import Flask

from candlefeed.api import APIHandler
from candlefeed.exchange import BinanceClient
from candlefeed.service import CandlestickService
from candlefeed.storage import SQLStorage

storage = SQLStorage("sqlite:///candles.db")
exchange = BinanceClient(retry_delay=1.0, max_retries=5)
service = CandlestickService(exchange, storage)
service.start_aggregation(["BTCUSDT", "ETHUSDT"])

app = Flask(__name__)
APIHandler(storage).setup_routes(app)
app.run(port=8080)
```

To read finished candles as they are produced, take items from the queue that
`service.candlesticks()` returns.

## What the package does not do

- There is no command-line program and no configuration file. You put the
  parts together in your own code, as in the example above.
- Finished candles are offered only as an in-process queue. No network server
  streams them to remote clients.
- TLS and the choice of ports are left to whatever runs the Flask app.