"""Aggregate exchange trades into one-minute OHLC candlesticks, store them in SQL and serve them over HTTP."""

__version__ = "0.1.0"