"""HTTP endpoints for reading stored candlesticks."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from flask import Flask, jsonify, request

from candlefeed.domain import OHLC
from candlefeed.interfaces import Storage

DEFAULT_WINDOW = timedelta(hours=24)


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _candle_json(candle: OHLC) -> dict[str, Any]:
    return {
        "Symbol": candle.symbol,
        "Open": candle.open,
        "High": candle.high,
        "Low": candle.low,
        "Close": candle.close,
        "Volume": candle.volume,
        "Timestamp": _rfc3339(candle.timestamp),
    }


class APIHandler:
    """Serves candlesticks from a storage backend."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def setup_routes(self, app: Flask) -> None:
        """Register the handler's routes on ``app``."""
        app.add_url_rule(
            "/candlesticks/<symbol>",
            "get_candlesticks",
            self.get_candlesticks,
            methods=["GET"],
        )

    def get_candlesticks(self, symbol: str):
        """Return candlesticks for ``symbol``; the window defaults to the last day."""
        now = datetime.now(timezone.utc).replace(microsecond=0)
        start_time = request.args.get("start_time") or _rfc3339(now - DEFAULT_WINDOW)
        end_time = request.args.get("end_time") or _rfc3339(now)

        try:
            candles = self.storage.get_candlesticks(symbol, start_time, end_time)
        except Exception as exc:
            return jsonify({"error": str(exc)}), 500

        return jsonify([_candle_json(candle) for candle in candles])