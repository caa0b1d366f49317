"""Relational storage of finished candlesticks."""

import logging
from datetime import datetime, timezone

from sqlalchemy import String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from candlefeed.domain import OHLC
from candlefeed.interfaces import Storage

log = logging.getLogger(__name__)

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class _Base(DeclarativeBase):
    pass


class CandlestickModel(_Base):
    """A stored candlestick, keyed by symbol and RFC 3339 timestamp."""

    __tablename__ = "candlestick_models"

    symbol: Mapped[str] = mapped_column(String, primary_key=True)
    timestamp: Mapped[str] = mapped_column(String, primary_key=True)
    open: Mapped[str] = mapped_column(String, default="")
    high: Mapped[str] = mapped_column(String, default="")
    low: Mapped[str] = mapped_column(String, default="")
    close: Mapped[str] = mapped_column(String, default="")


def _format_rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _parse_rfc3339(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return _ZERO_TIME


class SQLStorage(Storage):
    """Stores candlesticks in any database SQLAlchemy can reach."""

    def __init__(self, dsn: str) -> None:
        self.engine = create_engine(dsn)
        _Base.metadata.create_all(self.engine)

    def save_candlestick(self, symbol: str, candle: OHLC) -> None:
        """Insert or replace the candlestick for ``symbol`` at its minute."""
        row = CandlestickModel(
            symbol=symbol,
            timestamp=_format_rfc3339(candle.timestamp),
            open=candle.open,
            high=candle.high,
            low=candle.low,
            close=candle.close,
        )
        with Session(self.engine) as session, session.begin():
            session.merge(row)
        log.info("Saved candlestick for %s at %s", symbol, candle.timestamp)

    def get_candlesticks(
        self, symbol: str, start_time: str, end_time: str
    ) -> list[OHLC]:
        """Return stored candlesticks whose timestamp lies between the bounds."""
        statement = (
            select(CandlestickModel)
            .where(
                CandlestickModel.symbol == symbol,
                CandlestickModel.timestamp.between(start_time, end_time),
            )
            .order_by(CandlestickModel.timestamp)
        )
        with Session(self.engine) as session:
            return [
                OHLC(
                    symbol=row.symbol,
                    open=row.open,
                    high=row.high,
                    low=row.low,
                    close=row.close,
                    volume="",
                    timestamp=_parse_rfc3339(row.timestamp),
                )
                for row in session.scalars(statement)
            ]

    def close(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()