from sqlalchemy import BigInteger, Column, Date, Index, Numeric, String
from stockdb.core.database import Base
from stockdb.models.base import IdMixin, TimestampMixin

class StockRecord(Base, IdMixin, TimestampMixin):
    """
    One trading-day observation for one symbol, as uploaded.
    Rows are append-only; repeated uploads of the same day are kept as duplicates.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        Index("ix_stock_records_symbol_date", "symbol", "date"),
    )

    date = Column(Date, nullable=False, index=True)
    symbol = Column(String(32), nullable=False)
    series = Column(String(16), nullable=False)

    prev_close = Column(Numeric(18, 4), nullable=False)
    open = Column(Numeric(18, 4), nullable=False)
    high = Column(Numeric(18, 4), nullable=False)
    low = Column(Numeric(18, 4), nullable=False)
    last = Column(Numeric(18, 4), nullable=False)
    close = Column(Numeric(18, 4), nullable=False)
    vwap = Column(Numeric(18, 4), nullable=False)

    volume = Column(BigInteger, nullable=False)
    turnover = Column(Numeric(24, 4), nullable=False)
    trades = Column(BigInteger, nullable=False)
    deliverable = Column(BigInteger, nullable=False)
    percent_deliverable = Column(Numeric(10, 4), nullable=False)

    def __repr__(self) -> str:
        return f"<StockRecord {self.symbol} {self.series} {self.date} vol={self.volume}>"
