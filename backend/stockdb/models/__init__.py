# Base
from stockdb.models.base import TimestampMixin, IdMixin

# Market Data
from stockdb.models.stock_record import StockRecord

__all__ = [
    "TimestampMixin",
    "IdMixin",
    "StockRecord",
]
