"""
CSV column layout for daily trading records and the field parsers that go with it.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pandas as pd

# CSV header -> StockRecord attribute, in file order
COLUMN_MAP: dict[str, str] = {
    "Date": "date",
    "Symbol": "symbol",
    "Series": "series",
    "PrevClose": "prev_close",
    "Open": "open",
    "High": "high",
    "Low": "low",
    "Last": "last",
    "Close": "close",
    "VWAP": "vwap",
    "Volume": "volume",
    "Turnover": "turnover",
    "Trades": "trades",
    "Deliverable": "deliverable",
    "%Deliverable": "percent_deliverable",
}

EXPECTED_COLUMNS = list(COLUMN_MAP)

DECIMAL_COLUMNS = [
    "PrevClose", "Open", "High", "Low", "Last", "Close", "VWAP", "Turnover", "%Deliverable",
]
INTEGER_COLUMNS = ["Volume", "Trades", "Deliverable"]
TEXT_COLUMNS = ["Symbol", "Series"]


# Signed 64-bit range of BigInteger columns
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Inserted by the decoder in place of bytes that are not valid in the upload encoding
REPLACEMENT_CHAR = "\ufffd"


def is_missing(value: Any) -> bool:
    """True for absent cells: None, NaN from short rows, or blank text."""
    if isinstance(value, str):
        return not value.strip()
    return value is None or bool(pd.isna(value))


def parse_trade_date(value: Any, dayfirst: bool = False) -> date:
    """
    Parse a calendar date.

    Accepts anything pandas understands as a single date
    (2023-01-02, 2023/01/02, 02-Jan-2023, ...). Relative words such as
    "now" or "today" carry no digits and are refused, so the result never
    depends on the clock. Raises ValueError otherwise.
    """
    if is_missing(value):
        raise ValueError("date is empty")
    text = str(value).strip()
    if not any(ch.isdigit() for ch in text):
        raise ValueError(f"unparseable date {value!r}")
    try:
        parsed = pd.to_datetime(text, dayfirst=dayfirst)
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"unparseable date {value!r}") from e
    if pd.isna(parsed):
        raise ValueError(f"unparseable date {value!r}")
    return parsed.date()


def parse_decimal(value: Any, precision: Optional[int] = None, scale: int = 0) -> Decimal:
    """
    Parse a finite decimal. NaN and infinities are rejected.

    With a precision, the integer part must fit NUMERIC(precision, scale).
    """
    if is_missing(value):
        raise ValueError("value is empty")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"not finite: {value!r}")
    if precision is not None and abs(number) >= Decimal(10) ** (precision - scale):
        raise ValueError(f"out of range for NUMERIC({precision},{scale}): {value!r}")
    return number


def parse_int(value: Any) -> int:
    """Parse a 64-bit integer. Sign is not checked; fractions are rejected."""
    if is_missing(value):
        raise ValueError("value is empty")
    try:
        number = int(str(value).strip())
    except ValueError as e:
        raise ValueError(f"not an integer: {value!r}") from e
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValueError(f"out of 64-bit range: {value!r}")
    return number


def parse_text(value: Any, max_length: Optional[int] = None) -> str:
    """Trimmed, non-blank text that decoded cleanly and fits max_length."""
    if is_missing(value):
        raise ValueError("value is blank")
    text = str(value).strip()
    if REPLACEMENT_CHAR in text:
        raise ValueError("contains undecodable bytes")
    if max_length is not None and len(text) > max_length:
        raise ValueError(f"longer than {max_length} characters")
    return text


def raw_value(value: Any) -> Optional[str]:
    """Cell as echoed back to callers; missing cells become None."""
    if not isinstance(value, str) and pd.isna(value):
        return None
    return value
