import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, BinaryIO, List, Optional, Tuple, Union

from stockdb.core.config import settings
from stockdb.core.exceptions import (
    MalformedCsvError,
    PersistenceError,
    RowValidationError,
    UnsupportedMediaTypeError,
)
from stockdb.core.metrics import metrics
from stockdb.models.stock_record import StockRecord
from stockdb.services.csv_reader import CsvRow, CsvRowReader
from stockdb.services.csv_schema import (
    COLUMN_MAP,
    DECIMAL_COLUMNS,
    EXPECTED_COLUMNS,
    INTEGER_COLUMNS,
    TEXT_COLUMNS,
    parse_decimal,
    parse_int,
    parse_text,
    parse_trade_date,
    raw_value,
)
from stockdb.services.stock_record_store import StockRecordStore

logger = logging.getLogger(__name__)


@dataclass
class RejectedRow:
    """A row that failed validation, kept exactly as read."""
    row_number: int
    raw: dict[str, Any]
    reason: str


@dataclass
class IngestionReport:
    """Outcome of one upload."""
    total: int = 0
    accepted: int = 0
    rejected: int = 0
    rejected_rows: List[RejectedRow] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "totalRecords": self.total,
            "successfulRecords": self.accepted,
            "failedRecords": self.rejected,
            "failedDetails": [row.raw for row in self.rejected_rows],
        }


class StockRowValidator:
    """
    Convert one raw CSV row into StockRecord column values.

    Checks run date first, then prices and ratios, then counts, then
    symbol/series; the first failure is raised as RowValidationError.
    Numbers and text must also fit their stock_records columns, so an
    accepted row can always be stored.
    Pure: the same row always gives the same outcome.
    """

    def __init__(self, dayfirst: Optional[bool] = None):
        self.dayfirst = settings.CSV_DAYFIRST if dayfirst is None else dayfirst
        columns = StockRecord.__table__.c
        self._decimal_parsers = {
            column: partial(
                parse_decimal,
                precision=columns[COLUMN_MAP[column]].type.precision,
                scale=columns[COLUMN_MAP[column]].type.scale,
            )
            for column in DECIMAL_COLUMNS
        }
        self._text_parsers = {
            column: partial(parse_text, max_length=columns[COLUMN_MAP[column]].type.length)
            for column in TEXT_COLUMNS
        }

    def validate_row(self, values: dict[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {}

        value = values.get("Date")
        try:
            record["date"] = parse_trade_date(value, dayfirst=self.dayfirst)
        except ValueError as e:
            raise RowValidationError("Date", value, str(e)) from e

        for column in DECIMAL_COLUMNS:
            record[COLUMN_MAP[column]] = self._convert(
                column, values.get(column), self._decimal_parsers[column]
            )

        for column in INTEGER_COLUMNS:
            record[COLUMN_MAP[column]] = self._convert(column, values.get(column), parse_int)

        for column in TEXT_COLUMNS:
            record[COLUMN_MAP[column]] = self._convert(
                column, values.get(column), self._text_parsers[column]
            )

        return record

    @staticmethod
    def _convert(column: str, value: Any, parser) -> Any:
        try:
            return parser(value)
        except ValueError as e:
            raise RowValidationError(column, value, str(e)) from e


class StockIngestionService:
    """
    CSV upload pipeline: content-type gate, lazy parse, per-row validation,
    one bulk write of the accepted rows, and a report of what was rejected.
    """

    STAGE = "csv_upload"

    def __init__(
        self,
        store: StockRecordStore,
        validator: Optional[StockRowValidator] = None,
        allowed_content_types: Optional[List[str]] = None,
    ):
        self.store = store
        self.validator = validator or StockRowValidator()
        self.allowed_content_types = [
            ct.lower() for ct in (allowed_content_types or settings.CSV_ALLOWED_CONTENT_TYPES)
        ]

    def check_content_type(self, content_type: Optional[str]) -> None:
        """Raise UnsupportedMediaTypeError unless the media type is an accepted CSV type."""
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        if media_type not in self.allowed_content_types:
            raise UnsupportedMediaTypeError(content_type)

    async def ingest(
        self,
        stream: BinaryIO,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> IngestionReport:
        """
        Ingest one CSV upload.

        Raises UnsupportedMediaTypeError before reading anything when the
        content type is wrong, MalformedCsvError when the file cannot be split
        into rows, and PersistenceError when the bulk write fails.
        Row failures never raise; they are collected in the report.
        """
        try:
            self.check_content_type(content_type)
        except UnsupportedMediaTypeError:
            logger.warning(f"Refused upload {filename!r}: content type {content_type!r}")
            await metrics.unsupported_media_type(content_type)
            raise

        started = time.perf_counter()
        try:
            # pandas parsing is blocking; keep it off the event loop
            report, accepted = await asyncio.to_thread(self._read_rows, stream, filename)
        except MalformedCsvError as e:
            await metrics.malformed_csv(e.rows_read, e.reason)
            raise

        if accepted:
            try:
                await self.store.bulk_insert(accepted)
            except PersistenceError as e:
                await metrics.persistence_failed(len(accepted), str(e.__cause__ or e))
                raise

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Ingested {filename or 'upload'}: {report.total} rows, "
            f"{report.accepted} accepted, {report.rejected} rejected"
        )
        await metrics.batch_processed(
            self.STAGE, report.total, report.accepted, report.rejected, duration_ms
        )
        return report

    async def ingest_path(self, path: Union[str, Path]) -> IngestionReport:
        """Run the pipeline over a CSV file on disk."""
        path = Path(path)
        with path.open("rb") as stream:
            return await self.ingest(stream, "text/csv", filename=path.name)

    def _read_rows(
        self, stream: BinaryIO, filename: Optional[str]
    ) -> Tuple[IngestionReport, List[dict]]:
        report = IngestionReport()
        accepted: List[dict] = []

        reader = CsvRowReader(stream)
        for row in reader:
            if row.row_number == 1:
                self._warn_missing_columns(reader.header, filename)
            report.total += 1
            try:
                accepted.append(self.validator.validate_row(row.values))
                report.accepted += 1
            except RowValidationError as e:
                self._reject(report, row, e)

        return report, accepted

    @staticmethod
    def _reject(report: IngestionReport, row: CsvRow, error: RowValidationError) -> None:
        raw = {key: raw_value(value) for key, value in row.values.items()}
        report.rejected_rows.append(RejectedRow(row.row_number, raw, error.message))
        report.rejected += 1
        logger.debug(f"Rejected row {row.row_number}: {error.message}")

    @staticmethod
    def _warn_missing_columns(header: List[str], filename: Optional[str]) -> None:
        missing = [column for column in EXPECTED_COLUMNS if column not in header]
        if missing:
            logger.warning(f"{filename or 'upload'} is missing columns {missing}; affected rows will be rejected")
