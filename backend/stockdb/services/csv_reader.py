"""
Lazy CSV row reader.

Reads an uploaded file in pandas chunks and yields one raw row at a time,
keyed by header name. Cells stay as text exactly as they appear in the file;
conversion happens in validation.
"""
import io
import logging
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator, List, Optional

import pandas as pd

from stockdb.core.config import settings
from stockdb.core.exceptions import MalformedCsvError

logger = logging.getLogger(__name__)


@dataclass
class CsvRow:
    """One data line. row_number counts data rows from 1, header excluded."""
    row_number: int
    values: dict[str, Any]


class CsvRowReader:
    """
    Iterate the data rows of a CSV stream.

    The first non-blank line is the header. Short rows come back with the
    missing cells empty or NaN; cells past the header width are ignored.
    Bytes that are not valid in the encoding are decoded as U+FFFD so the
    row can be rejected on its own. Raises MalformedCsvError when the text
    cannot be split into rows at all.
    """

    def __init__(
        self,
        stream: BinaryIO,
        encoding: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ):
        self.stream = stream
        self.encoding = encoding or settings.CSV_ENCODING
        self.chunk_size = chunk_size or settings.CSV_CHUNK_SIZE
        self.header: List[str] = []

    def __iter__(self) -> Iterator[CsvRow]:
        self.header = self._read_header()
        if not self.header:
            logger.info("CSV upload is empty")
            return

        row_number = 0
        try:
            chunks = pd.read_csv(
                self.stream,
                header=None,
                names=self.header,
                usecols=range(len(self.header)),
                index_col=False,
                dtype=str,
                keep_default_na=False,
                na_values=[],
                skip_blank_lines=True,
                encoding=self.encoding,
                encoding_errors="replace",
                chunksize=self.chunk_size,
            )
            with chunks:
                for chunk in chunks:
                    for cells in chunk.itertuples(index=False, name=None):
                        row_number += 1
                        yield CsvRow(row_number, dict(zip(self.header, cells)))
        except pd.errors.EmptyDataError:
            return
        except pd.errors.ParserError as e:
            logger.warning(f"CSV parsing stopped after row {row_number}: {e}")
            raise MalformedCsvError(str(e), rows_read=row_number) from e

    def _read_header(self) -> List[str]:
        while True:
            raw = self.stream.readline()
            if not raw:
                return []
            line = raw.decode(self.encoding, errors="replace") if isinstance(raw, bytes) else raw
            if not line.strip():
                continue
            try:
                cells = pd.read_csv(
                    io.StringIO(line), header=None, dtype=str, keep_default_na=False
                ).iloc[0].tolist()
            except pd.errors.ParserError as e:
                raise MalformedCsvError(f"unreadable header: {e}") from e
            return self._unique_names(cells)

    @staticmethod
    def _unique_names(cells: list) -> List[str]:
        names: List[str] = []
        for i, cell in enumerate(cells):
            name = cell if isinstance(cell, str) and cell else f"field_{i}"
            if name in names:
                name = f"{name}_{i}"
            names.append(name)
        return names
