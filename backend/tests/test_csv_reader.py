"""Tests for the lazy CSV row reader."""

import io

import pytest
from conftest import HEADER, TCS_ROW, make_csv, make_row

from stockdb.core.exceptions import MalformedCsvError
from stockdb.services.csv_reader import CsvRowReader
from stockdb.services.csv_schema import is_missing


def read_all(data: bytes, **kwargs):
    reader = CsvRowReader(io.BytesIO(data), **kwargs)
    return reader, list(reader)


def test_rows_are_keyed_by_header_and_kept_as_text():
    reader, rows = read_all(make_csv(TCS_ROW))

    assert reader.header == HEADER.split(",")
    assert len(rows) == 1
    row = rows[0]
    assert row.row_number == 1
    assert row.values["Symbol"] == "TCS"
    assert row.values["VWAP"] == "3420.50"
    assert row.values["Volume"] == "1000000"
    assert row.values["%Deliverable"] == "60.0"


def test_rows_span_chunks_and_are_numbered_in_order():
    lines = [make_row(volume=str(1000 + i)) for i in range(7)]
    _, rows = read_all(make_csv(*lines), chunk_size=3)

    assert [row.row_number for row in rows] == list(range(1, 8))
    assert [row.values["Volume"] for row in rows] == [str(1000 + i) for i in range(7)]


def test_blank_lines_are_skipped():
    data = make_csv(TCS_ROW, "", make_row(symbol="INFY"))
    _, rows = read_all(data)

    assert [row.values["Symbol"] for row in rows] == ["TCS", "INFY"]


def test_short_row_has_missing_cells():
    _, rows = read_all(make_csv("2023-01-02,TCS,EQ,3400.0"))

    values = rows[0].values
    assert values["PrevClose"] == "3400.0"
    assert is_missing(values["Open"])
    assert is_missing(values["%Deliverable"])


def test_empty_cells_stay_empty_strings():
    row = TCS_ROW.replace("3410.0", "", 1)
    _, rows = read_all(make_csv(row))

    assert rows[0].values["Open"] == ""


def test_empty_stream_yields_nothing():
    reader, rows = read_all(b"")
    assert rows == []
    assert reader.header == []


def test_header_only_yields_nothing():
    reader, rows = read_all(make_csv())
    assert rows == []
    assert len(reader.header) == 15


def test_utf8_bom_is_stripped_from_header():
    reader, rows = read_all(b"\xef\xbb\xbf" + make_csv(TCS_ROW))
    assert reader.header[0] == "Date"
    assert rows[0].values["Date"] == "2023-01-02"


def test_quoted_fields():
    data = make_csv('2023-01-02,"M&M",EQ,1,2,3,4,5,6,7,8,9,10,11,12')
    _, rows = read_all(data)
    assert rows[0].values["Symbol"] == "M&M"


def test_cells_past_header_width_are_ignored():
    _, rows = read_all(make_csv(TCS_ROW + ",extra,more", make_row(symbol="INFY")))

    assert len(rows) == 2
    assert list(rows[0].values) == HEADER.split(",")
    assert rows[0].values["%Deliverable"] == "60.0"
    assert rows[1].values["Symbol"] == "INFY"


def test_invalid_utf8_is_replaced_not_raised():
    bad = make_row(date="2023-01-03", symbol="SYM").encode("utf-8").replace(b"SYM", b"\xff\xfe")
    _, rows = read_all(make_csv(TCS_ROW) + bad + b"\n")

    assert len(rows) == 2
    assert rows[0].values["Symbol"] == "TCS"
    assert "\ufffd" in rows[1].values["Symbol"]
    assert rows[1].values["Series"] == "EQ"


def test_invalid_utf8_in_header_is_replaced():
    reader, rows = read_all(make_csv(TCS_ROW).replace(b"Series", b"Ser\xffies", 1))

    assert reader.header[2] == "Ser\ufffdies"
    assert rows[0].values["Ser\ufffdies"] == "EQ"


def test_unclosed_quote_raises_malformed_csv():
    data = make_csv(TCS_ROW, '2023-01-02,"TCS,EQ,3400.0,3410.0')

    with pytest.raises(MalformedCsvError) as exc_info:
        read_all(data)
    assert exc_info.value.error_code == "MALFORMED_CSV"


def test_unclosed_quote_in_header_raises_malformed_csv():
    with pytest.raises(MalformedCsvError):
        read_all(b'Date,"Symbol,Series\n2023-01-02,TCS,EQ\n')
