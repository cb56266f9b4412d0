"""Tests for the upload and query endpoints."""

import pytest
from conftest import TCS_ROW, make_csv, make_row

from stockdb.api.main import app
from stockdb.api.stocks import get_ingestion_service
from stockdb.core.exceptions import PersistenceError
from stockdb.services.stock_ingestion_service import StockIngestionService

RANGE = {"start_date": "2023-01-01", "end_date": "2023-01-31"}


async def upload(client, data: bytes, content_type: str = "text/csv", filename: str = "stocks.csv"):
    return await client.post("/api/upload", files={"file": (filename, data, content_type)})


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_reports_counts(self, client):
        bad = TCS_ROW.replace("3410.0", "abc", 1)
        response = await upload(client, make_csv(TCS_ROW, bad, make_row(symbol="INFY")))

        assert response.status_code == 200
        body = response.json()
        assert body["totalRecords"] == 3
        assert body["successfulRecords"] == 2
        assert body["failedRecords"] == 1
        assert len(body["failedDetails"]) == 1
        assert body["failedDetails"][0]["Open"] == "abc"
        assert body["failedDetails"][0]["Symbol"] == "TCS"
        assert body["failedDetails"][0]["Date"] == "2023-01-02"

    @pytest.mark.asyncio
    async def test_wrong_content_type_is_400(self, client):
        response = await upload(client, make_csv(TCS_ROW), content_type="application/json")

        assert response.status_code == 400
        assert response.json()["detail"] == "Please upload a CSV file"

        averages = await client.get("/api/average_close", params=RANGE)
        assert averages.json()["record_count"] == 0

    @pytest.mark.asyncio
    async def test_missing_file_is_400(self, client):
        response = await client.post("/api/upload")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unclosed_quote_is_400(self, client):
        response = await upload(client, make_csv(TCS_ROW, '2023-01-03,"TCS,EQ,3400.0'))

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Malformed CSV file")

        averages = await client.get("/api/average_close", params=RANGE)
        assert averages.json()["record_count"] == 0

    @pytest.mark.asyncio
    async def test_out_of_range_values_are_reported_not_fatal(self, client):
        data = make_csv(TCS_ROW, make_row(volume="99999999999999999999"), make_row(close="1e400"))

        response = await upload(client, data)

        assert response.status_code == 200
        body = response.json()
        assert (body["successfulRecords"], body["failedRecords"]) == (1, 2)
        assert body["failedDetails"][0]["Volume"] == "99999999999999999999"
        assert body["failedDetails"][1]["Close"] == "1e400"

        averages = await client.get("/api/average_close", params=RANGE)
        assert averages.json()["average_close"] == pytest.approx(3425.0)

    @pytest.mark.asyncio
    async def test_invalid_utf8_row_is_reported(self, client):
        bad = make_row(date="2023-01-03", symbol="SYM").encode("utf-8").replace(b"SYM", b"\xff")

        response = await upload(client, make_csv(TCS_ROW) + bad + b"\n")

        assert response.status_code == 200
        assert response.json()["failedRecords"] == 1
        assert response.json()["failedDetails"][0]["Symbol"] == "\ufffd"

    @pytest.mark.asyncio
    async def test_reupload_doubles_stored_records(self, client):
        data = make_csv(TCS_ROW, make_row(date="2023-01-03"))

        await upload(client, data)
        await upload(client, data)

        response = await client.get("/api/average_close", params={**RANGE, "symbol": "TCS"})
        assert response.json()["record_count"] == 4

    @pytest.mark.asyncio
    async def test_persistence_failure_is_500(self, client):

        class BrokenStore:
            async def bulk_insert(self, records):
                raise PersistenceError("Error saving data to database", len(records))

        app.dependency_overrides[get_ingestion_service] = lambda: StockIngestionService(BrokenStore())

        response = await upload(client, make_csv(TCS_ROW))

        assert response.status_code == 500
        assert response.json()["detail"] == "Error saving data to database"


class TestQueries:

    @pytest.fixture
    def seed_csv(self) -> bytes:
        return make_csv(
            make_row(date="2023-01-02", volume="1000", close="100", vwap="99"),
            make_row(date="2023-01-03", volume="5000", close="110", vwap="109"),
            make_row(date="2023-01-04", symbol="INFY", volume="9000", close="50", vwap="51"),
        )

    @pytest.mark.asyncio
    async def test_highest_volume(self, client, seed_csv):
        await upload(client, seed_csv)

        response = await client.get("/api/highest_volume", params=RANGE)

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert body[0]["symbol"] == "INFY"
        assert body[0]["volume"] == 9000
        assert body[0]["date"] == "2023-01-04"
        assert body[0]["percent_deliverable"] == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_highest_volume_for_symbol(self, client, seed_csv):
        await upload(client, seed_csv)

        response = await client.get("/api/highest_volume", params={**RANGE, "symbol": "TCS"})

        assert [r["volume"] for r in response.json()] == [5000]

    @pytest.mark.asyncio
    async def test_highest_volume_tie_returns_one(self, client):
        await upload(client, make_csv(make_row(date="2023-01-02"), make_row(date="2023-01-03")))

        response = await client.get("/api/highest_volume", params=RANGE)

        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_highest_volume_empty(self, client):
        response = await client.get("/api/highest_volume", params=RANGE)
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_average_close(self, client, seed_csv):
        await upload(client, seed_csv)

        response = await client.get("/api/average_close", params={**RANGE, "symbol": "TCS"})

        assert response.status_code == 200
        assert response.json()["average_close"] == pytest.approx(105.0)
        assert response.json()["record_count"] == 2

    @pytest.mark.asyncio
    async def test_average_close_symbol_is_optional(self, client, seed_csv):
        await upload(client, seed_csv)

        response = await client.get("/api/average_close", params=RANGE)

        assert response.json()["average_close"] == pytest.approx(260 / 3)

    @pytest.mark.asyncio
    async def test_average_close_without_data_is_zero(self, client):
        response = await client.get("/api/average_close", params={**RANGE, "symbol": "TCS"})

        assert response.status_code == 200
        assert response.json() == {"average_close": 0, "record_count": 0}

    @pytest.mark.asyncio
    async def test_average_vwap(self, client, seed_csv):
        await upload(client, seed_csv)

        response = await client.get(
            "/api/average_vwap", params={"start_date": "2023-01-03", "end_date": "2023-01-04"}
        )

        assert response.json()["average_vwap"] == pytest.approx(80.0)
        assert response.json()["record_count"] == 2

    @pytest.mark.asyncio
    async def test_average_vwap_without_data_is_zero(self, client):
        response = await client.get("/api/average_vwap", params=RANGE)
        assert response.json() == {"average_vwap": 0, "record_count": 0}

    @pytest.mark.asyncio
    async def test_dates_use_ingestion_rule(self, client, seed_csv):
        await upload(client, seed_csv)

        response = await client.get(
            "/api/highest_volume", params={"start_date": "02-Jan-2023", "end_date": "03-Jan-2023"}
        )

        assert [r["volume"] for r in response.json()] == [5000]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/highest_volume", "/api/average_close", "/api/average_vwap"])
    async def test_bad_dates_are_400(self, client, path):
        missing = await client.get(path, params={"start_date": "2023-01-01"})
        garbage = await client.get(path, params={"start_date": "soon", "end_date": "2023-01-31"})
        relative = await client.get(path, params={"start_date": "2023-01-01", "end_date": "today"})

        assert missing.status_code == 400
        assert garbage.status_code == 400
        assert relative.status_code == 400


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
