"""
Stock records API Router.

CSV upload plus aggregate reads over a date range.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from stockdb.core.config import settings
from stockdb.core.database import get_db
from stockdb.core.exceptions import (
    MalformedCsvError,
    PersistenceError,
    QueryError,
    UnsupportedMediaTypeError,
)
from stockdb.core.metrics import metrics
from stockdb.services.csv_schema import parse_trade_date
from stockdb.services.stock_ingestion_service import StockIngestionService
from stockdb.services.stock_record_store import StockRecordStore

router = APIRouter()

# ---------- Pydantic Schemas ----------

class UploadResponse(BaseModel):
    totalRecords: int
    successfulRecords: int
    failedRecords: int
    failedDetails: list[dict[str, Optional[str]]]


class StockRecordSchema(BaseModel):
    id: int
    date: date
    symbol: str
    series: str
    prev_close: float
    open: float
    high: float
    low: float
    last: float
    close: float
    vwap: float
    volume: int
    turnover: float
    trades: int
    deliverable: int
    percent_deliverable: float

    class Config:
        from_attributes = True


class AverageCloseResponse(BaseModel):
    average_close: float
    record_count: int


class AverageVwapResponse(BaseModel):
    average_vwap: float
    record_count: int


# ---------- Dependencies ----------

def get_store(db: AsyncSession = Depends(get_db)) -> StockRecordStore:
    return StockRecordStore(session=db)


def get_ingestion_service(store: StockRecordStore = Depends(get_store)) -> StockIngestionService:
    return StockIngestionService(store)


def _parse_range(start_date: Optional[str], end_date: Optional[str]) -> tuple[date, date]:
    try:
        return (
            parse_trade_date(start_date, dayfirst=settings.CSV_DAYFIRST),
            parse_trade_date(end_date, dayfirst=settings.CSV_DAYFIRST),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date range: {e}")


# ---------- Endpoints ----------

@router.post("/upload", response_model=UploadResponse)
async def upload_csv(
    file: Optional[UploadFile] = File(default=None),
    service: StockIngestionService = Depends(get_ingestion_service),
):
    """Upload a CSV of daily trading records; valid rows are stored, the rest echoed back."""
    if file is None:
        raise HTTPException(status_code=400, detail="Please upload a CSV file")

    try:
        report = await service.ingest(file.file, file.content_type, filename=file.filename)
    except UnsupportedMediaTypeError:
        raise HTTPException(status_code=400, detail="Please upload a CSV file")
    except MalformedCsvError as e:
        raise HTTPException(status_code=400, detail=f"Malformed CSV file: {e.reason}")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Error saving data to database")
    finally:
        await file.close()

    return report.to_response()


@router.get("/highest_volume", response_model=list[StockRecordSchema])
async def get_highest_volume(
    start_date: Optional[str] = Query(default=None, description="Range start, inclusive"),
    end_date: Optional[str] = Query(default=None, description="Range end, inclusive"),
    symbol: Optional[str] = Query(default=None),
    store: StockRecordStore = Depends(get_store),
):
    """Record with the highest volume in the range, as a list of zero or one."""
    start, end = _parse_range(start_date, end_date)
    try:
        record = await store.max_volume_in_range(start, end, symbol)
    except QueryError as e:
        await metrics.query_failed(e.query, symbol, str(e.__cause__ or e))
        raise HTTPException(status_code=500, detail="Error retrieving data")
    return [record] if record is not None else []


@router.get("/average_close", response_model=AverageCloseResponse)
async def get_average_close(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    symbol: Optional[str] = Query(default=None),
    store: StockRecordStore = Depends(get_store),
):
    """Mean close price; 0 with record_count 0 when nothing matches."""
    start, end = _parse_range(start_date, end_date)
    try:
        average, count = await store.close_stats(start, end, symbol)
    except QueryError as e:
        await metrics.query_failed(e.query, symbol, str(e.__cause__ or e))
        raise HTTPException(status_code=500, detail="Error calculating average close")
    return AverageCloseResponse(average_close=average or 0, record_count=count)


@router.get("/average_vwap", response_model=AverageVwapResponse)
async def get_average_vwap(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    symbol: Optional[str] = Query(default=None),
    store: StockRecordStore = Depends(get_store),
):
    """Mean VWAP; 0 with record_count 0 when nothing matches."""
    start, end = _parse_range(start_date, end_date)
    try:
        average, count = await store.vwap_stats(start, end, symbol)
    except QueryError as e:
        await metrics.query_failed(e.query, symbol, str(e.__cause__ or e))
        raise HTTPException(status_code=500, detail="Error calculating average VWAP")
    return AverageVwapResponse(average_vwap=average or 0, record_count=count)
