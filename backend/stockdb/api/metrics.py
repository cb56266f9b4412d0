"""
Metrics API endpoint for observability.

Provides:
- Summary statistics for ingestion and query metrics
- Recent metric events
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, List
from fastapi import APIRouter, Query
from pydantic import BaseModel

from stockdb.core.metrics import metrics

router = APIRouter()


class MetricsSummary(BaseModel):
    """Summary of metrics over a time period."""
    period_hours: int
    total_events: int
    by_category: dict
    by_event: dict
    uploads_processed: int
    uploads_refused: int
    persistence_failures: int
    query_failures: int
    rows_accepted: int
    rows_rejected: int


class MetricEventResponse(BaseModel):
    """Single metric event for API response."""
    timestamp: str
    category: str
    event_type: str
    symbol: Optional[str]
    value: float
    metadata: dict


@router.get("/summary", response_model=MetricsSummary)
async def get_metrics_summary(
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history to include")
) -> MetricsSummary:
    """Aggregated counts of recent uploads, rows and failures."""
    summary = metrics.get_summary(hours=hours)
    return MetricsSummary(**summary)


@router.get("/events", response_model=List[MetricEventResponse])
async def get_recent_events(
    category: Optional[str] = Query(default=None, description="Filter by category"),
    event_type: Optional[str] = Query(default=None, description="Filter by event type"),
    limit: int = Query(default=100, ge=1, le=1000, description="Max events to return"),
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history")
) -> List[MetricEventResponse]:
    """
    Get recent metric events with optional filtering, most recent first.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)

    events = []
    for event in reversed(metrics.get_buffer()):
        if event.timestamp < cutoff:
            continue
        if category and event.category != category:
            continue
        if event_type and event.event_type != event_type:
            continue

        events.append(MetricEventResponse(**event.to_dict()))

        if len(events) >= limit:
            break

    return events


@router.post("/clear")
async def clear_metrics_buffer() -> dict:
    """
    Clear the in-memory metrics buffer.
    """
    count = metrics.clear_buffer()
    return {
        "status": "cleared",
        "events_cleared": count
    }


@router.get("/health")
async def metrics_health() -> dict:
    """
    Health check for metrics system.
    """
    return {
        "status": "healthy",
        "buffer_size": len(metrics.get_buffer()),
        "redis_connected": metrics.redis is not None,
        "enabled": metrics.enabled
    }
