"""
Metrics emission system for observability.

Provides structured metrics for:
- CSV uploads processed (row counts, duration)
- Uploads rejected before parsing
- Store write and read failures

Metrics are emitted to:
1. Python logging (immediate visibility)
2. Redis stream (optional, when METRICS_REDIS_ENABLED)
3. In-memory buffer (API aggregation)
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from stockdb.core.redis import StreamNames

logger = logging.getLogger(__name__)


@dataclass
class MetricEvent:
    """Structured metric event."""
    timestamp: datetime
    category: str          # "pipeline", "ingest", "query"
    event_type: str        # "batch_processed", "persistence_failed", etc.
    symbol: Optional[str]
    value: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category,
            "event_type": self.event_type,
            "symbol": self.symbol,
            "value": self.value,
            "metadata": self.metadata
        }


class MetricsEmitter:
    """
    Emit structured metrics to multiple destinations.

    One instance is shared per process; requests only append to the buffer.
    """

    CATEGORY_PIPELINE = "pipeline"
    CATEGORY_INGEST = "ingest"
    CATEGORY_QUERY = "query"

    def __init__(self, redis_client=None, buffer_size: int = 1000):
        """
        Initialize metrics emitter.

        Args:
            redis_client: Optional async Redis client for stream publishing
            buffer_size: Max events to keep in memory buffer
        """
        self.redis = redis_client
        self.buffer_size = buffer_size
        self._buffer: List[MetricEvent] = []
        self._enabled = True

    def set_redis(self, redis_client) -> None:
        """Set Redis client (for lazy initialization)."""
        self.redis = redis_client

    def enable(self) -> None:
        """Enable metrics emission."""
        self._enabled = True

    def disable(self) -> None:
        """Disable metrics emission (for testing)."""
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def emit(
        self,
        category: str,
        event_type: str,
        value: float,
        symbol: str = None,
        metadata: dict = None
    ) -> Optional[MetricEvent]:
        """
        Emit a metric event.

        Args:
            category: Event category (pipeline, ingest, query)
            event_type: Specific event type within category
            value: Numeric value (1.0/0.0 for boolean, actual value for numeric)
            symbol: Optional instrument symbol
            metadata: Additional context as key-value pairs

        Returns:
            The emitted MetricEvent, or None when disabled
        """
        if not self._enabled:
            return None

        event = MetricEvent(
            timestamp=datetime.now(timezone.utc),
            category=category,
            event_type=event_type,
            symbol=symbol,
            value=value,
            metadata=metadata or {}
        )

        meta_str = f" {metadata}" if metadata else ""
        logger.info(
            f"METRIC [{category}/{event_type}] "
            f"symbol={symbol} value={value}{meta_str}"
        )

        self._buffer.append(event)
        if len(self._buffer) > self.buffer_size:
            self._buffer = self._buffer[-self.buffer_size:]

        if self.redis:
            try:
                await self.redis.xadd(StreamNames.METRICS, {
                    "data": json.dumps(event.to_dict())
                })
            except Exception as e:
                logger.warning(f"Failed to publish metric to Redis: {e}")

        return event

    # =========================================================================
    # Convenience methods
    # =========================================================================

    async def batch_processed(self, stage: str, count: int, success: int,
                              failed: int, duration_ms: float) -> Optional[MetricEvent]:
        """Record batch processing completion."""
        return await self.emit(
            self.CATEGORY_PIPELINE, "batch_processed", count,
            metadata={
                "stage": stage,
                "success": success,
                "failed": failed,
                "duration_ms": round(duration_ms, 2)
            }
        )

    async def unsupported_media_type(self, content_type: Optional[str]) -> Optional[MetricEvent]:
        """Record an upload refused before parsing."""
        return await self.emit(
            self.CATEGORY_INGEST, "unsupported_media_type", 1.0,
            metadata={"content_type": content_type}
        )

    async def malformed_csv(self, rows_read: int, reason: str) -> Optional[MetricEvent]:
        """Record an upload that could not be split into rows."""
        return await self.emit(
            self.CATEGORY_INGEST, "malformed_csv", rows_read,
            metadata={"reason": reason}
        )

    async def persistence_failed(self, record_count: int, error: str) -> Optional[MetricEvent]:
        """Record a failed bulk write."""
        return await self.emit(
            self.CATEGORY_INGEST, "persistence_failed", record_count,
            metadata={"error": error}
        )

    async def query_failed(self, query: str, symbol: Optional[str], error: str) -> Optional[MetricEvent]:
        """Record a failed store read."""
        return await self.emit(
            self.CATEGORY_QUERY, "query_failed", 1.0,
            symbol=symbol,
            metadata={"query": query, "error": error}
        )

    # =========================================================================
    # Aggregation methods
    # =========================================================================

    def get_buffer(self) -> List[MetricEvent]:
        """Get buffered events (for API)."""
        return list(self._buffer)

    def get_summary(self, hours: int = 24) -> dict:
        """
        Get aggregated summary of recent metrics.

        Args:
            hours: How many hours of data to include

        Returns:
            Dictionary with aggregated metrics
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        recent = [e for e in self._buffer if e.timestamp >= cutoff]

        by_category: Dict[str, int] = {}
        by_event: Dict[str, int] = {}
        rows_accepted = 0
        rows_rejected = 0

        for event in recent:
            by_category[event.category] = by_category.get(event.category, 0) + 1
            key = f"{event.category}/{event.event_type}"
            by_event[key] = by_event.get(key, 0) + 1

            if event.event_type == "batch_processed":
                rows_accepted += event.metadata.get("success", 0)
                rows_rejected += event.metadata.get("failed", 0)

        return {
            "period_hours": hours,
            "total_events": len(recent),
            "by_category": by_category,
            "by_event": by_event,
            "uploads_processed": by_event.get("pipeline/batch_processed", 0),
            "uploads_refused": by_event.get("ingest/unsupported_media_type", 0),
            "uploads_malformed": by_event.get("ingest/malformed_csv", 0),
            "persistence_failures": by_event.get("ingest/persistence_failed", 0),
            "query_failures": by_event.get("query/query_failed", 0),
            "rows_accepted": rows_accepted,
            "rows_rejected": rows_rejected,
        }

    def clear_buffer(self) -> int:
        """Clear buffer and return count of cleared events."""
        count = len(self._buffer)
        self._buffer = []
        return count


# Global singleton instance
metrics = MetricsEmitter()
