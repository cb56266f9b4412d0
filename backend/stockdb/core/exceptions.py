"""Domain exceptions for ingestion and querying."""

from typing import Any, Optional


class StockDBError(Exception):
    """Base exception for the service."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class UnsupportedMediaTypeError(StockDBError):
    """Upload did not declare an accepted CSV content type."""

    def __init__(self, content_type: Optional[str]):
        super().__init__(
            f"Unsupported content type: {content_type!r}",
            "UNSUPPORTED_MEDIA_TYPE",
            {"content_type": content_type},
        )
        self.content_type = content_type


class MalformedCsvError(StockDBError):
    """The upload cannot be split into rows, e.g. a quote left open to end of file."""

    def __init__(self, reason: str, rows_read: int = 0):
        super().__init__(
            f"Malformed CSV after row {rows_read}: {reason}",
            "MALFORMED_CSV",
            {"reason": reason, "rows_read": rows_read},
        )
        self.reason = reason
        self.rows_read = rows_read


class RowValidationError(StockDBError):
    """A single CSV row failed validation. Collected, never fatal."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"{field}: {reason} ({value!r})",
            "ROW_VALIDATION_ERROR",
            {"field": field, "value": value},
        )
        self.field = field
        self.value = value
        self.reason = reason


class PersistenceError(StockDBError):
    """The store refused the bulk write. Nothing was committed."""

    def __init__(self, message: str, record_count: int = 0):
        super().__init__(message, "PERSISTENCE_ERROR", {"record_count": record_count})
        self.record_count = record_count


class QueryError(StockDBError):
    """A store read or aggregate failed."""

    def __init__(self, message: str, query: str):
        super().__init__(message, "QUERY_ERROR", {"query": query})
        self.query = query
