# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Exceptions
# Error taxonomy for ingestion, sources and sinks
# ═══════════════════════════════════════════════════════════════

from typing import Any, Dict, Optional


class LeakdexException(Exception):
    """Base exception for all LEAKDEX errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class IngestionError(LeakdexException):
    """An ingestion run could not continue."""
    pass


class RecordTooLargeError(IngestionError):
    """
    A single input unit (line or array element) exceeded the buffer limit.

    Units are never truncated or split, so this stops the run.
    """

    def __init__(self, limit: int, unit: str = "line", measure: str = "bytes"):
        super().__init__(
            f"{unit} exceeds maximum size of {limit} {measure}",
            details={"limit": limit, "unit": unit, "measure": measure},
        )
        self.limit = limit
        self.unit = unit
        self.measure = measure


class SourceError(LeakdexException):
    """The input byte stream could not be opened or downloaded."""
    pass


class SinkError(LeakdexException):
    """A document could not be written to the storage engine."""

    def __init__(self, message: str, doc_id: Optional[str] = None, retryable: bool = False):
        super().__init__(message, details={"doc_id": doc_id, "retryable": retryable})
        self.doc_id = doc_id
        self.retryable = retryable
