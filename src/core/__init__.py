# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Core Module
# Configuration, logging, errors and the ingestion pipeline
# ═══════════════════════════════════════════════════════════════

from .config import Settings, get_settings
from .exceptions import (
    LeakdexException,
    IngestionError,
    RecordTooLargeError,
    SourceError,
    SinkError,
)
from .logging import (
    get_logger,
    configure_logging,
    logging_context,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "LeakdexException",
    "IngestionError",
    "RecordTooLargeError",
    "SourceError",
    "SinkError",
    # Logging
    "get_logger",
    "configure_logging",
    "logging_context",
]
