# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Logging
# Console logging and per-run context
# ═══════════════════════════════════════════════════════════════

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

ROOT_LOGGER = "leakdex"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("leakdex_log_context", default={})


class ContextFilter(logging.Filter):
    """Copies the active logging context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        record.context = context
        for key, value in context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class TextFormatter(logging.Formatter):
    """Plain formatter that appends the run context as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            line = f"{line} [{pairs}]"
        return line


class JSONFormatter(logging.Formatter):
    """Log formatter that outputs JSON-structured log lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_entry.update(getattr(record, "context", None) or {})

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """
    Configure the ``leakdex`` logger hierarchy.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit JSON lines instead of plain text

    Returns:
        The configured root ``leakdex`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Replace our own handler on reconfiguration, leave foreign ones alone
    for handler in list(logger.handlers):
        if getattr(handler, "_leakdex", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._leakdex = True  # type: ignore[attr-defined]
    handler.addFilter(ContextFilter())
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the ``leakdex`` namespace."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


@contextmanager
def logging_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """
    Attach fields to every log record emitted inside the block.

    Tasks created inside the block inherit the context.

    Usage:
        with logging_context(run_id="abc", leak_source="dump.txt"):
            logger.info("processing")
    """
    merged = {**_log_context.get(), **fields}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)
