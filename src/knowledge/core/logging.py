"""
Logging setup for the knowledge store.

Every module logs through ``logging.getLogger(__name__)``. Store and index
runs attach phase / run context with ``extra=log_context(...)`` so a run can
be followed through chunking, embedding and persistence, either as JSON
lines or as plain text with a ``[phase=... run_id=...]`` suffix.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional


PACKAGE_LOGGER = "knowledge"

CONTEXT_FIELDS = ("phase", "run_id", "source", "embedder", "chunk_index")
SUFFIX_FIELDS = ("phase", "run_id", "source")


def _record_context(record: logging.LogRecord, fields: Iterable[str]) -> Dict[str, Any]:
    context = {}
    for name in fields:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: ``level``, ``logger``, ``message``, optionally ``time`` (UTC ISO
    8601) and ``exception``, plus whichever context fields the record carries.
    """

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {}
        if self.include_timestamp:
            entry["time"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        entry["level"] = record.levelname
        entry["logger"] = record.name
        entry["message"] = record.getMessage()
        entry.update(_record_context(record, CONTEXT_FIELDS))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Plain text lines: ``TIME LEVEL logger: message [phase=X run_id=Y]``."""

    def __init__(self, include_timestamp: bool = True):
        fmt = "%(levelname)-7s %(name)s: %(message)s"
        if include_timestamp:
            fmt = "%(asctime)s " + fmt
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record, SUFFIX_FIELDS)
        if not context:
            return line
        suffix = " ".join(f"{k}={v}" for k, v in context.items())
        return f"{line} [{suffix}]"


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Logger under the ``knowledge`` namespace.

    Names outside the package (e.g. a script's ``__main__``) are nested
    below it so configure_logging() still applies to them.
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def configure_logging(
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    include_timestamp: bool = True,
    structured: bool = False,
) -> None:
    """
    Send ``knowledge.*`` records to stderr.

    Calling it again replaces the handler installed by an earlier call
    instead of stacking a second one.

    Args:
        level: Logging level (default: INFO)
        format_string: Custom format string (ignored if structured=True)
        include_timestamp: Whether to include timestamp in log messages
        structured: JSON lines instead of human-readable text

    Example:
        >>> configure_logging(level=logging.DEBUG, structured=True)
    """
    if structured:
        formatter: logging.Formatter = StructuredFormatter(include_timestamp=include_timestamp)
    elif format_string:
        formatter = logging.Formatter(format_string)
    else:
        formatter = HumanReadableFormatter(include_timestamp=include_timestamp)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for existing in list(package_logger.handlers):
        if getattr(existing, "_knowledge_handler", False):
            package_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler._knowledge_handler = True
    package_logger.addHandler(handler)


def log_context(**fields: Any) -> Dict[str, Any]:
    """
    ``extra`` dict for a log call, with None values dropped.

    Example:
        >>> logger.info("Stored chunks", extra=log_context(phase="phase1", run_id=None))
    """
    return {k: v for k, v in fields.items() if v is not None}
