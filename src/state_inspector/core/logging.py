"""Logging helpers for State Inspector."""

import atexit
import contextlib
import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from state_inspector.core.constants import LOG_FILE_BACKUP_COUNT, LOG_FILE_MAX_BYTES

_LOG_RECORD_RESERVED_FIELDS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime", "extra_fields"}
_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _is_reserved_or_private_record_key(key: str) -> bool:
    return key in _LOG_RECORD_RESERVED_FIELDS or key.startswith("_")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Contextual fields attached through ``extra`` (such as ``scan_id``) are
    merged into the top level of the emitted object.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread_name": record.threadName,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {}
        record_extra_fields = getattr(record, "extra_fields", None)
        if isinstance(record_extra_fields, dict):
            extra_fields.update(record_extra_fields)

        for key, value in record.__dict__.items():
            if _is_reserved_or_private_record_key(key):
                continue
            extra_fields.setdefault(key, value)

        log_entry.update(extra_fields)
        return json.dumps(log_entry, default=str)


_atexit_registered = False
_current_log_file: Path | None = None


class ScanLoggerAdapter(logging.LoggerAdapter):
    """Attach fixed fields such as ``scan_id`` to every record a scan logs."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def with_log_context(logger: logging.Logger, **context: object) -> logging.Logger | logging.LoggerAdapter:
    """Bind ``context`` to ``logger``; anything that is not a Logger is returned as is."""
    if not isinstance(logger, logging.Logger):
        return logger
    return ScanLoggerAdapter(logger, context)


def flush_logging_handlers(logger: logging.Logger | None = None) -> None:
    """Flush logger handlers, including propagated root handlers."""
    handlers: list[logging.Handler] = []
    seen: set[int] = set()

    current = logger
    while current is not None:
        handlers.extend(current.handlers)
        if not current.propagate:
            break
        current = current.parent

    if not handlers:
        handlers.extend(logging.root.handlers)

    for handler in handlers:
        if id(handler) in seen:
            continue
        seen.add(id(handler))
        with contextlib.suppress(Exception):
            handler.flush()


def setup_logging(
    log_level: str | None = None, log_format: str = "text", log_dir: str | Path | None = "logs"
) -> logging.Logger:
    """Setup logging to the console and, when possible, a rotating log file.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format - "text" (default) or "json" for structured logging
        log_dir: Directory for the rotating log file; None logs to the console only

    Returns:
        Configured package logger

    Priority: 1) Passed parameter, 2) Environment variable LOG_LEVEL, 3) Default INFO
    """
    global _atexit_registered, _current_log_file

    if not _atexit_registered:
        atexit.register(logging.shutdown)
        _atexit_registered = True

    log_file = None
    if log_dir is not None:
        directory = Path(log_dir)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
            log_file = directory / f"state_inspector_{timestamp}.log"
        except OSError as e:
            print(f"Warning: Cannot create logs directory: {e}. Logging to console only.", file=sys.stderr)

    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO")

    if log_level.upper() not in _VALID_LEVELS:
        print(f"Warning: Invalid log level '{log_level}', using INFO", file=sys.stderr)
        log_level = "INFO"

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT))

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(numeric_level)
        logging.root.addHandler(handler)

    logging.root.setLevel(numeric_level)

    logger = logging.getLogger("state_inspector")
    logger.propagate = True
    logger.setLevel(logging.NOTSET)

    _current_log_file = log_file

    if log_file is not None:
        logger.info(f"Logging initialized. Log file: {log_file}")
    else:
        logger.info("Logging initialized. Console output only.")

    flush_logging_handlers(logger)
    return logger
