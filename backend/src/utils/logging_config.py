"""
Structured logging configuration for the event scheduling backend.

Provides JSON-formatted logging with file rotation for production environments
and human-readable console logging for development.

Loggers:
- services: Scheduling business logic (creation, updates, series propagation)
- db: Persistence concerns (transactions, locks, constraint violations)
- audit: Audit trail notifications handed to the audit collaborator
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional


LOGGER_NAMESPACE = "eventhub"
LOGGER_NAMES = ("services", "db", "audit")


class JSONFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON object.

    Each log record includes timestamp, level, logger, message, module,
    function and line. Exception info and any ``extra_fields`` attached to
    the record are merged in.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output in development.

    Example: [2025-06-01 10:30:45] INFO - eventhub.services - Created event series: ...
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def _get_log_level() -> int:
    """Read EVENTHUB_LOG_LEVEL (default INFO)."""
    level_str = os.environ.get("EVENTHUB_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def _get_log_dir() -> Path:
    """Read EVENTHUB_LOG_DIR (default ./logs) and make sure it exists."""
    log_dir = Path(os.environ.get("EVENTHUB_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _is_production() -> bool:
    """Check EVENTHUB_ENV for a production deployment."""
    return os.environ.get("EVENTHUB_ENV", "development").lower() == "production"


def configure_logging() -> Dict[str, logging.Logger]:
    """
    Configure the scheduling loggers.

    Behavior:
    - Production (EVENTHUB_ENV=production): JSON logs to one rotating file per
      logger (10MB, 5 backups).
    - Development (default): human-readable console output on stdout.

    Returns:
        Dictionary mapping short logger names to configured Logger instances
    """
    log_level = _get_log_level()
    is_prod = _is_production()
    log_dir = _get_log_dir() if is_prod else None

    loggers = {}
    for logger_name in LOGGER_NAMES:
        logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{logger_name}")
        logger.setLevel(log_level)
        logger.handlers.clear()

        if is_prod:
            handler = logging.handlers.RotatingFileHandler(
                log_dir / f"{logger_name}.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8"
            )
            handler.setFormatter(JSONFormatter())
            # Rotating files are the sink in production; keep them out of root
            logger.propagate = False
        else:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(ConsoleFormatter())
            logger.propagate = True
        handler.setLevel(log_level)
        logger.addHandler(handler)

        loggers[logger_name] = logger

    return loggers


_loggers: Optional[Dict[str, logging.Logger]] = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger by short name.

    Args:
        name: Logger name (services, db, audit)

    Returns:
        Configured Logger instance

    Raises:
        ValueError: If logger name is not recognized
    """
    global _loggers

    if _loggers is None:
        _loggers = configure_logging()

    if name not in _loggers:
        raise ValueError(
            f"Unknown logger name: {name}. "
            f"Valid names: {', '.join(_loggers.keys())}"
        )

    return _loggers[name]


def init_logging() -> Dict[str, logging.Logger]:
    """Initialize logging configuration (called once by the hosting service)."""
    global _loggers
    _loggers = configure_logging()
    return _loggers
