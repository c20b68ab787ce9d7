"""
Logging setup for the 13F holdings pipeline.

Provides structured JSON logging with correlation IDs and standard logging configuration.
"""

import json
import logging
import logging.config
import logging.handlers
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import get_project_root

# Correlation ID for the filer currently being processed
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class CorrelationIdFilter(logging.Filter):
    """Filter that adds the current correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "none"
        return True


def set_correlation_id(cid: Optional[str] = None) -> str:
    """
    Set correlation ID for current context.

    Args:
        cid: Correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set.
    """
    new_id = cid or str(uuid.uuid4())
    correlation_id.set(new_id)
    return new_id


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Outputs log records as JSON objects for easy parsing and analysis.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "correlation_id": getattr(record, "correlation_id", None),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds context to log messages.

    Allows adding extra fields to log records for structured logging.
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Process log message and add extra context."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)

        if "extra_fields" not in extra:
            extra["extra_fields"] = {}
        extra["extra_fields"].update(self.extra)

        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    Set up logging configuration.

    Args:
        config_path: Path to logging config YAML file.
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    project_root = get_project_root()

    logs_dir = project_root / "logs"
    logs_dir.mkdir(exist_ok=True)

    if config_path is None:
        config_file = project_root / "config" / "logging.yaml"
    else:
        config_file = Path(config_path)
        if not config_file.is_absolute():
            config_file = project_root / config_file

    if config_file.exists():
        with open(config_file, "r") as f:
            config = yaml.safe_load(f)

        # Update log file paths to be absolute
        for handler_config in config.get("handlers", {}).values():
            if "filename" in handler_config:
                filename = handler_config["filename"]
                if not Path(filename).is_absolute():
                    handler_config["filename"] = str(project_root / filename)

        logging.config.dictConfig(config)
    else:
        _setup_basic_logging(log_level or "INFO")

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())

    if log_level:
        logging.getLogger().setLevel(getattr(logging, log_level.upper()))


def _setup_basic_logging(level: str) -> None:
    """Set up basic logging configuration as fallback."""
    logs_dir = get_project_root() / "logs"
    logs_dir.mkdir(exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"
        )
    )

    file_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "thirteenf.log",
        maxBytes=10485760,  # 10MB
        backupCount=30,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


def get_logger(
    name: str,
    context: Optional[dict[str, Any]] = None,
) -> logging.Logger | ContextAdapter:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically module name).
        context: Optional context dict to add to all log messages.

    Returns:
        Logger instance, optionally wrapped with ContextAdapter.
    """
    logger = logging.getLogger(name)

    if context:
        return ContextAdapter(logger, context)

    return logger


def log_operation(
    logger: logging.Logger,
    operation: str,
    success: bool,
    duration_ms: Optional[float] = None,
    **kwargs: Any,
) -> None:
    """
    Log an operation result with structured data.

    Args:
        logger: Logger instance.
        operation: Name of the operation.
        success: Whether operation succeeded.
        duration_ms: Operation duration in milliseconds.
        **kwargs: Additional context to log.
    """
    extra_fields = {
        "operation": operation,
        "success": success,
    }
    if duration_ms is not None:
        extra_fields["duration_ms"] = duration_ms
    extra_fields.update(kwargs)

    level = logging.INFO if success else logging.ERROR
    message = f"Operation '{operation}' {'succeeded' if success else 'failed'}"

    logger.log(level, message, extra={"extra_fields": extra_fields})
