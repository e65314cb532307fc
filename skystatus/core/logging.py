"""
Structured logging configuration.

The engine only emits records; wiring handlers is left to the host
application, which calls setup_logging() once at startup.

Data-quality warnings are logged through log_data_quality() so every record
carries the warning code, record id and month as structured fields. JSON
output exposes them as top-level keys; text output appends the code.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from skystatus import __version__
from skystatus.core.config import Settings, settings as default_settings
from skystatus.models import DataQualityWarning

ENGINE_NAME = "skystatus"


def warning_fields(warning: DataQualityWarning) -> Dict[str, Any]:
    """Structured fields describing one data-quality warning."""
    return {
        "code": warning.code.value,
        "record_id": warning.record_id,
        "month": str(warning.month) if warning.month else None,
    }


def log_data_quality(
    logger: logging.Logger,
    warning: DataQualityWarning,
    message: Optional[str] = None,
    level: int = logging.WARNING,
    **fields: Any,
):
    """
    Log a DataQualityWarning with its code attached as ``extra_fields``.

    ``fields`` adds context beyond the warning itself (cycle index, counts).
    """
    extra_fields = warning_fields(warning)
    extra_fields.update(fields)
    logger.log(
        level,
        message or warning.message,
        extra={"extra_fields": extra_fields},
        stacklevel=2,
    )


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "engine": ENGINE_NAME,
            "engine_version": __version__,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Warning code, record id, cycle index, ...
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Plain text for development; data-quality records get their code appended."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        code = getattr(record, "extra_fields", {}).get("code")
        if code:
            line = f"{line} [{code}]"
        return line


def setup_logging(config: Optional[Settings] = None, stream=None) -> logging.Logger:
    """
    Configure application-wide logging.

    Uses JSON format in production (or when LOG_FORMAT is "json"), text
    format otherwise. Existing root handlers are replaced.
    """
    config = config or default_settings
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    if config.LOG_FORMAT == "json" or config.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # The engine logs every skipped record at WARNING; keep its INFO chatter
    # out of production output.
    if config.ENVIRONMENT == "production":
        logging.getLogger(ENGINE_NAME).setLevel(max(log_level, logging.WARNING))

    return root_logger
