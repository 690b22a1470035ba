"""
Logging configuration for the market feed service.

Provides structured JSON logging with support for multiple log files,
log rotation, and masking of upstream API credentials.
"""

import json
import logging
import logging.handlers
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict


class SensitiveDataFilter(logging.Filter):
    """Filter to mask sensitive data in logs."""

    SENSITIVE_KEYS = {
        "api_key",
        "x-api-key",
        "api_secret",
        "password",
        "passphrase",
        "secret",
        "authorization",
    }

    _PATTERN = re.compile(
        r"(?P<key>" + "|".join(re.escape(k) for k in sorted(SENSITIVE_KEYS)) + r")"
        r"(?P<sep>['\"]?\s*[:=]\s*['\"]?)(?P<value>[^\s'\",&}]+)",
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask sensitive data in log records."""
        if hasattr(record, "msg") and isinstance(record.msg, str):
            record.msg = self._mask_sensitive_data(record.msg)
        if hasattr(record, "args") and isinstance(record.args, dict):
            record.args = self._mask_dict(record.args)
        return True

    def _mask_sensitive_data(self, text: str) -> str:
        """Mask values that follow a sensitive key in free text."""
        return self._PATTERN.sub(lambda m: f"{m.group('key')}{m.group('sep')}***MASKED***", text)

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive data in dictionary."""
        masked = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in self.SENSITIVE_KEYS):
                masked[key] = "***MASKED***"
            elif isinstance(value, dict):
                masked[key] = self._mask_dict(value)
            else:
                masked[key] = value
        return masked


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs logs in JSON format."""

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
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["context"] = record.extra_data

        return json.dumps(log_data)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JSONFormatter()
    return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def setup_logging(config: Any) -> None:
    """
    Set up logging configuration.

    Args:
        config: Configuration object with logging settings
    """
    os.makedirs(config.LOG_DIR, exist_ok=True)

    level = getattr(logging, config.LOG_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.addFilter(sensitive_filter)
    console_handler.setFormatter(_build_formatter(config.LOG_FORMAT))
    root_logger.addHandler(console_handler)

    # One rotating file per logger family; "market_feed.services.market_data"
    # collects every upstream adapter.
    log_files = {
        "market_feed": ("app.log", level),
        "market_feed.services.market_data": ("market_data.log", level),
        "": ("errors.log", logging.ERROR),
    }

    for logger_name, (filename, file_level) in log_files.items():
        log_path = os.path.join(config.LOG_DIR, filename)

        # Rotating file handler (50MB per file, 5 backups)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=50 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setLevel(file_level)
        file_handler.addFilter(sensitive_filter)
        file_handler.setFormatter(_build_formatter(config.LOG_FORMAT))

        target = logging.getLogger(logger_name)
        if logger_name:
            for handler in target.handlers[:]:
                target.removeHandler(handler)
                handler.close()
        target.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger: Logger instance
    """
    return logging.getLogger(name)
