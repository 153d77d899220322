"""Structured logging setup with fetch IDs and correlation IDs"""

import logging
import json
import os
import sys
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional, Dict, Any
from datetime import datetime, timezone
from contextvars import ContextVar

# Context variables for fetch tracking
fetch_id_var: ContextVar[Optional[str]] = ContextVar('fetch_id', default=None)
fetch_key_var: ContextVar[Optional[str]] = ContextVar('fetch_key', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def get_fetch_id() -> Optional[str]:
    """Get current fetch ID"""
    return fetch_id_var.get()


def get_fetch_key() -> Optional[str]:
    """Get the key of the fetch in progress"""
    return fetch_key_var.get()


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID"""
    return correlation_id_var.get()


def set_fetch_id(fetch_id: Optional[str]) -> None:
    """Set current fetch ID"""
    fetch_id_var.set(fetch_id)


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Set current correlation ID"""
    correlation_id_var.set(correlation_id)


@contextmanager
def fetch_context(key: str, fetch_id: Optional[str] = None) -> Iterator[str]:
    """
    Tag log records with a fresh fetch ID and the fetch key

    The previous values are restored on exit, so sequential fetches in one
    task each get their own ID and nested fetches do not clobber the outer one.
    """
    fetch_id = fetch_id or uuid.uuid4().hex[:12]
    id_token = fetch_id_var.set(fetch_id)
    key_token = fetch_key_var.set(key)
    try:
        yield fetch_id
    finally:
        fetch_key_var.reset(key_token)
        fetch_id_var.reset(id_token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with fetch/correlation IDs"""

    SENSITIVE_KEYS = (
        "password", "api_key", "api_token", "token", "secret", "authorization",
        "bearer", "credential",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        fetch_id = get_fetch_id()
        if fetch_id:
            log_data["fetch_id"] = fetch_id

        fetch_key = get_fetch_key()
        if fetch_key:
            log_data["fetch_key"] = fetch_key

        correlation_id = get_correlation_id()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        # Structured fields passed as extra={"extra": {...}}
        if isinstance(getattr(record, "extra", None), dict):
            log_data.update(record.extra)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data = self._mask_sensitive_data(log_data)

        return json.dumps(log_data, default=str)

    def _mask_sensitive_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive data in log entries"""
        masked_data = {}
        for key, value in data.items():
            key_lower = key.lower()
            if any(sensitive in key_lower for sensitive in self.SENSITIVE_KEYS):
                if isinstance(value, str) and len(value) > 8:
                    masked_data[key] = value[:4] + "***" + value[-4:]
                else:
                    masked_data[key] = "***"
            elif isinstance(value, dict):
                masked_data[key] = self._mask_sensitive_data(value)
            else:
                masked_data[key] = value

        return masked_data


class FetchIDFilter(logging.Filter):
    """Filter to add fetch ID and key to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.fetch_id = get_fetch_id() or "N/A"
        record.fetch_key = get_fetch_key() or "-"
        record.correlation_id = get_correlation_id() or "N/A"
        return True


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """Setup structured logging"""
    log_level_str = os.getenv("LOG_LEVEL", level).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(fetch_id)s %(fetch_key)s] - %(message)s"
            )
        )
    console_handler.addFilter(FetchIDFilter())
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(FetchIDFilter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    return logging.getLogger(name)
