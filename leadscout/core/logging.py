"""
Structured logging module using Loguru
"""

from loguru import logger
from contextvars import ContextVar
from typing import Optional
import json
import sys
from functools import wraps
import time

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
search_id_var: ContextVar[Optional[str]] = ContextVar("search_id", default=None)


class StructuredLogger:
    """Wrapper for structured logging with context"""

    @staticmethod
    def bind(**kwargs):
        """Bind context to logger"""
        context = {
            "request_id": request_id_var.get(),
            "search_id": search_id_var.get(),
            **kwargs,
        }
        # Remove None values
        context = {k: v for k, v in context.items() if v is not None}
        return logger.bind(**context)

    @staticmethod
    def info(message: str, **kwargs):
        """Log info with context"""
        StructuredLogger.bind(**kwargs).info(message)

    @staticmethod
    def error(message: str, **kwargs):
        """Log error with context"""
        StructuredLogger.bind(**kwargs).error(message)

    @staticmethod
    def warning(message: str, **kwargs):
        """Log warning with context"""
        StructuredLogger.bind(**kwargs).warning(message)


def log_execution_time(func):
    """Decorator to log coroutine execution time"""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.time()
        try:
            result = await func(*args, **kwargs)
            duration = time.time() - start
            StructuredLogger.info(
                "Function executed successfully",
                function=func.__name__,
                duration=duration,
                status="success",
            )
            return result
        except Exception as e:
            duration = time.time() - start
            StructuredLogger.error(
                "Function failed",
                function=func.__name__,
                duration=duration,
                status="error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    return wrapper


def format_record(record) -> str:
    """Format a loguru record as a single JSON line"""
    log_format = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    # Add extra fields
    if record.get("extra"):
        log_format.update(record["extra"])

    # Add exception info if present
    if record.get("exception"):
        log_format["exception"] = str(record["exception"].value)

    return json.dumps(log_format, default=str)


def json_sink(message):
    """Loguru sink writing JSON lines to stdout (useful for production)"""
    sys.stdout.write(format_record(message.record) + "\n")
    sys.stdout.flush()


# Public API
__all__ = [
    "logger",
    "StructuredLogger",
    "log_execution_time",
    "format_record",
    "json_sink",
    "request_id_var",
    "search_id_var",
]
