"""
Utility functions for the application
"""

import sys
import time
import logging
import structlog
from structlog import contextvars as struct_context
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Any, Optional
from .config import settings


def configure_structlog():
    """Configure structlog according to LOG_LEVEL."""
    processors = [
        struct_context.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=False),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.LOG_LEVEL == "debug":
        processors.append(structlog.dev.ConsoleRenderer())
        log_level = logging.DEBUG
    elif settings.LOG_LEVEL == "info":
        processors.append(structlog.dev.ConsoleRenderer())
        log_level = logging.INFO
    else:  # false
        # JSON output, but only fatal errors get through
        processors.append(structlog.processors.JSONRenderer())
        log_level = logging.CRITICAL

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


configure_structlog()

_logger = structlog.get_logger()


def bind_request_context(**kwargs) -> None:
    """Bind structured log context for the current request, skipping None values."""
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    if filtered:
        struct_context.bind_contextvars(**filtered)


def reset_request_context(*keys: str) -> None:
    """Drop the given context keys, or all of them when none are given."""
    if keys:
        struct_context.unbind_contextvars(*keys)
    else:
        struct_context.clear_contextvars()


def _verbose() -> bool:
    return settings.LOG_LEVEL in ("info", "debug")


def error_log(message: str, **fields) -> None:
    """Emitted at every LOG_LEVEL, including ``false``."""
    _logger.error(message, **fields)


def warning_log(message: str, **fields) -> None:
    if _verbose():
        _logger.warning(message, **fields)


def info_log(message: str, **fields) -> None:
    if _verbose():
        _logger.info(message, **fields)


def debug_log(message: str, **fields) -> None:
    if settings.DEBUG_LOGGING:
        _logger.debug(message, **fields)


def request_stage_log(stage: str, message: str, **kwargs) -> None:
    """
    Log info-level request stage transitions without dumping payload data.

    Args:
        stage: Logical stage identifier (e.g. "received", "upstream_request").
        message: Human readable description for terminal viewers.
        **kwargs: Extra structured fields to enrich the log.
    """
    normalized_stage = (stage or "unknown").strip().lower().replace(" ", "_")
    info_log(f"[REQUEST] {message}", stage=normalized_stage, **kwargs)


def get_logger(name: str = None):
    """Return a structlog logger, optionally named."""
    if name:
        return structlog.get_logger(name)
    return _logger


def truncate_url(url: str, limit: int = 100) -> str:
    """Shorten URLs (notably data: URLs) for log output."""
    if url is None:
        return ""
    return url if len(url) <= limit else f"{url[:limit]}..."


# ============================================================================
# Performance tracking
# ============================================================================

@contextmanager
def perf_timer(operation_name: str, threshold_ms: float = 0):
    """Log (at debug level) how long the block took, if at least ``threshold_ms``."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if elapsed_ms >= threshold_ms:
            debug_log(f"⏱️ {operation_name}", elapsed_ms=f"{elapsed_ms:.2f}ms")


def perf_track(operation_name: Optional[str] = None, threshold_ms: float = 0):
    """Coroutine decorator form of ``perf_timer``."""
    def decorator(func: Callable) -> Callable:
        op_name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            with perf_timer(op_name, threshold_ms):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
