"""
Monitoring & Observability
Structured log output and timing of catalog operations.
"""

import time
from typing import Callable, Any
from functools import wraps
import logging
import json
from datetime import datetime, timezone
import asyncio

logger = logging.getLogger(__name__)

# Extra record attributes copied into JSON log lines when present
_EXTRA_FIELDS = ("duration_ms", "operation", "kind", "total_count", "request_id")


# ============================================================================
# STRUCTURED LOGGING
# ============================================================================

class JSONFormatter(logging.Formatter):
    """JSON formatter for structured log output."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

def track_performance(operation_name: str):
    """Decorator to log operation timings. Failures are logged and re-raised."""
    def decorator(func: Callable) -> Callable:
        def _log_done(start: float) -> None:
            elapsed = (time.perf_counter() - start) * 1000
            logger.info(
                f"{operation_name} completed in {elapsed:.0f}ms",
                extra={"operation": operation_name, "duration_ms": round(elapsed, 1)},
            )

        def _log_failed(start: float, exc: Exception) -> None:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(
                f"{operation_name} failed after {elapsed:.0f}ms: {exc}",
                extra={"operation": operation_name, "duration_ms": round(elapsed, 1)},
            )

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_failed(start, e)
                raise
            _log_done(start)
            return result

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_failed(start, e)
                raise
            _log_done(start)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
