"""
Observability: structured logging and correlation ids.

Usage:
    from shopclock.observability import configure_logging, CorrelationContext

    configure_logging("INFO")
    with CorrelationContext(prefix="evt"):
        logger.info("Clocked in")
"""

from .context import (
    CorrelationContext,
    LogContext,
    current_context,
    get_clock_event,
    get_correlation_id,
)
from .logging import (
    CorrelationIdMiddleware,
    HumanFormatter,
    JSONFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "CorrelationContext",
    "CorrelationIdMiddleware",
    "HumanFormatter",
    "JSONFormatter",
    "LogContext",
    "configure_logging",
    "current_context",
    "get_clock_event",
    "get_correlation_id",
    "get_logger",
]
