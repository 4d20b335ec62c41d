"""Shared core utilities.

Health checks against the upstream API and structured, redacting JSON logging.
"""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    SecurityFilter,
    StructuredFormatter,
    set_request_context,
)

__all__ = [
    # Health checks
    "ServiceHealth",
    "HealthStatus",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "SecurityFilter",
    "StructuredFormatter",
    "set_request_context",
]
