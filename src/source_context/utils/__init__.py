"""Utility functions and helpers.

- async_helpers: Error taxonomy, retry decorators
- security: Secret redaction, input validation
- logging: Structured logging with secret sanitization
- metrics: Application metrics collection
"""

from source_context.utils.async_helpers import (
    AuthenticationError,
    EngineError,
    FetcherNotReadyError,
    NoApplicationFilesError,
    NoFilesRetrievedError,
    NoStackTraceError,
    RateLimitError,
    SourceContextError,
    TransportError,
    create_retry,
)
from source_context.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from source_context.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from source_context.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
    ValidationError,
)

__all__ = [
    # Errors
    "AuthenticationError",
    # Metrics
    "Counter",
    "EngineError",
    "FetcherNotReadyError",
    "Gauge",
    "Histogram",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    "NoApplicationFilesError",
    "NoFilesRetrievedError",
    "NoStackTraceError",
    "RateLimitError",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "SourceContextError",
    "Timer",
    "TransportError",
    "ValidationError",
    "bind_context",
    "clear_context",
    "configure_logging",
    "create_retry",
    "get_logger",
    "get_metrics",
    "unbind_context",
]
