"""
llmgateway - Observability Module

- Prometheus metrics (Counter, Histogram, Gauge)
- OpenTelemetry spans around provider calls
- Structured JSON logging with context injection

Usage:
    from llmgateway.observability import setup_observability, get_logger

    setup_observability(service_name="llmgateway")
    logger = get_logger(__name__)
"""

from .metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
    metrics_endpoint,
)
from .tracing import (
    TracingManager,
    get_tracer,
    setup_tracing,
    shutdown_tracing,
    trace_provider_call,
)
from .logging import (
    StructuredLogger,
    TimedOperation,
    get_logger,
    setup_logging,
    LogContext,
)
from .middleware import (
    ObservabilityMiddleware,
    setup_observability,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "setup_metrics",
    "metrics_endpoint",
    # Tracing
    "TracingManager",
    "get_tracer",
    "setup_tracing",
    "shutdown_tracing",
    "trace_provider_call",
    # Logging
    "StructuredLogger",
    "TimedOperation",
    "get_logger",
    "setup_logging",
    "LogContext",
    # Combined
    "ObservabilityMiddleware",
    "setup_observability",
]
