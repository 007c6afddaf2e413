"""
llmgateway - Prometheus Metrics

Metrics exposed:
- llmgateway_requests_total: Counter of completions by provider, model, status
- llmgateway_request_duration_seconds: Histogram of completion latency per provider
- llmgateway_tokens_total: Counter of tokens used (input/output)
- llmgateway_health_checks_total: Counter of health probes by outcome
- llmgateway_provider_healthy: Gauge of last probe outcome (1 healthy, 0 unhealthy)
- llmgateway_http_requests_total: Counter of HTTP requests by method, path, status

Usage:
    metrics = get_metrics()
    metrics.record_request(provider="openai", model="gpt-4o", status="success", duration_seconds=1.5)
    metrics.record_tokens(provider="openai", model="gpt-4o", input_tokens=100, output_tokens=50)
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import Response


class MetricsCollector:
    """
    Central metrics collector using Prometheus client.

    One collector per registry; tests pass a fresh CollectorRegistry.
    """

    _instance: Optional["MetricsCollector"] = None

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.info = Info(
            "llmgateway",
            "LLM gateway service information",
            registry=registry,
        )
        self.info.info({
            "version": "1.0.0",
            "service": "llmgateway",
        })

        self.requests_total = Counter(
            "llmgateway_requests_total",
            "Total number of completion requests",
            labelnames=["provider", "model", "status"],
            registry=registry,
        )

        # Completions range from sub-second local calls to minutes
        self.request_duration = Histogram(
            "llmgateway_request_duration_seconds",
            "Completion duration in seconds",
            labelnames=["provider"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, float("inf")),
            registry=registry,
        )

        self.tokens_total = Counter(
            "llmgateway_tokens_total",
            "Total tokens used",
            labelnames=["provider", "model", "type"],  # type = input/output
            registry=registry,
        )

        self.health_checks_total = Counter(
            "llmgateway_health_checks_total",
            "Provider health probes",
            labelnames=["provider", "status"],
            registry=registry,
        )

        self.provider_healthy = Gauge(
            "llmgateway_provider_healthy",
            "Last probe outcome (1=healthy, 0=unhealthy)",
            labelnames=["provider"],
            registry=registry,
        )

        self.http_requests_total = Counter(
            "llmgateway_http_requests_total",
            "HTTP requests served",
            labelnames=["method", "path", "status"],
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def record_request(
        self,
        provider: str,
        model: str,
        status: str,
        duration_seconds: Optional[float] = None,
    ):
        """Record a completed (or failed) completion call."""
        self.requests_total.labels(provider=provider, model=model or "unknown", status=status).inc()
        if duration_seconds is not None:
            self.request_duration.labels(provider=provider).observe(duration_seconds)

    def record_tokens(
        self,
        provider: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ):
        """Record token usage."""
        self.tokens_total.labels(provider=provider, model=model, type="input").inc(input_tokens)
        self.tokens_total.labels(provider=provider, model=model, type="output").inc(output_tokens)

    def record_health_check(self, provider: str, success: bool):
        """Record health check result."""
        self.health_checks_total.labels(
            provider=provider,
            status="success" if success else "failure",
        ).inc()
        self.provider_healthy.labels(provider=provider).set(1 if success else 0)

    def record_http_request(self, method: str, path: str, status_code: int):
        self.http_requests_total.labels(method=method, path=path, status=str(status_code)).inc()


# Module-level functions for convenience
_metrics_instance: Optional[MetricsCollector] = None


def setup_metrics(registry: CollectorRegistry = REGISTRY) -> MetricsCollector:
    """
    Setup metrics collection.

    Safe to call multiple times with the same registry.
    """
    global _metrics_instance

    if _metrics_instance is not None and _metrics_instance.registry is registry:
        return _metrics_instance

    if registry is REGISTRY:
        _metrics_instance = MetricsCollector.get_instance()
    else:
        _metrics_instance = MetricsCollector(registry)
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the metrics collector, creating the default one on first use."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = MetricsCollector.get_instance()
    return _metrics_instance


def metrics_endpoint() -> Response:
    """Prometheus text exposition of the active registry."""
    content = generate_latest(get_metrics().registry)
    return Response(
        content=content,
        media_type=CONTENT_TYPE_LATEST,
    )
