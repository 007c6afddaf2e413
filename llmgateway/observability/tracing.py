"""
llmgateway - OpenTelemetry Tracing

One client span per provider call (llm.chat, llm.probe), plus W3C trace
context extraction for incoming requests. Spans are exported over OTLP
when OTEL_EXPORTER_OTLP_ENDPOINT is set.
"""

import os
from contextlib import contextmanager
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagate import extract, set_global_textmap
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace import SpanKind
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

TRACER_NAME = "llmgateway"


class TracingManager:
    """Owns the tracer provider for the process."""

    def __init__(
        self,
        service_name: str = "llmgateway",
        service_version: str = "1.0.0",
        otlp_endpoint: Optional[str] = None,
        console_export: bool = False,
    ):
        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": os.getenv("MODE", "prod"),
        })

        self.provider = TracerProvider(resource=resource)

        if otlp_endpoint:
            self.provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )

        if console_export:
            self.provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(self.provider)
        set_global_textmap(TraceContextTextMapPropagator())

    def shutdown(self):
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "llmgateway",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
) -> TracingManager:
    """
    Setup distributed tracing. Call once at application startup.

    Falls back to OTEL_EXPORTER_OTLP_ENDPOINT / OTEL_CONSOLE_EXPORT.
    """
    global _tracing_instance

    if _tracing_instance is not None:
        return _tracing_instance

    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint,
        console_export=console_export,
    )
    return _tracing_instance


def shutdown_tracing():
    global _tracing_instance
    if _tracing_instance is not None:
        _tracing_instance.shutdown()
        _tracing_instance = None


def get_tracer() -> trace.Tracer:
    """Tracer from the global provider (no-op until setup_tracing runs)."""
    return trace.get_tracer(TRACER_NAME)


def extract_context(headers: Dict[str, str]):
    """Parent context from incoming traceparent headers."""
    return extract({k.lower(): v for k, v in headers.items()})



@contextmanager
def trace_provider_call(provider: str, model: Optional[str], operation: str = "chat"):
    """
    Span around one provider call.

    Usage:
        with trace_provider_call("openai", "gpt-4o", "chat") as span:
            response = await adapter.chat(...)
            span.set_attribute("llm.tokens.input", response.usage.prompt_tokens)

    Exceptions are recorded on the span and re-raised.
    """
    attributes: Dict[str, Any] = {"llm.provider": provider, "llm.operation": operation}
    if model:
        attributes["llm.model"] = model

    with get_tracer().start_as_current_span(
        f"llm.{operation}",
        kind=SpanKind.CLIENT,
        attributes=attributes,
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        yield span
