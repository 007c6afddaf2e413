"""
llmgateway - Observability Middleware

Per-request correlation id, log context, server span, HTTP metrics and an
access log line. Also wires up logging, metrics and tracing at startup.
"""

import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request, Response
from opentelemetry.trace import SpanKind, Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from .logging import LogContext, get_logger, setup_logging
from .metrics import get_metrics, setup_metrics
from .tracing import extract_context, get_tracer, setup_tracing


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id, log context, server span, HTTP metrics, access log."""

    EXCLUDE_PATHS = {"/health", "/metrics", "/openapi.json", "/docs", "/redoc"}

    def __init__(self, app: ASGIApp, exclude_paths: Optional[set] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or self.EXCLUDE_PATHS
        self.logger = get_logger("llmgateway.access")

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:24]}"
        start_time = time.perf_counter()

        with get_tracer().start_as_current_span(
            f"{request.method} {request.url.path}",
            kind=SpanKind.SERVER,
            context=extract_context(dict(request.headers)),
            attributes={
                "http.method": request.method,
                "http.route": request.url.path,
                "llmgateway.request_id": request_id,
            },
        ) as span:
            ctx = span.get_span_context()
            log_ctx = LogContext(
                request_id=request_id,
                trace_id=format(ctx.trace_id, "032x") if ctx.is_valid else None,
                span_id=format(ctx.span_id, "016x") if ctx.is_valid else None,
                endpoint=request.url.path,
            )
            LogContext.set_current(log_ctx)
            request.state.request_id = request_id

            try:
                response = await call_next(request)
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                get_metrics().record_http_request(request.method, request.url.path, 500)
                self.logger.exception(
                    "Request failed with exception",
                    method=request.method,
                    path=request.url.path,
                    error_type=type(e).__name__,
                )
                raise
            finally:
                LogContext.clear()

            duration_ms = (time.perf_counter() - start_time) * 1000
            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 500:
                span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))

            get_metrics().record_http_request(request.method, request.url.path, response.status_code)
            self._log_request(request, response.status_code, duration_ms)

            response.headers["X-Request-Id"] = request_id
            return response

    def _log_request(self, request: Request, status_code: int, duration_ms: float):
        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": request.client.host if request.client else None,
        }

        if status_code >= 500:
            self.logger.error("Request completed with server error", **log_data)
        elif status_code >= 400:
            self.logger.warning("Request completed with client error", **log_data)
        else:
            self.logger.info("Request completed", **log_data)


def setup_observability(
    service_name: str = "llmgateway",
    service_version: str = "1.0.0",
    log_level: str = "INFO",
    tracing_enabled: bool = True,
) -> Dict[str, Any]:
    """
    Setup logging, metrics and tracing. Safe to call more than once.

    LOG_LEVEL, LOG_FORMAT and OTEL_EXPORTER_OTLP_ENDPOINT override the arguments.
    """
    result: Dict[str, Any] = {}

    setup_logging(
        level=os.getenv("LOG_LEVEL", log_level),
        json_output=os.getenv("LOG_FORMAT", "json").lower() == "json",
    )
    result["logging"] = True

    result["metrics"] = setup_metrics()

    if tracing_enabled:
        result["tracing"] = setup_tracing(
            service_name=service_name,
            service_version=service_version,
        )

    get_logger("llmgateway.observability").info(
        "Observability initialized",
        service_name=service_name,
        tracing_enabled=tracing_enabled,
        otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "none",
    )
    return result
