"""
llmgateway - Main API Server

FastAPI application for the multi-provider LLM completion gateway.

Supports two storage modes:
- MODE=local / MODE=test: in-memory provider registry, no database
- MODE=prod: PostgreSQL registry with encrypted provider credentials

Features:
- Provider registry CRUD and bootstrap seeding
- Single chat() entry point over OpenAI-compatible, Gemini, Ollama and Anthropic backends
- Minimal-parameter validation before any network call
- Provider health probes with persisted status
- Full observability (metrics, tracing, logging)
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import admin_router, router as llm_router, set_gateway_getter
from .api.dependencies import get_request_id
from .auth.config import (
    get_auth_mode,
    get_cors_allowed_origins,
    seed_on_startup,
    uses_memory_store,
    validate_security_config,
)
from .core.errors import GatewayException
from .db.connection import close_db, init_db
from .db.schema import ensure_schema
from .db.services import ModelService, ProviderService
from .db.stores import MemoryProviderStore, PostgresProviderStore
from .gateway.cache import ProviderCache
from .gateway.service import LLMGateway
from .observability import (
    ObservabilityMiddleware,
    get_logger,
    metrics_endpoint,
    setup_observability,
    shutdown_tracing,
)


# ============================================================
# Global state
# ============================================================

gateway_instance: Optional[LLMGateway] = None


def get_gateway_instance() -> Optional[LLMGateway]:
    return gateway_instance


set_gateway_getter(get_gateway_instance)


# ============================================================
# Lifespan management
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the registry store and gateway; tear them down on shutdown."""
    global gateway_instance

    validate_security_config()
    mode = get_auth_mode()

    setup_observability(service_name="llmgateway", service_version="1.0.0")
    logger = get_logger("llmgateway.server")
    logger.info("llmgateway starting", mode=mode.value)

    if uses_memory_store():
        store = MemoryProviderStore()
        logger.info("Using in-memory provider registry")
    else:
        db = await init_db(os.getenv("DATABASE_URL"))
        await ensure_schema(db)
        store = PostgresProviderStore(db)
        logger.info("Database connected")

    cache = ProviderCache.from_env()
    providers = ProviderService(store, cache)
    models = ModelService(store, cache)
    gateway_instance = LLMGateway(providers, models, cache)

    if seed_on_startup():
        created = await providers.seed_default_providers()
        logger.info("Startup seeding finished", seeded=created)

    logger.info("llmgateway server ready", mode=mode.value, cache_ttl_seconds=cache.ttl_seconds)

    yield

    gateway_instance = None
    if not uses_memory_store():
        await close_db()
    shutdown_tracing()

    logger.info("llmgateway server stopped")


# ============================================================
# FastAPI App
# ============================================================

def _cors_origins():
    origins = get_cors_allowed_origins()
    if not origins and uses_memory_store():
        return ["*"]
    return origins


app = FastAPI(
    title="llmgateway",
    description="Multi-provider LLM completion gateway",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# First added = innermost
app.add_middleware(ObservabilityMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(llm_router)
app.include_router(admin_router)


# ============================================================
# Core Endpoints
# ============================================================

@app.get("/health")
async def health_check():
    """
    Service health plus the last recorded status of each enabled provider.

    Does not probe providers; use POST /v1/llm/providers/{name}/test for that.
    """
    result = {
        "status": "starting",
        "version": "1.0.0",
        "mode": get_auth_mode().value,
        "providers": {},
    }

    gateway = get_gateway_instance()
    if gateway is None:
        return JSONResponse(status_code=503, content=result)

    providers = await gateway.providers.get_providers(include_disabled=False)
    result["status"] = "healthy"
    result["providers"] = {
        p.name: {
            "status": p.health_status,
            "latency_ms": p.average_latency,
            "consecutive_failures": p.consecutive_failures,
        }
        for p in providers
    }
    return result


@app.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return metrics_endpoint()


# ============================================================
# Error handlers
# ============================================================

@app.exception_handler(GatewayException)
async def gateway_exception_handler(request: Request, exc: GatewayException):
    """Handle all canonical gateway errors."""
    if not exc.error.request_id:
        exc.error.request_id = get_request_id(request)

    headers = {
        "X-Request-Id": exc.error.request_id,
        "X-Error-Type": exc.error.type.value,
        "X-Error-Code": exc.error.code,
    }

    if exc.error.retry_after:
        headers["Retry-After"] = str(exc.error.retry_after)

    if exc.error.provider:
        headers["X-Provider"] = exc.error.provider

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.error.to_dict(),
        headers=headers
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle standard HTTP exceptions."""
    request_id = get_request_id(request)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": "http_error",
                "message": str(exc.detail),
                "type": "semantic_error" if exc.status_code < 500 else "infra_error",
                "request_id": request_id,
                "retryable": exc.status_code >= 500
            }
        },
        headers={"X-Request-Id": request_id}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    request_id = get_request_id(request)

    get_logger("llmgateway.server").exception(
        "Unhandled error",
        path=request.url.path,
        request_id=request_id,
        error_type=type(exc).__name__,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_error",
                "message": "An unexpected error occurred",
                "type": "infra_error",
                "request_id": request_id,
                "retryable": True
            }
        },
        headers={"X-Request-Id": request_id}
    )


# ============================================================
# Run server
# ============================================================

def main():
    import uvicorn
    uvicorn.run(
        "llmgateway.server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
