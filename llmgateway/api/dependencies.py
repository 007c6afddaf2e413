"""
llmgateway - API Dependencies

Shared dependencies for FastAPI routes: gateway access, request ids and
the admin-key check.
"""

import uuid
from typing import Optional

from fastapi import Header, Request

from ..auth.config import admin_key_matches, get_admin_api_key, is_prod_mode
from ..core.errors import (
    AdminAuthError,
    ErrorDetails,
    ErrorType,
    InfraError,
)
from ..gateway.service import LLMGateway


# Set by server lifespan
_gateway_instance_getter = None


def set_gateway_getter(getter):
    """Set the function that returns the gateway instance."""
    global _gateway_instance_getter
    _gateway_instance_getter = getter


def get_gateway() -> LLMGateway:
    """Dependency that provides the LLMGateway (registry, cache, adapters)."""
    gateway = _gateway_instance_getter() if _gateway_instance_getter is not None else None
    if gateway is None:
        raise InfraError(
            ErrorDetails(
                code="service_unavailable",
                message="Gateway not initialized. Server may be starting up.",
                type=ErrorType.INFRA,
                request_id="",
                retryable=True,
                retry_after=5
            ),
            status_code=503
        )
    return gateway


def get_request_id(request: Request) -> str:
    """Request id assigned by ObservabilityMiddleware, or a fresh one."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = generate_request_id()
        request.state.request_id = request_id
    return request_id


async def require_admin(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> None:
    """
    Guard for admin routes.

    Accepts "Authorization: Bearer <ADMIN_API_KEY>" or "X-Admin-Key".
    Without a configured key the admin surface is open in local/test mode
    and closed in prod.
    """
    request_id = get_request_id(request)

    if get_admin_api_key() is None:
        if is_prod_mode():
            raise AdminAuthError("Admin API key not configured", status_code=403, request_id=request_id)
        return

    presented = x_admin_key
    if not presented and authorization:
        presented = authorization[7:] if authorization.startswith("Bearer ") else authorization

    if not presented:
        raise AdminAuthError(request_id=request_id)

    if not admin_key_matches(presented):
        raise AdminAuthError("Invalid admin API key", status_code=403, request_id=request_id)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req_{uuid.uuid4().hex[:24]}"
