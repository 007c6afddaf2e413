"""
llmgateway - API Layer

REST surface under /v1/llm: public chat and provider listing, admin
registry management.
"""

from .providers import router, admin_router, mask_provider, public_provider
from .models import (
    ChatRequest,
    ChatTestRequest,
    MessageInput,
    ModelCreateRequest,
    OllamaPullRequest,
    ProviderCreateRequest,
    ProviderUpdateRequest,
    RoleEnum,
)
from .dependencies import (
    get_gateway,
    get_request_id,
    require_admin,
    set_gateway_getter,
)


__all__ = [
    # Routers
    "router",
    "admin_router",
    "mask_provider",
    "public_provider",
    # Request models
    "ChatRequest",
    "ChatTestRequest",
    "MessageInput",
    "ModelCreateRequest",
    "OllamaPullRequest",
    "ProviderCreateRequest",
    "ProviderUpdateRequest",
    "RoleEnum",
    # Dependencies
    "get_gateway",
    "get_request_id",
    "require_admin",
    "set_gateway_getter",
]
