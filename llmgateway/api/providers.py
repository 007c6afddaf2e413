"""
llmgateway - Provider Routes

/v1/llm endpoints: the public provider list and chat, plus the admin
surface for providers, models, seeding, health probes and local runtimes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from ..auth.config import is_prod_mode
from ..core.catalog import PROVIDER_DEFAULTS, get_common_models
from ..core.errors import InvalidRequestError, ProviderNotFoundError
from ..core.models import CompletionRequest, Message
from ..db.models import LLMProvider
from ..gateway.service import LLMGateway
from ..observability.logging import get_logger
from .dependencies import get_gateway, get_request_id, require_admin
from .models import (
    ChatRequest,
    ChatTestRequest,
    ModelCreateRequest,
    OllamaPullRequest,
    ProviderCreateRequest,
    ProviderUpdateRequest,
)

logger = get_logger(__name__)

MASK = "••••••••"
MASKED_FIELDS = ("api_key", "proxy_password", "custom_ca_cert")

router = APIRouter(prefix="/v1/llm", tags=["llm"])
admin_router = APIRouter(prefix="/v1/llm", tags=["llm-admin"], dependencies=[Depends(require_admin)])


# ============================================================
# Helpers
# ============================================================

def mask_provider(provider: LLMProvider) -> Dict[str, Any]:
    """Provider as a dict with credentials replaced by a fixed mask (or None)."""
    data = provider.to_dict()
    for key in MASKED_FIELDS:
        data[key] = MASK if data.get(key) else None
    return data


def public_provider(provider: LLMProvider) -> Dict[str, Any]:
    """Minimal, secret-free view for chat clients."""
    return {
        "id": provider.id,
        "name": provider.name,
        "display_name": provider.display_name,
        "is_default": provider.is_default,
        "default_model": provider.default_model,
        "supports_vision": provider.supports_vision,
        "supports_streaming": provider.supports_streaming,
        "models": [
            {
                "id": m.id,
                "model_id": m.model_id,
                "name": m.name,
                "is_default": m.is_default,
                "context_length": m.context_length,
                "supports_vision": m.supports_vision,
            }
            for m in provider.enabled_models
        ],
    }


def _ok(data: Any = None, status_code: int = 200, **extra) -> JSONResponse:
    content: Dict[str, Any] = {"success": True}
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(content=content, status_code=status_code)


def _local_failure(error: Exception, default_message: str) -> str:
    # Internal details stay hidden in prod
    if is_prod_mode():
        return default_message
    return str(error) or default_message


# ============================================================
# Public
# ============================================================

@router.get("/active")
async def list_active_providers(gateway: LLMGateway = Depends(get_gateway)):
    """Enabled providers with their enabled models."""
    providers = await gateway.providers.get_providers(include_disabled=False)
    return _ok([public_provider(p) for p in providers])


@router.post("/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    gateway: LLMGateway = Depends(get_gateway),
):
    response = await gateway.chat(body.to_completion_request(), request_id=get_request_id(request))
    return _ok(response.to_dict())


# ============================================================
# Providers
# ============================================================

@admin_router.get("/providers")
async def list_providers(
    include_disabled: bool = Query(False),
    gateway: LLMGateway = Depends(get_gateway),
):
    providers = await gateway.providers.get_providers(include_disabled)
    return _ok([mask_provider(p) for p in providers])


@admin_router.get("/providers/{name_or_id}")
async def get_provider(name_or_id: str, gateway: LLMGateway = Depends(get_gateway)):
    provider = await gateway.providers.get_provider(name_or_id)
    if provider is None:
        raise ProviderNotFoundError(name_or_id)
    return _ok(mask_provider(provider))


@admin_router.post("/providers")
async def create_provider(
    body: ProviderCreateRequest,
    gateway: LLMGateway = Depends(get_gateway),
):
    provider = await gateway.providers.create_provider(body.model_dump(exclude_unset=True))
    return _ok(mask_provider(provider), status_code=201)


@admin_router.put("/providers/{provider_id}")
async def update_provider(
    provider_id: int,
    body: ProviderUpdateRequest,
    gateway: LLMGateway = Depends(get_gateway),
):
    provider = await gateway.providers.update_provider(provider_id, body.model_dump(exclude_unset=True))
    return _ok(mask_provider(provider))


@admin_router.delete("/providers/{provider_id}")
async def delete_provider(provider_id: int, gateway: LLMGateway = Depends(get_gateway)):
    await gateway.providers.delete_provider(provider_id)
    return _ok(message="Provider deleted")


@admin_router.post("/providers/{name_or_id}/test")
async def test_provider(name_or_id: str, gateway: LLMGateway = Depends(get_gateway)):
    """Connectivity probe. Always 200; the outcome is in data.success."""
    result = await gateway.test_provider(name_or_id)
    return _ok(result.to_dict())


@admin_router.post("/providers/{provider_id}/set-default")
async def set_default_provider(provider_id: int, gateway: LLMGateway = Depends(get_gateway)):
    provider = await gateway.providers.set_default_provider(provider_id)
    return _ok(mask_provider(provider))


@admin_router.post("/providers/{provider_id}/toggle")
async def toggle_provider(provider_id: int, gateway: LLMGateway = Depends(get_gateway)):
    provider = await gateway.providers.toggle_provider(provider_id)
    return _ok(mask_provider(provider))


# ============================================================
# Models
# ============================================================

@admin_router.get("/models")
async def list_models(
    provider_id: Optional[int] = Query(None),
    gateway: LLMGateway = Depends(get_gateway),
):
    models = await gateway.models.get_models(provider_id)
    return _ok([m.to_dict() for m in models])


@admin_router.post("/models")
async def create_model(body: ModelCreateRequest, gateway: LLMGateway = Depends(get_gateway)):
    model = await gateway.models.create_model(body.model_dump(exclude_unset=True))
    return _ok(model.to_dict(), status_code=201)


@admin_router.delete("/models/{model_row_id}")
async def delete_model(model_row_id: int, gateway: LLMGateway = Depends(get_gateway)):
    await gateway.models.delete_model(model_row_id)
    return _ok(message="Model deleted")


@admin_router.post("/providers/{provider_id}/seed-models")
async def seed_models(provider_id: int, gateway: LLMGateway = Depends(get_gateway)):
    provider = await gateway.providers.get_provider(provider_id)
    if provider is None:
        raise ProviderNotFoundError(str(provider_id))

    await gateway.models.seed_common_models(provider.id, provider.name)
    models = await gateway.models.get_models(provider.id)
    return _ok([m.to_dict() for m in models])


# ============================================================
# Family defaults
# ============================================================

@admin_router.get("/defaults")
async def get_defaults():
    return _ok(PROVIDER_DEFAULTS)


@admin_router.get("/defaults/{provider_name}/models")
async def get_default_models(provider_name: str):
    return _ok(get_common_models(provider_name))


# ============================================================
# Local runtimes
# ============================================================

@admin_router.get("/ollama/models")
async def ollama_models(
    base_url: Optional[str] = Query(None, alias="baseUrl"),
    gateway: LLMGateway = Depends(get_gateway),
):
    try:
        models = await gateway.get_ollama_models(base_url)
    except Exception as e:
        logger.warning("Ollama model listing failed", base_url=base_url, error=str(e))
        return JSONResponse(content={
            "success": False,
            "error": _local_failure(e, "Failed to connect to Ollama. Please check if the service is running."),
            "data": [],
        })
    return _ok(models)


@admin_router.post("/ollama/pull")
async def ollama_pull(body: OllamaPullRequest, gateway: LLMGateway = Depends(get_gateway)):
    if not body.model_name:
        raise InvalidRequestError("Model name required", param="model_name")

    try:
        await gateway.pull_ollama_model(body.model_name, body.base_url)
    except Exception as e:
        logger.warning("Ollama pull failed", model=body.model_name, error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": _local_failure(e, "Failed to pull model. Please check if Ollama is running."),
            },
        )
    return _ok(message=f"Started pulling model: {body.model_name}")


@admin_router.get("/lmstudio/models")
async def lmstudio_models(
    base_url: Optional[str] = Query(None, alias="baseUrl"),
    gateway: LLMGateway = Depends(get_gateway),
):
    try:
        models = await gateway.get_lmstudio_models(base_url)
    except Exception as e:
        logger.warning("LM Studio model listing failed", base_url=base_url, error=str(e))
        return JSONResponse(content={
            "success": False,
            "error": _local_failure(e, "Failed to connect to LM Studio. Please check if the service is running."),
            "data": [],
        })
    return _ok(models)


# ============================================================
# Seeding & quick chat
# ============================================================

@admin_router.post("/seed")
async def seed_providers(gateway: LLMGateway = Depends(get_gateway)):
    await gateway.providers.seed_default_providers()
    providers: List[LLMProvider] = await gateway.providers.get_providers(include_disabled=True)
    return _ok([mask_provider(p) for p in providers], message="Default providers seeded")


@admin_router.post("/chat/test")
async def chat_test(
    body: ChatTestRequest,
    request: Request,
    gateway: LLMGateway = Depends(get_gateway),
):
    if not body.message:
        raise InvalidRequestError("Message required", param="message")

    completion = CompletionRequest(
        messages=[Message.user(body.message)],
        provider=body.provider,
        model=body.model,
    )
    response = await gateway.chat(completion, request_id=get_request_id(request))
    return _ok(response.to_dict())
