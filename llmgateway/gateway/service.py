"""
llmgateway - Gateway Service

The chat() entry point: resolve provider and model, enforce the
minimal-parameter principle, dispatch to the family adapter and record
usage. Also hosts the local-runtime utilities for Ollama and LM Studio.
"""

import time
import uuid
from typing import Any, Dict, List, Optional, Union

from ..adapters import (
    AdapterConfig,
    OllamaAdapter,
    OpenAICompatibleAdapter,
    ProbeResult,
    get_adapter,
)
from ..core.catalog import get_provider_defaults
from ..core.errors import (
    GatewayException,
    MissingProviderKeyError,
    ModelNotFoundError,
    ProviderConfigError,
    ProviderNotEnabledError,
    ProviderNotFoundError,
    handle_provider_error,
)
from ..core.models import CompletionRequest, CompletionResponse, ProviderType
from ..core.parameters import validate_parameters
from ..db.models import LLMProvider
from ..db.services import ModelService, ProviderService, parse_provider_ref
from ..observability.logging import LogContext, get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import trace_provider_call
from .cache import DEFAULT_KEY, ProviderCache
from .health import HealthChecker

logger = get_logger(__name__)

# Local runtime listing calls
LOCAL_RUNTIME_TIMEOUT_MS = 10000


class LLMGateway:
    """
    Single entry point for completions.

    Flow: resolve provider (cache-backed) -> resolve model -> API key check
    -> validate parameters -> adapter.chat() -> usage counters.
    Configuration and validation failures never reach the network.
    """

    def __init__(
        self,
        providers: ProviderService,
        models: ModelService,
        cache: Optional[ProviderCache] = None,
    ):
        self.providers = providers
        self.models = models
        if cache is None:
            cache = providers.cache if providers.cache is not None else ProviderCache()
        # Registry writes invalidate the same cache chat() reads from
        providers.cache = cache
        models.cache = cache
        self.cache = cache
        self.health = HealthChecker(providers)

    # ============================================================
    # Resolution
    # ============================================================

    async def resolve_provider(self, name_or_id: Optional[Union[str, int]] = None) -> Optional[LLMProvider]:
        """Named provider, or the default when none is named. Served from cache when fresh."""
        if name_or_id is None or name_or_id == "":
            key = DEFAULT_KEY
        else:
            key = self.cache.key_for(parse_provider_ref(name_or_id))

        provider = self.cache.get(key)
        if provider is not None:
            return provider

        if key == DEFAULT_KEY:
            provider = await self.providers.get_default_provider()
        else:
            provider = await self.providers.get_provider(name_or_id)

        if provider is not None:
            self.cache.set(key, provider)
        return provider

    # ============================================================
    # Chat
    # ============================================================

    async def chat(self, request: CompletionRequest, request_id: str = "") -> CompletionResponse:
        """
        Run one completion.

        Raises:
            ProviderNotFoundError: nothing resolvable (404)
            ProviderNotEnabledError: resolved provider is disabled (400)
            ModelNotFoundError: no model requested and no default (404)
            MissingProviderKeyError: provider needs a key and has none (400)
            UnsupportedParameterError: caller set unsupported fields (400)
            GatewayException: backend failures, mapped by handle_provider_error
        """
        request_id = request_id or f"req_{uuid.uuid4().hex[:24]}"
        start_time = time.time()

        provider = await self.resolve_provider(request.provider)
        if provider is None:
            raise ProviderNotFoundError(request.provider or None, request_id)

        if not provider.is_enabled:
            raise ProviderNotEnabledError(provider.name, request_id)

        model = provider.resolve_model(request.model)
        if not model:
            raise ModelNotFoundError(provider.name, request_id=request_id)

        log_ctx = LogContext.get_current()
        if log_ctx is not None:
            log_ctx.update(provider=provider.name, model=model)

        metrics = get_metrics()

        try:
            adapter = get_adapter(provider)
        except ProviderConfigError as e:
            e.error.request_id = request_id
            await self.providers.record_error(provider.id)
            metrics.record_request(provider.name, model, "error", time.time() - start_time)
            logger.warning(
                "Provider client could not be built",
                provider=provider.name,
                request_id=request_id,
                error=e.error.message,
            )
            raise

        async with adapter:
            if adapter.requires_api_key and not provider.api_key:
                raise MissingProviderKeyError(provider.name, request_id)

            params = validate_parameters(provider.name, model, request, request_id)

            with trace_provider_call(provider.name, model, "chat") as span:
                span.set_attribute("llmgateway.request_id", request_id)
                span.set_attribute("llm.parameters", sorted(params))
                try:
                    response = await adapter.chat(model, request.messages, params, request_id)
                except GatewayException as e:
                    await self.providers.record_error(provider.id)
                    duration = time.time() - start_time
                    metrics.record_request(provider.name, model, "error", duration)
                    logger.warning(
                        "Completion failed",
                        provider=provider.name,
                        model=model,
                        request_id=request_id,
                        error_code=e.code,
                        status_code=e.status_code,
                        duration_ms=int(duration * 1000),
                    )
                    raise

                span.set_attribute("llm.tokens.input", response.usage.prompt_tokens)
                span.set_attribute("llm.tokens.output", response.usage.completion_tokens)

        await self.providers.record_usage(provider.id, response.usage.total_tokens)
        await self.models.record_usage(
            provider.id,
            model,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )

        response.response_time = int((time.time() - start_time) * 1000)

        metrics.record_request(provider.name, model, "success", response.response_time / 1000)
        metrics.record_tokens(
            provider.name,
            model,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )
        logger.info(
            "Completion succeeded",
            provider=provider.name,
            model=model,
            request_id=request_id,
            response_id=response.id,
            parameters=sorted(params),
            prompt_tokens=response.usage.prompt_tokens,
            completion_tokens=response.usage.completion_tokens,
            response_time_ms=response.response_time,
        )
        return response

    # ============================================================
    # Health
    # ============================================================

    async def test_provider(self, name_or_id: Union[str, int]) -> ProbeResult:
        return await self.health.test_provider(name_or_id)

    # ============================================================
    # Local runtimes
    # ============================================================

    @staticmethod
    def _local_config(provider_name: str, base_url: Optional[str]) -> AdapterConfig:
        return AdapterConfig(
            provider_name=provider_name,
            base_url=base_url or get_provider_defaults(provider_name).get("base_url"),
            provider_type=ProviderType.LOCAL.value,
            request_timeout=LOCAL_RUNTIME_TIMEOUT_MS,
            connect_timeout=LOCAL_RUNTIME_TIMEOUT_MS,
        )

    async def get_ollama_models(self, base_url: Optional[str] = None) -> List[Dict[str, Any]]:
        """Installed Ollama models ({name, size, modified_at, ...})."""
        async with OllamaAdapter(self._local_config("ollama", base_url)) as adapter:
            try:
                return await adapter.list_models(timeout=LOCAL_RUNTIME_TIMEOUT_MS / 1000)
            except Exception as e:
                raise handle_provider_error("ollama", e)

    async def pull_ollama_model(self, model_name: str, base_url: Optional[str] = None) -> Dict[str, Any]:
        """Download a model into Ollama. Not bounded by a timeout."""
        async with OllamaAdapter(self._local_config("ollama", base_url)) as adapter:
            try:
                result = await adapter.pull_model(model_name)
            except Exception as e:
                raise handle_provider_error("ollama", e)

        logger.info("Ollama model pulled", model=model_name, base_url=adapter.base_url)
        return result

    async def get_lmstudio_models(self, base_url: Optional[str] = None) -> List[Dict[str, Any]]:
        """Models loaded in LM Studio ({id, object})."""
        config = self._local_config("lmstudio", base_url)
        async with OpenAICompatibleAdapter(config) as adapter:
            try:
                return await adapter.list_models(timeout=LOCAL_RUNTIME_TIMEOUT_MS / 1000)
            except Exception as e:
                raise handle_provider_error("lmstudio", e)
