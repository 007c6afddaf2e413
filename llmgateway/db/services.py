"""
llmgateway - Registry Services

Business logic for the provider registry: family-default merging on create,
partial updates, default-flag handling, seeding and counter updates.
Persistence is delegated to a ProviderStore.
"""

from typing import Any, Dict, List, Optional, Union

from ..core.catalog import (
    CAPABILITY_DEFAULTS,
    GLOBAL_DEFAULTS,
    SEED_PROVIDERS,
    get_common_models,
    get_provider_defaults,
)
from ..core.errors import (
    InvalidRequestError,
    ProviderConflictError,
    ProviderNotFoundError,
    RecordNotFoundError,
)
from ..core.models import ModelType, ProviderType
from ..observability.logging import TimedOperation, get_logger
from .models import (
    LLMModel,
    LLMProvider,
    PROVIDER_REQUIRED_FIELDS,
    PROVIDER_WRITABLE_FIELDS,
)
from .stores import MODEL_INSERT_FIELDS, ProviderStore

logger = get_logger(__name__)


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def parse_provider_ref(name_or_id: Union[str, int]) -> Union[str, int]:
    """Ints and numeric strings address providers by id, anything else by name."""
    if isinstance(name_or_id, int):
        return name_or_id
    text = str(name_or_id).strip()
    if text.isdigit():
        return int(text)
    return text


class ProviderService:
    """
    Service for provider registry operations.

    Handles:
    - Listing and lookup by name or id
    - Default provider resolution with priority fallback
    - Create with family defaults, partial update, hard delete
    - Bootstrap seeding and usage/health counters
    """

    def __init__(self, store: ProviderStore, cache=None):
        self.store = store
        self.cache = cache

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.invalidate()

    # ----- reads -----

    async def get_providers(self, include_disabled: bool = False) -> List[LLMProvider]:
        return await self.store.list_providers(include_disabled)

    async def get_provider(self, name_or_id: Union[str, int]) -> Optional[LLMProvider]:
        ref = parse_provider_ref(name_or_id)
        if isinstance(ref, int):
            return await self.store.get_provider(ref)
        return await self.store.get_provider_by_name(ref)

    async def get_default_provider(self) -> Optional[LLMProvider]:
        """
        Provider used when a request names none.

        The flagged default wins if it is enabled; otherwise the enabled
        provider with the highest priority. None when nothing is enabled.
        """
        return await self.store.get_default_provider()

    async def _require(self, provider_id: int) -> LLMProvider:
        provider = await self.store.get_provider(provider_id)
        if provider is None:
            raise ProviderNotFoundError(str(provider_id))
        return provider

    # ----- writes -----

    def build_provider_values(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge caller input over the family defaults for ``data["name"]``.

        Caller value wins, then the family default, then the global fallback.
        Provider type and capability flags always come from the family.
        """
        name = data["name"]
        defaults = get_provider_defaults(name)

        values: Dict[str, Any] = {
            "name": name,
            "display_name": data.get("display_name") or defaults.get("display_name") or name,
            "provider_type": defaults.get("provider_type") or ProviderType.CLOUD.value,
            "is_enabled": _first_set(data.get("is_enabled"), False),
            "is_default": _first_set(data.get("is_default"), False),
            "priority": _first_set(data.get("priority"), 0),
            "base_url": data.get("base_url") or defaults.get("base_url"),
            "default_model": data.get("default_model") or defaults.get("default_model"),
            "default_top_k": _first_set(data.get("default_top_k"), defaults.get("default_top_k")),
            "default_repeat_penalty": _first_set(
                data.get("default_repeat_penalty"), defaults.get("default_repeat_penalty")
            ),
        }

        for key, fallback in GLOBAL_DEFAULTS.items():
            values[key] = _first_set(data.get(key), defaults.get(key), fallback)

        for flag, fallback in CAPABILITY_DEFAULTS.items():
            values[flag] = _first_set(defaults.get(flag), fallback)

        for key in PROVIDER_WRITABLE_FIELDS:
            if key not in values and data.get(key) is not None:
                values[key] = data[key]

        return values

    async def create_provider(self, data: Dict[str, Any]) -> LLMProvider:
        name = data.get("name")
        if not name:
            raise InvalidRequestError("Provider name is required", param="name")

        if await self.store.get_provider_by_name(name) is not None:
            raise ProviderConflictError(name)

        values = self.build_provider_values(data)

        async with TimedOperation("provider.create", logger, extra={"provider": name}):
            provider = await self.store.create_provider(values)

        self._invalidate()
        logger.info(
            "Provider created",
            provider=provider.name,
            provider_id=provider.id,
            is_default=provider.is_default,
            is_enabled=provider.is_enabled,
        )
        return provider

    async def update_provider(self, provider_id: int, changes: Dict[str, Any]) -> LLMProvider:
        """
        Partial update: only keys present in ``changes`` are written.

        A key present with None (or an empty string) clears the column.
        Unknown keys are ignored.
        """
        updates: Dict[str, Any] = {}
        for key in PROVIDER_WRITABLE_FIELDS:
            if key not in changes:
                continue
            value = changes[key]
            if value == "":
                value = None
            if value is None and key in PROVIDER_REQUIRED_FIELDS:
                raise InvalidRequestError(f"{key} cannot be cleared", param=key)
            updates[key] = value

        provider = await self.store.update_provider(provider_id, updates)
        if provider is None:
            raise ProviderNotFoundError(str(provider_id))

        self._invalidate()
        logger.info(
            "Provider updated",
            provider=provider.name,
            provider_id=provider.id,
            fields=sorted(updates),
        )
        return provider

    async def delete_provider(self, provider_id: int) -> None:
        """Hard delete; the provider's models go with it."""
        deleted = await self.store.delete_provider(provider_id)
        if not deleted:
            raise ProviderNotFoundError(str(provider_id))

        self._invalidate()
        logger.info("Provider deleted", provider_id=provider_id)

    async def set_default_provider(self, provider_id: int) -> LLMProvider:
        return await self.update_provider(provider_id, {"is_default": True})

    async def toggle_provider(self, provider_id: int) -> LLMProvider:
        provider = await self._require(provider_id)
        return await self.update_provider(provider_id, {"is_enabled": not provider.is_enabled})

    async def seed_default_providers(self) -> List[str]:
        """
        Create any missing well-known providers, disabled and not default.

        Idempotent. Returns the names created by this call.
        """
        created = []
        for name, priority in SEED_PROVIDERS:
            if await self.store.get_provider_by_name(name) is not None:
                continue
            try:
                await self.create_provider({
                    "name": name,
                    "is_enabled": False,
                    "is_default": False,
                    "priority": priority,
                })
            except ProviderConflictError:
                # Created concurrently
                continue
            created.append(name)

        if created:
            logger.info("Seeded default providers", providers=created)
        return created

    # ----- counters -----

    async def record_usage(self, provider_id: int, tokens: int) -> None:
        await self.store.increment_usage(provider_id, max(0, int(tokens or 0)))

    async def record_error(self, provider_id: int) -> None:
        await self.store.increment_errors(provider_id)

    async def record_health_success(self, provider_id: int, latency_ms: int) -> None:
        await self.store.mark_healthy(provider_id, latency_ms)

    async def record_health_failure(self, provider_id: int, message: str) -> None:
        await self.store.mark_unhealthy(provider_id, message)


class ModelService:
    """Service for per-provider model records."""

    def __init__(self, store: ProviderStore, cache=None):
        self.store = store
        self.cache = cache

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.invalidate()

    async def get_models(self, provider_id: Optional[int] = None) -> List[LLMModel]:
        return await self.store.list_models(provider_id)

    async def create_model(self, data: Dict[str, Any]) -> LLMModel:
        """Register a model; ``is_default`` clears the provider's other default."""
        for required in ("provider_id", "model_id", "name"):
            if data.get(required) in (None, ""):
                raise InvalidRequestError(f"{required} is required", param=required)

        provider_id = int(data["provider_id"])
        if await self.store.get_provider(provider_id) is None:
            raise ProviderNotFoundError(str(provider_id))

        values = {k: data[k] for k in MODEL_INSERT_FIELDS if data.get(k) is not None}
        values["provider_id"] = provider_id
        values.setdefault("model_type", ModelType.CHAT.value)
        values.setdefault("is_enabled", True)
        values.setdefault("is_default", False)
        values.setdefault("supports_vision", False)
        values.setdefault("supports_function_calling", False)
        values.setdefault("supports_json_mode", False)
        values.setdefault("supports_streaming", True)

        model = await self.store.create_model(values)
        self._invalidate()
        logger.info(
            "Model created",
            provider_id=provider_id,
            model_id=model.model_id,
            is_default=model.is_default,
        )
        return model

    async def delete_model(self, model_row_id: int) -> None:
        if not await self.store.delete_model(model_row_id):
            raise RecordNotFoundError("model", model_row_id)
        self._invalidate()
        logger.info("Model deleted", model_row_id=model_row_id)

    async def record_usage(
        self,
        provider_id: int,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        """Bump the model row's counters; unregistered model ids are ignored."""
        await self.store.record_model_usage(
            provider_id, model_id, max(0, input_tokens or 0), max(0, output_tokens or 0)
        )

    async def seed_common_models(self, provider_id: int, provider_name: str) -> List[LLMModel]:
        """
        Upsert the common model list for a provider family.

        Re-running refreshes name and context length without duplicating rows.
        The first entry becomes default only if the provider has none yet.
        """
        if await self.store.get_provider(provider_id) is None:
            raise ProviderNotFoundError(str(provider_id))

        seeded = []
        for index, entry in enumerate(get_common_models(provider_name)):
            model = await self.store.upsert_model(
                provider_id,
                entry["model_id"],
                entry["name"],
                entry.get("context_length"),
                is_default=index == 0,
            )
            seeded.append(model)

        self._invalidate()
        logger.info(
            "Seeded common models",
            provider_id=provider_id,
            provider=provider_name,
            count=len(seeded),
        )
        return seeded
