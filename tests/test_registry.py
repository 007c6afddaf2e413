"""
Tests for the provider registry services.

Runs ProviderService / ModelService against the in-memory store:
family-default merging, default-flag exclusivity, default resolution,
partial updates, seeding and counters.
"""

import pytest

from llmgateway.core.errors import (
    InvalidRequestError,
    ModelConflictError,
    ProviderConflictError,
    ProviderNotFoundError,
    RecordNotFoundError,
)
from llmgateway.db.services import parse_provider_ref


class TestParseProviderRef:
    """Test name/id addressing."""

    @pytest.mark.parametrize("value,expected", [
        (3, 3),
        ("3", 3),
        (" 12 ", 12),
        ("openai", "openai"),
        ("azure-openai", "azure-openai"),
    ])
    def test_parse(self, value, expected):
        assert parse_provider_ref(value) == expected


# ============================================================
# Create
# ============================================================

class TestCreateProvider:
    """Test family default merging on create."""

    @pytest.mark.asyncio
    async def test_family_defaults_applied(self, providers):
        provider = await providers.create_provider({"name": "openai"})

        assert provider.id is not None
        assert provider.display_name == "OpenAI"
        assert provider.provider_type == "cloud"
        assert provider.base_url == "https://api.openai.com/v1"
        assert provider.default_model == "gpt-4o-mini"
        assert provider.supports_vision is True
        assert provider.is_enabled is False
        assert provider.is_default is False
        assert provider.health_status == "unknown"

    @pytest.mark.asyncio
    async def test_caller_values_win(self, providers):
        provider = await providers.create_provider({
            "name": "openai",
            "display_name": "Primary",
            "default_model": "gpt-4o",
            "default_temperature": 0.2,
            "request_timeout": 5000,
            "api_key": "sk-live",
        })

        assert provider.display_name == "Primary"
        assert provider.default_model == "gpt-4o"
        assert provider.default_temperature == 0.2
        assert provider.request_timeout == 5000
        assert provider.api_key == "sk-live"

    @pytest.mark.asyncio
    async def test_local_family(self, providers):
        provider = await providers.create_provider({"name": "ollama"})

        assert provider.provider_type == "local"
        assert provider.base_url == "http://localhost:11434"
        assert provider.default_top_k == 40
        assert provider.default_repeat_penalty == 1.1
        assert provider.connect_timeout == 10000

    @pytest.mark.asyncio
    async def test_unknown_family_gets_global_fallbacks(self, providers):
        provider = await providers.create_provider({"name": "my-vllm", "base_url": "http://gpu:8000/v1"})

        assert provider.display_name == "my-vllm"
        assert provider.provider_type == "cloud"
        assert provider.base_url == "http://gpu:8000/v1"
        assert provider.default_model is None
        assert provider.default_max_tokens == 2048
        assert provider.concurrency_limit == 5
        assert provider.supports_streaming is True

    @pytest.mark.asyncio
    async def test_duplicate_name(self, providers):
        await providers.create_provider({"name": "openai"})

        with pytest.raises(ProviderConflictError) as exc_info:
            await providers.create_provider({"name": "openai"})
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_name_required(self, providers):
        with pytest.raises(InvalidRequestError):
            await providers.create_provider({"display_name": "nameless"})

    @pytest.mark.asyncio
    async def test_write_invalidates_cache(self, providers, cache):
        existing = await providers.create_provider({"name": "openai"})
        cache.set("openai", existing)

        await providers.create_provider({"name": "gemini"})

        assert len(cache) == 0


# ============================================================
# Default provider
# ============================================================

class TestDefaultProvider:
    """Test default-flag exclusivity and default resolution."""

    @pytest.mark.asyncio
    async def test_single_default_on_create(self, providers):
        first = await providers.create_provider({"name": "openai", "is_default": True})
        second = await providers.create_provider({"name": "gemini", "is_default": True})

        first = await providers.get_provider(first.id)
        assert first.is_default is False
        assert (await providers.get_provider(second.id)).is_default is True

    @pytest.mark.asyncio
    async def test_set_default_clears_others(self, providers):
        first = await providers.create_provider({"name": "openai", "is_default": True})
        second = await providers.create_provider({"name": "gemini"})

        await providers.set_default_provider(second.id)

        everything = await providers.get_providers(include_disabled=True)
        assert [p.name for p in everything if p.is_default] == ["gemini"]
        assert (await providers.get_provider(first.id)).is_default is False

    @pytest.mark.asyncio
    async def test_flagged_default_wins(self, providers):
        await providers.create_provider({"name": "openai", "is_enabled": True, "priority": 100})
        await providers.create_provider({"name": "gemini", "is_enabled": True, "is_default": True})

        default = await providers.get_default_provider()
        assert default.name == "gemini"

    @pytest.mark.asyncio
    async def test_disabled_default_falls_back_to_priority(self, providers):
        await providers.create_provider({"name": "openai", "is_default": True, "priority": 500})
        await providers.create_provider({"name": "gemini", "is_enabled": True, "priority": 10})
        await providers.create_provider({"name": "groq", "is_enabled": True, "priority": 90})

        default = await providers.get_default_provider()
        assert default.name == "groq"

    @pytest.mark.asyncio
    async def test_priority_ties_break_by_name(self, providers):
        await providers.create_provider({"name": "zeta", "is_enabled": True, "priority": 5})
        await providers.create_provider({"name": "alpha", "is_enabled": True, "priority": 5})

        assert (await providers.get_default_provider()).name == "alpha"

    @pytest.mark.asyncio
    async def test_nothing_enabled(self, providers):
        await providers.create_provider({"name": "openai", "is_default": True})
        assert await providers.get_default_provider() is None


# ============================================================
# Reads
# ============================================================

class TestListProviders:
    """Test listing and lookup."""

    @pytest.mark.asyncio
    async def test_enabled_only_by_default(self, providers):
        await providers.create_provider({"name": "openai", "is_enabled": True})
        await providers.create_provider({"name": "gemini"})

        assert [p.name for p in await providers.get_providers()] == ["openai"]
        assert len(await providers.get_providers(include_disabled=True)) == 2

    @pytest.mark.asyncio
    async def test_ordered_by_priority(self, providers):
        await providers.create_provider({"name": "ollama", "is_enabled": True, "priority": 50})
        await providers.create_provider({"name": "openai", "is_enabled": True, "priority": 100})

        assert [p.name for p in await providers.get_providers()] == ["openai", "ollama"]

    @pytest.mark.asyncio
    async def test_lookup_by_name_or_id(self, providers):
        created = await providers.create_provider({"name": "openai"})

        assert (await providers.get_provider("openai")).id == created.id
        assert (await providers.get_provider(created.id)).name == "openai"
        assert (await providers.get_provider(str(created.id))).name == "openai"
        assert await providers.get_provider("missing") is None

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, providers):
        created = await providers.create_provider({"name": "openai"})
        created.display_name = "mutated"

        assert (await providers.get_provider(created.id)).display_name == "OpenAI"


# ============================================================
# Update / delete
# ============================================================

class TestUpdateProvider:
    """Test partial update semantics."""

    @pytest.mark.asyncio
    async def test_only_named_fields_change(self, providers):
        created = await providers.create_provider({
            "name": "openai",
            "api_key": "sk-1",
            "default_model": "gpt-4o",
        })

        updated = await providers.update_provider(created.id, {"default_temperature": 0.1})

        assert updated.default_temperature == 0.1
        assert updated.api_key == "sk-1"
        assert updated.default_model == "gpt-4o"
        assert updated.base_url == "https://api.openai.com/v1"

    @pytest.mark.asyncio
    async def test_null_and_empty_clear(self, providers):
        created = await providers.create_provider({
            "name": "openai",
            "api_key": "sk-1",
            "organization_id": "org-1",
        })

        updated = await providers.update_provider(created.id, {"api_key": None, "organization_id": ""})

        assert updated.api_key is None
        assert updated.organization_id is None

    @pytest.mark.asyncio
    async def test_required_fields_cannot_be_cleared(self, providers):
        created = await providers.create_provider({"name": "openai"})

        with pytest.raises(InvalidRequestError):
            await providers.update_provider(created.id, {"display_name": None})

    @pytest.mark.asyncio
    async def test_unknown_and_immutable_keys_ignored(self, providers):
        created = await providers.create_provider({"name": "openai"})

        updated = await providers.update_provider(created.id, {
            "name": "renamed",
            "total_requests": 999,
            "bogus": 1,
        })

        assert updated.name == "openai"
        assert updated.total_requests == 0

    @pytest.mark.asyncio
    async def test_missing_provider(self, providers):
        with pytest.raises(ProviderNotFoundError):
            await providers.update_provider(404, {"priority": 1})

    @pytest.mark.asyncio
    async def test_toggle(self, providers):
        created = await providers.create_provider({"name": "openai"})

        assert (await providers.toggle_provider(created.id)).is_enabled is True
        assert (await providers.toggle_provider(created.id)).is_enabled is False

    @pytest.mark.asyncio
    async def test_toggle_missing(self, providers):
        with pytest.raises(ProviderNotFoundError):
            await providers.toggle_provider(404)


class TestDeleteProvider:
    """Test hard delete."""

    @pytest.mark.asyncio
    async def test_delete_cascades_models(self, providers, models):
        created = await providers.create_provider({"name": "openai"})
        await models.seed_common_models(created.id, "openai")

        await providers.delete_provider(created.id)

        assert await providers.get_provider(created.id) is None
        assert await models.get_models(created.id) == []

    @pytest.mark.asyncio
    async def test_delete_missing(self, providers):
        with pytest.raises(ProviderNotFoundError):
            await providers.delete_provider(404)


# ============================================================
# Seeding
# ============================================================

class TestSeedProviders:
    """Test bootstrap seeding."""

    @pytest.mark.asyncio
    async def test_seed_creates_disabled_providers(self, providers):
        created = await providers.seed_default_providers()

        assert created == ["openai", "gemini", "ollama", "lmstudio", "anthropic", "groq"]
        everything = await providers.get_providers(include_disabled=True)
        assert all(not p.is_enabled and not p.is_default for p in everything)
        assert {p.name: p.priority for p in everything}["openai"] == 100

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, providers):
        await providers.seed_default_providers()

        assert await providers.seed_default_providers() == []
        assert len(await providers.get_providers(include_disabled=True)) == 6

    @pytest.mark.asyncio
    async def test_seed_keeps_existing_configuration(self, providers):
        await providers.create_provider({"name": "openai", "is_enabled": True, "api_key": "sk-1"})

        created = await providers.seed_default_providers()

        assert "openai" not in created
        openai = await providers.get_provider("openai")
        assert openai.is_enabled is True
        assert openai.api_key == "sk-1"


# ============================================================
# Counters
# ============================================================

class TestCounters:
    """Test usage and health counters."""

    @pytest.mark.asyncio
    async def test_usage_and_errors(self, providers):
        created = await providers.create_provider({"name": "openai"})

        await providers.record_usage(created.id, 18)
        await providers.record_usage(created.id, -5)
        await providers.record_error(created.id)

        provider = await providers.get_provider(created.id)
        assert provider.total_requests == 2
        assert provider.total_tokens_used == 18
        assert provider.total_errors == 1

    @pytest.mark.asyncio
    async def test_health_transitions(self, providers):
        created = await providers.create_provider({"name": "ollama"})

        await providers.record_health_failure(created.id, "Connection refused")
        await providers.record_health_failure(created.id, "Connection refused")
        provider = await providers.get_provider(created.id)
        assert provider.health_status == "unhealthy"
        assert provider.consecutive_failures == 2
        assert provider.last_error == "Connection refused"

        await providers.record_health_success(created.id, 42)
        provider = await providers.get_provider(created.id)
        assert provider.health_status == "healthy"
        assert provider.consecutive_failures == 0
        assert provider.last_error is None
        assert provider.average_latency == 42
        assert provider.last_health_check is not None

    @pytest.mark.asyncio
    async def test_counters_do_not_invalidate_cache(self, providers, cache):
        created = await providers.create_provider({"name": "openai"})
        cache.set("openai", created)

        await providers.record_usage(created.id, 10)
        await providers.record_health_success(created.id, 5)

        assert len(cache) == 1


# ============================================================
# Models
# ============================================================

class TestModelService:
    """Test per-provider model records."""

    @pytest.mark.asyncio
    async def test_create_model(self, providers, models):
        provider = await providers.create_provider({"name": "openai"})

        model = await models.create_model({
            "provider_id": provider.id,
            "model_id": "gpt-4o",
            "name": "GPT-4o",
            "context_length": 128000,
        })

        assert model.id is not None
        assert model.model_type == "chat"
        assert model.is_enabled is True
        assert model.supports_streaming is True

    @pytest.mark.asyncio
    async def test_unknown_provider(self, models):
        with pytest.raises(ProviderNotFoundError):
            await models.create_model({"provider_id": 99, "model_id": "m", "name": "M"})

    @pytest.mark.asyncio
    async def test_required_fields(self, models):
        with pytest.raises(InvalidRequestError) as exc_info:
            await models.create_model({"provider_id": 1, "name": "M"})
        assert exc_info.value.error.param == "model_id"

    @pytest.mark.asyncio
    async def test_duplicate_model(self, providers, models):
        provider = await providers.create_provider({"name": "openai"})
        data = {"provider_id": provider.id, "model_id": "gpt-4o", "name": "GPT-4o"}
        await models.create_model(data)

        with pytest.raises(ModelConflictError):
            await models.create_model(data)

    @pytest.mark.asyncio
    async def test_default_model_exclusive_per_provider(self, providers, models):
        openai = await providers.create_provider({"name": "openai"})
        groq = await providers.create_provider({"name": "groq"})

        await models.create_model({"provider_id": openai.id, "model_id": "a", "name": "A", "is_default": True})
        await models.create_model({"provider_id": groq.id, "model_id": "g", "name": "G", "is_default": True})
        await models.create_model({"provider_id": openai.id, "model_id": "b", "name": "B", "is_default": True})

        defaults = [m.model_id for m in await models.get_models() if m.is_default]
        assert sorted(defaults) == ["b", "g"]

    @pytest.mark.asyncio
    async def test_delete_missing_model(self, models):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await models.delete_model(77)
        assert exc_info.value.code == "model_not_found"

    @pytest.mark.asyncio
    async def test_seed_common_models_is_upsert(self, providers, models):
        provider = await providers.create_provider({"name": "openai"})

        first = await models.seed_common_models(provider.id, "openai")
        second = await models.seed_common_models(provider.id, "openai")

        assert len(first) == len(second) == 7
        stored = await models.get_models(provider.id)
        assert len(stored) == 7
        assert [m.model_id for m in stored if m.is_default] == ["gpt-4o"]

    @pytest.mark.asyncio
    async def test_seed_keeps_existing_default(self, providers, models):
        provider = await providers.create_provider({"name": "openai"})
        await models.create_model({
            "provider_id": provider.id,
            "model_id": "ft:gpt-4o:acme",
            "name": "Fine-tuned",
            "is_default": True,
        })

        await models.seed_common_models(provider.id, "openai")

        defaults = [m.model_id for m in await models.get_models(provider.id) if m.is_default]
        assert defaults == ["ft:gpt-4o:acme"]

    @pytest.mark.asyncio
    async def test_seed_unknown_family_is_empty(self, providers, models):
        provider = await providers.create_provider({"name": "my-vllm"})
        assert await models.seed_common_models(provider.id, "my-vllm") == []

    @pytest.mark.asyncio
    async def test_record_usage(self, providers, models):
        provider = await providers.create_provider({"name": "openai"})
        await models.create_model({"provider_id": provider.id, "model_id": "gpt-4o", "name": "GPT-4o"})

        await models.record_usage(provider.id, "gpt-4o", 10, 8)
        await models.record_usage(provider.id, "unregistered", 1, 1)

        model = (await models.get_models(provider.id))[0]
        assert model.total_requests == 1
        assert model.total_input_tokens == 10
        assert model.total_output_tokens == 8

    @pytest.mark.asyncio
    async def test_provider_carries_models(self, providers, models):
        provider = await providers.create_provider({"name": "openai"})
        await models.create_model({
            "provider_id": provider.id,
            "model_id": "gpt-4o",
            "name": "GPT-4o",
            "is_default": True,
        })

        provider = await providers.get_provider(provider.id)
        assert [m.model_id for m in provider.models] == ["gpt-4o"]
        assert provider.default_model == "gpt-4o-mini"
        assert provider.resolve_model() == "gpt-4o-mini"
        assert provider.resolve_model("o1-mini") == "o1-mini"
