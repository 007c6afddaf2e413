"""
llmgateway - Registry Stores

Persistence for providers and models behind one interface.

PostgresProviderStore is the production store (asyncpg, secrets encrypted
at rest). MemoryProviderStore keeps everything in process and backs local
and test modes.
"""

import asyncio
import copy
import itertools
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from ..core.catalog import CAPABILITY_FIELDS
from ..core.errors import ModelConflictError, ProviderConflictError, RecordNotFoundError
from ..core.models import HealthStatus
from ..security import KeyEncryptor, default_encryptor_from_env
from .connection import DatabasePool
from .models import (
    LLMModel,
    LLMProvider,
    PROVIDER_JSON_FIELDS,
    PROVIDER_SECRET_FIELDS,
    PROVIDER_WRITABLE_FIELDS,
)


PROVIDER_INSERT_FIELDS = ("name", "provider_type") + PROVIDER_WRITABLE_FIELDS + CAPABILITY_FIELDS

MODEL_INSERT_FIELDS = (
    "provider_id",
    "model_id",
    "name",
    "description",
    "model_type",
    "is_enabled",
    "is_default",
    "context_length",
    "max_output_tokens",
    "default_temperature",
    "default_max_tokens",
    "default_top_p",
    "default_top_k",
    "supports_vision",
    "supports_function_calling",
    "supports_json_mode",
    "supports_streaming",
    "input_price_per_1m",
    "output_price_per_1m",
    "metadata",
)


class ProviderStore(ABC):
    """Interface for provider/model persistence."""

    # Providers

    @abstractmethod
    async def list_providers(self, include_disabled: bool = False) -> List[LLMProvider]:
        """Providers ordered by priority desc, then name asc."""

    @abstractmethod
    async def get_provider(self, provider_id: int) -> Optional[LLMProvider]:
        ...

    @abstractmethod
    async def get_provider_by_name(self, name: str) -> Optional[LLMProvider]:
        ...

    @abstractmethod
    async def get_default_provider(self) -> Optional[LLMProvider]:
        """Flagged default if enabled, else the highest-priority enabled provider."""

    @abstractmethod
    async def create_provider(self, values: Dict[str, Any]) -> LLMProvider:
        """Insert a provider; clears other defaults in the same transaction."""

    @abstractmethod
    async def update_provider(
        self,
        provider_id: int,
        changes: Dict[str, Any],
    ) -> Optional[LLMProvider]:
        """Write only the given columns. None if the provider does not exist."""

    @abstractmethod
    async def delete_provider(self, provider_id: int) -> bool:
        ...

    @abstractmethod
    async def increment_usage(self, provider_id: int, tokens: int) -> None:
        ...

    @abstractmethod
    async def increment_errors(self, provider_id: int) -> None:
        ...

    @abstractmethod
    async def mark_healthy(self, provider_id: int, latency_ms: int) -> None:
        ...

    @abstractmethod
    async def mark_unhealthy(self, provider_id: int, error: str) -> None:
        ...

    # Models

    @abstractmethod
    async def list_models(self, provider_id: Optional[int] = None) -> List[LLMModel]:
        """Models ordered default first, then name."""

    @abstractmethod
    async def create_model(self, values: Dict[str, Any]) -> LLMModel:
        ...

    @abstractmethod
    async def delete_model(self, model_row_id: int) -> bool:
        ...

    @abstractmethod
    async def upsert_model(
        self,
        provider_id: int,
        model_id: str,
        name: str,
        context_length: Optional[int],
        is_default: bool,
    ) -> LLMModel:
        """
        Insert or refresh a model by (provider_id, model_id).

        On conflict only name and context length change. ``is_default`` is
        honored on insert only, and only when the provider has no default yet.
        """

    @abstractmethod
    async def record_model_usage(
        self,
        provider_id: int,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        ...


# ============================================================
# PostgreSQL
# ============================================================

class PostgresProviderStore(ProviderStore):
    """
    asyncpg-backed store.

    Default-flag exclusivity runs in the same transaction as the write that
    sets the flag.
    """

    def __init__(self, db: DatabasePool, encryptor: Optional[KeyEncryptor] = None):
        self.db = db
        self._encryptor = encryptor or default_encryptor_from_env()

    # ----- encoding -----

    async def _encode(self, column: str, value: Any) -> Any:
        if value is None:
            return None
        if column in PROVIDER_SECRET_FIELDS:
            return await asyncio.to_thread(self._encryptor.encrypt, value) if value else None
        if column in PROVIDER_JSON_FIELDS:
            return json.dumps(value)
        return value

    async def _decode_provider(self, record, models: Optional[List[LLMModel]] = None) -> LLMProvider:
        # Encryptor calls run in a worker thread
        provider = LLMProvider.from_record(record, models)
        for column in PROVIDER_SECRET_FIELDS:
            value = getattr(provider, column)
            if value:
                setattr(provider, column, await asyncio.to_thread(self._encryptor.decrypt, value))
        return provider

    async def _models_for(self, executor, provider_ids: List[int]) -> Dict[int, List[LLMModel]]:
        grouped: Dict[int, List[LLMModel]] = {pid: [] for pid in provider_ids}
        if not provider_ids:
            return grouped

        query = """
            SELECT * FROM llm_models
            WHERE provider_id = ANY($1::int[])
            ORDER BY is_default DESC, name
        """
        records = await executor.fetch(query, provider_ids)
        for record in records:
            model = LLMModel.from_record(record)
            grouped.setdefault(model.provider_id, []).append(model)
        return grouped

    async def _hydrate(self, records: Iterable, executor=None) -> List[LLMProvider]:
        records = list(records)
        models = await self._models_for(executor or self.db, [r["id"] for r in records])
        return [await self._decode_provider(r, models.get(r["id"], [])) for r in records]

    async def _hydrate_one(self, record, executor=None) -> Optional[LLMProvider]:
        if record is None:
            return None
        providers = await self._hydrate([record], executor)
        return providers[0]

    # ----- providers -----

    async def list_providers(self, include_disabled: bool = False) -> List[LLMProvider]:
        where = "" if include_disabled else "WHERE is_enabled = TRUE"
        query = f"""
            SELECT * FROM llm_providers
            {where}
            ORDER BY priority DESC, name ASC
        """
        records = await self.db.fetch(query)
        return await self._hydrate(records)

    async def get_provider(self, provider_id: int) -> Optional[LLMProvider]:
        record = await self.db.fetchrow(
            "SELECT * FROM llm_providers WHERE id = $1", provider_id
        )
        return await self._hydrate_one(record)

    async def get_provider_by_name(self, name: str) -> Optional[LLMProvider]:
        record = await self.db.fetchrow(
            "SELECT * FROM llm_providers WHERE name = $1", name
        )
        return await self._hydrate_one(record)

    async def get_default_provider(self) -> Optional[LLMProvider]:
        query = """
            SELECT * FROM llm_providers
            WHERE is_default = TRUE AND is_enabled = TRUE
            LIMIT 1
        """
        record = await self.db.fetchrow(query)
        if record is None:
            fallback = """
                SELECT * FROM llm_providers
                WHERE is_enabled = TRUE
                ORDER BY priority DESC, name ASC
                LIMIT 1
            """
            record = await self.db.fetchrow(fallback)
        return await self._hydrate_one(record)

    async def create_provider(self, values: Dict[str, Any]) -> LLMProvider:
        columns = [c for c in PROVIDER_INSERT_FIELDS if c in values]
        placeholders = [f"${i}" for i in range(1, len(columns) + 1)]
        args = [await self._encode(c, values[c]) for c in columns]

        query = f"""
            INSERT INTO llm_providers ({', '.join(columns)})
            VALUES ({', '.join(placeholders)})
            RETURNING *
        """

        async with self.db.transaction() as conn:
            if values.get("is_default"):
                await conn.execute(
                    "UPDATE llm_providers SET is_default = FALSE WHERE is_default = TRUE"
                )
            try:
                record = await conn.fetchrow(query, *args)
            except asyncpg.UniqueViolationError as exc:
                raise ProviderConflictError(values["name"]) from exc

        return await self._decode_provider(record, [])

    async def update_provider(
        self,
        provider_id: int,
        changes: Dict[str, Any],
    ) -> Optional[LLMProvider]:
        updates = []
        values = []
        param_num = 1

        for column in PROVIDER_WRITABLE_FIELDS:
            if column not in changes:
                continue
            updates.append(f"{column} = ${param_num}")
            values.append(await self._encode(column, changes[column]))
            param_num += 1

        if not updates:
            return await self.get_provider(provider_id)

        updates.append("updated_at = NOW()")
        values.append(provider_id)
        query = f"""
            UPDATE llm_providers
            SET {', '.join(updates)}
            WHERE id = ${param_num}
            RETURNING *
        """

        async with self.db.transaction() as conn:
            if changes.get("is_default"):
                await conn.execute(
                    "UPDATE llm_providers SET is_default = FALSE "
                    "WHERE is_default = TRUE AND id <> $1",
                    provider_id,
                )
            record = await conn.fetchrow(query, *values)
            return await self._hydrate_one(record, conn)

    async def delete_provider(self, provider_id: int) -> bool:
        query = "DELETE FROM llm_providers WHERE id = $1 RETURNING id"
        result = await self.db.fetchrow(query, provider_id)
        return result is not None

    async def increment_usage(self, provider_id: int, tokens: int) -> None:
        query = """
            UPDATE llm_providers
            SET total_requests = total_requests + 1,
                total_tokens_used = total_tokens_used + $2
            WHERE id = $1
        """
        await self.db.execute(query, provider_id, tokens)

    async def increment_errors(self, provider_id: int) -> None:
        query = """
            UPDATE llm_providers SET total_errors = total_errors + 1
            WHERE id = $1
        """
        await self.db.execute(query, provider_id)

    async def mark_healthy(self, provider_id: int, latency_ms: int) -> None:
        query = """
            UPDATE llm_providers
            SET last_health_check = NOW(),
                health_status = 'healthy',
                last_error = NULL,
                consecutive_failures = 0,
                average_latency = $2
            WHERE id = $1
        """
        await self.db.execute(query, provider_id, latency_ms)

    async def mark_unhealthy(self, provider_id: int, error: str) -> None:
        query = """
            UPDATE llm_providers
            SET last_health_check = NOW(),
                health_status = 'unhealthy',
                last_error = $2,
                consecutive_failures = consecutive_failures + 1
            WHERE id = $1
        """
        await self.db.execute(query, provider_id, error)

    # ----- models -----

    async def list_models(self, provider_id: Optional[int] = None) -> List[LLMModel]:
        if provider_id is None:
            records = await self.db.fetch(
                "SELECT * FROM llm_models ORDER BY is_default DESC, name"
            )
        else:
            query = """
                SELECT * FROM llm_models
                WHERE provider_id = $1
                ORDER BY is_default DESC, name
            """
            records = await self.db.fetch(query, provider_id)
        return [LLMModel.from_record(r) for r in records]

    async def create_model(self, values: Dict[str, Any]) -> LLMModel:
        columns = [c for c in MODEL_INSERT_FIELDS if c in values]
        placeholders = [f"${i}" for i in range(1, len(columns) + 1)]
        args = [
            json.dumps(values[c]) if c == "metadata" and values[c] is not None else values[c]
            for c in columns
        ]

        query = f"""
            INSERT INTO llm_models ({', '.join(columns)})
            VALUES ({', '.join(placeholders)})
            RETURNING *
        """

        async with self.db.transaction() as conn:
            if values.get("is_default"):
                await conn.execute(
                    "UPDATE llm_models SET is_default = FALSE "
                    "WHERE provider_id = $1 AND is_default = TRUE",
                    values["provider_id"],
                )
            try:
                record = await conn.fetchrow(query, *args)
            except asyncpg.UniqueViolationError as exc:
                raise ModelConflictError(values["provider_id"], values["model_id"]) from exc
            except asyncpg.ForeignKeyViolationError as exc:
                raise RecordNotFoundError("provider", values["provider_id"]) from exc

        return LLMModel.from_record(record)

    async def delete_model(self, model_row_id: int) -> bool:
        query = "DELETE FROM llm_models WHERE id = $1 RETURNING id"
        result = await self.db.fetchrow(query, model_row_id)
        return result is not None

    async def upsert_model(
        self,
        provider_id: int,
        model_id: str,
        name: str,
        context_length: Optional[int],
        is_default: bool,
    ) -> LLMModel:
        query = """
            INSERT INTO llm_models (
                provider_id, model_id, name, context_length, is_enabled, is_default
            )
            VALUES (
                $1, $2, $3, $4, TRUE,
                $5 AND NOT EXISTS (
                    SELECT 1 FROM llm_models WHERE provider_id = $1 AND is_default = TRUE
                )
            )
            ON CONFLICT (provider_id, model_id)
            DO UPDATE SET
                name = EXCLUDED.name,
                context_length = EXCLUDED.context_length,
                updated_at = NOW()
            RETURNING *
        """
        record = await self.db.fetchrow(
            query, provider_id, model_id, name, context_length, is_default
        )
        return LLMModel.from_record(record)

    async def record_model_usage(
        self,
        provider_id: int,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        query = """
            UPDATE llm_models
            SET total_requests = total_requests + 1,
                total_input_tokens = total_input_tokens + $3,
                total_output_tokens = total_output_tokens + $4
            WHERE provider_id = $1 AND model_id = $2
        """
        await self.db.execute(query, provider_id, model_id, input_tokens, output_tokens)


# ============================================================
# In-memory
# ============================================================

def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryProviderStore(ProviderStore):
    """
    Process-local store for local/test modes.

    Every method runs without awaiting, so each call is atomic on the
    event loop. Returned records are copies.
    """

    def __init__(self):
        self._providers: Dict[int, LLMProvider] = {}
        self._models: Dict[int, LLMModel] = {}
        self._provider_ids = itertools.count(1)
        self._model_ids = itertools.count(1)

    def _snapshot(self, provider: LLMProvider) -> LLMProvider:
        result = copy.deepcopy(provider)
        result.models = self._sorted_models(
            m for m in self._models.values() if m.provider_id == provider.id
        )
        return result

    @staticmethod
    def _sorted_models(models: Iterable[LLMModel]) -> List[LLMModel]:
        return [
            copy.deepcopy(m)
            for m in sorted(models, key=lambda m: (not m.is_default, m.name))
        ]

    @staticmethod
    def _by_priority(providers: Iterable[LLMProvider]) -> List[LLMProvider]:
        return sorted(providers, key=lambda p: (-p.priority, p.name))

    # ----- providers -----

    async def list_providers(self, include_disabled: bool = False) -> List[LLMProvider]:
        providers = [
            p for p in self._providers.values()
            if include_disabled or p.is_enabled
        ]
        return [self._snapshot(p) for p in self._by_priority(providers)]

    async def get_provider(self, provider_id: int) -> Optional[LLMProvider]:
        provider = self._providers.get(provider_id)
        return self._snapshot(provider) if provider else None

    async def get_provider_by_name(self, name: str) -> Optional[LLMProvider]:
        for provider in self._providers.values():
            if provider.name == name:
                return self._snapshot(provider)
        return None

    async def get_default_provider(self) -> Optional[LLMProvider]:
        for provider in self._providers.values():
            if provider.is_default and provider.is_enabled:
                return self._snapshot(provider)

        enabled = self._by_priority(p for p in self._providers.values() if p.is_enabled)
        return self._snapshot(enabled[0]) if enabled else None

    async def create_provider(self, values: Dict[str, Any]) -> LLMProvider:
        name = values["name"]
        if any(p.name == name for p in self._providers.values()):
            raise ProviderConflictError(name)

        data = {c: copy.deepcopy(values[c]) for c in PROVIDER_INSERT_FIELDS if c in values}
        if data.get("custom_headers") is None:
            data.pop("custom_headers", None)
        if data.get("metadata") is None:
            data.pop("metadata", None)

        provider = LLMProvider(id=next(self._provider_ids), **data)
        provider.created_at = provider.updated_at = _now()

        if provider.is_default:
            for other in self._providers.values():
                other.is_default = False

        self._providers[provider.id] = provider
        return self._snapshot(provider)

    async def update_provider(
        self,
        provider_id: int,
        changes: Dict[str, Any],
    ) -> Optional[LLMProvider]:
        provider = self._providers.get(provider_id)
        if provider is None:
            return None

        if changes.get("is_default"):
            for other in self._providers.values():
                if other.id != provider_id:
                    other.is_default = False

        for column in PROVIDER_WRITABLE_FIELDS:
            if column in changes:
                value = copy.deepcopy(changes[column])
                if value is None and column in ("custom_headers", "metadata"):
                    value = {}
                setattr(provider, column, value)
        provider.updated_at = _now()
        return self._snapshot(provider)

    async def delete_provider(self, provider_id: int) -> bool:
        if self._providers.pop(provider_id, None) is None:
            return False
        self._models = {
            mid: m for mid, m in self._models.items() if m.provider_id != provider_id
        }
        return True

    async def increment_usage(self, provider_id: int, tokens: int) -> None:
        provider = self._providers.get(provider_id)
        if provider is not None:
            provider.total_requests += 1
            provider.total_tokens_used += tokens

    async def increment_errors(self, provider_id: int) -> None:
        provider = self._providers.get(provider_id)
        if provider is not None:
            provider.total_errors += 1

    async def mark_healthy(self, provider_id: int, latency_ms: int) -> None:
        provider = self._providers.get(provider_id)
        if provider is not None:
            provider.last_health_check = _now()
            provider.health_status = HealthStatus.HEALTHY.value
            provider.last_error = None
            provider.consecutive_failures = 0
            provider.average_latency = latency_ms

    async def mark_unhealthy(self, provider_id: int, error: str) -> None:
        provider = self._providers.get(provider_id)
        if provider is not None:
            provider.last_health_check = _now()
            provider.health_status = HealthStatus.UNHEALTHY.value
            provider.last_error = error
            provider.consecutive_failures += 1

    # ----- models -----

    async def list_models(self, provider_id: Optional[int] = None) -> List[LLMModel]:
        return self._sorted_models(
            m for m in self._models.values()
            if provider_id is None or m.provider_id == provider_id
        )

    def _find_model(self, provider_id: int, model_id: str) -> Optional[LLMModel]:
        for model in self._models.values():
            if model.provider_id == provider_id and model.model_id == model_id:
                return model
        return None

    async def create_model(self, values: Dict[str, Any]) -> LLMModel:
        provider_id = values["provider_id"]
        if provider_id not in self._providers:
            raise RecordNotFoundError("provider", provider_id)
        if self._find_model(provider_id, values["model_id"]) is not None:
            raise ModelConflictError(provider_id, values["model_id"])

        data = {c: copy.deepcopy(values[c]) for c in MODEL_INSERT_FIELDS if c in values}
        if data.get("metadata") is None:
            data.pop("metadata", None)

        model = LLMModel(id=next(self._model_ids), **data)
        model.created_at = model.updated_at = _now()

        if model.is_default:
            for other in self._models.values():
                if other.provider_id == provider_id:
                    other.is_default = False

        self._models[model.id] = model
        return copy.deepcopy(model)

    async def delete_model(self, model_row_id: int) -> bool:
        return self._models.pop(model_row_id, None) is not None

    async def upsert_model(
        self,
        provider_id: int,
        model_id: str,
        name: str,
        context_length: Optional[int],
        is_default: bool,
    ) -> LLMModel:
        existing = self._find_model(provider_id, model_id)
        if existing is not None:
            existing.name = name
            existing.context_length = context_length
            existing.updated_at = _now()
            return copy.deepcopy(existing)

        has_default = any(
            m.is_default for m in self._models.values() if m.provider_id == provider_id
        )
        return await self.create_model({
            "provider_id": provider_id,
            "model_id": model_id,
            "name": name,
            "context_length": context_length,
            "is_enabled": True,
            "is_default": is_default and not has_default,
        })

    async def record_model_usage(
        self,
        provider_id: int,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        model = self._find_model(provider_id, model_id)
        if model is not None:
            model.total_requests += 1
            model.total_input_tokens += input_tokens
            model.total_output_tokens += output_tokens
