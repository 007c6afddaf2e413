"""
llmgateway - Database Schema

DDL for the provider registry. Applied idempotently at startup.
"""

from .connection import DatabasePool


PROVIDERS_TABLE = """
    CREATE TABLE IF NOT EXISTS llm_providers (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL,
        description TEXT,
        provider_type TEXT NOT NULL DEFAULT 'cloud',
        is_enabled BOOLEAN NOT NULL DEFAULT FALSE,
        is_default BOOLEAN NOT NULL DEFAULT FALSE,
        priority INTEGER NOT NULL DEFAULT 0,

        base_url TEXT,
        api_key TEXT,
        api_version TEXT,
        organization_id TEXT,
        project_id TEXT,

        default_model TEXT,
        default_model_id INTEGER,

        default_temperature DOUBLE PRECISION NOT NULL DEFAULT 0.7,
        default_max_tokens INTEGER NOT NULL DEFAULT 2048,
        default_top_p DOUBLE PRECISION NOT NULL DEFAULT 1.0,
        default_top_k INTEGER,
        default_frequency_penalty DOUBLE PRECISION NOT NULL DEFAULT 0,
        default_presence_penalty DOUBLE PRECISION NOT NULL DEFAULT 0,
        default_repeat_penalty DOUBLE PRECISION,

        max_context_length INTEGER,
        max_output_tokens INTEGER,
        default_context_length INTEGER,

        default_stop_sequences JSONB,
        default_response_format TEXT,

        request_timeout INTEGER NOT NULL DEFAULT 120000,
        connect_timeout INTEGER NOT NULL DEFAULT 30000,
        max_retries INTEGER NOT NULL DEFAULT 3,
        retry_delay INTEGER NOT NULL DEFAULT 1000,
        retry_backoff_multiplier DOUBLE PRECISION NOT NULL DEFAULT 2.0,

        rate_limit_rpm INTEGER,
        rate_limit_tpm INTEGER,
        rate_limit_rpd INTEGER,
        concurrency_limit INTEGER NOT NULL DEFAULT 5,

        supports_streaming BOOLEAN NOT NULL DEFAULT TRUE,
        default_streaming BOOLEAN NOT NULL DEFAULT FALSE,
        supports_vision BOOLEAN NOT NULL DEFAULT FALSE,
        supports_function_calling BOOLEAN NOT NULL DEFAULT FALSE,
        supports_json_mode BOOLEAN NOT NULL DEFAULT FALSE,
        supports_system_message BOOLEAN NOT NULL DEFAULT TRUE,
        supports_multiple_system_messages BOOLEAN NOT NULL DEFAULT FALSE,

        proxy_url TEXT,
        proxy_username TEXT,
        proxy_password TEXT,
        custom_headers JSONB,

        skip_tls_verify BOOLEAN NOT NULL DEFAULT FALSE,
        custom_ca_cert TEXT,

        health_check_enabled BOOLEAN NOT NULL DEFAULT TRUE,
        health_check_interval INTEGER NOT NULL DEFAULT 60000,
        last_health_check TIMESTAMPTZ,
        health_status TEXT NOT NULL DEFAULT 'unknown',
        last_error TEXT,
        consecutive_failures INTEGER NOT NULL DEFAULT 0,

        total_requests BIGINT NOT NULL DEFAULT 0,
        total_tokens_used BIGINT NOT NULL DEFAULT 0,
        total_errors BIGINT NOT NULL DEFAULT 0,
        average_latency INTEGER,

        metadata JSONB,
        notes TEXT,

        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

MODELS_TABLE = """
    CREATE TABLE IF NOT EXISTS llm_models (
        id SERIAL PRIMARY KEY,
        provider_id INTEGER NOT NULL REFERENCES llm_providers(id) ON DELETE CASCADE,
        model_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,

        model_type TEXT NOT NULL DEFAULT 'chat',
        is_enabled BOOLEAN NOT NULL DEFAULT TRUE,
        is_default BOOLEAN NOT NULL DEFAULT FALSE,

        context_length INTEGER,
        max_output_tokens INTEGER,

        default_temperature DOUBLE PRECISION,
        default_max_tokens INTEGER,
        default_top_p DOUBLE PRECISION,
        default_top_k INTEGER,

        supports_vision BOOLEAN NOT NULL DEFAULT FALSE,
        supports_function_calling BOOLEAN NOT NULL DEFAULT FALSE,
        supports_json_mode BOOLEAN NOT NULL DEFAULT FALSE,
        supports_streaming BOOLEAN NOT NULL DEFAULT TRUE,

        input_price_per_1m DOUBLE PRECISION,
        output_price_per_1m DOUBLE PRECISION,

        total_requests BIGINT NOT NULL DEFAULT 0,
        total_input_tokens BIGINT NOT NULL DEFAULT 0,
        total_output_tokens BIGINT NOT NULL DEFAULT 0,

        metadata JSONB,

        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),

        UNIQUE (provider_id, model_id)
    )
"""

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_llm_providers_enabled_priority "
    "ON llm_providers (is_enabled, priority DESC)",
    "CREATE INDEX IF NOT EXISTS idx_llm_models_provider ON llm_models (provider_id)",
)

SCHEMA_STATEMENTS = (PROVIDERS_TABLE, MODELS_TABLE) + INDEXES


async def ensure_schema(db: DatabasePool) -> None:
    """Create registry tables and indexes if they do not exist."""
    async with db.transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)
