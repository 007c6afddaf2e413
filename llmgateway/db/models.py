"""
llmgateway - Database Models

Dataclass models for the provider registry.
"""

import json
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.models import HealthStatus, ModelType, ProviderType


def _json_value(value: Any, default: Any) -> Any:
    """Parse a JSON column that may arrive as text or already decoded."""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value) if value else default
    return value


@dataclass
class LLMModel:
    """A model registered under a provider."""

    provider_id: int
    model_id: str
    name: str
    id: Optional[int] = None
    description: Optional[str] = None
    model_type: str = ModelType.CHAT.value
    is_enabled: bool = True
    is_default: bool = False

    context_length: Optional[int] = None
    max_output_tokens: Optional[int] = None

    default_temperature: Optional[float] = None
    default_max_tokens: Optional[int] = None
    default_top_p: Optional[float] = None
    default_top_k: Optional[int] = None

    supports_vision: bool = False
    supports_function_calling: bool = False
    supports_json_mode: bool = False
    supports_streaming: bool = True

    input_price_per_1m: Optional[float] = None
    output_price_per_1m: Optional[float] = None

    total_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0

    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "LLMModel":
        """Create LLMModel from database record."""
        data = {f.name: record[f.name] for f in fields(cls) if f.name in record.keys()}
        data["metadata"] = _json_value(data.get("metadata"), {})
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        for key in ("created_at", "updated_at"):
            if result[key] is not None:
                result[key] = result[key].isoformat()
        return result


# Columns an operator may set on create/update
PROVIDER_WRITABLE_FIELDS = (
    "display_name",
    "description",
    "is_enabled",
    "is_default",
    "priority",
    "base_url",
    "api_key",
    "api_version",
    "organization_id",
    "project_id",
    "default_model",
    "default_temperature",
    "default_max_tokens",
    "default_top_p",
    "default_top_k",
    "default_frequency_penalty",
    "default_presence_penalty",
    "default_repeat_penalty",
    "max_context_length",
    "max_output_tokens",
    "default_stop_sequences",
    "default_response_format",
    "request_timeout",
    "connect_timeout",
    "max_retries",
    "retry_delay",
    "retry_backoff_multiplier",
    "rate_limit_rpm",
    "rate_limit_tpm",
    "rate_limit_rpd",
    "concurrency_limit",
    "default_streaming",
    "proxy_url",
    "proxy_username",
    "proxy_password",
    "custom_headers",
    "skip_tls_verify",
    "custom_ca_cert",
    "health_check_enabled",
    "health_check_interval",
    "metadata",
    "notes",
)

# NOT NULL columns; an update may change them but never clear them
PROVIDER_REQUIRED_FIELDS = (
    "display_name",
    "is_enabled",
    "is_default",
    "priority",
    "default_temperature",
    "default_max_tokens",
    "default_top_p",
    "default_frequency_penalty",
    "default_presence_penalty",
    "request_timeout",
    "connect_timeout",
    "max_retries",
    "retry_delay",
    "retry_backoff_multiplier",
    "concurrency_limit",
    "default_streaming",
    "skip_tls_verify",
    "health_check_enabled",
    "health_check_interval",
)

# Stored as JSONB
PROVIDER_JSON_FIELDS = ("default_stop_sequences", "custom_headers", "metadata")

# Encrypted at rest, masked in API responses
PROVIDER_SECRET_FIELDS = ("api_key", "proxy_password")


@dataclass
class LLMProvider:
    """
    A configured LLM backend.

    Retry policy and rate-limit columns are descriptive only: they are
    stored and returned but nothing in the dispatch path reads them.
    """

    name: str
    display_name: str
    id: Optional[int] = None
    description: Optional[str] = None
    provider_type: str = ProviderType.CLOUD.value
    is_enabled: bool = False
    is_default: bool = False
    priority: int = 0

    # Connection
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    api_version: Optional[str] = None
    organization_id: Optional[str] = None
    project_id: Optional[str] = None

    # Default model
    default_model: Optional[str] = None
    default_model_id: Optional[int] = None

    # Generation defaults
    default_temperature: float = 0.7
    default_max_tokens: int = 2048
    default_top_p: float = 1.0
    default_top_k: Optional[int] = None
    default_frequency_penalty: float = 0.0
    default_presence_penalty: float = 0.0
    default_repeat_penalty: Optional[float] = None

    # Context & limits
    max_context_length: Optional[int] = None
    max_output_tokens: Optional[int] = None
    default_context_length: Optional[int] = None

    # Stop sequences & format
    default_stop_sequences: Optional[List[str]] = None
    default_response_format: Optional[str] = None

    # Timeouts (ms) & retry policy
    request_timeout: int = 120000
    connect_timeout: int = 30000
    max_retries: int = 3
    retry_delay: int = 1000
    retry_backoff_multiplier: float = 2.0

    # Rate limiting
    rate_limit_rpm: Optional[int] = None
    rate_limit_tpm: Optional[int] = None
    rate_limit_rpd: Optional[int] = None
    concurrency_limit: int = 5

    # Streaming & features
    supports_streaming: bool = True
    default_streaming: bool = False
    supports_vision: bool = False
    supports_function_calling: bool = False
    supports_json_mode: bool = False
    supports_system_message: bool = True
    supports_multiple_system_messages: bool = False

    # Proxy & network
    proxy_url: Optional[str] = None
    proxy_username: Optional[str] = None
    proxy_password: Optional[str] = None
    custom_headers: Dict[str, str] = field(default_factory=dict)

    # TLS
    skip_tls_verify: bool = False
    custom_ca_cert: Optional[str] = None

    # Health
    health_check_enabled: bool = True
    health_check_interval: int = 60000
    last_health_check: Optional[datetime] = None
    health_status: str = HealthStatus.UNKNOWN.value
    last_error: Optional[str] = None
    consecutive_failures: int = 0

    # Usage
    total_requests: int = 0
    total_tokens_used: int = 0
    total_errors: int = 0
    average_latency: Optional[int] = None

    # Metadata
    metadata: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    models: List[LLMModel] = field(default_factory=list)

    @classmethod
    def from_record(cls, record, models: Optional[List[LLMModel]] = None) -> "LLMProvider":
        """Create LLMProvider from database record."""
        keys = set(record.keys())
        data = {
            f.name: record[f.name]
            for f in fields(cls)
            if f.name in keys and f.name != "models"
        }
        data["default_stop_sequences"] = _json_value(data.get("default_stop_sequences"), None)
        data["custom_headers"] = _json_value(data.get("custom_headers"), {})
        data["metadata"] = _json_value(data.get("metadata"), {})
        return cls(models=list(models or []), **data)

    @property
    def is_cloud(self) -> bool:
        return self.provider_type == ProviderType.CLOUD.value

    @property
    def enabled_models(self) -> List[LLMModel]:
        return [m for m in self.models if m.is_enabled]

    def resolve_model(self, requested: Optional[str] = None) -> Optional[str]:
        """Requested model, else the provider default, else the default model row."""
        if requested:
            return requested
        if self.default_model:
            return self.default_model
        for model in self.enabled_models:
            if model.is_default:
                return model.model_id
        return None

    def to_dict(self, include_models: bool = True) -> Dict[str, Any]:
        """Plain dict including secrets; callers mask before exposing."""
        result = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "models"
        }
        for key in ("last_health_check", "created_at", "updated_at"):
            if result[key] is not None:
                result[key] = result[key].isoformat()
        if include_models:
            result["models"] = [m.to_dict() for m in self.models]
        return result
