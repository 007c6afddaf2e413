"""
llmgateway - API Request Models

Pydantic models for request validation. Generation parameters accept
both snake_case and camelCase names (maxTokens, topP, ...).
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.models import CompletionRequest, Message, Role


PROXY_SCHEMES = {"http", "https"}


# ============================================================
# Chat
# ============================================================

class RoleEnum(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class MessageInput(BaseModel):
    role: RoleEnum
    content: str

    def to_message(self) -> Message:
        return Message(role=Role(self.role.value), content=self.content)


class ChatRequest(BaseModel):
    """
    Body of POST /v1/llm/chat.

    Omitted generation parameters stay None and are never forwarded.
    """
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    messages: List[MessageInput] = Field(..., min_length=1)
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1, alias="maxTokens")
    top_p: Optional[float] = Field(default=None, ge=0, le=1, alias="topP")
    top_k: Optional[int] = Field(default=None, ge=1, alias="topK")
    frequency_penalty: Optional[float] = Field(default=None, ge=-2, le=2, alias="frequencyPenalty")
    presence_penalty: Optional[float] = Field(default=None, ge=-2, le=2, alias="presencePenalty")
    repeat_penalty: Optional[float] = Field(default=None, ge=0, alias="repeatPenalty")
    stop: Optional[List[str]] = None
    stream: bool = False

    @field_validator("stop", mode="before")
    @classmethod
    def normalize_stop(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("provider", mode="before")
    @classmethod
    def provider_as_text(cls, v):
        # Numeric ids are accepted as well as names
        if isinstance(v, int):
            return str(v)
        return v

    def to_completion_request(self) -> CompletionRequest:
        return CompletionRequest(
            messages=[m.to_message() for m in self.messages],
            provider=self.provider,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            top_k=self.top_k,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
            repeat_penalty=self.repeat_penalty,
            stop=self.stop,
            stream=self.stream,
        )


class ChatTestRequest(BaseModel):
    """Body of POST /v1/llm/chat/test."""
    model_config = ConfigDict(protected_namespaces=())

    message: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None


# ============================================================
# Providers
# ============================================================

class ProviderFields(BaseModel):
    """
    Writable provider columns.

    Routes read these with model_dump(exclude_unset=True) so that an absent
    key leaves the column unchanged and an explicit null clears it.
    """
    model_config = ConfigDict(extra="ignore")

    display_name: Optional[str] = None
    description: Optional[str] = None
    is_enabled: Optional[bool] = None
    is_default: Optional[bool] = None
    priority: Optional[int] = None

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    api_version: Optional[str] = None
    organization_id: Optional[str] = None
    project_id: Optional[str] = None

    default_model: Optional[str] = None
    default_temperature: Optional[float] = Field(default=None, ge=0, le=2)
    default_max_tokens: Optional[int] = Field(default=None, ge=1)
    default_top_p: Optional[float] = Field(default=None, ge=0, le=1)
    default_top_k: Optional[int] = Field(default=None, ge=1)
    default_frequency_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    default_presence_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    default_repeat_penalty: Optional[float] = Field(default=None, ge=0)

    max_context_length: Optional[int] = Field(default=None, ge=1)
    max_output_tokens: Optional[int] = Field(default=None, ge=1)
    default_stop_sequences: Optional[List[str]] = None
    default_response_format: Optional[str] = None

    request_timeout: Optional[int] = Field(default=None, ge=1)
    connect_timeout: Optional[int] = Field(default=None, ge=1)
    max_retries: Optional[int] = Field(default=None, ge=0)
    retry_delay: Optional[int] = Field(default=None, ge=0)
    retry_backoff_multiplier: Optional[float] = Field(default=None, ge=1)

    rate_limit_rpm: Optional[int] = Field(default=None, ge=0)
    rate_limit_tpm: Optional[int] = Field(default=None, ge=0)
    rate_limit_rpd: Optional[int] = Field(default=None, ge=0)
    concurrency_limit: Optional[int] = Field(default=None, ge=1)

    default_streaming: Optional[bool] = None

    proxy_url: Optional[str] = None
    proxy_username: Optional[str] = None
    proxy_password: Optional[str] = None
    custom_headers: Optional[Dict[str, str]] = None

    skip_tls_verify: Optional[bool] = None
    custom_ca_cert: Optional[str] = None

    health_check_enabled: Optional[bool] = None
    health_check_interval: Optional[int] = Field(default=None, ge=1000)

    metadata: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None

    @field_validator("proxy_url")
    @classmethod
    def proxy_url_scheme(cls, v):
        if not v:
            return v
        scheme = v.split("://", 1)[0].lower() if "://" in v else ""
        if scheme not in PROXY_SCHEMES:
            raise ValueError("proxy_url must start with http:// or https://")
        return v


class ProviderCreateRequest(ProviderFields):
    name: str = Field(..., min_length=1, max_length=64)


class ProviderUpdateRequest(ProviderFields):
    pass


# ============================================================
# Models
# ============================================================

class ModelCreateRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    provider_id: int
    model_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    model_type: Optional[str] = Field(
        default=None, pattern="^(chat|completion|embedding|vision|multimodal)$"
    )
    is_enabled: Optional[bool] = None
    is_default: Optional[bool] = None
    context_length: Optional[int] = Field(default=None, ge=1)
    max_output_tokens: Optional[int] = Field(default=None, ge=1)
    default_temperature: Optional[float] = Field(default=None, ge=0, le=2)
    default_max_tokens: Optional[int] = Field(default=None, ge=1)
    default_top_p: Optional[float] = Field(default=None, ge=0, le=1)
    default_top_k: Optional[int] = Field(default=None, ge=1)
    supports_vision: Optional[bool] = None
    supports_function_calling: Optional[bool] = None
    supports_json_mode: Optional[bool] = None
    supports_streaming: Optional[bool] = None
    input_price_per_1m: Optional[float] = Field(default=None, ge=0)
    output_price_per_1m: Optional[float] = Field(default=None, ge=0)
    metadata: Optional[Dict[str, Any]] = None


# ============================================================
# Local runtimes
# ============================================================

class OllamaPullRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model_name: Optional[str] = Field(default=None, alias="modelName")
    base_url: Optional[str] = Field(default=None, alias="baseUrl")


