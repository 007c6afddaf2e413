"""
llmgateway Core Module

Provider-neutral data models, error taxonomy, provider catalog and
parameter validation.
"""

from .models import (
    # Enums
    Role,
    FinishReason,
    HealthStatus,
    ProviderType,
    ModelType,

    # Messages
    Message,

    # Requests
    CompletionRequest,
    GENERATION_PARAMETERS,

    # Responses
    CompletionResponse,
    Choice,
    Usage,
    finish_reason_from,
)

from .errors import (
    # Error types
    ErrorType,
    ErrorDetails,

    # Base exceptions
    GatewayException,
    InfraError,
    SemanticError,

    # Infra errors
    ConnectionTimeoutError,
    ReadTimeoutError,
    UpstreamError,
    RateLimitedError,
    ProviderRequestError,

    # Semantic errors
    ProviderNotFoundError,
    ProviderNotEnabledError,
    ModelNotFoundError,
    MissingProviderKeyError,
    ProviderConfigError,
    UnsupportedParameterError,
    ProviderConflictError,
    ModelConflictError,
    RecordNotFoundError,
    InvalidRequestError,
    AdminAuthError,

    # Backend error mapping
    handle_provider_error,
)

from .catalog import (
    PROVIDER_DEFAULTS,
    COMMON_MODELS,
    PROVIDER_DISPLAY_NAMES,
    OPENAI_COMPATIBLE,
    KNOWN_PROVIDERS,
)

from .parameters import (
    PARAMETER_SUPPORT,
    get_parameter_support,
    validate_parameters,
    is_reasoning_model,
)

__all__ = [
    "Role",
    "FinishReason",
    "HealthStatus",
    "ProviderType",
    "ModelType",
    "Message",
    "CompletionRequest",
    "GENERATION_PARAMETERS",
    "CompletionResponse",
    "Choice",
    "Usage",
    "finish_reason_from",
    "ErrorType",
    "ErrorDetails",
    "GatewayException",
    "InfraError",
    "SemanticError",
    "ConnectionTimeoutError",
    "ReadTimeoutError",
    "UpstreamError",
    "RateLimitedError",
    "ProviderRequestError",
    "ProviderNotFoundError",
    "ProviderNotEnabledError",
    "ModelNotFoundError",
    "MissingProviderKeyError",
    "ProviderConfigError",
    "UnsupportedParameterError",
    "ProviderConflictError",
    "ModelConflictError",
    "RecordNotFoundError",
    "InvalidRequestError",
    "AdminAuthError",
    "handle_provider_error",
    "PROVIDER_DEFAULTS",
    "COMMON_MODELS",
    "PROVIDER_DISPLAY_NAMES",
    "OPENAI_COMPATIBLE",
    "KNOWN_PROVIDERS",
    "PARAMETER_SUPPORT",
    "get_parameter_support",
    "validate_parameters",
    "is_reasoning_model",
]
