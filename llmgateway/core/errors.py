"""
llmgateway - Error Definitions

Error taxonomy with infra vs semantic classification.

Semantic errors are configuration or request problems the caller has to fix
(unknown provider, disabled provider, unsupported parameter, ...). Infra
errors come from talking to a backend (timeouts, 5xx, rate limits).
Neither kind is retried by the gateway.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information for API response."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    provider: Optional[str] = None
    param: Optional[str] = None

    # Trace fields
    request_id: str = ""
    provider_request_id: Optional[str] = None

    # Recovery fields
    retryable: bool = False
    retry_after: Optional[int] = None

    # Debug fields
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.param:
            result["param"] = self.param
        if self.provider_request_id:
            result["provider_request_id"] = self.provider_request_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.details:
            result["details"] = self.details

        return {"error": result}


class GatewayException(Exception):
    """Base exception for all llmgateway errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def provider(self) -> Optional[str]:
        return self.error.provider


# ============================================================
# Infra Errors
# ============================================================

class InfraError(GatewayException):
    """Base class for infrastructure errors."""
    pass


class ConnectionTimeoutError(InfraError):
    """Failed to connect to provider."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="connection_timeout",
                message=f"Failed to connect to {provider} within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=5
            ),
            status_code=504
        )


class ReadTimeoutError(InfraError):
    """Provider did not respond in time."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="read_timeout",
                message=f"{provider} did not respond within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=10
            ),
            status_code=504
        )


class UpstreamError(InfraError):
    """Provider returned server error."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str = "",
        request_id: str = "",
        provider_request_id: str = ""
    ):
        code_map = {
            500: "upstream_500",
            502: "upstream_502",
            503: "upstream_503",
            504: "upstream_504",
        }
        super().__init__(
            ErrorDetails(
                code=code_map.get(status_code, "upstream_error"),
                message=message or f"{provider} returned error {status_code}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=True,
                retry_after=30
            ),
            status_code=502
        )


class RateLimitedError(InfraError):
    """Provider rate limit exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: int = 60,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="rate_limited",
                message=f"{provider} rate limit exceeded. Retry after {retry_after} seconds.",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after
            ),
            status_code=429
        )


class ProviderRequestError(InfraError):
    """Backend call failed without a usable HTTP status (bad JSON, transport error)."""

    def __init__(self, provider: str, message: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_error",
                message=message,
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=502
        )


# ============================================================
# Semantic Errors (Not Retryable)
# ============================================================

class SemanticError(GatewayException):
    """Base class for semantic errors (client must fix request or configuration)."""
    pass


class ProviderNotFoundError(SemanticError):
    """No provider matched the lookup, or none is configured."""

    def __init__(self, provider: Optional[str] = None, request_id: str = ""):
        message = (
            f"Provider '{provider}' not found" if provider
            else "No LLM provider configured"
        )
        super().__init__(
            ErrorDetails(
                code="provider_not_found",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=404
        )


class ProviderNotEnabledError(SemanticError):
    """Provider exists but is disabled."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_not_enabled",
                message=f"Provider {provider} is not enabled",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


class ModelNotFoundError(SemanticError):
    """No model given and the provider has no default model."""

    def __init__(self, provider: str, model: Optional[str] = None, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="model_not_found",
                message=f"Model '{model}' not found" if model else "No model specified",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False,
                details={"requested_model": model} if model else {}
            ),
            status_code=404
        )


class MissingProviderKeyError(SemanticError):
    """Cloud provider has no API key configured."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="invalid_api_key",
                message=f"API key not configured for provider {provider}",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


class ProviderConfigError(SemanticError):
    """Stored connection settings cannot build a client (bad proxy URL, CA cert, ...)."""

    def __init__(self, provider: str, reason: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="invalid_provider_config",
                message=f"Invalid configuration for provider {provider}: {reason}",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


class UnsupportedParameterError(SemanticError):
    """Caller set parameters the target provider/model does not accept."""

    def __init__(
        self,
        provider: str,
        label: str,
        parameters: List[str],
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="unsupported_parameter",
                message=f"Unsupported parameters for {label}: {', '.join(parameters)}",
                type=ErrorType.SEMANTIC,
                provider=provider,
                param=parameters[0] if parameters else None,
                request_id=request_id,
                retryable=False,
                details={"unsupported_parameters": list(parameters), "target": label}
            ),
            status_code=400
        )
        self.parameters = list(parameters)


class ProviderConflictError(SemanticError):
    """A provider with this name already exists."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_exists",
                message=(
                    f'Provider "{provider}" already exists. '
                    "Use the existing provider or choose a different name."
                ),
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=409
        )


class ModelConflictError(SemanticError):
    """Model id already registered under the provider."""

    def __init__(self, provider_id: int, model_id: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="model_exists",
                message=f"Model '{model_id}' already exists for provider {provider_id}",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False,
                details={"provider_id": provider_id, "model_id": model_id}
            ),
            status_code=409
        )


class RecordNotFoundError(SemanticError):
    """Registry row addressed by id does not exist."""

    def __init__(self, kind: str, record_id: Any, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code=f"{kind}_not_found",
                message=f"{kind.capitalize()} not found",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False,
                details={"id": record_id}
            ),
            status_code=404
        )


class InvalidRequestError(SemanticError):
    """Request validation failed."""

    def __init__(
        self,
        message: str,
        param: str = "",
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                param=param or None,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


class AdminAuthError(SemanticError):
    """Admin credential missing or wrong."""

    def __init__(self, message: str = "Admin API key required", status_code: int = 401, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="admin_auth_required" if status_code == 401 else "permission_denied",
                message=message,
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False
            ),
            status_code=status_code
        )


# ============================================================
# Backend error mapping
# ============================================================

def _extract_error_message(response: httpx.Response) -> str:
    """
    Pull a human-readable message out of a backend error body.

    Handles the shapes used by the supported families:
    - OpenAI / Anthropic / Gemini: {"error": {"message": "..."}}
    - Ollama: {"error": "..."}
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Status {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return f"Status {response.status_code}"


def handle_provider_error(
    provider: str,
    error: Exception,
    request_id: str = ""
) -> GatewayException:
    """
    Convert an httpx / decoding failure into a canonical gateway exception.

    Already-canonical exceptions pass through unchanged.
    """
    if isinstance(error, GatewayException):
        return error

    if isinstance(error, httpx.TimeoutException):
        if isinstance(error, httpx.ConnectTimeout):
            return ConnectionTimeoutError(provider, request_id)
        return ReadTimeoutError(provider, request_id)

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status_code = response.status_code
        message = _extract_error_message(response)
        provider_req_id = (
            response.headers.get("x-request-id")
            or response.headers.get("request-id")
            or ""
        )

        if status_code in (401, 403):
            return SemanticError(
                ErrorDetails(
                    code="provider_auth_error",
                    message=f"{provider} authentication failed: {message}",
                    type=ErrorType.SEMANTIC,
                    provider=provider,
                    request_id=request_id,
                    provider_request_id=provider_req_id or None,
                    retryable=False
                ),
                status_code=502
            )

        if status_code == 429:
            retry_after = 60
            if "retry-after" in response.headers:
                try:
                    retry_after = int(response.headers["retry-after"])
                except ValueError:
                    pass
            return RateLimitedError(provider, retry_after, request_id=request_id)

        if status_code >= 500:
            return UpstreamError(
                provider, status_code, message,
                request_id, provider_req_id
            )

        return SemanticError(
            ErrorDetails(
                code="provider_error",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_req_id or None,
                retryable=False,
                details={"upstream_status": status_code}
            ),
            status_code=400 if status_code != 404 else 404
        )

    if isinstance(error, httpx.HTTPError):
        return ProviderRequestError(provider, f"{provider} request failed: {error}", request_id)

    # Malformed JSON or unexpected response shape
    return ProviderRequestError(provider, f"Invalid response from {provider}: {error}", request_id)
