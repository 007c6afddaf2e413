"""
llmgateway - Parameter Validation

Minimal parameter principle: only parameters the caller explicitly set are
forwarded, and only if the target provider/model accepts them. Setting an
unsupported parameter fails the whole call before any network traffic;
nothing is dropped silently and no provider default is injected.
"""

from typing import Any, Dict, List, Optional

from .catalog import PROVIDER_DISPLAY_NAMES
from .errors import UnsupportedParameterError
from .models import GENERATION_PARAMETERS, CompletionRequest


# Validation order; also the order fields are reported in errors
PARAMETER_NAMES = tuple(GENERATION_PARAMETERS)

# Reasoning model prefixes (restricted parameter surface)
REASONING_MODEL_PREFIXES = ("o1-", "o3-")

REASONING_FAMILY = "openai-o1"


def _support(*allowed: str) -> Dict[str, bool]:
    return {name: name in allowed for name in PARAMETER_NAMES}


_OPENAI_STYLE = _support(
    "temperature", "maxTokens", "topP",
    "frequencyPenalty", "presencePenalty", "stop",
)

PARAMETER_SUPPORT: Dict[str, Dict[str, bool]] = {
    "openai": dict(_OPENAI_STYLE),
    # Uses max_completion_tokens on the wire
    REASONING_FAMILY: _support("maxTokens"),
    "azure-openai": dict(_OPENAI_STYLE),
    "gemini": _support("temperature", "maxTokens", "topP", "topK", "stop"),
    "anthropic": _support("temperature", "maxTokens", "topP", "topK", "stop"),
    "ollama": _support("temperature", "maxTokens", "topP", "topK", "repeatPenalty", "stop"),
    "openrouter": dict(_OPENAI_STYLE),
    "together": dict(_OPENAI_STYLE),
    "groq": dict(_OPENAI_STYLE),
    "mistral": _support("temperature", "maxTokens", "topP", "stop"),
    "lmstudio": dict(_OPENAI_STYLE),
    "cohere": _support(
        "temperature", "maxTokens", "topP", "topK",
        "frequencyPenalty", "presencePenalty", "stop",
    ),
    # Let the backend reject what it does not understand
    "custom": _support(*PARAMETER_NAMES),
}


def is_reasoning_model(model: Optional[str]) -> bool:
    """True for o1-/o3- prefixed models."""
    return bool(model) and model.startswith(REASONING_MODEL_PREFIXES)


def support_key(provider_name: str, model: Optional[str] = None) -> str:
    """Row of PARAMETER_SUPPORT that applies to this provider/model pair."""
    if is_reasoning_model(model):
        return REASONING_FAMILY
    if provider_name in PARAMETER_SUPPORT:
        return provider_name
    return "custom"


def get_parameter_support(provider_name: str, model: Optional[str] = None) -> Dict[str, bool]:
    """Parameter support map for a provider, honoring reasoning model quirks."""
    return dict(PARAMETER_SUPPORT[support_key(provider_name, model)])


def target_label(provider_name: str, model: Optional[str] = None) -> str:
    """Human-readable provider/model label used in error messages."""
    key = support_key(provider_name, model)
    return PROVIDER_DISPLAY_NAMES.get(key, provider_name)


def validate_parameters(
    provider_name: str,
    model: Optional[str],
    request: CompletionRequest,
    request_id: str = ""
) -> Dict[str, Any]:
    """
    Check every explicitly set parameter against the support table.

    Returns the validated map of set parameters keyed by generic name.
    ``stream`` is never validated and never part of the map.

    Raises:
        UnsupportedParameterError: naming every offending field
    """
    support = get_parameter_support(provider_name, model)
    requested = request.explicit_parameters()

    unsupported: List[str] = [
        name for name in PARAMETER_NAMES
        if name in requested and not support.get(name, False)
    ]

    if unsupported:
        raise UnsupportedParameterError(
            provider=provider_name,
            label=target_label(provider_name, model),
            parameters=unsupported,
            request_id=request_id,
        )

    return requested
