"""
llmgateway Adapters Module

Backend family adapters that translate generic completion requests into
each family's native wire format and normalize the responses.
"""

import ssl

import httpx

from ..core.errors import ProviderConfigError
from .base import BaseAdapter, AdapterConfig, ProbeResult
from .openai_adapter import OpenAICompatibleAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GeminiAdapter
from .ollama_adapter import OllamaAdapter

__all__ = [
    "BaseAdapter",
    "AdapterConfig",
    "ProbeResult",
    "OpenAICompatibleAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "ADAPTERS",
    "adapter_class_for",
    "get_adapter",
]


# Providers not listed here speak the OpenAI wire format
ADAPTERS = {
    "gemini": GeminiAdapter,
    "ollama": OllamaAdapter,
    "anthropic": AnthropicAdapter,
}


def adapter_class_for(provider_name: str):
    return ADAPTERS.get((provider_name or "").lower(), OpenAICompatibleAdapter)


def get_adapter(provider) -> BaseAdapter:
    """
    Factory function to get the adapter for a registry provider.

    Args:
        provider: LLMProvider record

    Returns:
        Adapter instance; use as an async context manager so the
        HTTP client is closed.

    Raises:
        ProviderConfigError: stored proxy / TLS / URL settings are unusable
    """
    adapter_class = adapter_class_for(provider.name)
    try:
        return adapter_class(AdapterConfig.from_provider(provider))
    except (ValueError, TypeError, ssl.SSLError, httpx.InvalidURL) as e:
        raise ProviderConfigError(provider.name, str(e) or type(e).__name__) from e
