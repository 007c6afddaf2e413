"""
llmgateway - Provider Catalog

Static knowledge about well-known provider families: per-family defaults
merged into new provider records, the common model list used for seeding,
and display names used in operator-facing messages.
"""

from typing import Any, Dict, List


# ============================================================
# Families
# ============================================================

# Providers that speak the OpenAI chat-completions wire format
OPENAI_COMPATIBLE = (
    "openai",
    "azure-openai",
    "openrouter",
    "together",
    "groq",
    "mistral",
    "lmstudio",
    "cohere",
    "custom",
)

KNOWN_PROVIDERS = (
    "openai",
    "gemini",
    "anthropic",
    "ollama",
    "lmstudio",
    "azure-openai",
    "openrouter",
    "together",
    "groq",
    "mistral",
    "cohere",
    "custom",
)

# Seeded by seed_default_providers(), with their priorities
SEED_PROVIDERS = (
    ("openai", 100),
    ("gemini", 90),
    ("ollama", 50),
    ("lmstudio", 50),
    ("anthropic", 50),
    ("groq", 50),
)


# ============================================================
# Global fallbacks
# ============================================================

# Applied when neither the caller nor the family table sets a value
GLOBAL_DEFAULTS: Dict[str, Any] = {
    "default_temperature": 0.7,
    "default_max_tokens": 2048,
    "default_top_p": 1.0,
    "default_frequency_penalty": 0.0,
    "default_presence_penalty": 0.0,
    "request_timeout": 120000,
    "connect_timeout": 30000,
    "max_retries": 3,
    "retry_delay": 1000,
    "retry_backoff_multiplier": 2.0,
    "concurrency_limit": 5,
    "default_streaming": False,
    "skip_tls_verify": False,
    "health_check_enabled": True,
    "health_check_interval": 60000,
}

# Capability flags when the family table is silent
CAPABILITY_DEFAULTS: Dict[str, bool] = {
    "supports_streaming": True,
    "supports_vision": False,
    "supports_function_calling": False,
    "supports_json_mode": False,
    "supports_system_message": True,
    "supports_multiple_system_messages": False,
}

CAPABILITY_FIELDS = tuple(CAPABILITY_DEFAULTS)


def _cloud(**overrides: Any) -> Dict[str, Any]:
    """Baseline for hosted OpenAI-style providers."""
    base = {
        "provider_type": "cloud",
        "default_temperature": 0.7,
        "default_max_tokens": 2048,
        "default_top_p": 1.0,
        "default_frequency_penalty": 0.0,
        "default_presence_penalty": 0.0,
        "request_timeout": 120000,
        "connect_timeout": 30000,
        "max_retries": 3,
        "retry_delay": 1000,
        "retry_backoff_multiplier": 2.0,
        "concurrency_limit": 10,
        "supports_streaming": True,
        "supports_vision": True,
        "supports_function_calling": True,
        "supports_json_mode": True,
        "supports_system_message": True,
        "supports_multiple_system_messages": False,
    }
    base.update(overrides)
    return base


def _local(**overrides: Any) -> Dict[str, Any]:
    """Baseline for runtimes on the operator's own machine."""
    base = {
        "provider_type": "local",
        "default_temperature": 0.7,
        "default_max_tokens": 2048,
        "default_top_p": 0.9,
        "default_frequency_penalty": 0.0,
        "default_presence_penalty": 0.0,
        "request_timeout": 300000,
        "connect_timeout": 10000,
        "max_retries": 2,
        "retry_delay": 500,
        "retry_backoff_multiplier": 1.5,
        "supports_streaming": True,
        "supports_system_message": True,
        "supports_multiple_system_messages": True,
        "skip_tls_verify": True,
    }
    base.update(overrides)
    return base


PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "openai": _cloud(
        display_name="OpenAI",
        base_url="https://api.openai.com/v1",
        default_model="gpt-4o-mini",
    ),
    "gemini": _cloud(
        display_name="Google Gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta",
        default_model="gemini-1.5-flash",
        default_top_p=0.95,
        default_top_k=40,
    ),
    "anthropic": _cloud(
        display_name="Anthropic Claude",
        base_url="https://api.anthropic.com/v1",
        default_model="claude-3-5-sonnet-20241022",
        default_max_tokens=4096,
        concurrency_limit=5,
        supports_json_mode=False,
    ),
    "ollama": _local(
        display_name="Ollama (Local)",
        base_url="http://localhost:11434",
        default_model="llama3.2",
        default_top_k=40,
        default_repeat_penalty=1.1,
        concurrency_limit=2,
        supports_vision=True,
        supports_function_calling=False,
        supports_json_mode=True,
    ),
    "lmstudio": _local(
        display_name="LM Studio (Local)",
        base_url="http://localhost:1234/v1",
        default_model="local-model",
        concurrency_limit=1,
        supports_vision=False,
        supports_function_calling=False,
        supports_json_mode=False,
    ),
    "azure-openai": _cloud(
        display_name="Azure OpenAI",
        default_model="gpt-4o-mini",
    ),
    "openrouter": _cloud(
        display_name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        default_model="openai/gpt-4o-mini",
    ),
    "together": _cloud(
        display_name="Together AI",
        base_url="https://api.together.xyz/v1",
        default_model="meta-llama/Llama-3.2-3B-Instruct-Turbo",
        default_top_p=0.9,
        supports_vision=False,
        supports_function_calling=False,
    ),
    "groq": _cloud(
        display_name="Groq",
        base_url="https://api.groq.com/openai/v1",
        default_model="llama-3.3-70b-versatile",
        request_timeout=60000,
        connect_timeout=10000,
        retry_delay=500,
        supports_vision=False,
    ),
    "mistral": _cloud(
        display_name="Mistral AI",
        base_url="https://api.mistral.ai/v1",
        default_model="mistral-small-latest",
        supports_vision=False,
    ),
    "cohere": _cloud(
        display_name="Cohere",
        base_url="https://api.cohere.ai/v1",
        default_model="command-r-plus",
        default_top_p=0.75,
        supports_vision=False,
        supports_function_calling=False,
        supports_json_mode=False,
    ),
    "custom": _cloud(
        display_name="Custom Provider",
        provider_type="custom",
        concurrency_limit=5,
        supports_streaming=False,
        supports_vision=False,
        supports_function_calling=False,
        supports_json_mode=False,
    ),
}


# ============================================================
# Common models
# ============================================================

def _m(model_id: str, name: str, context_length: int) -> Dict[str, Any]:
    return {"model_id": model_id, "name": name, "context_length": context_length}


COMMON_MODELS: Dict[str, List[Dict[str, Any]]] = {
    "openai": [
        _m("gpt-4o", "GPT-4o", 128000),
        _m("gpt-4o-mini", "GPT-4o Mini", 128000),
        _m("gpt-4-turbo", "GPT-4 Turbo", 128000),
        _m("gpt-4", "GPT-4", 8192),
        _m("gpt-3.5-turbo", "GPT-3.5 Turbo", 16385),
        _m("o1-preview", "o1 Preview", 128000),
        _m("o1-mini", "o1 Mini", 128000),
    ],
    "gemini": [
        _m("gemini-2.0-flash-exp", "Gemini 2.0 Flash", 1000000),
        _m("gemini-1.5-pro", "Gemini 1.5 Pro", 2000000),
        _m("gemini-1.5-flash", "Gemini 1.5 Flash", 1000000),
        _m("gemini-1.0-pro", "Gemini 1.0 Pro", 32760),
    ],
    "anthropic": [
        _m("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", 200000),
        _m("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", 200000),
        _m("claude-3-opus-20240229", "Claude 3 Opus", 200000),
    ],
    "ollama": [
        _m("llama3.2", "Llama 3.2", 128000),
        _m("llama3.2:1b", "Llama 3.2 1B", 128000),
        _m("llama3.1", "Llama 3.1", 128000),
        _m("mistral", "Mistral 7B", 32000),
        _m("mixtral", "Mixtral 8x7B", 32000),
        _m("codellama", "Code Llama", 16000),
        _m("deepseek-coder-v2", "DeepSeek Coder V2", 128000),
        _m("qwen2.5", "Qwen 2.5", 128000),
        _m("phi3", "Phi-3", 128000),
        _m("gemma2", "Gemma 2", 8192),
    ],
    "lmstudio": [
        _m("local-model", "Local Model (Auto-detect)", 4096),
    ],
    "azure-openai": [
        _m("gpt-4o", "GPT-4o", 128000),
        _m("gpt-4o-mini", "GPT-4o Mini", 128000),
        _m("gpt-4", "GPT-4", 8192),
        _m("gpt-35-turbo", "GPT-3.5 Turbo", 16385),
    ],
    "openrouter": [
        _m("openai/gpt-4o", "GPT-4o", 128000),
        _m("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet", 200000),
        _m("google/gemini-pro-1.5", "Gemini 1.5 Pro", 2000000),
        _m("meta-llama/llama-3.1-405b-instruct", "Llama 3.1 405B", 128000),
    ],
    "together": [
        _m("meta-llama/Llama-3.2-3B-Instruct-Turbo", "Llama 3.2 3B Turbo", 128000),
        _m("meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo", "Llama 3.1 70B Turbo", 128000),
        _m("mistralai/Mixtral-8x7B-Instruct-v0.1", "Mixtral 8x7B", 32000),
    ],
    "groq": [
        _m("llama-3.3-70b-versatile", "Llama 3.3 70B", 128000),
        _m("llama-3.1-8b-instant", "Llama 3.1 8B", 128000),
        _m("mixtral-8x7b-32768", "Mixtral 8x7B", 32768),
        _m("gemma2-9b-it", "Gemma 2 9B", 8192),
    ],
    "mistral": [
        _m("mistral-large-latest", "Mistral Large", 128000),
        _m("mistral-small-latest", "Mistral Small", 32000),
        _m("codestral-latest", "Codestral", 32000),
        _m("open-mixtral-8x22b", "Mixtral 8x22B", 64000),
    ],
    "cohere": [
        _m("command-r-plus", "Command R+", 128000),
        _m("command-r", "Command R", 128000),
        _m("command", "Command", 4096),
    ],
    "custom": [],
}


# ============================================================
# Display names
# ============================================================

PROVIDER_DISPLAY_NAMES: Dict[str, str] = {
    "openai": "OpenAI",
    "openai-o1": "OpenAI o1/o3 models",
    "azure-openai": "Azure OpenAI",
    "gemini": "Google Gemini",
    "anthropic": "Anthropic Claude",
    "ollama": "Ollama",
    "openrouter": "OpenRouter",
    "together": "Together AI",
    "groq": "Groq",
    "mistral": "Mistral AI",
    "lmstudio": "LM Studio",
    "cohere": "Cohere",
    "custom": "Custom Provider",
}


def get_provider_defaults(name: str) -> Dict[str, Any]:
    """Family defaults for a provider name; empty for unknown names."""
    return dict(PROVIDER_DEFAULTS.get(name, {}))


def get_common_models(name: str) -> List[Dict[str, Any]]:
    return list(COMMON_MODELS.get(name, []))


def display_name_for(name: str) -> str:
    return PROVIDER_DISPLAY_NAMES.get(name, name)
