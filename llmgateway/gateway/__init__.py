"""
llmgateway Gateway Module

chat() entry point, provider config cache and health checker.
"""

from .cache import ProviderCache, DEFAULT_TTL_SECONDS
from .health import HealthChecker
from .service import LLMGateway

__all__ = [
    "ProviderCache",
    "DEFAULT_TTL_SECONDS",
    "HealthChecker",
    "LLMGateway",
]
