"""
llmgateway - Authentication Module

Runtime mode, admin key checks and startup guardrails.
"""

from .config import (
    AuthMode,
    admin_key_matches,
    get_admin_api_key,
    get_auth_mode,
    get_cors_allowed_origins,
    is_prod_mode,
    uses_memory_store,
    validate_security_config,
)

__all__ = [
    "AuthMode",
    "admin_key_matches",
    "get_admin_api_key",
    "get_auth_mode",
    "get_cors_allowed_origins",
    "is_prod_mode",
    "uses_memory_store",
    "validate_security_config",
]
