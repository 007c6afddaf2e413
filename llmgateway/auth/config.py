"""
llmgateway - Auth Configuration

Handles local vs production mode for the admin surface and startup safety checks.
"""

import hmac
import os
from enum import Enum
from typing import List, Optional


class AuthMode(str, Enum):
    """Runtime mode."""

    LOCAL = "local"  # In-memory registry, admin key optional
    PROD = "prod"    # PostgreSQL registry, admin key required
    TEST = "test"    # Deterministic test mode (in-memory registry)


def get_auth_mode() -> AuthMode:
    """
    Get the current mode.

    MODE must be one of: local, prod/production, test.

    Default: prod (fail-closed default for safer deployments).
    """
    mode = os.getenv("MODE", "prod").lower().strip()
    if mode in {"prod", "production"}:
        return AuthMode.PROD
    if mode == "local":
        return AuthMode.LOCAL
    if mode == "test":
        return AuthMode.TEST
    raise ValueError("Invalid MODE. Use one of: local, prod, production, test")

def is_prod_mode() -> bool:
    """Check if running in production mode."""
    return get_auth_mode() == AuthMode.PROD

def uses_memory_store() -> bool:
    """Local and test modes keep the registry in process memory."""
    return get_auth_mode() in {AuthMode.LOCAL, AuthMode.TEST}


def get_admin_api_key() -> Optional[str]:
    return os.getenv("ADMIN_API_KEY") or None


def admin_key_matches(presented: Optional[str]) -> bool:
    """Constant-time comparison against ADMIN_API_KEY."""
    expected = get_admin_api_key()
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


def seed_on_startup() -> bool:
    return os.getenv("SEED_DEFAULT_PROVIDERS", "false").lower() in {"1", "true", "yes"}


def get_cors_allowed_origins() -> List[str]:
    """Parse CORS_ALLOW_ORIGINS from environment."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "")
    if not raw.strip():
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def validate_security_config() -> None:
    """Fail closed for unsafe production startup configuration."""
    mode = get_auth_mode()
    if mode in {AuthMode.LOCAL, AuthMode.TEST}:
        return

    # Production guardrails
    if not os.getenv("DATABASE_URL"):
        raise RuntimeError("DATABASE_URL is required in production mode")

    if not get_admin_api_key():
        raise RuntimeError("ADMIN_API_KEY is required in production mode")

    if not os.getenv("PROVIDER_SECRET_KEY"):
        raise RuntimeError("PROVIDER_SECRET_KEY is required in production mode")

    origins = get_cors_allowed_origins()
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must be set in production mode")
    if "*" in origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS cannot include '*' in production mode")
