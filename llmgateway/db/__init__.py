"""
llmgateway - Database Layer

Provider registry persistence (PostgreSQL or in-memory) and services.
"""

from .connection import DatabasePool, init_db, close_db
from .models import LLMProvider, LLMModel
from .schema import ensure_schema
from .stores import ProviderStore, PostgresProviderStore, MemoryProviderStore
from .services import ProviderService, ModelService

__all__ = [
    "DatabasePool",
    "init_db",
    "close_db",
    "LLMProvider",
    "LLMModel",
    "ensure_schema",
    "ProviderStore",
    "PostgresProviderStore",
    "MemoryProviderStore",
    "ProviderService",
    "ModelService",
]
