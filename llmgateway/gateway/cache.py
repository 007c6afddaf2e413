"""
llmgateway - Provider Config Cache

Short-lived cache of provider records for the chat resolution path.

Every read checks the entry's age against the TTL. Any registry write
clears the whole cache; counter and health updates do not.
"""

import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

from ..db.models import LLMProvider


DEFAULT_TTL_SECONDS = 300.0

# Key used for the resolved default provider
DEFAULT_KEY = "__default__"


@dataclass
class CacheEntry:
    provider: LLMProvider
    stored_at: float


class ProviderCache:
    """
    TTL cache keyed by provider name, id or DEFAULT_KEY.

    A TTL of zero disables caching entirely.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_env(cls) -> "ProviderCache":
        return cls(ttl_seconds=float(os.getenv("PROVIDER_CACHE_TTL_SECONDS", str(DEFAULT_TTL_SECONDS))))

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    @staticmethod
    def key_for(name_or_id) -> str:
        return str(name_or_id)

    def get(self, key: str) -> Optional[LLMProvider]:
        if not self.enabled:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            if self._clock() - entry.stored_at >= self.ttl_seconds:
                del self._entries[key]
                self.misses += 1
                return None

            self.hits += 1
            return entry.provider

    def set(self, key: str, provider: LLMProvider) -> None:
        if not self.enabled:
            return

        with self._lock:
            self._entries[key] = CacheEntry(provider=provider, stored_at=self._clock())

    def invalidate(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
