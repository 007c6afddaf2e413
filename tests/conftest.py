"""
llmgateway - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- In-memory registry fixtures
- A fake HTTP backend wired into adapters through httpx.MockTransport
- A fresh Prometheus registry per test
"""

import os
from typing import Any, Dict, List, Optional

import httpx
import pytest
from prometheus_client import CollectorRegistry

from llmgateway.adapters import get_adapter
from llmgateway.db.services import ModelService, ProviderService
from llmgateway.db.stores import MemoryProviderStore
from llmgateway.gateway.cache import ProviderCache
from llmgateway.gateway.service import LLMGateway
from llmgateway.observability import metrics as metrics_module
from llmgateway.observability.logging import LogContext
from llmgateway.observability.metrics import MetricsCollector


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Backend responses
# ============================================================

@pytest.fixture
def mock_openai_response():
    """Standard OpenAI chat response."""
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion",
        "created": 1234567890,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": "Hello! I'm a mock response."
                },
                "finish_reason": "stop"
            }
        ],
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": 8,
            "total_tokens": 18
        }
    }


@pytest.fixture
def mock_anthropic_response():
    """Standard Anthropic Messages API response."""
    return {
        "id": "msg-test123",
        "type": "message",
        "role": "assistant",
        "content": [
            {
                "type": "text",
                "text": "Hello! I'm a mock Claude response."
            }
        ],
        "model": "claude-3-5-sonnet-20241022",
        "stop_reason": "end_turn",
        "usage": {
            "input_tokens": 10,
            "output_tokens": 8
        }
    }


@pytest.fixture
def mock_gemini_response():
    """Standard Gemini generateContent response."""
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"text": "Hello from "}, {"text": "Gemini."}]
                },
                "finishReason": "STOP"
            }
        ]
    }


@pytest.fixture
def mock_ollama_response():
    """Standard Ollama /api/chat response."""
    return {
        "model": "llama3.2",
        "message": {"role": "assistant", "content": "Hello from Ollama."},
        "done": True,
        "prompt_eval_count": 12,
        "eval_count": 5
    }


@pytest.fixture
def mock_error_500():
    """Backend 500 error body."""
    return {
        "error": {
            "code": "internal_error",
            "message": "Internal server error",
            "type": "server_error"
        }
    }


@pytest.fixture
def mock_error_429():
    """Backend 429 rate limit body."""
    return {
        "error": {
            "code": "rate_limit_exceeded",
            "message": "Rate limit exceeded",
            "type": "rate_limit_error"
        }
    }


# ============================================================
# Fake HTTP backend
# ============================================================

class FakeBackend:
    """
    Records outgoing adapter requests and answers them from a route table.

    Routes match on the end of the URL path, so "/chat/completions" matches
    "https://api.openai.com/v1/chat/completions". Unmatched requests get 404.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def respond(
        self,
        path: str,
        json: Any = None,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None
    ):
        self.routes[path] = (status_code, json, headers or {})

    def fail(self, path: str, error: Exception):
        self.routes[path] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, entry in self.routes.items():
            if request.url.path.endswith(path):
                if isinstance(entry, Exception):
                    raise entry
                status_code, body, headers = entry
                return httpx.Response(status_code, json=body, headers=headers)
        return httpx.Response(404, json={"error": {"message": "Not found"}})

    def install(self, adapter):
        """Point an adapter's HTTP client at this backend."""
        adapter.client = httpx.AsyncClient(
            base_url=adapter.base_url,
            headers=adapter.client.headers,
            transport=httpx.MockTransport(self.handler),
        )
        return adapter

    def patch(self, monkeypatch):
        """Route every adapter the gateway and health checker open through this backend."""
        def factory(provider):
            return self.install(get_adapter(provider))

        monkeypatch.setattr("llmgateway.gateway.service.get_adapter", factory)
        monkeypatch.setattr("llmgateway.gateway.health.get_adapter", factory)
        return self

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def backend():
    return FakeBackend()


# ============================================================
# Registry & gateway
# ============================================================

@pytest.fixture
def metrics(monkeypatch):
    """Fresh collector on a private registry."""
    collector = MetricsCollector(CollectorRegistry())
    monkeypatch.setattr(metrics_module, "_metrics_instance", collector)
    return collector


@pytest.fixture
def store():
    return MemoryProviderStore()


@pytest.fixture
def cache():
    return ProviderCache()


@pytest.fixture
def providers(store, cache):
    return ProviderService(store, cache)


@pytest.fixture
def models(store, cache):
    return ModelService(store, cache)


@pytest.fixture
def gateway(providers, models, cache, metrics):
    return LLMGateway(providers, models, cache)


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep request log context from leaking between tests."""
    LogContext.clear()
    yield
    LogContext.clear()
