"""
Tests for the HTTP surface.

Runs the FastAPI app in MODE=test (in-memory registry) through
TestClient. Backend calls are routed to the fake backend.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from llmgateway import server
from llmgateway.api.providers import MASK


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("MODE", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    monkeypatch.delenv("SEED_DEFAULT_PROVIDERS", raising=False)

    with TestClient(server.app) as test_client:
        yield test_client


@pytest.fixture
def routed(backend, monkeypatch):
    return backend.patch(monkeypatch)


def _create(client, **body):
    response = client.post("/v1/llm/providers", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


# ============================================================
# Service endpoints
# ============================================================

class TestServiceEndpoints:
    """Test /health and /metrics."""

    def test_health(self, client):
        _create(client, name="ollama", is_enabled=True)

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["mode"] == "test"
        assert data["providers"]["ollama"]["status"] == "unknown"

    def test_metrics(self, client):
        client.get("/v1/llm/active")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "llmgateway_http_requests_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/v1/llm/active", headers={"X-Request-Id": "req_custom"})
        assert response.headers["X-Request-Id"] == "req_custom"

    def test_request_id_generated(self, client):
        response = client.get("/v1/llm/active")
        assert response.headers["X-Request-Id"].startswith("req_")


# ============================================================
# Providers
# ============================================================

class TestProviderRoutes:
    """Test provider CRUD."""

    def test_create_masks_secrets(self, client):
        data = _create(client, name="openai", api_key="sk-secret", proxy_password="pw")

        assert data["api_key"] == MASK
        assert data["proxy_password"] == MASK
        assert data["custom_ca_cert"] is None
        assert data["display_name"] == "OpenAI"
        assert data["is_enabled"] is False

    def test_secret_never_returned(self, client):
        _create(client, name="openai", api_key="sk-secret")

        for path in ("/v1/llm/providers?include_disabled=true", "/v1/llm/providers/openai"):
            assert "sk-secret" not in client.get(path).text

    def test_duplicate(self, client):
        _create(client, name="openai")

        response = client.post("/v1/llm/providers", json={"name": "openai"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "provider_exists"

    def test_name_required(self, client):
        response = client.post("/v1/llm/providers", json={"display_name": "x"})
        assert response.status_code == 422

    def test_proxy_scheme_validated(self, client):
        rejected = client.post("/v1/llm/providers", json={"name": "ollama", "proxy_url": "ftp://proxy:21"})
        accepted = client.post("/v1/llm/providers", json={"name": "ollama", "proxy_url": "http://proxy:3128"})

        assert rejected.status_code == 422
        assert accepted.status_code == 201
        assert accepted.json()["data"]["proxy_url"] == "http://proxy:3128"

    def test_list_enabled_only_by_default(self, client):
        _create(client, name="openai", is_enabled=True)
        _create(client, name="gemini")

        enabled = client.get("/v1/llm/providers").json()["data"]
        everything = client.get("/v1/llm/providers", params={"include_disabled": "true"}).json()["data"]

        assert [p["name"] for p in enabled] == ["openai"]
        assert len(everything) == 2

    def test_get_by_id_and_name(self, client):
        created = _create(client, name="openai")

        assert client.get(f"/v1/llm/providers/{created['id']}").json()["data"]["name"] == "openai"
        assert client.get("/v1/llm/providers/openai").json()["data"]["id"] == created["id"]

    def test_get_missing(self, client):
        response = client.get("/v1/llm/providers/ghost")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "provider_not_found"
        assert response.headers["X-Error-Code"] == "provider_not_found"

    def test_partial_update(self, client):
        created = _create(client, name="openai", api_key="sk-secret", default_model="gpt-4o")

        response = client.put(f"/v1/llm/providers/{created['id']}", json={"priority": 5})

        data = response.json()["data"]
        assert data["priority"] == 5
        assert data["api_key"] == MASK
        assert data["default_model"] == "gpt-4o"

    def test_explicit_null_clears(self, client):
        created = _create(client, name="openai", api_key="sk-secret")

        response = client.put(f"/v1/llm/providers/{created['id']}", json={"api_key": None})

        assert response.json()["data"]["api_key"] is None

    def test_update_missing(self, client):
        response = client.put("/v1/llm/providers/999", json={"priority": 1})
        assert response.status_code == 404

    def test_delete(self, client):
        created = _create(client, name="openai")

        response = client.delete(f"/v1/llm/providers/{created['id']}")

        assert response.json() == {"success": True, "message": "Provider deleted"}
        assert client.get(f"/v1/llm/providers/{created['id']}").status_code == 404

    def test_set_default_and_toggle(self, client):
        first = _create(client, name="openai", is_default=True)
        second = _create(client, name="gemini")

        client.post(f"/v1/llm/providers/{second['id']}/set-default")
        toggled = client.post(f"/v1/llm/providers/{second['id']}/toggle").json()["data"]

        assert toggled["is_default"] is True
        assert toggled["is_enabled"] is True
        assert client.get(f"/v1/llm/providers/{first['id']}").json()["data"]["is_default"] is False

    def test_seed(self, client):
        response = client.post("/v1/llm/seed")
        again = client.post("/v1/llm/seed")

        assert response.json()["message"] == "Default providers seeded"
        assert len(response.json()["data"]) == 6
        assert len(again.json()["data"]) == 6

    def test_active_is_public_view(self, client):
        created = _create(client, name="openai", is_enabled=True, api_key="sk-secret")
        client.post("/v1/llm/models", json={
            "provider_id": created["id"],
            "model_id": "gpt-4o",
            "name": "GPT-4o",
        })

        data = client.get("/v1/llm/active").json()["data"]

        assert len(data) == 1
        assert "api_key" not in data[0]
        assert data[0]["models"][0]["model_id"] == "gpt-4o"


# ============================================================
# Models & defaults
# ============================================================

class TestModelRoutes:
    """Test model CRUD and family defaults."""

    def test_model_lifecycle(self, client):
        provider = _create(client, name="openai")

        created = client.post("/v1/llm/models", json={
            "provider_id": provider["id"],
            "model_id": "gpt-4o",
            "name": "GPT-4o",
            "is_default": True,
        })
        assert created.status_code == 201
        model_row_id = created.json()["data"]["id"]

        listed = client.get("/v1/llm/models", params={"provider_id": provider["id"]}).json()["data"]
        assert [m["model_id"] for m in listed] == ["gpt-4o"]

        deleted = client.delete(f"/v1/llm/models/{model_row_id}")
        assert deleted.json()["message"] == "Model deleted"
        assert client.delete(f"/v1/llm/models/{model_row_id}").status_code == 404

    def test_invalid_model_type(self, client):
        provider = _create(client, name="openai")

        response = client.post("/v1/llm/models", json={
            "provider_id": provider["id"],
            "model_id": "x",
            "name": "X",
            "model_type": "hologram",
        })
        assert response.status_code == 422

    def test_seed_models(self, client):
        provider = _create(client, name="gemini")

        response = client.post(f"/v1/llm/providers/{provider['id']}/seed-models")

        assert response.status_code == 200
        assert len(response.json()["data"]) == 4

    def test_seed_models_missing_provider(self, client):
        assert client.post("/v1/llm/providers/999/seed-models").status_code == 404

    def test_defaults(self, client):
        defaults = client.get("/v1/llm/defaults").json()["data"]
        assert defaults["anthropic"]["default_max_tokens"] == 4096

        models = client.get("/v1/llm/defaults/ollama/models").json()["data"]
        assert models[0]["model_id"] == "llama3.2"

        assert client.get("/v1/llm/defaults/unknown/models").json()["data"] == []


# ============================================================
# Chat
# ============================================================

class TestChatRoutes:
    """Test POST /chat and /chat/test."""

    def test_chat(self, client, routed, mock_ollama_response):
        _create(client, name="ollama", is_enabled=True)
        routed.respond("/api/chat", mock_ollama_response)

        response = client.post("/v1/llm/chat", json={
            "messages": [{"role": "user", "content": "Hi"}],
            "maxTokens": 16,
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["provider"] == "ollama"
        assert data["choices"][0]["message"]["content"] == "Hello from Ollama."
        assert data["usage"]["total_tokens"] == 17

    def test_unsupported_parameter(self, client, routed):
        _create(client, name="openai", is_enabled=True, api_key="sk")

        response = client.post("/v1/llm/chat", json={
            "provider": "openai",
            "messages": [{"role": "user", "content": "Hi"}],
            "topK": 40,
        })

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "unsupported_parameter"
        assert error["details"]["unsupported_parameters"] == ["topK"]
        assert routed.requests == []

    def test_no_provider(self, client):
        response = client.post("/v1/llm/chat", json={"messages": [{"role": "user", "content": "Hi"}]})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "No LLM provider configured"

    def test_empty_messages(self, client):
        response = client.post("/v1/llm/chat", json={"messages": []})
        assert response.status_code == 422

    def test_out_of_range_temperature(self, client):
        response = client.post("/v1/llm/chat", json={
            "messages": [{"role": "user", "content": "Hi"}],
            "temperature": 3,
        })
        assert response.status_code == 422

    def test_chat_test_requires_message(self, client):
        response = client.post("/v1/llm/chat/test", json={})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Message required"

    def test_chat_test(self, client, routed, mock_anthropic_response):
        _create(client, name="anthropic", is_enabled=True, api_key="sk-ant")
        routed.respond("/messages", mock_anthropic_response)

        response = client.post("/v1/llm/chat/test", json={"message": "ping", "provider": "anthropic"})

        assert response.status_code == 200
        assert response.json()["data"]["choices"][0]["message"]["content"] == "Hello! I'm a mock Claude response."

    def test_upstream_error_headers(self, client, routed, mock_error_429):
        _create(client, name="openai", is_enabled=True, api_key="sk")
        routed.respond("/chat/completions", mock_error_429, status_code=429, headers={"retry-after": "7"})

        response = client.post("/v1/llm/chat", json={
            "provider": "openai",
            "messages": [{"role": "user", "content": "Hi"}],
        })

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "7"
        assert response.headers["X-Provider"] == "openai"


# ============================================================
# Health probes & local runtimes
# ============================================================

class TestProbeRoutes:
    """Test provider probes and local runtime endpoints."""

    def test_probe_missing_provider(self, client, routed):
        response = client.post("/v1/llm/providers/ghost/test")

        assert response.status_code == 200
        assert response.json()["data"] == {"success": False, "message": "Provider not found"}

    def test_probe_ollama_unreachable(self, client, routed):
        _create(client, name="ollama")
        routed.fail("/api/tags", httpx.ConnectError("Connection refused"))

        response = client.post("/v1/llm/providers/ollama/test")

        assert response.json()["data"]["success"] is False
        provider = client.get("/v1/llm/providers/ollama").json()["data"]
        assert provider["health_status"] == "unhealthy"
        assert provider["consecutive_failures"] == 1

    def test_ollama_models_failure_shape(self, client, monkeypatch):
        async def unreachable(base_url=None):
            raise ConnectionError("Connection refused")

        monkeypatch.setattr(server.gateway_instance, "get_ollama_models", unreachable)

        response = client.get("/v1/llm/ollama/models", params={"baseUrl": "http://nowhere:11434"})

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Connection refused", "data": []}

    def test_ollama_failure_hidden_in_prod(self, client, monkeypatch):
        async def unreachable(base_url=None):
            raise ConnectionError("dial tcp 10.0.0.5:11434")

        monkeypatch.setattr(server.gateway_instance, "get_ollama_models", unreachable)
        monkeypatch.setenv("ADMIN_API_KEY", "admin-key")
        monkeypatch.setenv("MODE", "prod")

        response = client.get("/v1/llm/ollama/models", headers={"X-Admin-Key": "admin-key"})

        assert "10.0.0.5" not in response.text
        assert response.json()["success"] is False

    def test_pull_requires_model_name(self, client):
        response = client.post("/v1/llm/ollama/pull", json={})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Model name required"

    def test_pull(self, client, monkeypatch):
        pulled = []

        async def pull(model_name, base_url=None):
            pulled.append((model_name, base_url))
            return {"status": "success"}

        monkeypatch.setattr(server.gateway_instance, "pull_ollama_model", pull)

        response = client.post("/v1/llm/ollama/pull", json={"modelName": "phi3"})

        assert response.json()["message"] == "Started pulling model: phi3"
        assert pulled == [("phi3", None)]

    def test_pull_failure(self, client, monkeypatch):
        async def pull(model_name, base_url=None):
            raise ConnectionError("Connection refused")

        monkeypatch.setattr(server.gateway_instance, "pull_ollama_model", pull)

        response = client.post("/v1/llm/ollama/pull", json={"modelName": "phi3"})

        assert response.status_code == 500
        assert response.json()["success"] is False


# ============================================================
# Admin auth
# ============================================================

class TestAdminAuth:
    """Test the admin key guard."""

    def test_missing_key(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "admin-key")

        response = client.get("/v1/llm/providers")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "admin_auth_required"

    def test_wrong_key(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "admin-key")

        response = client.get("/v1/llm/providers", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permission_denied"

    @pytest.mark.parametrize("headers", [
        {"Authorization": "Bearer admin-key"},
        {"X-Admin-Key": "admin-key"},
    ])
    def test_valid_key(self, client, monkeypatch, headers):
        monkeypatch.setenv("ADMIN_API_KEY", "admin-key")
        assert client.get("/v1/llm/providers", headers=headers).status_code == 200

    def test_public_routes_stay_open(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "admin-key")
        assert client.get("/v1/llm/active").status_code == 200

    def test_prod_without_configured_key_is_closed(self, client, monkeypatch):
        monkeypatch.setenv("MODE", "prod")
        assert client.get("/v1/llm/providers").status_code == 403
