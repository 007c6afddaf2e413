"""
llmgateway - Ollama Provider Adapter

Adapter for a local Ollama runtime (/api/chat, /api/tags, /api/pull).
"""

from typing import Any, Dict, List

from .base import BaseAdapter, ProbeResult
from ..core.errors import ProviderRequestError
from ..core.models import (
    CompletionResponse,
    FinishReason,
    Message,
    Usage,
)


# Generic parameter name -> options field
OPTION_FIELDS = {
    "temperature": "temperature",
    "maxTokens": "num_predict",
    "topP": "top_p",
    "topK": "top_k",
    "repeatPenalty": "repeat_penalty",
    "stop": "stop",
}


class OllamaAdapter(BaseAdapter):
    """Adapter for Ollama. No API key, non-streaming chat only."""

    family = "ollama"
    DEFAULT_BASE_URL = "http://localhost:11434"
    CHAT_PATH = "/api/chat"

    @property
    def requires_api_key(self) -> bool:
        return False

    def build_chat_payload(
        self,
        model: str,
        messages: List[Message],
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "stream": False,
        }

        options = {
            wire_name: params[name]
            for name, wire_name in OPTION_FIELDS.items()
            if params.get(name) is not None
        }
        if options:
            payload["options"] = options

        return payload

    def parse_chat_response(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        message = data.get("message") or {}
        usage = Usage(
            prompt_tokens=data.get("prompt_eval_count") or 0,
            completion_tokens=data.get("eval_count") or 0,
        )
        return CompletionResponse.create(
            content=message.get("content") or "",
            model=data.get("model") or model,
            provider=self.provider_name,
            usage=usage,
            finish_reason=FinishReason.STOP if data.get("done") else None,
            response_id=f"ollama-{self._now_ms()}",
        )

    # ============================================================
    # Health & model management
    # ============================================================

    async def list_models(self, timeout=None) -> List[Dict[str, Any]]:
        """Installed models from /api/tags."""
        response = await self.client.get("/api/tags", timeout=timeout or self.config.probe_timeout())
        if response.status_code >= 400:
            raise ProviderRequestError(
                self.provider_name,
                f"Ollama returned status {response.status_code}",
            )
        return response.json().get("models", [])

    async def pull_model(self, model_name: str) -> Dict[str, Any]:
        """Pull a model; blocks until the download finishes."""
        response = await self.client.post(
            "/api/pull",
            json={"name": model_name, "stream": False},
            timeout=None,
        )
        response.raise_for_status()
        return response.json()

    async def probe(self) -> ProbeResult:
        models = await self.list_models()
        count = len(models)
        noun = "model" if count == 1 else "models"
        return ProbeResult(success=True, message=f"Connected. {count} {noun} available.")
