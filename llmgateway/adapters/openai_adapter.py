"""
llmgateway - OpenAI-Compatible Provider Adapter

Adapter for backends speaking the OpenAI chat-completions wire format:
OpenAI, Azure OpenAI, OpenRouter, Together, Groq, Mistral, LM Studio,
Cohere's compatibility endpoint and custom deployments.
"""

from typing import Any, Dict, List

import httpx

from .base import BaseAdapter, ProbeResult
from ..core.errors import handle_provider_error
from ..core.models import (
    Choice,
    CompletionResponse,
    Message,
    Role,
    Usage,
    finish_reason_from,
)
from ..core.parameters import is_reasoning_model


# Generic parameter name -> wire field
WIRE_FIELDS = {
    "temperature": "temperature",
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "topK": "top_k",
    "frequencyPenalty": "frequency_penalty",
    "presencePenalty": "presence_penalty",
    "repeatPenalty": "repeat_penalty",
    "stop": "stop",
}


class OpenAICompatibleAdapter(BaseAdapter):
    """
    Adapter for OpenAI-style /chat/completions backends.

    Reasoning models (o1-/o3-) only ever receive max_completion_tokens;
    temperature, top_p, penalties and stop are never sent to them.
    """

    family = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    CHAT_PATH = "/chat/completions"
    FALLBACK_PROBE_MODEL = "gpt-4o-mini"
    AZURE_API_VERSION = "2024-02-15-preview"

    @property
    def is_azure(self) -> bool:
        return self.provider_name == "azure-openai"

    def _auth_headers(self) -> Dict[str, str]:
        headers = {}
        api_key = self.config.api_key
        if api_key:
            if self.is_azure:
                headers["api-key"] = api_key
            else:
                headers["Authorization"] = f"Bearer {api_key}"
        if self.config.organization_id:
            headers["OpenAI-Organization"] = self.config.organization_id
        if self.config.project_id:
            headers["OpenAI-Project"] = self.config.project_id
        return headers

    # ============================================================
    # Chat
    # ============================================================

    def build_chat_payload(
        self,
        model: str,
        messages: List[Message],
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
        }

        if is_reasoning_model(model):
            if params.get("maxTokens") is not None:
                payload["max_completion_tokens"] = params["maxTokens"]
            return payload

        for name, wire_name in WIRE_FIELDS.items():
            if params.get(name) is not None:
                payload[wire_name] = params[name]

        return payload

    async def _post_chat(self, model: str, payload: Dict[str, Any], **kwargs) -> httpx.Response:
        if self.is_azure:
            return await self.client.post(
                f"/openai/deployments/{model}/chat/completions",
                json=payload,
                params={"api-version": self.config.api_version or self.AZURE_API_VERSION},
                **kwargs
            )
        return await self.client.post(self.CHAT_PATH, json=payload, **kwargs)

    def parse_chat_response(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        choices = []
        for index, choice in enumerate(data.get("choices") or []):
            message = choice.get("message") or {}
            choices.append(
                Choice(
                    index=choice.get("index", index),
                    message=Message(
                        role=Role(message.get("role") or "assistant"),
                        content=message.get("content") or "",
                    ),
                    finish_reason=finish_reason_from(choice.get("finish_reason")),
                )
            )

        usage_data = data.get("usage") or {}
        usage = Usage(
            prompt_tokens=usage_data.get("prompt_tokens", 0),
            completion_tokens=usage_data.get("completion_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0),
        )

        result = CompletionResponse(
            id=data.get("id") or f"{self.provider_name}-{self._now_ms()}",
            object=data.get("object") or "chat.completion",
            model=data.get("model") or model,
            provider=self.provider_name,
            choices=choices,
            usage=usage,
        )
        if data.get("created"):
            result.created = data["created"]
        return result

    # ============================================================
    # Health & discovery
    # ============================================================

    async def list_models(self, timeout=None) -> List[Dict[str, Any]]:
        """GET /models, returned as [{"id", "object"}]."""
        response = await self.client.get("/models", timeout=timeout or self.config.probe_timeout())
        response.raise_for_status()
        return [
            {"id": m.get("id"), "object": m.get("object", "model")}
            for m in response.json().get("data", [])
        ]

    async def probe(self) -> ProbeResult:
        """List models; if that fails, fall back to a 5-token completion."""
        try:
            await self.list_models()
        except Exception:
            model = self.probe_model() or self.FALLBACK_PROBE_MODEL
            payload = self.build_chat_payload(
                model,
                [Message.user(self.PROBE_PROMPT)],
                {"maxTokens": self.PROBE_MAX_TOKENS},
            )
            try:
                response = await self._post_chat(model, payload, timeout=self.config.probe_timeout())
                response.raise_for_status()
            except Exception as e:
                raise handle_provider_error(self.provider_name, e)

        return ProbeResult(success=True, message="Connection successful")
