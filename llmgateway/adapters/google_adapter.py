"""
llmgateway - Google Gemini Provider Adapter

Adapter for Google's Generative Language REST API (generateContent).
"""

from typing import Any, Dict, List

import httpx

from .base import BaseAdapter, ProbeResult
from ..core.errors import ProviderRequestError, handle_provider_error
from ..core.models import (
    CompletionResponse,
    FinishReason,
    Message,
    Role,
    Usage,
)


# Generic parameter name -> generationConfig field
GENERATION_CONFIG_FIELDS = {
    "temperature": "temperature",
    "maxTokens": "maxOutputTokens",
    "topP": "topP",
    "topK": "topK",
    "stop": "stopSequences",
}

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GeminiAdapter(BaseAdapter):
    """
    Adapter for Google Gemini.

    The conversation is flattened into one prompt: system text first, then
    "User:" / "Assistant:" lines. Token usage is reported as zero because
    this response shape is not mapped to token counts.
    """

    family = "gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    FALLBACK_PROBE_MODEL = "gemini-1.5-flash"

    @property
    def requires_api_key(self) -> bool:
        return True

    def _auth_headers(self) -> Dict[str, str]:
        if self.config.api_key:
            return {"x-goog-api-key": self.config.api_key}
        return {}

    # ============================================================
    # Chat
    # ============================================================

    @staticmethod
    def build_prompt(messages: List[Message]) -> str:
        system, turns = BaseAdapter._split_system(messages)

        prompt = ""
        if system:
            prompt += "System: " + "\n\n".join(system) + "\n\n"

        for msg in turns:
            if msg.role == Role.USER:
                prompt += f"User: {msg.content}\n"
            elif msg.role == Role.ASSISTANT:
                prompt += f"Assistant: {msg.content}\n"

        return prompt

    def build_chat_payload(
        self,
        model: str,
        messages: List[Message],
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": [
                {"role": "user", "parts": [{"text": self.build_prompt(messages)}]}
            ],
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"}
                for category in SAFETY_CATEGORIES
            ],
        }

        generation_config = {
            wire_name: params[name]
            for name, wire_name in GENERATION_CONFIG_FIELDS.items()
            if params.get(name) is not None
        }
        if generation_config:
            payload["generationConfig"] = generation_config

        return payload

    async def _post_chat(self, model: str, payload: Dict[str, Any], **kwargs) -> httpx.Response:
        return await self.client.post(
            f"/models/{model}:generateContent",
            json=payload,
            **kwargs
        )

    def parse_chat_response(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates returned")
            raise ProviderRequestError(self.provider_name, f"Gemini returned no content: {reason}")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)

        return CompletionResponse.create(
            content=text,
            model=model,
            provider=self.provider_name,
            usage=Usage(),
            finish_reason=FinishReason.STOP,
            response_id=f"gemini-{self._now_ms()}",
        )

    # ============================================================
    # Health
    # ============================================================

    async def probe(self) -> ProbeResult:
        model = self.probe_model() or self.FALLBACK_PROBE_MODEL
        payload = self.build_chat_payload(
            model, [Message.user(self.PROBE_PROMPT)], {"maxTokens": self.PROBE_MAX_TOKENS}
        )
        try:
            response = await self._post_chat(model, payload, timeout=self.config.probe_timeout())
            response.raise_for_status()
        except Exception as e:
            raise handle_provider_error(self.provider_name, e)

        return ProbeResult(success=True, message="Connection successful")
