"""
llmgateway - Anthropic Provider Adapter

Adapter for Anthropic's Messages API.
"""

from typing import Any, Dict, List

from .base import AdapterConfig, BaseAdapter, ProbeResult
from ..core.errors import handle_provider_error
from ..core.models import (
    CompletionResponse,
    FinishReason,
    Message,
    Role,
    Usage,
)


class AnthropicAdapter(BaseAdapter):
    """
    Adapter for Anthropic Claude.

    System turns are lifted into the top-level "system" field. The API
    requires max_tokens, so 4096 is sent when the caller leaves it unset.
    """

    family = "anthropic"
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    CHAT_PATH = "/messages"
    API_VERSION = "2023-06-01"
    DEFAULT_MAX_TOKENS = 4096
    FALLBACK_PROBE_MODEL = "claude-3-haiku-20240307"

    FINISH_REASONS = {
        "end_turn": FinishReason.STOP,
        "stop_sequence": FinishReason.STOP,
        "max_tokens": FinishReason.LENGTH,
    }

    def __init__(self, config: AdapterConfig):
        # Messages API lives under /v1
        if config.base_url and not config.base_url.rstrip("/").endswith("/v1"):
            config.base_url = config.base_url.rstrip("/") + "/v1"
        super().__init__(config)

    @property
    def requires_api_key(self) -> bool:
        return True

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key or "",
            "anthropic-version": self.API_VERSION,
        }

    # ============================================================
    # Chat
    # ============================================================

    def build_chat_payload(
        self,
        model: str,
        messages: List[Message],
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        system, turns = self._split_system(messages)

        max_tokens = params.get("maxTokens")
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": m.role.value, "content": m.content}
                for m in turns
                if m.role in (Role.USER, Role.ASSISTANT)
            ],
            "max_tokens": max_tokens if max_tokens is not None else self.DEFAULT_MAX_TOKENS,
        }

        if system:
            payload["system"] = "\n\n".join(system)
        if params.get("temperature") is not None:
            payload["temperature"] = params["temperature"]
        if params.get("topP") is not None:
            payload["top_p"] = params["topP"]
        if params.get("topK") is not None:
            payload["top_k"] = params["topK"]
        if params.get("stop") is not None:
            payload["stop_sequences"] = params["stop"]

        return payload

    def parse_chat_response(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        text = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if block.get("type") == "text"
        )

        usage_data = data.get("usage") or {}
        usage = Usage(
            prompt_tokens=usage_data.get("input_tokens", 0),
            completion_tokens=usage_data.get("output_tokens", 0),
        )

        return CompletionResponse.create(
            content=text,
            model=data.get("model") or model,
            provider=self.provider_name,
            usage=usage,
            finish_reason=self.FINISH_REASONS.get(data.get("stop_reason")),
            response_id=data.get("id") or f"anthropic-{self._now_ms()}",
        )

    # ============================================================
    # Health
    # ============================================================

    async def probe(self) -> ProbeResult:
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
