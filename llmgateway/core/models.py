"""
llmgateway - Core Data Models

Provider-neutral request/response models for chat completions.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# Enums
# ============================================================

class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Completion finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    FUNCTION_CALL = "function_call"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"


class HealthStatus(str, Enum):
    """Provider health states."""
    UNKNOWN = "unknown"
    CHECKING = "checking"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ProviderType(str, Enum):
    """Where a provider runs."""
    CLOUD = "cloud"
    LOCAL = "local"
    CUSTOM = "custom"


class ModelType(str, Enum):
    """Model categories."""
    CHAT = "chat"
    COMPLETION = "completion"
    EMBEDDING = "embedding"
    VISION = "vision"
    MULTIMODAL = "multimodal"


# ============================================================
# Messages
# ============================================================

@dataclass
class Message:
    """A single chat turn."""
    role: Role
    content: str = ""

    @classmethod
    def system(cls, content: str) -> Message:
        """Create a system message."""
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        """Create a user message."""
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        """Create an assistant message."""
        return cls(role=Role.ASSISTANT, content=content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


# ============================================================
# Request Models
# ============================================================

# Generic parameter name -> request attribute
GENERATION_PARAMETERS: Dict[str, str] = {
    "temperature": "temperature",
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "topK": "top_k",
    "frequencyPenalty": "frequency_penalty",
    "presencePenalty": "presence_penalty",
    "repeatPenalty": "repeat_penalty",
    "stop": "stop",
}


@dataclass
class CompletionRequest:
    """
    Provider-neutral chat completion request.

    Every generation parameter defaults to None, meaning the caller did not
    set it and the backend's own default applies.

    Example:
        request = CompletionRequest(
            messages=[Message.system("You are helpful."), Message.user("Hello!")],
            provider="anthropic",
            temperature=0.2,
        )
    """
    messages: List[Message]
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    repeat_penalty: Optional[float] = None
    stop: Optional[List[str]] = None
    stream: bool = False

    def explicit_parameters(self) -> Dict[str, Any]:
        """Return only the generation parameters the caller set."""
        params = {}
        for name, attr in GENERATION_PARAMETERS.items():
            value = getattr(self, attr)
            if value is not None:
                params[name] = value
        return params


# ============================================================
# Response Models
# ============================================================

@dataclass
class Usage:
    """Token usage information."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens


@dataclass
class Choice:
    """A single completion choice."""
    index: int
    message: Message
    finish_reason: Optional[FinishReason] = None


@dataclass
class CompletionResponse:
    """Normalized chat completion response."""
    id: str
    object: str = "chat.completion"
    created: int = field(default_factory=lambda: int(time.time()))
    model: str = ""
    provider: str = ""
    choices: List[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    response_time: int = 0

    @classmethod
    def create(
        cls,
        content: str,
        model: str,
        provider: str,
        usage: Optional[Usage] = None,
        finish_reason: Optional[FinishReason] = FinishReason.STOP,
        response_id: Optional[str] = None,
    ) -> CompletionResponse:
        """Helper to create a single-choice response."""
        return cls(
            id=response_id or f"{provider}-{uuid.uuid4().hex[:12]}",
            model=model,
            provider=provider,
            choices=[
                Choice(
                    index=0,
                    message=Message.assistant(content),
                    finish_reason=finish_reason,
                )
            ],
            usage=usage or Usage(),
        )

    @property
    def content(self) -> str:
        """Text of the first choice."""
        if not self.choices:
            return ""
        return self.choices[0].message.content

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
            "provider": self.provider,
            "choices": [
                {
                    "index": c.index,
                    "message": c.message.to_dict(),
                    "finish_reason": c.finish_reason.value if c.finish_reason else None,
                }
                for c in self.choices
            ],
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "response_time": self.response_time,
        }


def finish_reason_from(value: Optional[str]) -> Optional[FinishReason]:
    """Map a backend finish reason string onto FinishReason, or None."""
    if not value:
        return None
    try:
        return FinishReason(value)
    except ValueError:
        return None
