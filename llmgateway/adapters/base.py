"""
llmgateway - Provider Adapter Base

Abstract base class for backend family adapters.
Each family (OpenAI-compatible, Gemini, Ollama, Anthropic) implements this
interface.
"""

import ssl
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from ..core.errors import handle_provider_error
from ..core.models import CompletionResponse, Message, Role


@dataclass
class AdapterConfig:
    """Connection settings for one provider. Timeouts are in milliseconds."""
    provider_name: str
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    api_version: Optional[str] = None
    organization_id: Optional[str] = None
    project_id: Optional[str] = None
    default_model: Optional[str] = None
    provider_type: str = "cloud"
    request_timeout: int = 120000
    connect_timeout: int = 30000
    custom_headers: Dict[str, str] = field(default_factory=dict)
    proxy_url: Optional[str] = None
    proxy_username: Optional[str] = None
    proxy_password: Optional[str] = None
    skip_tls_verify: bool = False
    custom_ca_cert: Optional[str] = None

    @classmethod
    def from_provider(cls, provider) -> "AdapterConfig":
        """Build from an LLMProvider record."""
        return cls(
            provider_name=provider.name,
            base_url=provider.base_url,
            api_key=provider.api_key,
            api_version=provider.api_version,
            organization_id=provider.organization_id,
            project_id=provider.project_id,
            default_model=provider.default_model,
            provider_type=provider.provider_type,
            request_timeout=provider.request_timeout,
            connect_timeout=provider.connect_timeout,
            custom_headers=dict(provider.custom_headers or {}),
            proxy_url=provider.proxy_url,
            proxy_username=provider.proxy_username,
            proxy_password=provider.proxy_password,
            skip_tls_verify=provider.skip_tls_verify,
            custom_ca_cert=provider.custom_ca_cert,
        )

    def timeout(self) -> httpx.Timeout:
        """Timeout for completion calls."""
        return httpx.Timeout(self.request_timeout / 1000, connect=self.connect_timeout / 1000)

    def probe_timeout(self) -> httpx.Timeout:
        """Health probes are bounded by the connect timeout end to end."""
        return httpx.Timeout(self.connect_timeout / 1000)

    def verify(self):
        if self.skip_tls_verify:
            return False
        if self.custom_ca_cert:
            return ssl.create_default_context(cadata=self.custom_ca_cert)
        return True

    def proxy(self) -> Optional[str]:
        """Proxy URL with credentials folded in, if configured."""
        if not self.proxy_url:
            return None
        if not self.proxy_username:
            return self.proxy_url

        parts = urlsplit(self.proxy_url)
        userinfo = quote(self.proxy_username, safe="")
        if self.proxy_password:
            userinfo += ":" + quote(self.proxy_password, safe="")
        netloc = f"{userinfo}@{parts.hostname}"
        if parts.port:
            netloc += f":{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


@dataclass
class ProbeResult:
    """Outcome of a connectivity probe."""
    success: bool
    message: str
    latency: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.latency is not None:
            result["latency"] = self.latency
        return result


class BaseAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each adapter must implement:
    - build_chat_payload: generic messages + validated parameters -> wire body
    - parse_chat_response: wire body -> CompletionResponse
    - probe: lightweight "can we talk to this backend" check

    Only parameters present in the validated map reach the wire body.
    Adapters never retry; backend failures are mapped through
    handle_provider_error() and raised.
    """

    family: str = ""
    DEFAULT_BASE_URL: str = ""
    CHAT_PATH: str = ""
    PROBE_PROMPT = "Hi"
    PROBE_MAX_TOKENS = 5

    def __init__(self, config: AdapterConfig):
        self.config = config
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._build_headers(),
            timeout=config.timeout(),
            verify=config.verify(),
            proxy=config.proxy(),
        )

    @property
    def provider_name(self) -> str:
        return self.config.provider_name

    @property
    def requires_api_key(self) -> bool:
        """Whether calls without an API key should fail before any network I/O."""
        return self.config.provider_type == "cloud"

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self._auth_headers())
        headers.update(self.config.custom_headers or {})
        return headers

    def _auth_headers(self) -> Dict[str, str]:
        return {}

    # ============================================================
    # Chat
    # ============================================================

    @abstractmethod
    def build_chat_payload(
        self,
        model: str,
        messages: List[Message],
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Translate to the family's wire request."""
        pass

    @abstractmethod
    def parse_chat_response(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        """Normalize the family's wire response."""
        pass

    async def _post_chat(self, model: str, payload: Dict[str, Any], **kwargs) -> httpx.Response:
        return await self.client.post(self.CHAT_PATH, json=payload, **kwargs)

    async def chat(
        self,
        model: str,
        messages: List[Message],
        params: Dict[str, Any],
        request_id: str = ""
    ) -> CompletionResponse:
        """
        Run one completion.

        Args:
            model: Backend model id
            messages: Conversation turns
            params: Validated parameters keyed by generic name
            request_id: Request ID for error tracking
        """
        payload = self.build_chat_payload(model, messages, params)

        start_time = time.time()

        try:
            response = await self._post_chat(model, payload)
            response.raise_for_status()
            result = self.parse_chat_response(response.json(), model)
        except Exception as e:
            raise handle_provider_error(self.provider_name, e, request_id)

        result.response_time = int((time.time() - start_time) * 1000)
        return result

    # ============================================================
    # Health
    # ============================================================

    @abstractmethod
    async def probe(self) -> ProbeResult:
        """
        Check connectivity. Returns on success, raises on failure.

        Latency and state recording are the caller's job.
        """
        pass

    def probe_model(self) -> str:
        return self.config.default_model or ""

    # ============================================================
    # Helpers for subclasses
    # ============================================================

    @staticmethod
    def _split_system(messages: List[Message]):
        """Separate system turns from the conversation."""
        system = [m.content for m in messages if m.role == Role.SYSTEM]
        rest = [m for m in messages if m.role != Role.SYSTEM]
        return system, rest

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "BaseAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
