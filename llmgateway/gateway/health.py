"""
llmgateway - Provider Health Checker

Runs the family probe for one provider and records the outcome on the
registry record: unknown -> healthy <-> unhealthy. Never raises.
"""

import time
from typing import Union

from ..adapters import ProbeResult, get_adapter
from ..core.errors import ProviderConfigError
from ..db.models import LLMProvider
from ..db.services import ProviderService
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import trace_provider_call

logger = get_logger(__name__)


class HealthChecker:
    """Probe a provider and persist health status, latency and failure streak."""

    def __init__(self, providers: ProviderService):
        self.providers = providers

    async def test_provider(self, name_or_id: Union[str, int]) -> ProbeResult:
        """
        Probe one provider.

        Returns {success, message, latency}. Backend errors and unusable
        connection settings become failure results with the error persisted
        as last_error. A missing API key is reported without touching the
        record.
        """
        provider = await self.providers.get_provider(name_or_id)
        if provider is None:
            return ProbeResult(success=False, message="Provider not found")

        start_time = time.time()

        try:
            adapter = get_adapter(provider)
        except ProviderConfigError as e:
            return await self._record_failure(provider, start_time, e, e.error.message)

        async with adapter:
            if adapter.requires_api_key and not provider.api_key:
                return ProbeResult(success=False, message="API key not configured")

            with trace_provider_call(provider.name, provider.default_model, "probe") as span:
                try:
                    result = await adapter.probe()
                except Exception as e:
                    span.set_attribute("llm.probe.success", False)
                    return await self._record_failure(provider, start_time, e, str(e))

                latency = int((time.time() - start_time) * 1000)
                span.set_attribute("llm.probe.success", True)
                span.set_attribute("llm.probe.latency_ms", latency)

        await self.providers.record_health_success(provider.id, latency)
        get_metrics().record_health_check(provider.name, success=True)
        logger.info(
            "Provider health check passed",
            provider=provider.name,
            latency_ms=latency,
        )

        result.latency = latency
        return result

    async def _record_failure(
        self,
        provider: LLMProvider,
        start_time: float,
        error: Exception,
        message: str,
    ) -> ProbeResult:
        latency = int((time.time() - start_time) * 1000)
        message = message or "Connection failed"

        await self.providers.record_health_failure(provider.id, message)
        get_metrics().record_health_check(provider.name, success=False)
        logger.warning(
            "Provider health check failed",
            provider=provider.name,
            latency_ms=latency,
            error=message,
            error_type=type(error).__name__,
        )
        return ProbeResult(success=False, message=message, latency=latency)
