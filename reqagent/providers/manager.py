"""
Failover executor over the configured inference providers.

Holds an immutable, priority-ordered tuple of adapters built from the
record store. ``execute`` walks the tuple in order and returns the first
successful completion; every attempt is appended to the execution log.
"""

import logging
import time
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from reqagent.core.config import settings
from reqagent.core.database import RecordStore
from reqagent.core.exceptions import NoProviderAvailable, ProviderExhausted
from reqagent.core.log_sink import ExecutionLogSink
from reqagent.models.schemas import ExecutionLogEntry, LogStatus, ProviderConfig, ProviderKind
from reqagent.providers.base import ExecutionRequest, ExecutionResult, ProviderAdapter
from reqagent.providers.registry import create_adapter

logger = logging.getLogger(__name__)

ENV_PROVIDER_ID = "env-openai"

# USD per 1K tokens (prompt, completion)
OPENAI_COSTS = {
    "gpt-4": (0.03, 0.06),
    "gpt-4-turbo": (0.01, 0.03),
    "gpt-3.5-turbo": (0.0005, 0.0015),
}


class ProviderStatus(BaseModel):
    """Per-provider health and usage counters for monitoring."""
    id: str
    name: str
    kind: ProviderKind
    is_healthy: bool = True
    last_checked: Optional[datetime] = None
    last_error: Optional[str] = None
    success_count: int = 0
    failure_count: int = 0
    avg_latency_ms: float = 0.0
    total_tokens_used: int = 0
    prompt_tokens_used: int = 0
    completion_tokens_used: int = 0
    estimated_cost_usd: float = 0.0
    last_used: Optional[datetime] = None


def estimate_openai_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    if "gpt-4" in model:
        key = "gpt-4-turbo" if "turbo" in model else "gpt-4"
    else:
        key = "gpt-3.5-turbo"
    prompt_rate, completion_rate = OPENAI_COSTS[key]
    return (prompt_tokens * prompt_rate + completion_tokens * completion_rate) / 1000


class ProviderManager:
    """
    Priority-ordered failover executor.

    Args:
        store: Record store holding provider configs and settings
        log_sink: Execution log sink (created over ``store`` if omitted)
        fallback_api_key: Credential for the env fallback provider
    """

    def __init__(
        self,
        store: RecordStore,
        log_sink: Optional[ExecutionLogSink] = None,
        fallback_api_key: Optional[str] = None,
    ):
        self.store = store
        self.log_sink = log_sink or ExecutionLogSink(store)
        self.fallback_api_key = fallback_api_key if fallback_api_key is not None else settings.openai_api_key
        self._providers: Tuple[ProviderAdapter, ...] = ()
        self._statuses: Dict[str, ProviderStatus] = {}

    @property
    def providers(self) -> Tuple[ProviderAdapter, ...]:
        return self._providers

    # ============== Registry ==============

    async def refresh(self) -> int:
        """
        Rebuild the provider registry from active configs.

        Returns:
            Number of providers loaded
        """
        logger.info("Refreshing AI providers from store...")
        configs = await self.store.list_active_provider_configs()
        # sorted() is stable, so equal priorities keep load order
        configs = sorted(configs, key=lambda c: c.priority, reverse=True)

        adapters: List[ProviderAdapter] = []
        for config in configs:
            try:
                adapters.append(create_adapter(config))
            except ValueError as e:
                logger.warning(f"Skipping provider {config.name}: {e}")

        if not adapters:
            logger.warning("No active AI providers found. Checking environment for fallback...")
            if self.fallback_api_key:
                logger.info("Adding default OpenAI provider from environment")
                adapters.append(create_adapter(ProviderConfig(
                    id=ENV_PROVIDER_ID,
                    name="OpenAI (ENV)",
                    kind=ProviderKind.OPENAI,
                    api_key=self.fallback_api_key,
                    models=settings.default_model,
                )))

        for adapter in adapters:
            if adapter.config.id not in self._statuses:
                self._statuses[adapter.config.id] = ProviderStatus(
                    id=adapter.config.id, name=adapter.name, kind=adapter.kind
                )

        # Swap by reference; readers holding the old tuple are unaffected
        self._providers = tuple(adapters)
        logger.info(f"Loaded {len(adapters)} AI providers")
        return len(adapters)

    def set_providers(self, adapters: List[ProviderAdapter]):
        """Install an explicit adapter list (already in priority order)."""
        for adapter in adapters:
            self._statuses.setdefault(
                adapter.config.id,
                ProviderStatus(id=adapter.config.id, name=adapter.name, kind=adapter.kind),
            )
        self._providers = tuple(adapters)

    def active_provider(self) -> ProviderAdapter:
        providers = self._providers
        if not providers:
            raise NoProviderAvailable()
        return providers[0]

    # ============== Execution ==============

    async def _apply_global_settings(self, request: ExecutionRequest) -> ExecutionRequest:
        update = {}
        if request.model is None:
            try:
                model = await self.store.get_setting("ai.model")
                if model:
                    update["model"] = model
            except Exception as e:
                logger.warning(f"Failed to read global model setting, using request value: {e}")
        if request.temperature is None:
            try:
                temperature = await self.store.get_setting("ai.temperature")
                if temperature is not None and str(temperature).strip():
                    update["temperature"] = float(temperature)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed ai.temperature setting: {e}")
            except Exception as e:
                logger.warning(f"Failed to read global temperature setting, using request value: {e}")
        return request.model_copy(update=update) if update else request

    async def execute(
        self, request: ExecutionRequest, context: Optional[str] = None
    ) -> ExecutionResult:
        """
        Execute a request with ordered failover.

        Args:
            request: Chat completion request
            context: Free-form tag written to the execution log

        Returns:
            Result from the first provider that succeeds

        Raises:
            NoProviderAvailable: If the registry is empty
            ProviderExhausted: If every provider failed
        """
        providers = self._providers
        if not providers:
            raise NoProviderAvailable()

        resolved = await self._apply_global_settings(request)
        last_error: Optional[BaseException] = None

        for adapter in providers:
            status = self._statuses.get(adapter.config.id)
            logger.debug(f"Attempting execution with {adapter.name} ({adapter.kind.value})")
            start = time.perf_counter()
            try:
                result = await adapter.complete(resolved)
            except Exception as e:
                last_error = e
                logger.warning(f"Provider {adapter.name} failed: {e}. Failing over...")
                if status:
                    status.failure_count += 1
                    status.last_error = str(e)
                self._log_attempt(ExecutionLogEntry(
                    provider_name=adapter.name,
                    model=resolved.model or adapter.default_model or "unknown",
                    status=LogStatus.FAILED,
                    error_message=str(e),
                    context=context,
                ))
                continue

            latency_ms = (time.perf_counter() - start) * 1000
            if status:
                self._record_success(status, adapter, result, latency_ms)
            if result.provider_name is None:
                result = result.model_copy(update={"provider_name": adapter.name})
            self._log_attempt(ExecutionLogEntry(
                provider_name=adapter.name,
                model=result.resolved_model,
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
                status=LogStatus.SUCCESS,
                context=context,
            ))
            return result

        raise ProviderExhausted(last_error, attempts=len(providers))

    def _record_success(
        self, status: ProviderStatus, adapter: ProviderAdapter, result: ExecutionResult, latency_ms: float
    ):
        status.success_count += 1
        status.avg_latency_ms = round(
            (status.avg_latency_ms * (status.success_count - 1) + latency_ms) / status.success_count, 2
        )
        status.is_healthy = True
        status.last_error = None
        status.total_tokens_used += result.usage.total_tokens
        status.prompt_tokens_used += result.usage.prompt_tokens
        status.completion_tokens_used += result.usage.completion_tokens
        status.last_used = datetime.now()
        if adapter.kind == ProviderKind.OPENAI:
            status.estimated_cost_usd += estimate_openai_cost(
                result.resolved_model, result.usage.prompt_tokens, result.usage.completion_tokens
            )

    def _log_attempt(self, entry: ExecutionLogEntry):
        try:
            self.log_sink.emit(entry)
        except Exception as e:
            logger.error(f"Failed to save AI log: {e}")

    # ============== Monitoring ==============

    def get_provider_statuses(self) -> List[ProviderStatus]:
        return [s.model_copy() for s in self._statuses.values()]

    async def check_all_health(self) -> List[ProviderStatus]:
        """Probe every registered provider and update its status."""
        results = []
        for adapter in self._providers:
            status = self._statuses[adapter.config.id]
            try:
                healthy = await adapter.is_healthy()
                status.is_healthy = healthy
                if healthy:
                    status.last_error = None
            except Exception as e:
                status.is_healthy = False
                status.last_error = str(e)
            status.last_checked = datetime.now()
            results.append(status.model_copy())
        return results
