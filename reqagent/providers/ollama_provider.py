"""
Ollama Provider

Self-hosted adapter using Ollama's native ``/api/chat`` endpoint.
Structured requests set ``format: "json"``; token counts come from
``prompt_eval_count`` / ``eval_count``.
"""

import logging
from typing import Any, Dict

import httpx

from reqagent.core.config import settings
from reqagent.core.exceptions import AdapterError
from reqagent.models.schemas import ProviderConfig, ProviderKind
from reqagent.providers.base import (
    ExecutionRequest,
    ExecutionResult,
    ProviderAdapter,
    TokenUsage,
)
from reqagent.providers.registry import register_provider

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"


@register_provider(ProviderKind.OLLAMA)
class OllamaProvider(ProviderAdapter):
    """Adapter for a local or remote Ollama daemon."""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.default_timeout_seconds = settings.self_hosted_timeout_seconds

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OLLAMA

    @property
    def base_url(self) -> str:
        endpoint = (self.config.endpoint or DEFAULT_OLLAMA_ENDPOINT).rstrip("/")
        # Configs written for the OpenAI-compatible shim point at /v1
        if endpoint.endswith("/v1"):
            endpoint = endpoint[:-3]
        return endpoint

    async def is_healthy(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
            return True
        except Exception as e:
            logger.warning(f"Health check failed for {self.name}: {e}")
            return False

    def _build_payload(self, request: ExecutionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.resolve_model(request),
            "messages": request.message_dicts(),
            "stream": False,
        }
        options = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens
        if options:
            payload["options"] = options
        if request.wants_json:
            payload["format"] = "json"
        return payload

    async def complete(self, request: ExecutionRequest) -> ExecutionResult:
        payload = self._build_payload(request)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            raise AdapterError(f"Ollama inference failed: {e}", self.name) from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise AdapterError("Ollama response has no message", self.name)

        prompt_tokens = data.get("prompt_eval_count") or 0
        completion_tokens = data.get("eval_count") or 0
        return ExecutionResult(
            content=message.get("content") or "",
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            resolved_model=data.get("model") or payload["model"],
            provider_name=self.name,
        )
