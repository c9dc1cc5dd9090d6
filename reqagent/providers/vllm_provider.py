"""
vLLM Provider

Self-hosted adapter for OpenAI-compatible servers (vLLM). Completions go
through LiteLLM with the ``openai/`` model prefix and a custom api_base;
the health probe hits ``GET {endpoint}/models`` directly.
"""

import logging

import httpx
from litellm import acompletion

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


@register_provider(ProviderKind.VLLM)
class VLLMProvider(ProviderAdapter):
    """Adapter for a vLLM server exposing the /v1 OpenAI-compatible API."""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.default_timeout_seconds = settings.self_hosted_timeout_seconds
        if not config.endpoint:
            raise ValueError(f"vLLM provider {config.name} requires an endpoint")

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.VLLM

    @property
    def base_url(self) -> str:
        endpoint = self.config.endpoint.rstrip("/")
        return endpoint if endpoint.endswith("/v1") else f"{endpoint}/v1"

    @staticmethod
    def get_litellm_model(model: str) -> str:
        """Custom endpoint - use openai/ prefix with api_base."""
        if not model.startswith("openai/"):
            return f"openai/{model}"
        return model

    async def is_healthy(self) -> bool:
        try:
            headers = {}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/models", headers=headers)
                response.raise_for_status()
            return True
        except Exception as e:
            logger.warning(f"Health check failed for {self.name}: {e}")
            return False

    async def complete(self, request: ExecutionRequest) -> ExecutionResult:
        model = self.resolve_model(request)
        params = {
            "model": self.get_litellm_model(model),
            "messages": request.message_dicts(),
            "api_base": self.base_url,
            # vLLM ignores the key unless started with --api-key
            "api_key": self.config.api_key or "EMPTY",
            "timeout": self.timeout,
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.wants_json:
            params["response_format"] = {"type": "json_object"}

        try:
            response = await acompletion(**params)
        except Exception as e:
            raise AdapterError(f"vLLM inference failed: {e}", self.name) from e

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise AdapterError(f"vLLM returned a malformed response: {e}", self.name) from e

        usage = getattr(response, "usage", None)
        return ExecutionResult(
            content=content,
            usage=TokenUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
            resolved_model=getattr(response, "model", None) or model,
            provider_name=self.name,
        )
