"""
OpenAI Provider

Cloud adapter speaking the OpenAI chat completions API through the
official async SDK.
"""

import logging
from typing import Optional

import openai

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


@register_provider(ProviderKind.OPENAI)
class OpenAIProvider(ProviderAdapter):
    """Adapter for api.openai.com (or any endpoint given on the config)."""

    def __init__(self, config: ProviderConfig, client: Optional[openai.AsyncOpenAI] = None):
        super().__init__(config)
        self.default_timeout_seconds = settings.cloud_timeout_seconds
        self._client = client

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OPENAI

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.endpoint or None,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def is_healthy(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning(f"Health check failed for {self.name}: {e}")
            return False

    async def complete(self, request: ExecutionRequest) -> ExecutionResult:
        params = {
            "model": self.resolve_model(request),
            "messages": request.message_dicts(),
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.wants_json:
            params["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**params)
        except Exception as e:
            raise AdapterError(f"OpenAI inference failed: {e}", self.name) from e

        if not response.choices:
            raise AdapterError("OpenAI returned no choices", self.name)

        usage = response.usage
        return ExecutionResult(
            content=response.choices[0].message.content or "",
            usage=TokenUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
            resolved_model=response.model or params["model"],
            provider_name=self.name,
        )
