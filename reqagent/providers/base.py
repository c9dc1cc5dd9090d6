"""
Base Provider Interface and Data Classes

This module defines the abstract interface that all inference backend
adapters must implement, along with the generic request/result types the
rest of the engine speaks.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field

from reqagent.core.exceptions import AdapterError
from reqagent.models.schemas import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)


class ResponseFormat(str, Enum):
    """Output-shape hint."""
    TEXT = "text"
    JSON_OBJECT = "json_object"


class ChatMessage(BaseModel):
    """One role-tagged message."""
    role: str = Field(description="system, user or assistant")
    content: str


class ExecutionRequest(BaseModel):
    """Generic chat-completion request. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    messages: List[ChatMessage]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    response_format: ResponseFormat = ResponseFormat.TEXT

    @property
    def wants_json(self) -> bool:
        return self.response_format == ResponseFormat.JSON_OBJECT

    def message_dicts(self) -> List[dict]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ExecutionResult(BaseModel):
    """Normalized completion returned by an adapter."""
    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    resolved_model: str = Field(description="Model name reported by the backend")
    provider_name: Optional[str] = None


class ProviderAdapter(ABC):
    """
    Abstract base class for inference backend adapters.

    An adapter maps an ExecutionRequest onto one backend's wire call and
    normalizes the response. Adapters do not log execution records; every
    backend failure (network, auth, timeout, malformed envelope) is raised
    as AdapterError.
    """

    default_timeout_seconds: float = 120.0

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Backend kind served by this adapter."""
        pass

    @property
    def default_model(self) -> Optional[str]:
        return self.config.models

    @property
    def timeout(self) -> float:
        return self.config.timeout_seconds or self.default_timeout_seconds

    def resolve_model(self, request: ExecutionRequest) -> str:
        model = request.model or self.default_model
        if not model:
            raise AdapterError(f"No model configured for provider {self.name}", self.name)
        return model

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Lightweight capability probe. Never raises."""
        pass

    @abstractmethod
    async def complete(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Run one chat completion.

        Args:
            request: Resolved request (model/temperature already defaulted)

        Returns:
            ExecutionResult with content, token usage and resolved model

        Raises:
            AdapterError: On any backend failure
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} priority={self.config.priority}>"
