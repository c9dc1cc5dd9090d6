"""
Inference provider adapters and the failover executor.

Importing this package registers every built-in adapter kind.
"""

from reqagent.providers.base import (
    ChatMessage,
    ExecutionRequest,
    ExecutionResult,
    ProviderAdapter,
    TokenUsage,
)
from reqagent.providers.registry import (
    create_adapter,
    get_adapter_class,
    list_registered_kinds,
    register_provider,
)

__all__ = [
    "ChatMessage",
    "ExecutionRequest",
    "ExecutionResult",
    "ProviderAdapter",
    "TokenUsage",
    "create_adapter",
    "get_adapter_class",
    "list_registered_kinds",
    "register_provider",
]
