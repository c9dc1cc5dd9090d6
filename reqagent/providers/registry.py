"""
Adapter Factory and Registry

Maps provider kinds to adapter implementations. Adapters register
themselves with the ``register_provider`` decorator.
"""

import logging
from typing import Dict, List, Optional, Type

from reqagent.models.schemas import ProviderConfig, ProviderKind
from reqagent.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

# Adapter registry - maps provider kinds to implementation classes
_provider_registry: Dict[ProviderKind, Type[ProviderAdapter]] = {}


def register_provider(kind: ProviderKind):
    """
    Decorator to register an adapter implementation.

    Usage:
        @register_provider(ProviderKind.OLLAMA)
        class OllamaProvider(ProviderAdapter):
            ...
    """
    def decorator(cls: Type[ProviderAdapter]):
        _provider_registry[kind] = cls
        logger.debug(f"Registered provider: {kind.value} -> {cls.__name__}")
        return cls
    return decorator


def get_adapter_class(kind: ProviderKind) -> Optional[Type[ProviderAdapter]]:
    """Get the adapter class for a given kind."""
    return _provider_registry.get(kind)


def create_adapter(config: ProviderConfig) -> ProviderAdapter:
    """
    Create an adapter instance from a stored config.

    Raises:
        ValueError: If the config's kind is not registered
    """
    cls = get_adapter_class(config.kind)
    if not cls:
        raise ValueError(f"No provider registered for kind: {config.kind}")
    return cls(config)


def list_registered_kinds() -> List[ProviderKind]:
    """List all registered provider kinds."""
    return list(_provider_registry.keys())


# Import adapter implementations to trigger registration
# These imports are at the bottom to avoid circular imports
from reqagent.providers import openai_provider  # noqa: E402, F401
from reqagent.providers import vllm_provider  # noqa: E402, F401
from reqagent.providers import ollama_provider  # noqa: E402, F401
