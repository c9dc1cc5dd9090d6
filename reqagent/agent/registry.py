"""Agent Registry - closed catalog of agent kinds.

Agent classes register themselves with the ``@AgentRegistry.register``
decorator. An AgentRegistry instance holds one live agent per kind, bound
to a failover executor and accuracy scorer.

Usage:
    @AgentRegistry.register
    class RefinerAgent(BaseAgent):
        kind = AgentKind.REFINER

    registry = AgentRegistry(executor, scorer)
    agent = registry.get(AgentKind.REFINER)
"""

import logging
from typing import Dict, List, Optional, Type, TYPE_CHECKING

from reqagent.agent.agents.base import BaseAgent
from reqagent.agent.schemas import AgentKind

if TYPE_CHECKING:
    from reqagent.analysis.accuracy import AccuracyScorer
    from reqagent.providers.manager import ProviderManager

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Maps each AgentKind to one agent instance."""

    _agent_classes: Dict[AgentKind, Type[BaseAgent]] = {}

    @classmethod
    def register(cls, agent_class: Type[BaseAgent]) -> Type[BaseAgent]:
        """Decorator to register an agent class by its ``kind``.

        Raises:
            TypeError: If agent_class is not a BaseAgent subclass
            ValueError: If the class does not declare a kind
        """
        if not isinstance(agent_class, type) or not issubclass(agent_class, BaseAgent):
            raise TypeError(f"Agent class must inherit from BaseAgent")

        kind = getattr(agent_class, "kind", None)
        if not isinstance(kind, AgentKind):
            raise ValueError(f"Agent {agent_class.__name__} must declare an AgentKind 'kind'")

        if kind in cls._agent_classes:
            logger.warning(f"Agent kind '{kind.value}' already registered, overwriting")

        cls._agent_classes[kind] = agent_class
        logger.debug(f"Registered agent: {kind.value} -> {agent_class.__name__}")
        return agent_class

    @classmethod
    def registered_kinds(cls) -> List[AgentKind]:
        return list(cls._agent_classes.keys())

    def __init__(
        self,
        executor: "ProviderManager",
        scorer: Optional["AccuracyScorer"] = None,
        kinds: Optional[List[AgentKind]] = None,
    ):
        if scorer is None:
            from reqagent.analysis.accuracy import AccuracyScorer
            scorer = AccuracyScorer()
        self.executor = executor
        self.scorer = scorer
        self._agents: Dict[AgentKind, BaseAgent] = {}

        for kind in kinds if kinds is not None else self.registered_kinds():
            agent_class = self._agent_classes.get(kind)
            if agent_class is None:
                logger.warning(f"No agent registered for kind: {kind.value}")
                continue
            self._agents[kind] = agent_class(executor, scorer)

    def get(self, kind: AgentKind) -> Optional[BaseAgent]:
        """Look up the agent for ``kind``; None if it is not registered."""
        try:
            return self._agents.get(AgentKind(kind))
        except ValueError:
            return None

    def set_agent(self, agent: BaseAgent):
        """Install or replace the instance serving ``agent.kind``."""
        self._agents[agent.kind] = agent

    def remove(self, kind: AgentKind):
        self._agents.pop(kind, None)

    def kinds(self) -> List[AgentKind]:
        return list(self._agents.keys())

    def __contains__(self, kind) -> bool:
        return self.get(kind) is not None


# Import agent implementations to trigger registration
# These imports are at the bottom to avoid circular imports
from reqagent.agent.agents import (  # noqa: E402, F401
    extraction,
    refiner,
    classifier,
    expander,
    validator,
    risk_detector,
    goal_manager,
    context_analyzer,
    generator,
    red_team,
    prototyper,
)
