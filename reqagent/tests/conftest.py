"""
Test configuration.

Shared fixtures: an in-memory record store, fake provider adapters, a
scripted executor for agents, and stub agents for orchestration tests.
"""

import json
from typing import Any, Callable, List, Optional, Union
from unittest.mock import AsyncMock, MagicMock

import pytest

from reqagent.agent.agents.base import BaseAgent
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    RequirementCandidate,
)
from reqagent.analysis.accuracy import AccuracyScorer
from reqagent.core.database import InMemoryRecordStore
from reqagent.core.exceptions import AdapterError
from reqagent.core.log_sink import ExecutionLogSink
from reqagent.models.schemas import ProviderConfig, ProviderKind
from reqagent.providers.base import ExecutionRequest, ExecutionResult, ProviderAdapter, TokenUsage
from reqagent.providers.manager import ProviderManager


# ============== Providers ==============

class FakeAdapter(ProviderAdapter):
    """Adapter that answers with canned content or fails every call."""

    def __init__(self, config: ProviderConfig, content: str = "{}", error: Optional[str] = None):
        super().__init__(config)
        self.content = content
        self.error = error
        self.calls: List[ExecutionRequest] = []

    @property
    def kind(self) -> ProviderKind:
        return self.config.kind

    async def is_healthy(self) -> bool:
        return self.error is None

    async def complete(self, request: ExecutionRequest) -> ExecutionResult:
        self.calls.append(request)
        if self.error:
            raise AdapterError(self.error, provider_name=self.name)
        return ExecutionResult(
            content=self.content,
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            resolved_model=self.resolve_model(request),
        )


def make_config(name: str, priority: int = 0, kind: ProviderKind = ProviderKind.OPENAI) -> ProviderConfig:
    return ProviderConfig(
        id=f"cfg-{name}",
        name=name,
        kind=kind,
        api_key="test-key",
        models="fake-model",
        priority=priority,
    )


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def log_sink(store):
    return ExecutionLogSink(store, max_queue_size=100)


@pytest.fixture
def manager(store, log_sink):
    """Provider manager with no providers and no env fallback."""
    return ProviderManager(store, log_sink=log_sink, fallback_api_key="")


# ============== Agents ==============

Script = Union[str, dict, list, Exception]


def make_executor(*responses: Script) -> MagicMock:
    """Executor whose ``execute`` returns the given responses in order.

    Dicts and lists are JSON-encoded; exceptions are raised.
    """
    side_effect = []
    for response in responses:
        if isinstance(response, Exception):
            side_effect.append(response)
        else:
            content = response if isinstance(response, str) else json.dumps(response)
            side_effect.append(ExecutionResult(content=content, resolved_model="fake-model"))
    executor = MagicMock()
    executor.execute = AsyncMock(side_effect=side_effect)
    return executor


@pytest.fixture
def scripted_executor() -> Callable[..., MagicMock]:
    return make_executor


@pytest.fixture
def scorer():
    return AccuracyScorer()


@pytest.fixture
def context():
    return AgentContext(session_id="session-1", user_id="user-1")


@pytest.fixture
def candidates():
    return [
        RequirementCandidate(
            id="r1",
            title="Account lockout",
            content="The system shall lock an account after 5 failed login attempts within 10 minutes.",
            category="authentication",
            type="FUNCTIONAL",
            confidence=0.9,
        ),
        RequirementCandidate(
            id="r2",
            title="Report export",
            content="Users can export reports etc.",
            confidence=0.6,
        ),
    ]


class StubAgent(BaseAgent):
    """Agent whose behaviour is a plain function of its input."""

    def __init__(
        self,
        kind: AgentKind,
        behaviour: Optional[Callable[[AgentInput, AgentContext], Any]] = None,
    ):
        super().__init__(executor=None)
        self.kind = kind
        self.name = f"stub-{kind.value}"
        self.behaviour = behaviour
        self.calls: List[AgentInput] = []

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        self.calls.append(agent_input)
        if self.behaviour is None:
            return self.result(candidates=list(agent_input.requirements) or None)
        outcome = self.behaviour(agent_input, context)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def empty_registry():
    """Registry with no agents; tests install stubs with ``set_agent``."""
    return AgentRegistry(executor=MagicMock(), scorer=AccuracyScorer(), kinds=[])
