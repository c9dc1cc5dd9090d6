"""Tests for generation from an industry profile."""

from datetime import datetime, timedelta

import pytest

from conftest import StubAgent
from reqagent.agent.autonomous import AUTONOMOUS_SOURCE, AutonomousGenerator
from reqagent.agent.orchestrator import PipelineOrchestrator
from reqagent.agent.schemas import (
    AgentKind,
    AgentResult,
    AutonomousGenerationConfig,
    RequirementCandidate,
)
from reqagent.core.exceptions import AgentExecutionError
from reqagent.models.schemas import RequirementRecord, RequirementStatus

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def record(id, status, trust, minutes=0):
    return RequirementRecord(
        id=id,
        code=f"REQ-{id}",
        title=f"Requirement {id}",
        status=status,
        trust_grade=trust,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def generate(agent_input, context):
    focus = agent_input.payload["focus"]
    return AgentResult(
        agent_type=AgentKind.GENERATOR,
        success=True,
        candidates=[
            RequirementCandidate(title=f"{focus} {i}", content=f"The system shall cover {focus} {i}.", category=focus)
            for i in range(1, 3)
        ],
    )


@pytest.fixture
def generator_agent(empty_registry):
    agent = StubAgent(AgentKind.GENERATOR, generate)
    empty_registry.set_agent(agent)
    return agent


@pytest.fixture
def generator(store, empty_registry, generator_agent):
    store.requirements = [
        record("ok-1", RequirementStatus.APPROVED, 0.9, minutes=1),
        record("ok-2", RequirementStatus.APPROVED, 0.8, minutes=2),
        record("meh", RequirementStatus.APPROVED, 0.6),
        record("bad", RequirementStatus.DEPRECATED, 0.2),
        record("fine-but-old", RequirementStatus.DEPRECATED, 0.7),
    ]
    return AutonomousGenerator(PipelineOrchestrator(empty_registry, store=store))


class TestReferenceLookup:

    @pytest.mark.asyncio
    async def test_trust_bounds_and_order(self, store, generator):
        successes, failures = await generator.load_references()

        assert [r.id for r in successes] == ["ok-2", "ok-1"]
        assert [r.id for r in failures] == ["bad"]

    @pytest.mark.asyncio
    async def test_store_errors_mean_no_references(self, store, generator):
        async def broken(*args, **kwargs):
            raise RuntimeError("db down")
        store.reference_requirements = broken

        assert await generator.load_references() == ([], [])


class TestGenerate:

    @pytest.mark.asyncio
    async def test_thinking_log_starts_with_references(self, generator):
        config = AutonomousGenerationConfig(industry="finance", system_type="B2C")

        result = await generator.generate(config, user_id="user-9")

        assert result.total_generated == 6
        assert [e.agent_type for e in result.thinking_process] == [AgentKind.EXTRACTOR, AgentKind.RISK_DETECTOR]
        assert result.thinking_process[0].references == ["ok-2", "ok-1"]
        assert result.thinking_process[1].references == ["bad"]

        first = result.requirements[0]
        assert first.source == AUTONOMOUS_SOURCE
        assert first.industry == "finance"
        assert first.thinking_log[:2] == result.thinking_process

    @pytest.mark.asyncio
    async def test_focuses_follow_options(self, generator, generator_agent):
        config = AutonomousGenerationConfig(
            industry="healthcare",
            system_type="INTERNAL",
            include_non_functional=False,
        )

        result = await generator.generate(config)

        assert sorted(call.payload["focus"] for call in generator_agent.calls) == ["FUNC", "SEC"]
        assert {c.category for c in result.requirements} == {"FUNC", "SEC"}

    @pytest.mark.asyncio
    async def test_generator_sees_profile_and_references(self, generator, generator_agent):
        config = AutonomousGenerationConfig(
            industry="finance", system_type="SAAS", regulation_level="HIGH",
        )

        await generator.generate(config)

        payload = generator_agent.calls[0].payload
        assert payload["goal"]["industry"] == "finance"
        assert payload["goal"]["regulationLevel"] == "HIGH"
        assert [r["id"] for r in payload["context"]["successReferences"]] == ["ok-2", "ok-1"]
        assert [r["id"] for r in payload["context"]["counterExamples"]] == ["bad"]

    @pytest.mark.asyncio
    async def test_max_requirements_caps_the_set(self, generator):
        config = AutonomousGenerationConfig(industry="finance", system_type="B2B", max_requirements=3)

        result = await generator.generate(config)

        assert [c.title for c in result.requirements] == ["FUNC 1", "FUNC 2", "NFR 1"]

    @pytest.mark.asyncio
    async def test_all_focuses_failing_raises(self, generator, generator_agent):
        generator_agent.behaviour = lambda i, c: AgentResult(
            agent_type=AgentKind.GENERATOR, success=False, error="model down",
        )

        with pytest.raises(AgentExecutionError, match="model down"):
            await generator.generate(AutonomousGenerationConfig(industry="finance", system_type="B2C"))

    @pytest.mark.asyncio
    async def test_works_without_store(self, empty_registry, generator_agent):
        generator = AutonomousGenerator(PipelineOrchestrator(empty_registry))

        result = await generator.generate(AutonomousGenerationConfig(industry="retail", system_type="B2C"))

        assert result.total_generated == 6
        assert all(e.references == [] for e in result.thinking_process)
