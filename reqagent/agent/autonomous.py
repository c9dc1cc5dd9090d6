"""Autonomous Generator - a requirement set from an industry profile alone.

No document or goal text is needed. The generator:
1. Looks up approved, highly trusted requirements as success references
2. Looks up deprecated, low-trust requirements as counter-examples
3. Runs the generator agent for each requested focus area in parallel
4. Starts every candidate's thinking log with the two reference entries
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from reqagent.agent.orchestrator import PipelineOrchestrator, merge_candidates
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AutonomousGenerationConfig,
    AutonomousGenerationResult,
    InputType,
    ThinkingLogEntry,
)
from reqagent.core.database import RecordStore
from reqagent.core.exceptions import AgentExecutionError
from reqagent.models.schemas import RequirementRecord, RequirementStatus

logger = logging.getLogger(__name__)

AUTONOMOUS_SOURCE = "AI_AUTONOMOUS"

SUCCESS_REFERENCE_LIMIT = 10
SUCCESS_MIN_TRUST = 0.8
COUNTER_EXAMPLE_LIMIT = 5
COUNTER_EXAMPLE_MAX_TRUST = 0.5


class AutonomousGenerator:
    """Generates requirements for an industry and system type."""

    def __init__(self, orchestrator: PipelineOrchestrator, store: Optional[RecordStore] = None):
        """Initialize the generator.

        Args:
            orchestrator: Runs the generator agent
            store: Source of reference requirements (defaults to the orchestrator's)
        """
        self.orchestrator = orchestrator
        self.store = store or orchestrator.store

    @staticmethod
    def focuses(config: AutonomousGenerationConfig) -> List[str]:
        focuses = ["FUNC"]
        if config.include_non_functional:
            focuses.append("NFR")
        if config.include_security_requirements:
            focuses.append("SEC")
        return focuses

    async def _references(
        self, status: RequirementStatus, limit: int, **trust
    ) -> List[RequirementRecord]:
        if self.store is None:
            return []
        try:
            return await self.store.reference_requirements(status, limit, **trust)
        except Exception as e:
            logger.warning(f"Failed to load {status.value} reference requirements: {e}")
            return []

    async def load_references(self) -> Tuple[List[RequirementRecord], List[RequirementRecord]]:
        """Return (success references, counter-examples)."""
        successes = await self._references(
            RequirementStatus.APPROVED, SUCCESS_REFERENCE_LIMIT, min_trust=SUCCESS_MIN_TRUST
        )
        failures = await self._references(
            RequirementStatus.DEPRECATED, COUNTER_EXAMPLE_LIMIT, max_trust=COUNTER_EXAMPLE_MAX_TRUST
        )
        return successes, failures

    async def generate(
        self, config: AutonomousGenerationConfig, user_id: Optional[str] = None
    ) -> AutonomousGenerationResult:
        """
        Generate a requirement set from the industry profile in ``config``.

        Args:
            config: Industry, system type and generation options
            user_id: Recorded on the agent execution audit rows

        Returns:
            AutonomousGenerationResult with at most ``config.max_requirements`` candidates

        Raises:
            AgentExecutionError: If no focus area produced requirements
        """
        logger.info(f"Generating requirements for {config.industry} / {config.system_type}")

        successes, failures = await self.load_references()
        thinking_process = [
            ThinkingLogEntry(
                agent_type=AgentKind.EXTRACTOR,
                reasoning=f"Referenced {len(successes)} successful requirements from {config.industry}",
                references=[r.id for r in successes],
                confidence=0.8,
            ),
            ThinkingLogEntry(
                agent_type=AgentKind.RISK_DETECTOR,
                reasoning=f"Referenced {len(failures)} past failures as counter-examples",
                references=[r.id for r in failures],
                confidence=0.7,
            ),
        ]

        context = AgentContext(
            user_id=user_id,
            industry=config.industry,
            system_type=config.system_type,
            organization_maturity=config.organization_maturity,
            regulation_level=config.regulation_level,
        )
        goal = {
            "industry": config.industry,
            "systemType": config.system_type,
            "organizationMaturity": config.organization_maturity,
            "regulationLevel": config.regulation_level,
            "maxRequirements": config.max_requirements,
        }
        domain_context = {
            "successReferences": [{"id": r.id, "code": r.code, "title": r.title} for r in successes],
            "counterExamples": [{"id": r.id, "code": r.code, "title": r.title} for r in failures],
        }

        focuses = self.focuses(config)
        results = await asyncio.gather(*[
            self.orchestrator.execute_agent(
                AgentKind.GENERATOR,
                AgentInput(
                    type=InputType.GOAL,
                    payload={"goal": goal, "context": domain_context, "focus": focus},
                ),
                context,
            )
            for focus in focuses
        ])

        generated = merge_candidates(list(results))
        if not generated:
            errors = [r.error for r in results if r.error]
            raise AgentExecutionError(
                f"Autonomous generation produced no requirements: {errors[0] if errors else 'empty output'}"
            )

        requirements = [
            c.model_copy(update={
                "source": AUTONOMOUS_SOURCE,
                "industry": config.industry,
                "thinking_log": thinking_process + list(c.thinking_log),
            })
            for c in generated[:config.max_requirements]
        ]
        logger.info(f"Generated {len(requirements)} requirements across {len(focuses)} focus areas")

        return AutonomousGenerationResult(
            requirements=requirements,
            thinking_process=thinking_process,
            config=config,
            total_generated=len(requirements),
            results=list(results),
        )
