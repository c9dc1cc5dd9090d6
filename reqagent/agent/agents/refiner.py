"""Refiner agent: local de-duplication followed by model-driven rewording."""

import logging
from typing import Dict, List

from reqagent.agent.agents.base import BaseAgent, is_complete_item, numbered
from reqagent.agent.parsing import extract_list, get_index
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    InputType,
    RequirementCandidate,
    coerce_confidence,
    coerce_requirement_type,
)
from reqagent.analysis.similarity import normalize_text
from reqagent.core.exceptions import ReqAgentError

logger = logging.getLogger(__name__)

REFINE_PROMPT = """Refine the following software requirements:
1. Remove vague wording ("etc.", "as appropriate", "somewhat")
2. Use the standard "The system shall ..." form
3. Add concrete, measurable criteria
4. Complete any partial requirement

**Requirements:**
{requirements}

**Respond with JSON:**
{{
    "refinedRequirements": [
        {{
            "originalIndex": 1,
            "title": "Refined title",
            "content": "Refined content",
            "type": "FUNCTIONAL|NON_FUNCTIONAL|INTERFACE|CONSTRAINT",
            "changes": ["change 1", "change 2"],
            "confidence": 0.0-1.0
        }}
    ]
}}"""


def remove_duplicates(candidates: List[RequirementCandidate]) -> List[RequirementCandidate]:
    """Keep one candidate per normalized title+content, preferring higher confidence."""
    seen: Dict[str, RequirementCandidate] = {}
    for candidate in candidates:
        key = normalize_text(f"{candidate.title} {candidate.content}")
        existing = seen.get(key)
        if existing is None or candidate.confidence > existing.confidence:
            seen[key] = candidate
    return list(seen.values())


@AgentRegistry.register
class RefinerAgent(BaseAgent):
    kind = AgentKind.REFINER
    name = "Requirement refinement agent"
    description = "Removes duplicates and rewrites requirements into standard form."

    def validate(self, agent_input: AgentInput) -> bool:
        return agent_input.type == InputType.REQUIREMENTS and bool(agent_input.requirements)

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        if not agent_input.requirements:
            return self.failure("No requirements to refine")

        original_count = len(agent_input.requirements)
        deduplicated = remove_duplicates(agent_input.requirements)
        logger.info(f"Refining {len(deduplicated)} requirements ({original_count} before dedup)")

        metrics = {
            "original_count": original_count,
            "after_dedup": len(deduplicated),
        }
        try:
            refined = await self.refine(deduplicated)
        except ReqAgentError as e:
            logger.warning(f"Model refinement failed, keeping deduplicated set: {e}")
            metrics["refined_count"] = len(deduplicated)
            return self.result(success=False, candidates=deduplicated, metrics=metrics, error=str(e))

        metrics["refined_count"] = len(refined)
        metrics["removed_count"] = original_count - len(refined)
        return self.result(candidates=refined, metrics=metrics)

    async def refine(self, candidates: List[RequirementCandidate]) -> List[RequirementCandidate]:
        parsed = await self.ask(
            REFINE_PROMPT.format(requirements=numbered(candidates)),
            context_tag="REQUIREMENT_REFINEMENT",
        )
        items = extract_list(parsed, "refinedRequirements", "refined_requirements", "requirements")

        refined = list(candidates)
        positional = len(items) == len(candidates)
        for position, item in enumerate(items, start=1):
            if not is_complete_item(item):
                continue
            index = get_index(item, "originalIndex", "original_index")
            if index is None and positional:
                index = position
            if index is None or not 1 <= index <= len(candidates):
                continue
            original = candidates[index - 1]
            changes = ", ".join(str(c) for c in item.get("changes") or []) or "wording standardized"
            confidence = coerce_confidence(item.get("confidence"), default=0.8)
            refined[index - 1] = original.with_thinking(
                self.thinking(f"Refined: {changes}", confidence),
                title=str(item["title"]),
                content=str(item["content"]),
                type=coerce_requirement_type(item.get("type")) or original.type,
                confidence=confidence,
            )
        return refined
