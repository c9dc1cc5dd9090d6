"""Requirement generator agent: drafts requirements for one focus area.

Three instances run side by side in the job workflow, one per focus:
FUNC (functional), NFR (non-functional) and SEC (security).
"""

import logging

from reqagent.agent.agents.base import BaseAgent, candidate_from_item, text_list, to_json
from reqagent.agent.parsing import extract_candidate_items
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    RequirementCandidate,
    RequirementType,
)

logger = logging.getLogger(__name__)

GENERATION_SOURCE = "AI_GENERATION"

FOCUS_LABELS = {
    "FUNC": "Functional",
    "NFR": "Non-Functional",
    "SEC": "Security",
}

FOCUS_TYPES = {
    "FUNC": RequirementType.FUNCTIONAL,
    "NFR": RequirementType.NON_FUNCTIONAL,
    "SEC": RequirementType.NON_FUNCTIONAL,
}

GENERATE_PROMPT = """You are a senior requirement architect specializing in {label} requirements.
Generate detailed software requirements based on the goal and context.

**Goal:** {goal}
**Context:** {context}

Instructions:
1. Generate 5-10 high-value {label} requirements ONLY.
2. Use the standard format: "Subject shall Action Condition".
3. Provide a rationale for each.

**Respond with JSON:**
{{
    "requirements": [
        {{
            "category": "{focus}",
            "title": "Short title",
            "content": "Detailed requirement statement",
            "rationale": "Why is this needed?",
            "priority": "HIGH|MEDIUM|LOW",
            "references": ["ids of reference requirements you relied on"]
        }}
    ]
}}"""


@AgentRegistry.register
class GeneratorAgent(BaseAgent):
    kind = AgentKind.GENERATOR
    name = "Requirement generator agent"
    description = "Generates requirements for a goal in one focus area."
    temperature = 0.4

    @staticmethod
    def focus_of(agent_input: AgentInput) -> str:
        focus = str(agent_input.payload.get("focus") or "FUNC").upper()
        return focus if focus in FOCUS_LABELS else "FUNC"

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        focus = self.focus_of(agent_input)
        label = FOCUS_LABELS[focus]
        parsed = await self.ask(
            GENERATE_PROMPT.format(
                label=label,
                focus=focus,
                goal=to_json(agent_input.payload.get("goal") or agent_input.content or {}),
                context=to_json(agent_input.payload.get("context") or {}),
            ),
            context_tag="GENERATION",
        )
        items = extract_candidate_items(parsed)

        candidates = []
        for item in items:
            candidate = candidate_from_item(
                item,
                source=GENERATION_SOURCE,
                category=item.get("category") or focus,
                type=item.get("type") or FOCUS_TYPES[focus],
            )
            candidates.append(candidate.with_thinking(self.thinking(
                f"Generated as {label} requirement. {candidate.rationale or ''}".strip(),
                candidate.confidence,
                references=text_list(item.get("references")),
            )))

        if not candidates:
            logger.info(f"Generator ({focus}) returned no requirements")
            candidates = [RequirementCandidate(
                title="No Requirements Generated",
                content="The AI model returned an empty list. Please refine your goal.",
                category="INFO",
                priority="LOW",
                source=GENERATION_SOURCE,
                thinking_log=[self.thinking("Model returned an empty list", 0.0)],
            )]

        return self.result(
            candidates=candidates,
            metrics={"generated_count": len(candidates), "focus": focus},
        )

    def fallback(self, agent_input: AgentInput, context: AgentContext, error: BaseException) -> AgentResult:
        focus = self.focus_of(agent_input)
        basic = RequirementCandidate(
            title="Basic Requirement",
            content="System must function according to goal.",
            category=focus,
            type=FOCUS_TYPES[focus],
            priority="HIGH",
            rationale="Fallback",
            source=GENERATION_SOURCE,
            thinking_log=[self.thinking(f"Fallback after generation failure: {error}", 0.1)],
        )
        return AgentResult(
            agent_type=self.kind,
            success=False,
            candidates=[basic],
            metrics={"generated_count": 1, "focus": focus},
            error=str(error),
        )
