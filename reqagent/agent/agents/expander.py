"""Expander agent: suggests requirements missing from the current set."""

import logging

from reqagent.agent.agents.base import BaseAgent, candidate_from_item, is_complete_item, numbered
from reqagent.agent.parsing import extract_list
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult, InputType

logger = logging.getLogger(__name__)

EXPANSION_SOURCE = "AI_EXPANSION"

EXPAND_PROMPT = """Review the existing requirements and suggest important requirements that are missing.

**Existing requirements:**
{requirements}

**Project context:**
- Industry: {industry}
- System type: {system_type}
- Organization maturity: {maturity}
- Regulation level: {regulation}

Consider security, performance, availability, audit logging, compliance and
integration points that similar systems usually need.

**Respond with JSON:**
{{
    "suggestedRequirements": [
        {{
            "title": "Suggested title",
            "content": "Suggested content",
            "type": "FUNCTIONAL|NON_FUNCTIONAL|INTERFACE|CONSTRAINT",
            "category": "Category",
            "reason": "Why this requirement is needed",
            "relatedTo": ["Related existing requirement title"],
            "priority": "HIGH|MEDIUM|LOW",
            "confidence": 0.0-1.0
        }}
    ],
    "analysisNotes": "What you considered"
}}"""


@AgentRegistry.register
class ExpanderAgent(BaseAgent):
    kind = AgentKind.EXPANDER
    name = "Requirement expansion agent"
    description = "Suggests missing requirements based on the existing set and project context."
    temperature = 0.5

    def validate(self, agent_input: AgentInput) -> bool:
        return agent_input.type == InputType.REQUIREMENTS and bool(agent_input.requirements)

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        originals = list(agent_input.requirements)
        if not originals:
            return self.failure("No requirements to expand")

        logger.info(f"Expanding {len(originals)} requirements")
        parsed = await self.ask(
            EXPAND_PROMPT.format(
                requirements=numbered(originals, limit=100),
                industry=context.industry or "unspecified",
                system_type=context.system_type or "unspecified",
                maturity=context.organization_maturity or "unspecified",
                regulation=context.regulation_level or "unspecified",
            ),
            context_tag="REQUIREMENT_EXPANSION",
        )
        items = extract_list(parsed, "suggestedRequirements", "suggested_requirements", "requirements")

        suggested = []
        for item in items:
            if not is_complete_item(item):
                continue
            related = [str(r) for r in item.get("relatedTo") or item.get("related_to") or []]
            candidate = candidate_from_item(item, source=EXPANSION_SOURCE)
            suggested.append(candidate.with_thinking(self.thinking(
                f"Suggested: {item.get('reason') or 'gap in current requirement set'}",
                candidate.confidence,
                references=related,
            )))

        notes = parsed.get("analysisNotes") if isinstance(parsed, dict) else None
        return self.result(
            candidates=originals + suggested,
            metrics={
                "original_count": len(originals),
                "suggested_count": len(suggested),
                "total_count": len(originals) + len(suggested),
            },
            logs=[self.thinking(notes or "Requirements expanded")],
        )
