"""Classifier agent: assigns industry, domain, category and tags."""

import logging

from reqagent.agent.agents.base import BaseAgent, numbered
from reqagent.agent.parsing import extract_list, get_index
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    InputType,
    coerce_confidence,
)

logger = logging.getLogger(__name__)

CLASSIFY_PROMPT = """Classify the following software requirements.

**Requirements:**
{requirements}

**Industry context:** {industry}

**Respond with JSON:**
{{
    "classifiedRequirements": [
        {{
            "originalIndex": 1,
            "industry": "finance|healthcare|automotive|real_estate|manufacturing|logistics|IT|other",
            "businessDomain": "Business domain name",
            "category": "functional|non-functional|interface|constraint",
            "subcategory": "Sub-category",
            "tags": ["tag1", "tag2"],
            "confidence": 0.0-1.0
        }}
    ]
}}"""


@AgentRegistry.register
class ClassifierAgent(BaseAgent):
    kind = AgentKind.CLASSIFIER
    name = "Requirement classification agent"
    description = "Classifies requirements by industry, business domain and category."
    temperature = 0.1

    def validate(self, agent_input: AgentInput) -> bool:
        return agent_input.type == InputType.REQUIREMENTS and bool(agent_input.requirements)

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        candidates = list(agent_input.requirements)
        if not candidates:
            return self.failure("No requirements to classify")

        logger.info(f"Classifying {len(candidates)} requirements")
        parsed = await self.ask(
            CLASSIFY_PROMPT.format(
                requirements=numbered(candidates, limit=300),
                industry=context.industry or "unspecified",
            ),
            context_tag="REQUIREMENT_CLASSIFICATION",
        )
        items = extract_list(parsed, "classifiedRequirements", "classified_requirements")

        classified = 0
        industries = set()
        for item in items:
            if not isinstance(item, dict):
                continue
            index = get_index(item, "originalIndex", "original_index")
            if index is None or not 1 <= index <= len(candidates):
                continue
            original = candidates[index - 1]
            domain = item.get("businessDomain") or item.get("business_domain")
            category = item.get("category") or original.category
            subcategory = item.get("subcategory")
            tags = list(original.tags)
            for tag in [domain, subcategory] + list(item.get("tags") or []):
                if tag and str(tag) not in tags:
                    tags.append(str(tag))
            industry = item.get("industry") or original.industry or context.industry
            confidence = coerce_confidence(item.get("confidence"), default=original.confidence)

            path = " > ".join(str(p) for p in (industry, domain, category) if p)
            candidates[index - 1] = original.with_thinking(
                self.thinking(f"Classified: {path}", confidence),
                industry=industry,
                category=str(category) if category else None,
                tags=tags,
            )
            classified += 1
            if industry:
                industries.add(str(industry))

        return self.result(
            candidates=candidates,
            metrics={
                "classified_count": classified,
                "unclassified_count": len(candidates) - classified,
                "industry_count": len(industries),
            },
        )
