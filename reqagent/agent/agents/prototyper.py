"""Prototyper agent: schema and UI snippets for a requirement set."""

import logging

from reqagent.agent.agents.base import BaseAgent, candidate_payload, to_json
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult
from reqagent.core.exceptions import ParseError

logger = logging.getLogger(__name__)

PROTOTYPE_PROMPT = """You are a senior full-stack developer.
Convert these requirements into simulated code snippets.

**Requirements:** {requirements}

Tasks:
1. Generate a data schema snippet for the core entities.
2. Generate a UI component for the main screen.

**Respond with JSON:**
{{
    "schema": "model User {{ ... }}",
    "ui": "export default function Component() {{ ... }}"
}}"""

FALLBACK_PROTOTYPE = {
    "schema": "// Error generating schema",
    "ui": "// Error generating component",
}


@AgentRegistry.register
class PrototyperAgent(BaseAgent):
    kind = AgentKind.PROTOTYPER
    name = "Prototyper agent"
    description = "Produces schema and UI snippets from requirements."
    temperature = 0.1

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        parsed = await self.ask(
            PROTOTYPE_PROMPT.format(requirements=to_json(candidate_payload(agent_input.requirements))),
            context_tag="GENERATION",
        )
        if not isinstance(parsed, dict):
            raise ParseError("Prototype response is not an object", raw=str(parsed))

        # Older prompts answered with prisma/react keys
        schema = parsed.get("schema") or parsed.get("prisma")
        ui = parsed.get("ui") or parsed.get("react")
        if not schema and not ui:
            raise ParseError("Prototype response has no snippets", raw=str(parsed))

        return self.result(output={
            "schema": str(schema or FALLBACK_PROTOTYPE["schema"]),
            "ui": str(ui or FALLBACK_PROTOTYPE["ui"]),
        })

    def fallback(self, agent_input: AgentInput, context: AgentContext, error: BaseException) -> AgentResult:
        return AgentResult(
            agent_type=self.kind,
            success=False,
            output=dict(FALLBACK_PROTOTYPE),
            error=str(error),
        )
