"""Goal manager agent: turns a free-text business goal into a structured brief."""

import logging
from typing import Any, Dict

from reqagent.agent.agents.base import BaseAgent
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult
from reqagent.core.exceptions import ParseError

logger = logging.getLogger(__name__)

GOAL_PROMPT = """Analyze the following business goal for a software project.

**Goal:** "{goal}"

Tasks:
1. Identify the primary intent (New System, Update, Migration).
2. Extract the business domain (e.g. Finance, Healthcare, E-commerce).
3. Identify specific constraints (Regulations, Tech Stack, Time).
4. Define success criteria.

**Respond with JSON:**
{{
    "intent": "string",
    "domain": "string",
    "scope": {{"include": [], "exclude": []}},
    "constraints": [],
    "successCriteria": [],
    "priority": "HIGH|MEDIUM|LOW"
}}"""


def default_goal_analysis(goal: str) -> Dict[str, Any]:
    return {
        "intent": "Unknown",
        "domain": "General",
        "scope": {"include": [goal], "exclude": []},
        "constraints": [],
        "successCriteria": [],
        "priority": "MEDIUM",
    }


@AgentRegistry.register
class GoalManagerAgent(BaseAgent):
    kind = AgentKind.GOAL_MANAGER
    name = "Goal manager agent"
    description = "Extracts intent, domain, scope and constraints from a business goal."
    temperature = 0.1

    def validate(self, agent_input: AgentInput) -> bool:
        return bool(agent_input.content or agent_input.payload.get("goal"))

    @staticmethod
    def goal_text(agent_input: AgentInput) -> str:
        return str(agent_input.content or agent_input.payload.get("goal") or "")

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        goal = self.goal_text(agent_input)
        if not goal:
            return self.fallback(agent_input, context, ValueError("No goal provided"))

        parsed = await self.ask(GOAL_PROMPT.format(goal=goal), context_tag="ANALYSIS")
        if not isinstance(parsed, dict):
            raise ParseError("Goal analysis is not an object", raw=str(parsed))

        analysis = default_goal_analysis(goal)
        analysis.update({k: v for k, v in parsed.items() if v is not None})
        logger.info(f"Goal analyzed: intent={analysis['intent']} domain={analysis['domain']}")
        return self.result(
            output=analysis,
            logs=[self.thinking(f"Goal analyzed as {analysis['intent']} in {analysis['domain']}")],
        )

    def fallback(self, agent_input: AgentInput, context: AgentContext, error: BaseException) -> AgentResult:
        return AgentResult(
            agent_type=self.kind,
            success=False,
            output=default_goal_analysis(self.goal_text(agent_input)),
            error=str(error),
        )
