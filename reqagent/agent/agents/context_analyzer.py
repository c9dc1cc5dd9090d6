"""Context analyzer agent: regulations, standard functions and risks for a domain."""

import logging
from typing import Any, Dict

from reqagent.agent.agents.base import BaseAgent, to_json
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult
from reqagent.core.exceptions import ParseError

logger = logging.getLogger(__name__)

CONTEXT_PROMPT = """You are an expert context analyzer for software requirements.
Based on the domain "{domain}" and the goal analysis below, identify the necessary context.

**Goal analysis:** {goal}

Tasks:
1. List relevant regulations (local and global standards).
2. Suggest standard functional modules for this domain.
3. Identify potential risks.

**Respond with JSON:**
{{
    "industry": "{domain}",
    "regulations": ["Reg 1", "Reg 2"],
    "standardFunctions": ["Func 1", "Func 2"],
    "risks": ["Risk 1"],
    "similarCases": ["Case 1"]
}}"""


def default_context(domain: str) -> Dict[str, Any]:
    return {
        "industry": domain,
        "regulations": ["Standard Data Privacy"],
        "standardFunctions": ["User Management"],
        "risks": [],
        "similarCases": [],
    }


@AgentRegistry.register
class ContextAnalyzerAgent(BaseAgent):
    kind = AgentKind.CONTEXT_ANALYZER
    name = "Context analyzer agent"
    description = "Derives industry context from a goal analysis."

    @staticmethod
    def domain_of(agent_input: AgentInput, context: AgentContext) -> str:
        goal = agent_input.payload.get("goal") or {}
        return str(goal.get("domain") or context.industry or "General")

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        goal = agent_input.payload.get("goal") or {}
        domain = self.domain_of(agent_input, context)

        parsed = await self.ask(
            CONTEXT_PROMPT.format(domain=domain, goal=to_json(goal)),
            context_tag="ANALYSIS",
        )
        if not isinstance(parsed, dict):
            raise ParseError("Context analysis is not an object", raw=str(parsed))

        analysis = default_context(domain)
        analysis.update({k: v for k, v in parsed.items() if v is not None})
        logger.info(
            f"Context analyzed for {analysis['industry']}: "
            f"{len(analysis.get('regulations') or [])} regulations"
        )
        return self.result(
            output=analysis,
            logs=[self.thinking(f"Context derived for industry {analysis['industry']}")],
        )

    def fallback(self, agent_input: AgentInput, context: AgentContext, error: BaseException) -> AgentResult:
        return AgentResult(
            agent_type=self.kind,
            success=False,
            output=default_context(self.domain_of(agent_input, context)),
            error=str(error),
        )
