"""Red team agent: adversarial attack scenarios against a requirement set."""

import logging

from reqagent.agent.agents.base import BaseAgent, candidate_payload, to_json
from reqagent.agent.parsing import extract_list
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult

logger = logging.getLogger(__name__)

RED_TEAM_PROMPT = """You are a red team security and architecture expert.
Your goal is to BREAK the system defined by these requirements.
Find vulnerabilities, scalability bottlenecks and logical flaws.

**Requirements:** {requirements}

Attacks to simulate:
1. Security: DDoS, injection, PII leak scenarios.
2. Scale: "What if 10M users hit this API?"
3. Logic: race conditions, deadlock scenarios.

**Respond with JSON:**
{{
    "attacks": [
        {{
            "type": "Security|Scale|Logic",
            "scenario": "Short attack scenario description",
            "impact": "High|Medium",
            "targetReqId": "Requirement id if specific",
            "defenseSuggested": "How to fix this requirement"
        }}
    ]
}}"""


@AgentRegistry.register
class RedTeamAgent(BaseAgent):
    kind = AgentKind.RED_TEAM
    name = "Red team agent"
    description = "Simulates attacks against the requirement set."
    temperature = 0.7

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        parsed = await self.ask(
            RED_TEAM_PROMPT.format(requirements=to_json(candidate_payload(agent_input.requirements))),
            context_tag="ANALYSIS",
        )
        attacks = [a for a in extract_list(parsed, "attacks") if isinstance(a, dict)]
        logger.info(f"Red team produced {len(attacks)} attack scenarios")
        return self.result(
            output={"attacks": attacks},
            metrics={"attack_count": len(attacks)},
        )

    def fallback(self, agent_input: AgentInput, context: AgentContext, error: BaseException) -> AgentResult:
        return AgentResult(
            agent_type=self.kind,
            success=False,
            output={"attacks": []},
            metrics={"attack_count": 0},
            error=str(error),
        )
