"""Risk detector agent: security, privacy, regulation and compliance risks per requirement."""

import logging
from typing import Any, Dict, List

from reqagent.agent.agents.base import BaseAgent, numbered
from reqagent.agent.parsing import extract_list, get_index
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult, InputType

logger = logging.getLogger(__name__)

RISK_TYPES = ("SECURITY", "PRIVACY", "REGULATION", "COMPLIANCE")
SEVERITIES = ("HIGH", "MEDIUM", "LOW")

RISK_PROMPT = """Analyze the following requirements for security, privacy, regulation and compliance risks.

**Requirements:**
{requirements}

**Industry:** {industry}
**Regulation level:** {regulation}

**Respond with JSON:**
{{
    "riskAnalysis": [
        {{
            "requirementIndex": 1,
            "risks": [
                {{
                    "type": "SECURITY|PRIVACY|REGULATION|COMPLIANCE",
                    "severity": "HIGH|MEDIUM|LOW",
                    "description": "Risk description",
                    "recommendation": "Recommended action"
                }}
            ]
        }}
    ],
    "overallRiskLevel": "HIGH|MEDIUM|LOW",
    "summary": "Overall risk summary"
}}"""


def normalize_risk(risk: Dict[str, Any]) -> Dict[str, Any]:
    risk_type = str(risk.get("type") or "COMPLIANCE").upper()
    severity = str(risk.get("severity") or "MEDIUM").upper()
    return {
        "type": risk_type if risk_type in RISK_TYPES else "COMPLIANCE",
        "severity": severity if severity in SEVERITIES else "MEDIUM",
        "description": str(risk.get("description") or ""),
        "recommendation": risk.get("recommendation"),
    }


@AgentRegistry.register
class RiskDetectorAgent(BaseAgent):
    kind = AgentKind.RISK_DETECTOR
    name = "Risk detection agent"
    description = "Flags security, privacy, regulation and compliance risks."

    def validate(self, agent_input: AgentInput) -> bool:
        return agent_input.type == InputType.REQUIREMENTS and bool(agent_input.requirements)

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        candidates = list(agent_input.requirements)
        if not candidates:
            return self.failure("No requirements to analyze")

        logger.info(f"Detecting risks in {len(candidates)} requirements")
        parsed = await self.ask(
            RISK_PROMPT.format(
                requirements=numbered(candidates),
                industry=context.industry or "general",
                regulation=context.regulation_level or "MEDIUM",
            ),
            context_tag="RISK_DETECTION",
        )
        analysis = extract_list(parsed, "riskAnalysis", "risk_analysis")

        risks_by_index: Dict[int, List[Dict[str, Any]]] = {}
        for entry in analysis:
            if not isinstance(entry, dict):
                continue
            index = get_index(entry, "requirementIndex", "requirement_index")
            if index is None or not 1 <= index <= len(candidates):
                continue
            risks = [normalize_risk(r) for r in entry.get("risks") or [] if isinstance(r, dict)]
            risks_by_index.setdefault(index, []).extend(risks)

        counts = {severity: 0 for severity in SEVERITIES}
        for i, candidate in enumerate(candidates, start=1):
            risks = risks_by_index.get(i, [])
            for risk in risks:
                counts[risk["severity"]] += 1
            reasoning = f"Detected {len(risks)} risk(s)" if risks else "No risks detected"
            candidates[i - 1] = candidate.with_thinking(
                self.thinking(reasoning, 0.8),
                risks=list(candidate.risks) + risks,
            )

        overall = parsed.get("overallRiskLevel") if isinstance(parsed, dict) else None
        summary = parsed.get("summary") if isinstance(parsed, dict) else None
        return self.result(
            candidates=candidates,
            metrics={
                "total_risks": sum(counts.values()),
                "high_risks": counts["HIGH"],
                "medium_risks": counts["MEDIUM"],
                "low_risks": counts["LOW"],
                "overall_risk_level": overall or "UNKNOWN",
            },
            logs=[self.thinking(summary or f"Overall risk level: {overall or 'UNKNOWN'}")],
        )
