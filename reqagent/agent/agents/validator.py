"""Validator agent: deterministic accuracy scoring plus a model-graded aggregate score.

Every candidate is scored with the AccuracyScorer. The model is then asked
for an aggregate ``overallScore`` (the gate used by the validate/refine
loop), a list of issues and, optionally, cleaned-up requirements. When the
model call fails the aggregate falls back to the mean deterministic score.
"""

import logging
from typing import List, Optional

from reqagent.agent.agents.base import BaseAgent, candidate_payload, is_complete_item, to_json
from reqagent.agent.parsing import extract_list
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    InputType,
    RequirementCandidate,
)
from reqagent.analysis.accuracy import AccuracyScorer
from reqagent.core.exceptions import ParseError

logger = logging.getLogger(__name__)

VALIDATE_PROMPT = """You are a QA auditor. Validate the following requirements for
ambiguity, completeness and regulation compliance.

**Requirements:**
{requirements}

**Industry context:** {industry}

Tasks:
1. Check for vague words (fast, good, appropriate).
2. Check for logical conflicts.
3. Assign an overall validity score (0-100).

**Respond with JSON:**
{{
    "overallScore": 90,
    "issues": [
        {{"reqIndex": 0, "issue": "Ambiguous term 'quickly'", "severity": "MEDIUM", "suggestion": "Specify < 200ms"}}
    ],
    "validatedRequirements": [ ...same structure as the input, cleaned up where needed... ]
}}"""


def read_score(parsed) -> float:
    if not isinstance(parsed, dict):
        raise ParseError("Validator response is not an object", raw=str(parsed))
    for key in ("overallScore", "overall_score", "score"):
        if key in parsed:
            try:
                return min(100.0, max(0.0, float(parsed[key])))
            except (TypeError, ValueError):
                break
    raise ParseError("Validator response has no numeric overallScore", raw=str(parsed))


@AgentRegistry.register
class ValidatorAgent(BaseAgent):
    kind = AgentKind.VALIDATOR
    name = "Accuracy validation agent"
    description = "Scores requirement accuracy and grades the set as a whole."
    temperature = 0.1

    def validate(self, agent_input: AgentInput) -> bool:
        return agent_input.type == InputType.REQUIREMENTS and bool(agent_input.requirements)

    @property
    def accuracy(self) -> AccuracyScorer:
        if self.scorer is None:
            self.scorer = AccuracyScorer()
        return self.scorer

    def deterministic_score(self, candidates: List[RequirementCandidate], industry: Optional[str]) -> float:
        if not candidates:
            return 0.0
        scores = [self.accuracy.score_for_industry(c, industry).overall_score for c in candidates]
        return round(sum(scores) / len(scores), 2)

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        originals = list(agent_input.requirements)
        if not originals:
            return self.failure("No requirements to validate")

        logger.info(f"Validating {len(originals)} requirements")
        parsed = await self.ask(
            VALIDATE_PROMPT.format(
                requirements=to_json(candidate_payload(originals)),
                industry=context.industry or "general",
            ),
            context_tag="VALIDATION",
        )
        overall_score = read_score(parsed)
        issues = [i for i in parsed.get("issues") or [] if isinstance(i, dict)]
        cleaned = [
            item for item in extract_list(parsed, "validatedRequirements", "validated_requirements")
            if is_complete_item(item)
        ]

        validated = []
        for i, original in enumerate(originals):
            item = cleaned[i] if i < len(cleaned) else None
            updates = {}
            if item and (item["title"] != original.title or item["content"] != original.content):
                updates = {"title": str(item["title"]), "content": str(item["content"])}
            draft = original.model_copy(update=updates)
            metrics = self.accuracy.score_for_industry(draft, context.industry)
            reasoning = f"Accuracy validated. Overall score: {metrics.overall_score}"
            if updates:
                reasoning += " (wording cleaned by validator)"
            validated.append(original.with_thinking(
                self.thinking(reasoning, metrics.overall_score / 100),
                accuracy_metrics=metrics,
                **updates,
            ))

        deterministic = self.deterministic_score(validated, context.industry)
        return self.result(
            candidates=validated,
            metrics={
                "overall_score": overall_score,
                "deterministic_score": deterministic,
                "issue_count": len(issues),
                "validated_count": len(validated),
            },
            output={"issues": issues},
        )

    def fallback(self, agent_input: AgentInput, context: AgentContext, error: BaseException) -> AgentResult:
        candidates = list(agent_input.requirements)
        score = self.deterministic_score(candidates, context.industry)
        return AgentResult(
            agent_type=self.kind,
            success=False,
            candidates=candidates or None,
            metrics={"overall_score": score, "deterministic_score": score, "issue_count": 0},
            output={"issues": []},
            error=str(error),
        )
