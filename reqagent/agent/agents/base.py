"""Base agent contract shared by every agent kind.

An agent formats a task-specific instruction, calls the failover executor
once (or a small fixed number of times), parses the structured output and
returns an AgentResult. Failures inside an agent never escape ``execute``:
they become ``success=False`` plus the agent's static fallback.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from reqagent.agent.parsing import parse_json_payload
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    RequirementCandidate,
    ThinkingLogEntry,
)
from reqagent.core.exceptions import ReqAgentError
from reqagent.providers.base import ChatMessage, ExecutionRequest, ResponseFormat

if TYPE_CHECKING:
    from reqagent.analysis.accuracy import AccuracyScorer
    from reqagent.providers.manager import ProviderManager

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior requirements engineer. "
    "Respond with a single JSON value and nothing else."
)


class BaseAgent(ABC):
    """Abstract base class for requirement agents."""

    kind: AgentKind
    name: str = ""
    description: str = ""
    temperature: float = 0.2
    max_tokens: Optional[int] = 3000

    def __init__(self, executor: "ProviderManager", scorer: Optional["AccuracyScorer"] = None):
        self.executor = executor
        self.scorer = scorer

    def validate(self, agent_input: AgentInput) -> bool:
        """Cheap pre-check run by the orchestrator before ``execute``."""
        return True

    async def execute(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        """
        Run the agent.

        Args:
            agent_input: Candidates, text or workflow payload
            context: Shared session context (read-only for agents)

        Returns:
            AgentResult; ``success=False`` with a fallback on any failure
        """
        start = time.perf_counter()
        try:
            result = await self.run(agent_input, context)
        except ReqAgentError as e:
            logger.warning(f"{self.kind.value} agent failed: {e}")
            result = self.fallback(agent_input, context, e)
        except Exception as e:
            logger.error(f"{self.kind.value} agent raised unexpectedly: {e}")
            result = self.fallback(agent_input, context, e)
        result.execution_time_ms = round((time.perf_counter() - start) * 1000, 2)
        return result

    @abstractmethod
    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        """Agent logic. May raise; ``execute`` converts errors into the fallback."""
        pass

    def fallback(
        self, agent_input: AgentInput, context: AgentContext, error: BaseException
    ) -> AgentResult:
        """Default fallback: input candidates unchanged."""
        return AgentResult(
            agent_type=self.kind,
            success=False,
            candidates=list(agent_input.requirements) if agent_input.requirements else None,
            error=str(error),
        )

    # ============== Helpers ==============

    def result(self, **fields) -> AgentResult:
        return AgentResult(agent_type=self.kind, success=fields.pop("success", True), **fields)

    def failure(self, error: str) -> AgentResult:
        return AgentResult(agent_type=self.kind, success=False, error=error)

    def thinking(
        self, reasoning: str, confidence: float = 0.8, references: Optional[List[str]] = None
    ) -> ThinkingLogEntry:
        return ThinkingLogEntry(
            agent_type=self.kind,
            reasoning=reasoning,
            references=references or [],
            confidence=min(1.0, max(0.0, confidence)),
        )

    async def ask(
        self,
        prompt: str,
        context_tag: str,
        temperature: Optional[float] = None,
    ) -> Any:
        """Send one JSON-mode request through the executor and parse the reply."""
        request = ExecutionRequest(
            messages=[
                ChatMessage(role="system", content=SYSTEM_PROMPT),
                ChatMessage(role="user", content=prompt),
            ],
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens,
            response_format=ResponseFormat.JSON_OBJECT,
        )
        response = await self.executor.execute(request, context=context_tag)
        return parse_json_payload(response.content)


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def numbered(candidates: List[RequirementCandidate], limit: Optional[int] = None) -> str:
    """Render candidates as a 1-based list for prompts."""
    lines = []
    for i, c in enumerate(candidates, start=1):
        content = c.content if limit is None else c.content[:limit]
        label = c.type or c.category or "UNSPECIFIED"
        lines.append(f"{i}. [{label}] {c.title}: {content}")
    return "\n".join(lines)


def candidate_payload(candidates: List[RequirementCandidate]) -> List[Dict[str, Any]]:
    return [
        {
            "id": c.id,
            "title": c.title,
            "content": c.content,
            "category": c.category,
            "type": c.type,
            "priority": c.priority,
        }
        for c in candidates
    ]


def is_complete_item(item: Any) -> bool:
    return isinstance(item, dict) and bool(item.get("title")) and bool(item.get("content"))


def optional_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def text_list(value: Any) -> List[str]:
    """Tags arrive as a list, a comma-separated string or a single scalar."""
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(t) for t in value if t is not None and str(t).strip()]
    return [str(value)]


def candidate_from_item(
    item: Dict[str, Any],
    source: Optional[str] = None,
    **overrides,
) -> RequirementCandidate:
    """Build a new candidate from a model item. Callers append the first thinking entry.

    Loose scalar values (numbers for priority or category, a string of tags)
    are coerced so one odd field never rejects the whole batch.
    """
    fields = {
        "title": str(item.get("title") or "Untitled requirement"),
        "content": str(item.get("content") or ""),
        "category": item.get("category"),
        "type": item.get("type"),
        "confidence": item.get("confidence"),
        "priority": item.get("priority"),
        "rationale": item.get("rationale") or item.get("reason") or item.get("reasoning"),
        "tags": item.get("tags"),
        "source": source,
    }
    fields.update(overrides)
    for key in ("category", "priority", "rationale", "source"):
        fields[key] = optional_text(fields[key])
    fields["tags"] = text_list(fields["tags"])
    return RequirementCandidate(**fields)
