"""Extraction agent: unstructured text, files or web pages to requirement candidates."""

import logging
import re

import httpx

from reqagent.agent.agents.base import BaseAgent, candidate_from_item
from reqagent.agent.parsing import extract_candidate_items
from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult, InputType
from reqagent.core.exceptions import AgentExecutionError

logger = logging.getLogger(__name__)

MAX_SOURCE_CHARS = 5000

_TAGS = re.compile(r"<(script|style)[^>]*>.*?</\1>|<[^>]+>", re.S | re.I)
_SPACES = re.compile(r"\s+")

EXTRACT_PROMPT = """Extract software requirements from the document below.

**Document:**
{document}

**Respond with JSON:**
{{
    "requirements": [
        {{
            "title": "Requirement title",
            "content": "The system shall ...",
            "type": "FUNCTIONAL|NON_FUNCTIONAL|INTERFACE|CONSTRAINT",
            "confidence": 0.0-1.0
        }}
    ],
    "sourceType": "DOCUMENT|MEETING|WEB|OTHER",
    "extractionNotes": "What you considered while extracting"
}}"""


@AgentRegistry.register
class ExtractionAgent(BaseAgent):
    kind = AgentKind.EXTRACTOR
    name = "Requirement extraction agent"
    description = "Extracts requirement candidates from unstructured documents."

    def validate(self, agent_input: AgentInput) -> bool:
        if agent_input.type == InputType.REQUIREMENTS:
            return False
        return bool(agent_input.content or (agent_input.type == InputType.URL and agent_input.url))

    async def _fetch_url(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()
        except Exception as e:
            raise AgentExecutionError(f"Failed to fetch {url}: {e}") from e
        return _SPACES.sub(" ", _TAGS.sub(" ", response.text)).strip()

    async def get_content(self, agent_input: AgentInput) -> str:
        if agent_input.type == InputType.URL and not agent_input.content and agent_input.url:
            return await self._fetch_url(agent_input.url)
        if agent_input.type in (InputType.TEXT, InputType.FILE, InputType.URL, InputType.GOAL):
            return agent_input.content or ""
        return ""

    async def run(self, agent_input: AgentInput, context: AgentContext) -> AgentResult:
        content = await self.get_content(agent_input)
        if not content:
            return self.failure("No content provided")

        logger.info(f"Extracting requirements from {agent_input.type.value} input")
        parsed = await self.ask(
            EXTRACT_PROMPT.format(document=content[:MAX_SOURCE_CHARS]),
            context_tag="REQUIREMENT_EXTRACTION",
        )
        items = extract_candidate_items(parsed)
        notes = parsed.get("extractionNotes", "") if isinstance(parsed, dict) else ""
        source = parsed.get("sourceType") if isinstance(parsed, dict) else None

        candidates = []
        for item in items:
            candidate = candidate_from_item(item, source=source)
            candidates.append(candidate.with_thinking(
                self.thinking(f"Extracted from document. {notes}".strip(), candidate.confidence)
            ))

        avg_confidence = (
            sum(c.confidence for c in candidates) / len(candidates) if candidates else 0.0
        )
        return self.result(
            candidates=candidates,
            metrics={
                "extracted_count": len(candidates),
                "avg_confidence": round(avg_confidence, 3),
            },
        )
