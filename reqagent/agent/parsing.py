"""
Structured-output parsing for agent responses.

Every agent goes through the same two functions so that wrapper shapes are
accepted in one fixed order:

1. bare array
2. ``{"requirements": [...]}``
3. ``{"drafts": [...]}``
4. other known list keys
5. a single object with ``title``/``content``
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from reqagent.core.exceptions import ParseError

logger = logging.getLogger(__name__)

LIST_KEYS = (
    "requirements",
    "drafts",
    "candidates",
    "refinedRequirements",
    "refined_requirements",
    "classifiedRequirements",
    "classified_requirements",
    "suggestedRequirements",
    "suggested_requirements",
    "validatedRequirements",
    "validated_requirements",
    "items",
)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.S)


def strip_code_fences(content: str) -> str:
    """Handle markdown code blocks around a JSON payload."""
    match = _FENCE.search(content)
    if match:
        return match.group(1).strip()
    return content.strip()


def parse_json_payload(content: Optional[str]) -> Any:
    """
    Parse model output as JSON.

    Falls back to the outermost ``{...}`` or ``[...]`` span when the model
    wraps the payload in prose.

    Raises:
        ParseError: If no JSON value can be recovered
    """
    if content is None or not content.strip():
        raise ParseError("Empty model response", raw=content or "")

    text = strip_code_fences(content)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Whichever bracket opens first delimits the outermost value
    spans = sorted(
        (("{", "}"), ("[", "]")),
        key=lambda pair: text.find(pair[0]) if pair[0] in text else len(text),
    )
    for opener, closer in spans:
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue

    logger.warning(f"Failed to parse JSON from model output: {content[:200]}")
    raise ParseError("Model output is not valid JSON", raw=content)


def _is_item(value: Any) -> bool:
    return isinstance(value, dict) and ("title" in value or "content" in value)


def extract_candidate_items(
    payload: Any, keys: Sequence[str] = LIST_KEYS
) -> List[Dict[str, Any]]:
    """
    Normalize a parsed payload into a list of item dicts.

    Args:
        payload: Parsed JSON value (or raw text, which is parsed first)
        keys: Wrapper keys tried after ``requirements`` and ``drafts``

    Raises:
        ParseError: If the payload matches none of the accepted shapes
    """
    if isinstance(payload, str):
        payload = parse_json_payload(payload)

    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]

    if isinstance(payload, dict):
        ordered = ["requirements", "drafts"] + [k for k in keys if k not in ("requirements", "drafts")]
        for key in ordered:
            value = payload.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
        if _is_item(payload):
            return [payload]

    raise ParseError(
        f"Unrecognized payload shape: {type(payload).__name__}",
        raw=json.dumps(payload, ensure_ascii=False, default=str) if payload is not None else "",
    )


def extract_list(payload: Any, *keys: str) -> List[Any]:
    """Return the first list found under ``keys`` (or the payload itself if it is a list)."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def get_index(item: Dict[str, Any], *keys: str) -> Optional[int]:
    """Read an integer index the model echoed back (``originalIndex`` etc.)."""
    for key in keys:
        value = item.get(key)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None
