"""
Text similarity for requirement titles and bodies.

Combines three measures over normalized text:

    similarity = 0.4 * word Jaccard
               + 0.3 * normalized Levenshtein similarity (first 500 chars)
               + 0.3 * character 3-gram Jaccard

All functions are pure and synchronous.
"""

import re
from typing import Set

WORD_WEIGHT = 0.4
EDIT_WEIGHT = 0.3
NGRAM_WEIGHT = 0.3

LEVENSHTEIN_MAX_CHARS = 500
NGRAM_SIZE = 3

_SEPARATORS = re.compile(r"[\s\-_]+")
# \w is Unicode-aware, so Hangul and other letterforms survive
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lower-case, collapse separators and strip punctuation. Idempotent."""
    if not text:
        return ""
    text = text.lower()
    text = _SEPARATORS.sub(" ", text)
    text = _PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def word_set(text: str) -> Set[str]:
    return set(text.split()) if text else set()


def char_ngrams(text: str, n: int = NGRAM_SIZE) -> Set[str]:
    """Sliding character windows. Strings shorter than ``n`` yield themselves."""
    if not text:
        return set()
    if len(text) < n:
        return {text}
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def jaccard(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def word_jaccard(a: str, b: str) -> float:
    return jaccard(word_set(a), word_set(b))


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance, two-row dynamic programming."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str, max_chars: int = LEVENSHTEIN_MAX_CHARS) -> float:
    """1 - distance / longer length, both strings truncated to ``max_chars``."""
    a, b = a[:max_chars], b[:max_chars]
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return 1.0 - levenshtein_distance(a, b) / longest


def ngram_jaccard(a: str, b: str, n: int = NGRAM_SIZE) -> float:
    return jaccard(char_ngrams(a, n), char_ngrams(b, n))


def similarity(a: str, b: str) -> float:
    """
    Weighted similarity of two texts in [0, 1].

    Both inputs are normalized first. Identical normalized strings score 1.0
    and an empty side scores 0.0.
    """
    a = normalize_text(a)
    b = normalize_text(b)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    score = (
        WORD_WEIGHT * word_jaccard(a, b)
        + EDIT_WEIGHT * levenshtein_similarity(a, b)
        + NGRAM_WEIGHT * ngram_jaccard(a, b)
    )
    return min(1.0, max(0.0, score))
