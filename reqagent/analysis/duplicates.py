"""
Duplicate detection against stored requirements.

Single checks use a first-match scan over a bounded window of recent
records; corpus scans compare every active pair oldest-first and keep the
earliest record of each cluster as canonical.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field

from reqagent.agent.schemas import RequirementCandidate
from reqagent.analysis.similarity import normalize_text, similarity
from reqagent.core.config import settings
from reqagent.core.database import RecordStore

logger = logging.getLogger(__name__)


class MatchType(str, Enum):
    EXACT = "EXACT"
    SIMILAR = "SIMILAR"
    NONE = "NONE"


class SimilarityVerdict(BaseModel):
    """Outcome of a duplicate check."""
    is_duplicate: bool
    match_type: MatchType = MatchType.NONE
    matched_id: Optional[str] = None
    matched_code: Optional[str] = None
    similarity: Optional[float] = None


class DuplicateCluster(BaseModel):
    canonical_id: str
    canonical_title: str
    duplicates: List[Dict[str, Any]] = Field(default_factory=list)


class ScanSummary(BaseModel):
    scanned: int = 0
    clusters: List[DuplicateCluster] = Field(default_factory=list)
    duplicate_count: int = 0
    deprecated_count: int = 0


class DuplicateDetector:
    """
    Similarity-based duplicate detector over the record store.

    Args:
        store: Record store with requirement records
        title_threshold: Title similarity that counts as a duplicate
        content_threshold: Content similarity that counts as a duplicate
        window: Number of recent records a single check compares against
    """

    def __init__(
        self,
        store: RecordStore,
        title_threshold: Optional[float] = None,
        content_threshold: Optional[float] = None,
        window: Optional[int] = None,
    ):
        self.store = store
        self.title_threshold = title_threshold if title_threshold is not None else settings.duplicate_title_threshold
        self.content_threshold = (
            content_threshold if content_threshold is not None else settings.duplicate_content_threshold
        )
        self.window = window or settings.duplicate_scan_window

    def _match(self, title: str, content: Optional[str], other_title: str, other_content: Optional[str]):
        """Return (similarity, matched) for one pair, title checked first."""
        title_sim = similarity(title, other_title)
        if title_sim >= self.title_threshold:
            return title_sim, True
        if content and other_content:
            content_sim = similarity(content, other_content)
            if content_sim >= self.content_threshold:
                return content_sim, True
        return title_sim, False

    async def check_duplicate(self, title: str, content: Optional[str] = None) -> SimilarityVerdict:
        """
        Check a title (and optionally content) against stored requirements.

        Returns:
            EXACT for a case-insensitive title match, SIMILAR for the first
            recent record over a threshold, otherwise NONE
        """
        exact = await self.store.find_requirement_by_title(title)
        if exact:
            logger.debug(f"Exact title match found: \"{title}\"")
            return SimilarityVerdict(
                is_duplicate=True,
                match_type=MatchType.EXACT,
                matched_id=exact.id,
                matched_code=exact.code,
                similarity=1.0,
            )

        recent = await self.store.recent_requirements(self.window)
        for record in recent:
            score, matched = self._match(title, content, record.title, record.content)
            if matched:
                logger.debug(f"Similar requirement ({round(score * 100)}%): \"{record.title}\"")
                return SimilarityVerdict(
                    is_duplicate=True,
                    match_type=MatchType.SIMILAR,
                    matched_id=record.id,
                    matched_code=record.code,
                    similarity=round(score, 4),
                )

        return SimilarityVerdict(is_duplicate=False, match_type=MatchType.NONE)

    async def batch_check_duplicates(self, items: List[Dict[str, Optional[str]]]) -> Dict[int, SimilarityVerdict]:
        """Check ``[{"title": ..., "content": ...}]`` items one by one, keyed by index."""
        results = {}
        for i, item in enumerate(items):
            results[i] = await self.check_duplicate(item.get("title") or "", item.get("content"))
        return results

    async def scan_duplicates(self, deprecate: bool = False) -> ScanSummary:
        """
        Pairwise scan of all active records, oldest first.

        Args:
            deprecate: Flip reported duplicates to DEPRECATED

        Returns:
            ScanSummary with one cluster per canonical record that has duplicates
        """
        records = await self.store.active_requirements()
        logger.info(f"Scanning {len(records)} requirements for duplicates")

        claimed = set()
        clusters: List[DuplicateCluster] = []
        for i, canonical in enumerate(records):
            if canonical.id in claimed:
                continue
            cluster = DuplicateCluster(canonical_id=canonical.id, canonical_title=canonical.title)
            for other in records[i + 1:]:
                if other.id in claimed:
                    continue
                score, matched = self._match(canonical.title, canonical.content, other.title, other.content)
                if matched:
                    claimed.add(other.id)
                    cluster.duplicates.append({
                        "id": other.id,
                        "code": other.code,
                        "title": other.title,
                        "similarity": round(score, 4),
                    })
            if cluster.duplicates:
                clusters.append(cluster)

        deprecated = 0
        if deprecate and claimed:
            deprecated = await self.store.mark_deprecated(
                [d["id"] for c in clusters for d in c.duplicates]
            )
            logger.info(f"Deprecated {deprecated} duplicate requirements")

        return ScanSummary(
            scanned=len(records),
            clusters=clusters,
            duplicate_count=len(claimed),
            deprecated_count=deprecated,
        )


def find_duplicates_in_batch(
    candidates: List[RequirementCandidate],
    title_threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """
    In-memory duplicate pass over a candidate batch.

    Returns:
        Dict with ``unique`` (first occurrence kept, input order) and
        ``duplicates`` (``{"id", "title", "duplicate_of", "similarity"}``)
    """
    threshold = title_threshold if title_threshold is not None else settings.duplicate_title_threshold
    unique: List[RequirementCandidate] = []
    duplicates = []
    for candidate in candidates:
        match = None
        for kept in unique:
            if normalize_text(kept.title) == normalize_text(candidate.title):
                match = (kept, 1.0)
                break
            score = similarity(kept.title, candidate.title)
            if score >= threshold:
                match = (kept, score)
                break
        if match:
            duplicates.append({
                "id": candidate.id,
                "title": candidate.title,
                "duplicate_of": match[0].id,
                "similarity": round(match[1], 4),
            })
        else:
            unique.append(candidate)
    return {"unique": unique, "duplicates": duplicates}
