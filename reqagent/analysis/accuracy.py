"""
Five-factor accuracy heatmap for requirement candidates.

Deterministic, no I/O. Marker patterns cover English and Korean
requirement phrasing.
"""

import logging
import re
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field

from reqagent.agent.schemas import AccuracyMetrics, RequirementCandidate

logger = logging.getLogger(__name__)


class IndustryBenchmark(BaseModel):
    """Historical accuracy for one industry/function pair."""
    industry: str
    function: str
    avg_accuracy: float
    caution_areas: List[str] = Field(default_factory=list)


# ============== Benchmarks ==============

BENCHMARKS: List[IndustryBenchmark] = [
    IndustryBenchmark(industry="finance", function="authentication", avg_accuracy=92,
                      caution_areas=["access log", "multi-factor"]),
    IndustryBenchmark(industry="finance", function="privacy", avg_accuracy=88,
                      caution_areas=["masking", "consent"]),
    IndustryBenchmark(industry="finance", function="transaction", avg_accuracy=90,
                      caution_areas=["real-time", "failover"]),
    IndustryBenchmark(industry="healthcare", function="emr integration", avg_accuracy=85,
                      caution_areas=["standard code", "hl7"]),
    IndustryBenchmark(industry="healthcare", function="patient data", avg_accuracy=87,
                      caution_areas=["hipaa", "anonymiz"]),
    IndustryBenchmark(industry="automotive", function="iot collection", avg_accuracy=90,
                      caution_areas=["real-time", "high volume"]),
    IndustryBenchmark(industry="automotive", function="diagnostics", avg_accuracy=88,
                      caution_areas=["obd", "error code"]),
    IndustryBenchmark(industry="real_estate", function="contract management", avg_accuracy=87,
                      caution_areas=["legal wording", "e-signature"]),
    IndustryBenchmark(industry="manufacturing", function="mes integration", avg_accuracy=86,
                      caution_areas=["equipment interface", "real-time monitoring"]),
    IndustryBenchmark(industry="logistics", function="delivery tracking", avg_accuracy=89,
                      caution_areas=["gps", "real-time"]),
]

# Korean industry names used by existing projects
INDUSTRY_ALIASES: Dict[str, str] = {
    "금융": "finance",
    "의료": "healthcare",
    "자동차": "automotive",
    "부동산": "real_estate",
    "제조": "manufacturing",
    "물류": "logistics",
    "real estate": "real_estate",
}


# ============== Markers ==============

SUBJECT = re.compile(r"\bthe system\b|\bsystem (?:shall|must|should)\b|시스템은|시스템이", re.I)
MODAL = re.compile(r"\b(?:shall|must)\b|해야\s*한다|하여야\s*한다", re.I)
CONDITIONAL = re.compile(r"\b(?:if|when|unless|in case)\b|경우|조건|상황", re.I)
EXCEPTION = re.compile(r"\b(?:exception|error|fail(?:s|ure|ed)?)\b|예외|오류|에러", re.I)
QUANTIFIED = re.compile(
    r"\d+\s*(?:ms|milliseconds?|seconds?|secs?|s\b|minutes?|min\b|%|percent|requests?|records?|items?|users?|초|분|건|개)",
    re.I,
)
DIGIT = re.compile(r"\d")
EXCEPTION_HANDLING = re.compile(r"\b(?:exception|error|fail(?:s|ure|ed)?)\b|예외|오류|실패", re.I)
INTERFACE = re.compile(r"\bAPI\b|\binterface\b|\bintegrat\w*|인터페이스|연동", re.I)
USER_FACING = re.compile(r"\bUI\b|\bscreen\b|\buser\b|화면|사용자", re.I)
VAGUE = re.compile(r"\betc\.?|\bas appropriate\b|\band so on\b|기타|적절히|(?:^|\s)등(?:$|[\s.,])", re.I)
DEFERRAL = re.compile(r"\blater\b|\bif needed\b|\bwhen necessary\b|추후|나중에|필요시", re.I)

DEFAULT_INDUSTRY_FIT = 70
DEFAULT_CONFIDENCE = 0.7
HIGH_RISK_BELOW = 60


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return min(high, max(low, value))


class AccuracyScorer:
    """Scores candidates on structure, industry fit, missing risk, duplication and feasibility."""

    def __init__(self, benchmarks: Optional[List[IndustryBenchmark]] = None):
        self.benchmarks = list(benchmarks if benchmarks is not None else BENCHMARKS)

    # ============== Benchmarks ==============

    @staticmethod
    def canonical_industry(industry: Optional[str]) -> Optional[str]:
        if not industry:
            return None
        key = industry.strip().lower()
        return INDUSTRY_ALIASES.get(key, INDUSTRY_ALIASES.get(industry.strip(), key))

    def get_benchmarks(self, industry: Optional[str] = None) -> List[IndustryBenchmark]:
        if industry:
            wanted = self.canonical_industry(industry)
            return [b for b in self.benchmarks if b.industry == wanted]
        return list(self.benchmarks)

    def find_benchmark(
        self, industry: Optional[str], category: Optional[str] = None
    ) -> Optional[IndustryBenchmark]:
        """Industry+function match first, then any entry for the industry."""
        candidates = self.get_benchmarks(industry) if industry else []
        if not candidates:
            return None
        if category:
            wanted = category.strip().lower()
            for benchmark in candidates:
                if benchmark.function == wanted or benchmark.function in wanted:
                    return benchmark
        return candidates[0]

    # ============== Scoring ==============

    def structural_fit(self, candidate: RequirementCandidate) -> float:
        content = candidate.content or ""
        score = 50
        if SUBJECT.search(content):
            score += 10
        if MODAL.search(content):
            score += 15
        if CONDITIONAL.search(content):
            score += 5
        if EXCEPTION.search(content):
            score += 10
        if QUANTIFIED.search(content):
            score += 10
        title = candidate.title or ""
        if 5 <= len(title) <= 100:
            score += 5
        return min(100, score)

    def industry_fit(
        self, candidate: RequirementCandidate, benchmark: Optional[IndustryBenchmark]
    ) -> float:
        if benchmark is None:
            return DEFAULT_INDUSTRY_FIT
        score = benchmark.avg_accuracy - 10
        content = (candidate.content or "").lower()
        for caution in benchmark.caution_areas:
            if caution.lower() in content:
                score += 5
        return _clamp(score)

    def raw_missing_risk(self, candidate: RequirementCandidate) -> float:
        content = candidate.content or ""
        risk = 0
        if len(content) < 50:
            risk += 20
        if not DIGIT.search(content):
            risk += 10
        if not EXCEPTION_HANDLING.search(content):
            risk += 10
        if not candidate.type:
            risk += 10
        if not candidate.category:
            risk += 10
        return min(50, risk)

    def raw_duplicate_ratio(self, candidate: RequirementCandidate) -> float:
        # Confidence proxy; corpus comparison lives in DuplicateDetector
        confidence = candidate.confidence if candidate.confidence else DEFAULT_CONFIDENCE
        return max(0.0, 20 - confidence * 20)

    def feasibility(self, candidate: RequirementCandidate) -> float:
        content = candidate.content or ""
        score = 70
        if DIGIT.search(content):
            score += 10
        if INTERFACE.search(content):
            score += 5
        if USER_FACING.search(content):
            score += 5
        if VAGUE.search(content):
            score -= 15
        if DEFERRAL.search(content):
            score -= 10
        return _clamp(score)

    def score(
        self,
        candidate: RequirementCandidate,
        benchmark: Optional[IndustryBenchmark] = None,
    ) -> AccuracyMetrics:
        """
        Compute the five sub-scores and their rounded mean.

        Args:
            candidate: Requirement to score
            benchmark: Industry benchmark; neutral industry fit when omitted

        Returns:
            AccuracyMetrics with every value in [0, 100]
        """
        structural = self.structural_fit(candidate)
        industry = self.industry_fit(candidate, benchmark)
        missing = 100 - self.raw_missing_risk(candidate)
        duplicate = round(100 - self.raw_duplicate_ratio(candidate), 2)
        feasible = self.feasibility(candidate)

        overall = round((structural + industry + missing + duplicate + feasible) / 5)
        return AccuracyMetrics(
            structural_fit=structural,
            industry_fit=industry,
            missing_risk=missing,
            duplicate_ratio=duplicate,
            feasibility=feasible,
            overall_score=int(_clamp(overall)),
        )

    def score_for_industry(
        self, candidate: RequirementCandidate, industry: Optional[str] = None
    ) -> AccuracyMetrics:
        """Score with the benchmark looked up from industry and the candidate's category."""
        benchmark = self.find_benchmark(industry or candidate.industry, candidate.category)
        return self.score(candidate, benchmark)

    def generate_heatmap(
        self, candidates: List[RequirementCandidate], industry: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Score a batch and summarize it into quality tiers.

        Returns:
            Dict with ``candidates`` (copies carrying ``accuracy_metrics``)
            and ``summary`` (avg_score, high_risk, distribution)
        """
        scored = [
            c.model_copy(update={"accuracy_metrics": self.score_for_industry(c, industry)})
            for c in candidates
        ]
        scores = [c.accuracy_metrics.overall_score for c in scored]

        distribution = {"excellent": 0, "good": 0, "fair": 0, "poor": 0}
        for s in scores:
            distribution[quality_tier(s)] += 1

        summary = {
            "avg_score": round(sum(scores) / len(scores)) if scores else 0,
            "high_risk": sum(1 for s in scores if s < HIGH_RISK_BELOW),
            "distribution": distribution,
        }
        logger.debug(f"Heatmap over {len(scored)} candidates: {summary}")
        return {"candidates": scored, "summary": summary}


def quality_tier(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"
