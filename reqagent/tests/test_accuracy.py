"""Tests for the accuracy heatmap scorer."""

import pytest

from reqagent.agent.schemas import RequirementCandidate
from reqagent.analysis.accuracy import AccuracyScorer, IndustryBenchmark, quality_tier


@pytest.fixture
def lockout():
    return RequirementCandidate(
        title="Account lockout",
        content="The system shall lock an account after 5 failed login attempts within 10 minutes.",
        category="authentication",
        type="FUNCTIONAL",
        confidence=0.9,
    )


@pytest.fixture
def vague():
    return RequirementCandidate(
        title="Report export",
        content="Users can export reports etc.",
        confidence=0.6,
    )


class TestComponents:
    """Tests for the individual sub-scores."""

    def test_structural_fit_full_marks(self, scorer, lockout):
        assert scorer.structural_fit(lockout) == 100

    def test_structural_fit_bare(self, scorer, vague):
        # Only the title length bonus applies
        assert scorer.structural_fit(vague) == 55

    def test_structural_fit_korean(self, scorer):
        candidate = RequirementCandidate(
            title="로그인 실패 처리",
            content="시스템은 로그인 실패 시 오류 메시지를 3초 이내에 표시해야 한다.",
        )
        assert scorer.structural_fit(candidate) == 100

    def test_missing_risk_is_capped(self, scorer, vague):
        assert scorer.raw_missing_risk(vague) == 50

    def test_missing_risk_none(self, scorer, lockout):
        assert scorer.raw_missing_risk(lockout) == 0

    def test_duplicate_ratio_from_confidence(self, scorer, lockout):
        assert scorer.raw_duplicate_ratio(lockout) == pytest.approx(2.0)

    def test_duplicate_ratio_zero_confidence_uses_default(self, scorer):
        candidate = RequirementCandidate(title="Zero", content="x", confidence=0.0)
        assert scorer.raw_duplicate_ratio(candidate) == pytest.approx(6.0)

    def test_feasibility_penalizes_vagueness(self, scorer, vague):
        assert scorer.feasibility(vague) == 55

    def test_feasibility_penalizes_deferral(self, scorer):
        candidate = RequirementCandidate(title="Later", content="Add an API later if needed.")
        # 70 + interface 5 - deferral 10
        assert scorer.feasibility(candidate) == 65

    def test_industry_fit_without_benchmark(self, scorer, lockout):
        assert scorer.industry_fit(lockout, None) == 70

    def test_industry_fit_caution_bonus(self, scorer, lockout):
        benchmark = IndustryBenchmark(
            industry="finance", function="authentication", avg_accuracy=92,
            caution_areas=["failed login", "multi-factor"],
        )
        assert scorer.industry_fit(lockout, benchmark) == 87

    def test_industry_fit_is_clamped(self, scorer, lockout):
        benchmark = IndustryBenchmark(
            industry="x", function="y", avg_accuracy=108, caution_areas=["account", "login"],
        )
        assert scorer.industry_fit(lockout, benchmark) == 100


class TestScore:
    """Tests for the aggregate score."""

    def test_score_without_benchmark(self, scorer, lockout):
        metrics = scorer.score(lockout)
        assert metrics.structural_fit == 100
        assert metrics.industry_fit == 70
        assert metrics.missing_risk == 100
        assert metrics.duplicate_ratio == 98
        assert metrics.feasibility == 80
        assert metrics.overall_score == 90

    def test_score_for_industry_uses_benchmark(self, scorer, lockout):
        metrics = scorer.score_for_industry(lockout, "finance")
        assert metrics.industry_fit == 82
        assert metrics.overall_score == 92

    @pytest.mark.parametrize("title,content,confidence", [
        ("A", "", 0.0),
        ("Account lockout", "The system shall lock accounts after 3 failures.", 1.0),
        ("Vague", "Do things as appropriate etc. later", 0.2),
        ("결제", "시스템은 결제 실패 시 오류를 기록해야 한다.", 0.75),
        ("x" * 150, "API UI 100 ms error if when", 0.5),
    ])
    def test_overall_is_rounded_mean_in_range(self, scorer, title, content, confidence):
        candidate = RequirementCandidate(title=title, content=content, confidence=confidence)
        metrics = scorer.score_for_industry(candidate, "healthcare")
        parts = [
            metrics.structural_fit,
            metrics.industry_fit,
            metrics.missing_risk,
            metrics.duplicate_ratio,
            metrics.feasibility,
        ]
        assert all(0 <= p <= 100 for p in parts)
        assert 0 <= metrics.overall_score <= 100
        assert metrics.overall_score == round(sum(parts) / 5)


class TestBenchmarks:
    """Tests for benchmark lookup."""

    def test_exact_function_match(self, scorer):
        benchmark = scorer.find_benchmark("finance", "privacy")
        assert benchmark.function == "privacy"

    def test_korean_alias(self, scorer):
        benchmark = scorer.find_benchmark("금융", "authentication")
        assert benchmark.industry == "finance"
        assert benchmark.function == "authentication"

    def test_falls_back_to_first_industry_entry(self, scorer):
        benchmark = scorer.find_benchmark("healthcare", "billing")
        assert benchmark.industry == "healthcare"
        assert benchmark.function == "emr integration"

    def test_unknown_industry(self, scorer):
        assert scorer.find_benchmark("aerospace", "telemetry") is None
        assert scorer.find_benchmark(None) is None

    def test_get_benchmarks_filters(self, scorer):
        assert {b.industry for b in scorer.get_benchmarks("logistics")} == {"logistics"}
        assert len(scorer.get_benchmarks()) == 10


class TestHeatmap:
    """Tests for batch scoring."""

    def test_generate_heatmap(self, scorer, lockout, vague):
        heatmap = scorer.generate_heatmap([lockout, vague])
        scored = heatmap["candidates"]
        assert [c.accuracy_metrics.overall_score for c in scored] == [90, 64]
        # Inputs are not mutated
        assert lockout.accuracy_metrics is None

        summary = heatmap["summary"]
        assert summary["avg_score"] == 77
        assert summary["high_risk"] == 0
        assert summary["distribution"] == {"excellent": 1, "good": 0, "fair": 1, "poor": 0}

    def test_empty_heatmap(self, scorer):
        heatmap = AccuracyScorer().generate_heatmap([])
        assert heatmap["summary"]["avg_score"] == 0

    @pytest.mark.parametrize("score,tier", [
        (95, "excellent"), (90, "excellent"), (89, "good"), (70, "good"),
        (69, "fair"), (50, "fair"), (49, "poor"), (0, "poor"),
    ])
    def test_quality_tier(self, score, tier):
        assert quality_tier(score) == tier
