"""Tests for text normalization and similarity."""

import pytest

from reqagent.analysis.similarity import (
    char_ngrams,
    jaccard,
    levenshtein_distance,
    levenshtein_similarity,
    normalize_text,
    similarity,
    word_jaccard,
    word_set,
)


class TestNormalize:
    """Tests for normalize_text."""

    def test_lowercases_and_collapses_separators(self):
        assert normalize_text("User   Login") == "user login"
        assert normalize_text("user-login_flow") == "user login flow"

    def test_strips_punctuation(self):
        assert normalize_text("Login (SSO)!") == "login sso"

    def test_keeps_hangul(self):
        assert normalize_text("사용자 로그인!") == "사용자 로그인"

    @pytest.mark.parametrize("text", [
        "  The System, shall -- LOG   errors. ",
        "a_b-c d",
        "시스템은 오류를 기록해야 한다.",
        "",
        "!!!",
    ])
    def test_idempotent(self, text):
        once = normalize_text(text)
        assert normalize_text(once) == once

    def test_same_token_set_for_spacing_variants(self):
        assert word_set(normalize_text("User Login")) == word_set(normalize_text("user   login"))


class TestComponents:
    """Tests for the individual measures."""

    def test_levenshtein_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_levenshtein_similarity_bounds(self):
        assert levenshtein_similarity("abc", "abc") == 1.0
        assert levenshtein_similarity("abc", "xyz") == 0.0
        assert levenshtein_similarity("", "") == 0.0

    def test_levenshtein_truncates_long_input(self):
        a = "x" * 600
        b = "x" * 500 + "y" * 100
        assert levenshtein_similarity(a, b) == 1.0

    def test_char_ngrams(self):
        assert char_ngrams("abcd") == {"abc", "bcd"}
        assert char_ngrams("ab") == {"ab"}
        assert char_ngrams("") == set()

    def test_jaccard_empty_is_zero(self):
        assert jaccard(set(), set()) == 0.0

    def test_word_jaccard(self):
        assert word_jaccard("user login", "user logout") == pytest.approx(1 / 3)


class TestSimilarity:
    """Tests for the weighted similarity."""

    @pytest.mark.parametrize("text", [
        "User Login",
        "The system shall lock the account after 5 failed attempts",
        "a",
        "결제 승인",
    ])
    def test_identity(self, text):
        assert similarity(text, text) == 1.0

    def test_spacing_variants_are_identical(self):
        assert similarity("User Login", "user   login") == 1.0
        assert similarity("User Login", "user   login") >= 0.85

    def test_empty_side_is_zero(self):
        assert similarity("", "User Login") == 0.0
        assert similarity("...", "User Login") == 0.0

    def test_unrelated_texts_score_low(self):
        assert similarity("User Login", "Monthly invoice export") < 0.3

    def test_symmetric_and_bounded(self):
        a = "Password reset by email"
        b = "Reset password via e-mail link"
        score = similarity(a, b)
        assert score == pytest.approx(similarity(b, a))
        assert 0.0 <= score <= 1.0
