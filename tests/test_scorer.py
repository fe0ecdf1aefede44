from __future__ import annotations

import itertools

import pytest

from config import MAX_SCORED_TEXT_LENGTH
from scorer import PronunciationScorer

PHRASES = [
    "Hello world",
    "hello word",
    "Buenos días",
    "buenos dias!",
    "The quick brown fox",
    "a",
    "xyz",
    "!!!",
]


@pytest.fixture
def scorer() -> PronunciationScorer:
    return PronunciationScorer()


def test_identical_text_scores_100(scorer: PronunciationScorer) -> None:
    assert scorer.score("Good morning", "Good morning") == 100


@pytest.mark.parametrize("other", ["hello", "", "   "])
def test_empty_input_scores_zero(scorer: PronunciationScorer, other: str) -> None:
    assert scorer.score("", other) == 0
    assert scorer.score(other, "") == 0


def test_none_input_scores_zero(scorer: PronunciationScorer) -> None:
    assert scorer.score(None, "hello") == 0
    assert scorer.score("hello", None) == 0


def test_punctuation_only_scores_zero(scorer: PronunciationScorer) -> None:
    assert scorer.score("?!", "hello") == 0


def test_case_punctuation_and_diacritics_are_ignored(scorer: PronunciationScorer) -> None:
    s = "Buenos días, señor"
    assert scorer.score(s, s.upper()) == 100
    assert scorer.score(s, s.lower()) == 100
    assert scorer.score(s, s + "!!!") == 100
    assert scorer.score(s, "buenos dias senor") == 100


@pytest.mark.parametrize("a,b", list(itertools.product(PHRASES, repeat=2)))
def test_score_is_bounded_and_symmetric(scorer: PronunciationScorer, a: str, b: str) -> None:
    score = scorer.score(a, b)
    assert 0 <= score <= 100
    assert score == scorer.score(b, a)


def test_single_substitution_in_long_text_scores_above_80(scorer: PronunciationScorer) -> None:
    assert scorer.score("pronunciation", "pronunciatiom") > 80
    assert scorer.score("abcdefghij", "abcdefghix") == 90


def test_score_is_rounded_to_two_decimals(scorer: PronunciationScorer) -> None:
    # distance 1 over length 3
    assert scorer.score("cat", "cut") == 66.67


def test_completely_different_text_scores_zero(scorer: PronunciationScorer) -> None:
    assert scorer.score("abc", "xyz") == 0


def test_detailed_score_breakdown(scorer: PronunciationScorer) -> None:
    detail = scorer.calculate_detailed_score("Kitten!", "sitting")

    assert detail.expected_text == "Kitten!"
    assert detail.recognized_text == "sitting"
    assert detail.normalized_expected == "kitten"
    assert detail.normalized_recognized == "sitting"
    assert detail.distance == 3
    assert detail.score == round((1 - 3 / 7) * 100, 2)


def test_detailed_score_with_empty_input(scorer: PronunciationScorer) -> None:
    detail = scorer.calculate_detailed_score("", "hello")
    assert detail.score == 0
    assert detail.distance == 5


def test_is_passing(scorer: PronunciationScorer) -> None:
    assert scorer.is_passing("hello world", "hello world") is True
    assert scorer.is_passing("hello world", "goodbye") is False
    assert scorer.is_passing("abcdefghij", "abcdefghix", threshold=90) is True


def test_oversized_input_is_truncated() -> None:
    scorer = PronunciationScorer(max_text_length=10)
    assert scorer.score("a" * 10 + "b" * 1000, "a" * 10) == 100


def test_default_length_bound_applies() -> None:
    scorer = PronunciationScorer()
    assert len(scorer.normalize("ab " * 1000)) == MAX_SCORED_TEXT_LENGTH
    assert scorer.score("a" * 5000, "b" * 5000) == 0.0
