"""Similarity scoring between the expected phrase and a transcript."""

from __future__ import annotations

from config import DEFAULT_RETRY_THRESHOLD, MAX_SCORED_TEXT_LENGTH
from edit_distance import edit_distance
from models import DetailedScore
from text_normalizer import normalize_text


class PronunciationScorer:
    """Scores a transcript against the expected text on a 0-100 scale.

    ``100 * (1 - distance / max_length)`` over the normalized forms, rounded
    to two decimals. Case, punctuation and diacritics never affect the score.
    """

    def __init__(self, max_text_length: int = MAX_SCORED_TEXT_LENGTH) -> None:
        self._max_text_length = max_text_length

    def normalize(self, text: str | None) -> str:
        return normalize_text(text)[: self._max_text_length]

    def score(self, expected: str | None, recognized: str | None) -> float:
        if not expected or not recognized:
            return 0.0
        normalized_expected = self.normalize(expected)
        normalized_recognized = self.normalize(recognized)
        return self._score_normalized(normalized_expected, normalized_recognized)

    def calculate_detailed_score(
        self, expected: str | None, recognized: str | None
    ) -> DetailedScore:
        normalized_expected = self.normalize(expected)
        normalized_recognized = self.normalize(recognized)
        return DetailedScore(
            score=self.score(expected, recognized),
            expected_text=expected or "",
            recognized_text=recognized or "",
            normalized_expected=normalized_expected,
            normalized_recognized=normalized_recognized,
            distance=edit_distance(normalized_expected, normalized_recognized),
        )

    def is_passing(
        self,
        expected: str | None,
        recognized: str | None,
        threshold: float = DEFAULT_RETRY_THRESHOLD,
    ) -> bool:
        return self.score(expected, recognized) >= threshold

    def _score_normalized(self, expected: str, recognized: str) -> float:
        if not expected or not recognized:
            return 0.0
        if expected == recognized:
            return 100.0
        distance = edit_distance(expected, recognized)
        max_length = max(len(expected), len(recognized))
        similarity = 1 - distance / max_length
        score = max(0.0, min(100.0, similarity * 100))
        return round(score, 2)
