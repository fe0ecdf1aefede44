"""Score classification: descriptive level and retry decision."""

from __future__ import annotations

from config import DEFAULT_RETRY_THRESHOLD
from models import FeedbackLevel

# Lower bound (inclusive) of each level, highest first.
LEVEL_BREAKPOINTS = (
    (90.0, FeedbackLevel.EXCELLENT),
    (70.0, FeedbackLevel.GOOD),
    (50.0, FeedbackLevel.FAIR),
)


class FeedbackClassifier:
    def level(self, score: float) -> FeedbackLevel:
        """Fixed breakpoints, independent of the caller's threshold."""
        for lower_bound, level in LEVEL_BREAKPOINTS:
            if score >= lower_bound:
                return level
        return FeedbackLevel.POOR

    def needs_retry(self, score: float, threshold: float = DEFAULT_RETRY_THRESHOLD) -> bool:
        return score < threshold

    def message(self, score: float, threshold: float = DEFAULT_RETRY_THRESHOLD) -> str:
        if self.needs_retry(score, threshold):
            return "Try again to improve your pronunciation"
        if self.level(score) == FeedbackLevel.EXCELLENT:
            return "Excellent pronunciation!"
        return "Good job!"
