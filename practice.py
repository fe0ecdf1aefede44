"""One pronunciation attempt: capture, score, classify, decide on retry."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable, Optional

from capture_session import SpeechCaptureSession
from config import DEFAULT_RETRY_THRESHOLD
from errors import ALREADY_ACTIVE, PERMISSION_DENIED, UNSUPPORTED, VALIDATION_ERROR, SpeechError
from feedback import FeedbackClassifier
from models import AttemptOutcome, CaptureError, CaptureResult, PracticeState, SessionState
from observers import SubscriberList, Unsubscribe
from scorer import PronunciationScorer

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[AttemptOutcome], None]
TranscriptCallback = Callable[[str, bool], None]
ErrorCallback = Callable[[CaptureError], None]


class PracticeOrchestrator:
    """Drives a capture session and turns its final transcript into an outcome.

    Subscribers receive interim/final transcripts, the attempt outcome
    ``{score, level, can_retry}`` and provider errors. Synchronous failures of
    ``start_practice`` are raised to the caller instead.
    """

    def __init__(
        self,
        session: SpeechCaptureSession,
        scorer: Optional[PronunciationScorer] = None,
        classifier: Optional[FeedbackClassifier] = None,
    ) -> None:
        self._session = session
        self._scorer = scorer or PronunciationScorer()
        self._classifier = classifier or FeedbackClassifier()

        self._lock = threading.RLock()
        self._state = PracticeState()
        self._outcome: Optional[AttemptOutcome] = None
        self._expected_text = ""
        self._language_code = ""
        self._threshold = DEFAULT_RETRY_THRESHOLD

        self._outcome_subscribers = SubscriberList("practice outcome")
        self._transcript_subscribers = SubscriberList("practice transcript")
        self._error_subscribers = SubscriberList("practice error")

        session.on_result(self._handle_result)
        session.on_error(self._handle_error)
        session.on_state_change(self._handle_state_change)

    @property
    def state(self) -> PracticeState:
        with self._lock:
            return dataclasses.replace(self._state)

    @property
    def outcome(self) -> Optional[AttemptOutcome]:
        return self._outcome

    def start_practice(
        self,
        expected_text: str,
        language_code: str,
        threshold: float = DEFAULT_RETRY_THRESHOLD,
    ) -> None:
        if not expected_text or not expected_text.strip():
            raise SpeechError(VALIDATION_ERROR, "Expected text is required.")
        if not language_code or not language_code.strip():
            raise SpeechError(VALIDATION_ERROR, "Language code is required.")
        if not self._session.is_supported():
            raise SpeechError(UNSUPPORTED, "Speech recognition is not supported on this system.")
        if self._session.state != SessionState.IDLE:
            raise SpeechError(ALREADY_ACTIVE)
        with self._lock:
            self._expected_text = expected_text
            self._language_code = language_code
            self._threshold = threshold
            self._outcome = None
            self._state = PracticeState(is_listening=True)
        try:
            self._session.start(language_code)
        except SpeechError as exc:
            with self._lock:
                self._record_error(exc.to_capture_error())
            raise

    def stop_practice(self) -> None:
        self._session.stop()

    def cancel_practice(self) -> None:
        self._session.abort()

    def retry(self) -> None:
        """Start a fresh attempt; only allowed after an outcome below threshold."""
        with self._lock:
            outcome = self._outcome
            if outcome is None or not outcome.can_retry:
                raise SpeechError(
                    VALIDATION_ERROR, "Retry is only available after an attempt that needs it."
                )
            if self._session.state != SessionState.IDLE:
                raise SpeechError(ALREADY_ACTIVE)
            self._outcome = None
            expected_text = self._expected_text
            language_code = self._language_code
            threshold = self._threshold
        logger.info("Retrying pronunciation attempt")
        self.start_practice(expected_text, language_code, threshold)

    def on_outcome(self, callback: OutcomeCallback) -> Unsubscribe:
        return self._outcome_subscribers.subscribe(callback)

    def on_transcript(self, callback: TranscriptCallback) -> Unsubscribe:
        return self._transcript_subscribers.subscribe(callback)

    def on_error(self, callback: ErrorCallback) -> Unsubscribe:
        return self._error_subscribers.subscribe(callback)

    # ------------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------------

    def _handle_result(self, result: CaptureResult) -> None:
        with self._lock:
            if not self._expected_text or self._outcome is not None:
                return
            self._state.transcript = result.transcript
            if not result.is_final:
                self._transcript_subscribers.notify(result.transcript, False)
                return

            score = self._scorer.score(self._expected_text, result.transcript)
            outcome = AttemptOutcome(
                score=score,
                level=self._classifier.level(score),
                can_retry=self._classifier.needs_retry(score, self._threshold),
                transcript=result.transcript,
            )
            self._outcome = outcome
            self._state.score = outcome.score
            self._state.level = outcome.level
            self._state.is_listening = False
            logger.info(
                "Attempt scored %.2f (%s, retry=%s)",
                outcome.score,
                outcome.level.value,
                outcome.can_retry,
            )
            self._transcript_subscribers.notify(result.transcript, True)
            self._outcome_subscribers.notify(outcome)

    def _handle_error(self, error: CaptureError) -> None:
        with self._lock:
            self._record_error(error)
            self._error_subscribers.notify(error)

    def _handle_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        with self._lock:
            self._state.is_listening = to_state != SessionState.IDLE

    def _record_error(self, error: CaptureError) -> None:
        self._state.error = error
        self._state.is_listening = False
        self._state.permission_denied = error.kind == PERMISSION_DENIED
