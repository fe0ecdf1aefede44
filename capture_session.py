"""State-machine based speech capture session.

``IDLE -> STARTING -> LISTENING -> IDLE``. Any provider error moves the
session back to ``IDLE`` and is delivered to the error subscribers. Only one
capture may be active at a time; a second ``start`` is rejected with
``ALREADY_ACTIVE``.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from config import START_TIMEOUT_S
from errors import (
    ALREADY_ACTIVE,
    PROVIDER_ERROR,
    TIMEOUT,
    UNSUPPORTED,
    VALIDATION_ERROR,
    SpeechError,
    capture_error_from_code,
)
from interfaces import RecognitionProvider
from models import (
    CaptureError,
    CaptureResult,
    RecognitionConfig,
    RecognitionEvent,
    RecognitionKind,
    SessionState,
)
from observers import SubscriberList, Unsubscribe
from usage_log import log_speech_usage, now_ms

logger = logging.getLogger(__name__)

ResultCallback = Callable[[CaptureResult], None]
ErrorCallback = Callable[[CaptureError], None]
StateCallback = Callable[[SessionState, SessionState], None]


class _StartAttempt:
    """Deadline token for one ``start`` call.

    Owns the provider listener registered for that attempt so every exit path
    (acknowledged, failed, aborted, timed out) removes it.
    """

    def __init__(self) -> None:
        self.settled = threading.Event()
        self.error: Optional[CaptureError] = None

    def listener(self, event: RecognitionEvent) -> None:
        if event.kind == RecognitionKind.START.value:
            self.settled.set()
        elif event.kind == RecognitionKind.ERROR.value:
            self.error = capture_error_from_code(event.code, event.message)
            self.settled.set()

    def cancel(self, error: CaptureError) -> None:
        if not self.settled.is_set():
            self.error = error
            self.settled.set()


class SpeechCaptureSession:
    def __init__(
        self,
        provider: Optional[RecognitionProvider],
        start_timeout_s: float = START_TIMEOUT_S,
        on_state_change: Optional[StateCallback] = None,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._provider = provider
        self._start_timeout_s = start_timeout_s

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._attempt: Optional[_StartAttempt] = None
        self._final_delivered = False
        self._language_code = ""
        self._started_at_ms = 0

        self._result_subscribers = SubscriberList("capture result")
        self._error_subscribers = SubscriberList("capture error")
        self._state_subscribers = SubscriberList("capture state")
        if on_state_change:
            self.on_state_change(on_state_change)
        if on_result:
            self.on_result(on_result)
        if on_error:
            self.on_error(on_error)

        if provider is not None:
            provider.add_listener(self._handle_event)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state == SessionState.LISTENING

    def is_supported(self) -> bool:
        return self._provider is not None

    def start(
        self,
        language_code: str,
        continuous: bool = False,
        interim_results: bool = True,
        max_alternatives: int = 1,
    ) -> None:
        """Begin listening; returns once the provider acknowledges the start."""
        if self._provider is None:
            log_speech_usage("stt", language_code, False, error=UNSUPPORTED)
            raise SpeechError(UNSUPPORTED, "Speech recognition is not supported on this system.")
        if not language_code or not language_code.strip():
            raise SpeechError(VALIDATION_ERROR, "Language code is required.")

        attempt = _StartAttempt()
        with self._lock:
            if self._state != SessionState.IDLE:
                raise SpeechError(ALREADY_ACTIVE)
            self._attempt = attempt
            self._final_delivered = False
            self._language_code = language_code
            self._started_at_ms = now_ms()
            self._transition(SessionState.STARTING)
            self._provider.add_listener(attempt.listener)
            try:
                self._provider.start(
                    RecognitionConfig(
                        language_code=language_code,
                        continuous=continuous,
                        interim_results=interim_results,
                        max_alternatives=max_alternatives,
                    )
                )
            except Exception as exc:
                self._release(attempt)
                self._transition(SessionState.IDLE)
                message = f"Failed to start speech recognition: {exc}"
                log_speech_usage("stt", language_code, False, error=message)
                if isinstance(exc, SpeechError):
                    raise
                raise SpeechError(PROVIDER_ERROR, message) from exc

        attempt.settled.wait(timeout=self._start_timeout_s)

        with self._lock:
            self._release(attempt)
            if not attempt.settled.is_set():
                if self._state == SessionState.STARTING:
                    self._safe_abort_provider()
                    self._transition(SessionState.IDLE)
                log_speech_usage("stt", language_code, False, error=TIMEOUT)
                raise SpeechError(TIMEOUT)
            if attempt.error is not None:
                raise SpeechError(attempt.error.kind, attempt.error.message)
        logger.debug("Speech capture started (%s)", language_code)

    def stop(self) -> None:
        """Ask the provider to finish; the session goes idle on its ``end``."""
        with self._lock:
            if self._state == SessionState.IDLE:
                return
            try:
                self._provider.stop()
            except Exception:
                logger.exception("Recognition provider failed to stop")

    def abort(self) -> None:
        """Terminate immediately; the session is idle when this returns."""
        with self._lock:
            if self._state == SessionState.IDLE:
                return
            attempt = self._attempt
            self._transition(SessionState.IDLE)
            self._safe_abort_provider()
            if attempt is not None:
                attempt.cancel(capture_error_from_code("aborted"))

    def on_result(self, callback: ResultCallback) -> Unsubscribe:
        return self._result_subscribers.subscribe(callback)

    def on_error(self, callback: ErrorCallback) -> Unsubscribe:
        return self._error_subscribers.subscribe(callback)

    def on_state_change(self, callback: StateCallback) -> Unsubscribe:
        return self._state_subscribers.subscribe(callback)

    def clear_subscribers(self) -> None:
        self._result_subscribers.clear()
        self._error_subscribers.clear()
        self._state_subscribers.clear()

    # ------------------------------------------------------------------
    # Provider events
    # ------------------------------------------------------------------

    def _handle_event(self, event: RecognitionEvent) -> None:
        with self._lock:
            kind = event.kind
            if kind == RecognitionKind.START.value:
                if self._state == SessionState.STARTING:
                    self._transition(SessionState.LISTENING)
                return
            if kind == RecognitionKind.RESULT.value:
                self._deliver_results(event.results)
                return
            if kind == RecognitionKind.ERROR.value:
                if self._state == SessionState.IDLE:
                    return
                self._fail(capture_error_from_code(event.code, event.message))
                return
            if kind == RecognitionKind.END.value:
                self._transition(SessionState.IDLE)
                # An end without a start ack still settles the pending start.
                if self._attempt is not None:
                    self._attempt.cancel(capture_error_from_code("aborted"))

    def _deliver_results(self, results: List[CaptureResult]) -> None:
        if self._state != SessionState.LISTENING:
            return
        for result in results:
            # Nothing follows the final result of a session.
            if self._final_delivered:
                return
            if result.is_final:
                self._final_delivered = True
                log_speech_usage(
                    "stt",
                    self._language_code,
                    True,
                    text=result.transcript,
                    duration_ms=now_ms() - self._started_at_ms,
                )
            self._result_subscribers.notify(result)

    def _fail(self, error: CaptureError) -> None:
        log_speech_usage(
            "stt",
            self._language_code,
            False,
            error=error.message,
            duration_ms=now_ms() - self._started_at_ms,
        )
        self._transition(SessionState.IDLE)
        self._error_subscribers.notify(error)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _release(self, attempt: _StartAttempt) -> None:
        try:
            self._provider.remove_listener(attempt.listener)
        except ValueError:
            pass
        if self._attempt is attempt:
            self._attempt = None

    def _safe_abort_provider(self) -> None:
        try:
            self._provider.abort()
        except Exception:
            logger.exception("Recognition provider failed to abort")

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        self._state_subscribers.notify(from_state, to_state)
