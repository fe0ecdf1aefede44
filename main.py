"""Console entrypoint: hear a phrase, hold the hotkey, say it, get a score."""

from __future__ import annotations

import argparse
import logging
import threading
from typing import Optional

from capture_session import SpeechCaptureSession
from config import JsonConfigStore
from errors import SpeechError
from feedback import FeedbackClassifier
from hotkey import PushToTalkHotkey
from models import AttemptOutcome, CaptureError
from playback_cache import SpeechPlaybackCache
from practice import PracticeOrchestrator
from providers import create_recognition_provider, create_synthesis_provider

logger = logging.getLogger(__name__)


class PracticeApp:
    def __init__(
        self,
        expected_text: str,
        language_code: Optional[str] = None,
        config_store: Optional[JsonConfigStore] = None,
    ) -> None:
        self.config_store = config_store or JsonConfigStore()
        self.expected_text = expected_text
        self.language_code = language_code or self.config_store.get_language_code()
        self.threshold = self.config_store.get_retry_threshold()
        self.classifier = FeedbackClassifier()

        api_key = self.config_store.get_api_key()
        self.playback = SpeechPlaybackCache(
            self._build(create_synthesis_provider, self.config_store.get_synthesis_provider(), api_key)
        )
        self.session = SpeechCaptureSession(
            self._build(create_recognition_provider, self.config_store.get_recognition_provider(), api_key)
        )
        self.practice = PracticeOrchestrator(self.session, classifier=self.classifier)
        self.practice.on_transcript(self._on_transcript)
        self.practice.on_outcome(self._on_outcome)
        self.practice.on_error(self._on_error)

        self.hotkey = PushToTalkHotkey(hotkey_name=self.config_store.get_hotkey())
        self._finished = threading.Event()

    @staticmethod
    def _build(factory, name: str, api_key: str):  # noqa: ANN001, ANN205
        try:
            return factory(name, api_key)
        except SpeechError as exc:
            logger.warning("%s provider '%s' unavailable: %s", factory.__name__, name, exc.message)
            return None

    # ------------------------------------------------------------------
    # Callbacks (called from provider threads)
    # ------------------------------------------------------------------

    def _on_transcript(self, text: str, is_final: bool) -> None:
        print(f"{'Heard' if is_final else '...'} {text}")

    def _on_outcome(self, outcome: AttemptOutcome) -> None:
        print(f"Score: {outcome.score:.2f} ({outcome.level.value})")
        print(self.classifier.message(outcome.score, self.threshold))
        if outcome.can_retry:
            print("Hold the hotkey to try again, Ctrl+C to quit.")
        else:
            self._finished.set()

    def _on_error(self, error: CaptureError) -> None:
        print(f"! {error.message}")

    # ------------------------------------------------------------------
    # Hotkey handlers
    # ------------------------------------------------------------------

    def _on_hotkey_press(self) -> None:
        # start blocks until the recognizer acknowledges, keep it off the
        # pynput listener thread.
        threading.Thread(target=self._begin_attempt, daemon=True).start()

    def _on_hotkey_release(self) -> None:
        self.practice.stop_practice()

    def _begin_attempt(self) -> None:
        try:
            outcome = self.practice.outcome
            if outcome is not None and outcome.can_retry:
                self.practice.retry()
            else:
                self.practice.start_practice(self.expected_text, self.language_code, self.threshold)
        except SpeechError as exc:
            print(f"! {exc.message}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        print(f"Practice saying: {self.expected_text}")
        try:
            self.playback.speak(self.expected_text, self.language_code)
        except SpeechError as exc:
            logger.warning("Could not speak the prompt: %s", exc.message)
        try:
            self.hotkey.start(on_press=self._on_hotkey_press, on_release=self._on_hotkey_release)
        except RuntimeError as exc:
            print(f"! Hotkey disabled: {exc}")
            return 1
        print("Hold the hotkey and speak.")
        try:
            while not self._finished.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            pass
        finally:
            self.quit()
        return 0

    def quit(self) -> None:
        self.hotkey.stop()
        self.practice.cancel_practice()
        self.playback.stop()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Practice pronouncing a phrase.")
    parser.add_argument("phrase", help="the phrase to practice")
    parser.add_argument("--lang", dest="language_code", default=None, help="language tag, e.g. es-ES")
    args = parser.parse_args(argv)

    config_store = JsonConfigStore()
    logging.basicConfig(
        level=getattr(logging, config_store.get_log_level(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = PracticeApp(args.phrase, args.language_code, config_store)
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
