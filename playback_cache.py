"""Single-flight speech playback with a TTL record of spoken phrases.

The cache only records *that* a (language, text) pair was spoken; the
synthesis provider exposes no audio, so every ``speak`` still goes through it.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from config import CACHE_TTL_S
from errors import (
    PROVIDER_ERROR,
    TIMEOUT,
    UNSUPPORTED,
    VALIDATION_ERROR,
    SpeechError,
    capture_error_from_code,
)
from interfaces import SynthesisProvider
from models import CacheEntry, SpeakOptions, Utterance, Voice
from usage_log import log_speech_usage, now_ms

logger = logging.getLogger(__name__)


def _canonical_tag(tag: str) -> str:
    return tag.replace("_", "-").lower()


def _primary_subtag(tag: str) -> str:
    return _canonical_tag(tag).split("-")[0]


def _cache_key(text: str, language_code: str) -> str:
    return f"{language_code}:{text}"


class _Playback:
    def __init__(self, utterance: Utterance) -> None:
        self.utterance = utterance
        self.done = threading.Event()
        self.error: Optional[str] = None


class SpeechPlaybackCache:
    def __init__(
        self,
        provider: Optional[SynthesisProvider],
        ttl_s: float = CACHE_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._ttl_s = ttl_s
        self._clock = clock
        self._lock = threading.RLock()
        self._current: Optional[_Playback] = None
        self._cache: Dict[str, CacheEntry] = {}

    def is_supported(self) -> bool:
        return self._provider is not None

    def speak(
        self,
        text: str,
        language_code: str,
        options: Optional[SpeakOptions] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        """Speak ``text`` and block until playback completes.

        Any playback already in flight is cancelled first and its caller gets
        an ``ABORTED`` error.
        """
        started_ms = now_ms()
        if self._provider is None:
            log_speech_usage("tts", language_code, False, text=text, error=UNSUPPORTED)
            raise SpeechError(UNSUPPORTED, "Text-to-speech is not supported on this system.")
        if not text or not text.strip():
            log_speech_usage("tts", language_code, False, text=text, error=VALIDATION_ERROR)
            raise SpeechError(VALIDATION_ERROR, "Text cannot be empty.")
        if not language_code or not language_code.strip():
            raise SpeechError(VALIDATION_ERROR, "Language code is required.")

        cached = self.is_cached(text, language_code)
        options = options or SpeakOptions()
        playback = _Playback(
            Utterance(
                text=text,
                language_code=language_code,
                voice=self.select_voice(language_code),
                rate=options.rate,
                pitch=options.pitch,
                volume=options.volume,
            )
        )

        with self._lock:
            self._cancel_current()
            self._current = playback
            try:
                self._provider.speak(
                    playback.utterance, lambda error: self._on_done(playback, error)
                )
            except Exception as exc:
                if self._current is playback:
                    self._current = None
                message = f"Speech synthesis failed: {exc}"
                log_speech_usage(
                    "tts", language_code, False, text=text, error=message, cached=cached
                )
                raise SpeechError(PROVIDER_ERROR, message) from exc

        if not playback.done.wait(timeout=timeout_s):
            with self._lock:
                if self._current is playback:
                    self._cancel_current()
            log_speech_usage("tts", language_code, False, text=text, error=TIMEOUT, cached=cached)
            raise SpeechError(TIMEOUT, "Speech playback did not finish within timeout.")

        duration_ms = now_ms() - started_ms
        if playback.error is not None:
            error = capture_error_from_code(playback.error, source="Speech synthesis")
            log_speech_usage(
                "tts",
                language_code,
                False,
                text=text,
                error=error.message,
                duration_ms=duration_ms,
                cached=cached,
            )
            raise SpeechError(error.kind, error.message)

        log_speech_usage(
            "tts", language_code, True, text=text, duration_ms=duration_ms, cached=cached
        )

    def stop(self) -> None:
        with self._lock:
            self._cancel_current()

    def is_speaking(self) -> bool:
        return self._current is not None

    def is_cached(self, text: str, language_code: str) -> bool:
        """Whether the pair was spoken within the TTL; expired records are purged."""
        key = _cache_key(text, language_code)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return False
            if self._is_expired(entry):
                del self._cache[key]
                return False
            return True

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def get_cache_stats(self) -> dict:
        with self._lock:
            for key in [k for k, entry in self._cache.items() if self._is_expired(entry)]:
                del self._cache[key]
            return {"size": len(self._cache), "keys": list(self._cache.keys())}

    def available_voices(self, language_code: str) -> List[Voice]:
        primary = _primary_subtag(language_code)
        return [v for v in self._list_voices() if _primary_subtag(v.language_tag) == primary]

    def select_voice(self, language_code: str) -> Optional[Voice]:
        """Exact tag match first, then any voice sharing the primary subtag.

        Local voices win over network ones among the candidates.
        """
        voices = self._list_voices()
        wanted = _canonical_tag(language_code)
        candidates = [v for v in voices if _canonical_tag(v.language_tag) == wanted]
        if not candidates:
            primary = _primary_subtag(language_code)
            candidates = [v for v in voices if _primary_subtag(v.language_tag) == primary]
        if not candidates:
            return None
        for voice in candidates:
            if voice.is_local:
                return voice
        return candidates[0]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_done(self, playback: _Playback, error: Optional[str]) -> None:
        with self._lock:
            if playback.done.is_set():
                return
            if error is None:
                utterance = playback.utterance
                self._cache[_cache_key(utterance.text, utterance.language_code)] = CacheEntry(
                    language_code=utterance.language_code,
                    text=utterance.text,
                    timestamp=self._clock(),
                )
            if self._current is playback:
                self._current = None
            playback.error = error
            playback.done.set()

    def _cancel_current(self) -> None:
        playback = self._current
        if playback is None:
            return
        self._current = None
        try:
            self._provider.cancel()
        except Exception:
            logger.exception("Synthesis provider failed to cancel")
        if not playback.done.is_set():
            playback.error = "interrupted"
            playback.done.set()

    def _list_voices(self) -> List[Voice]:
        if self._provider is None:
            return []
        try:
            return list(self._provider.list_available_voices())
        except Exception:
            logger.exception("Could not list synthesis voices")
            return []

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp >= self._ttl_s
