"""Speech synthesis providers.

``CloudSynthesisProvider`` renders PCM with DashScope Sambert voices and plays
it through sounddevice. ``PlatformSynthesisProvider`` drives the macOS ``say``
command, whose voices are all local.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import threading
from typing import List, Optional

from interfaces import UtteranceCallback
from models import Utterance, Voice

try:
    import dashscope
    from dashscope.audio.tts import SpeechSynthesizer
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    SpeechSynthesizer = None  # type: ignore

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

SAMBERT_VOICES = (
    Voice(name="sambert-beth-v1", language_tag="en-US"),
    Voice(name="sambert-brian-v1", language_tag="en-US"),
    Voice(name="sambert-cally-v1", language_tag="en-US"),
    Voice(name="sambert-donna-v1", language_tag="en-US"),
    Voice(name="sambert-zhichu-v1", language_tag="zh-CN"),
    Voice(name="sambert-zhiwei-v1", language_tag="zh-CN"),
    Voice(name="sambert-camila-v1", language_tag="es-ES"),
    Voice(name="sambert-clara-v1", language_tag="fr-FR"),
    Voice(name="sambert-hanna-v1", language_tag="de-DE"),
    Voice(name="sambert-perla-v1", language_tag="it-IT"),
    Voice(name="sambert-indah-v1", language_tag="id-ID"),
    Voice(name="sambert-waan-v1", language_tag="th-TH"),
)

# "Alex                en_US    # Most people recognize me by my voice."
_SAY_VOICE_LINE = re.compile(r"^(?P<name>.+?)\s+(?P<tag>[a-z]{2,3}[_-][A-Za-z0-9]+)\s+#")


class CloudSynthesisProvider:
    def __init__(self, api_key: str, sample_rate: int = 16000) -> None:
        self._api_key = api_key
        self._sample_rate = sample_rate
        self._lock = threading.Lock()
        self._cancelled: Optional[threading.Event] = None

    def list_available_voices(self) -> List[Voice]:
        return list(SAMBERT_VOICES)

    def speak(self, utterance: Utterance, on_done: UtteranceCallback) -> None:
        cancelled = threading.Event()
        with self._lock:
            self._cancelled = cancelled
        threading.Thread(
            target=self._run, args=(utterance, on_done, cancelled), daemon=True
        ).start()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled is not None:
                self._cancelled.set()
        if sd is not None:
            sd.stop()

    def _run(
        self, utterance: Utterance, on_done: UtteranceCallback, cancelled: threading.Event
    ) -> None:
        try:
            error = self._synthesize_and_play(utterance, cancelled)
        except Exception:
            logger.exception("Cloud speech synthesis failed")
            error = "synthesis-failed"
        if cancelled.is_set():
            error = "interrupted"
        on_done(error)

    def _synthesize_and_play(self, utterance: Utterance, cancelled: threading.Event) -> Optional[str]:
        if SpeechSynthesizer is None or sd is None or np is None:
            return "synthesis-failed"
        voice = utterance.voice
        if voice is None:
            return "language-not-supported"
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            return "auth-failed"
        dashscope.api_key = api_key

        params = {}
        if utterance.rate is not None:
            params["rate"] = utterance.rate
        if utterance.pitch is not None:
            params["pitch"] = utterance.pitch
        if utterance.volume is not None:
            params["volume"] = int(utterance.volume * 100)
        result = SpeechSynthesizer.call(
            model=voice.name,
            text=utterance.text,
            sample_rate=self._sample_rate,
            format="pcm",
            **params,
        )
        audio = result.get_audio_data()
        if audio is None:
            logger.warning("Sambert returned no audio: %s", result.get_response())
            return "synthesis-failed"
        if cancelled.is_set():
            return "interrupted"
        sd.play(np.frombuffer(audio, dtype=np.int16), samplerate=self._sample_rate)
        sd.wait()
        return None


class PlatformSynthesisProvider:
    def __init__(self, command: str = "say", words_per_minute: int = 175) -> None:
        self._command = shutil.which(command)
        self._words_per_minute = words_per_minute
        self._voices: Optional[List[Voice]] = None
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._cancelled: Optional[threading.Event] = None

    def is_available(self) -> bool:
        return self._command is not None

    def list_available_voices(self) -> List[Voice]:
        if self._command is None:
            return []
        if self._voices is None:
            completed = subprocess.run(
                [self._command, "-v", "?"], capture_output=True, text=True, check=True
            )
            voices = []
            for line in completed.stdout.splitlines():
                match = _SAY_VOICE_LINE.match(line)
                if match:
                    voices.append(
                        Voice(
                            name=match.group("name").strip(),
                            language_tag=match.group("tag").replace("_", "-"),
                            is_local=True,
                        )
                    )
            self._voices = voices
        return list(self._voices)

    def speak(self, utterance: Utterance, on_done: UtteranceCallback) -> None:
        if self._command is None:
            raise RuntimeError("'say' command is not available")
        args = [self._command]
        if utterance.voice is not None:
            args += ["-v", utterance.voice.name]
        if utterance.rate is not None:
            args += ["-r", str(int(self._words_per_minute * utterance.rate))]
        # Text goes through stdin so it is never parsed as an option.
        args += ["-f", "-"]

        cancelled = threading.Event()
        process = subprocess.Popen(
            args,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
        )
        with self._lock:
            self._process = process
            self._cancelled = cancelled
        threading.Thread(
            target=self._wait, args=(process, utterance.text, on_done, cancelled), daemon=True
        ).start()

    def cancel(self) -> None:
        with self._lock:
            process, cancelled = self._process, self._cancelled
        if process is None or process.poll() is not None:
            return
        if cancelled is not None:
            cancelled.set()
        process.terminate()

    def _wait(
        self,
        process: subprocess.Popen,
        text: str,
        on_done: UtteranceCallback,
        cancelled: threading.Event,
    ) -> None:
        _, stderr = process.communicate(text)
        if cancelled.is_set():
            on_done("interrupted")
        elif process.returncode != 0:
            logger.warning("say exited with %s: %s", process.returncode, (stderr or "").strip())
            on_done("synthesis-failed")
        else:
            on_done(None)
