"""Cloud recognition provider using DashScope qwen3-asr-flash.

The qwen3-asr-flash model accepts complete audio (file path, URL, or base64)
and streams back recognition results via ``stream=True``. Microphone frames
are collected until the recorder is stopped, converted to a WAV payload and
sent to the model. Each streamed chunk becomes an interim ``result`` event and
the last text becomes the final one.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import List, Optional

from errors import ALREADY_ACTIVE, UNSUPPORTED, SpeechError
from interfaces import RecognitionListener, Recorder
from models import AudioFrame, CaptureResult, RecognitionConfig, RecognitionEvent, RecognitionKind
from recorder import SoundDeviceRecorder

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

# qwen3-asr-flash reports no per-result confidence.
UNREPORTED_CONFIDENCE = 0.0


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


class CloudRecognitionProvider:
    def __init__(
        self,
        api_key: str,
        recorder: Optional[Recorder] = None,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        queue_maxsize: int = 50,
    ) -> None:
        self._api_key = api_key
        self._recorder = recorder or SoundDeviceRecorder()
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._queue_maxsize = queue_maxsize
        self._listeners: List[RecognitionListener] = []
        self._thread: Optional[threading.Thread] = None
        self._abort_event = threading.Event()
        self._audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)
        self._config: Optional[RecognitionConfig] = None

    def add_listener(self, listener: RecognitionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RecognitionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self, config: RecognitionConfig) -> None:
        if dashscope is None:
            raise SpeechError(UNSUPPORTED, "dashscope is not installed")
        if self._thread and self._thread.is_alive():
            raise SpeechError(ALREADY_ACTIVE, "Recognition is already running")
        self._config = config
        self._abort_event.clear()
        self._audio_queue = Queue(maxsize=self._queue_maxsize)
        try:
            self._recorder.start(self._audio_queue)
        except SpeechError as exc:
            self._emit(RecognitionEvent(kind=RecognitionKind.ERROR.value, code="audio-capture", message=exc.message))
            self._emit(RecognitionEvent(kind=RecognitionKind.END.value))
            return
        self._emit(RecognitionEvent(kind=RecognitionKind.START.value))
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the microphone; recognition runs on what was captured."""
        self._recorder.stop()

    def abort(self) -> None:
        self._abort_event.set()
        self._recorder.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        """Consume audio frames until the sentinel, then recognise."""
        try:
            pcm = bytearray()
            sample_rate = 16000
            channels = 1

            while not self._abort_event.is_set():
                try:
                    frame = self._audio_queue.get(timeout=0.2)
                except Empty:
                    continue
                if frame is None:  # Sentinel
                    break
                pcm.extend(frame.pcm16_bytes)
                sample_rate = frame.sample_rate
                channels = frame.channels

            if self._abort_event.is_set():
                return
            if not pcm:
                self._emit_error("no-speech")
                return
            self._recognize_stream(_pcm_to_wav_base64(bytes(pcm), sample_rate, channels))
        finally:
            self._emit(RecognitionEvent(kind=RecognitionKind.END.value))

    def _recognize_stream(self, wav_base64: str) -> None:
        """Send audio to dashscope and stream interim/final results."""
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            self._emit_error("auth-failed", "No API key configured")
            return

        config = self._config or RecognitionConfig(language_code="en-US")
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_base64}]},
                ],
                result_format="message",
                asr_options={
                    "enable_itn": False,
                    "language": config.language_code.split("-")[0].lower(),
                },
                stream=True,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            self._emit_exception(exc)
            return

        latest_text = ""
        try:
            for chunk in response:
                if self._abort_event.is_set():
                    return
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    if config.interim_results:
                        self._emit_result(text, is_final=False)
        except Exception as exc:
            self._emit_exception(exc)
            return

        if not latest_text.strip():
            self._emit_error("no-speech")
            return
        self._emit_result(latest_text, is_final=True)

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output", {})
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _emit_result(self, text: str, is_final: bool) -> None:
        self._emit(
            RecognitionEvent(
                kind=RecognitionKind.RESULT.value,
                results=[CaptureResult(transcript=text, confidence=UNREPORTED_CONFIDENCE, is_final=is_final)],
            )
        )

    def _emit_exception(self, exc: Exception) -> None:
        """Map an SDK/network exception to a provider error code."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "auth" in low or "api key" in low:
            code = "auth-failed"
        elif "timeout" in low or "network" in low or "connection" in low:
            code = "network"
        else:
            code = "service-error"
        self._emit_error(code, message)

    def _emit_error(self, code: str, message: str = "") -> None:
        self._emit(RecognitionEvent(kind=RecognitionKind.ERROR.value, code=code, message=message))

    def _emit(self, event: RecognitionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Recognition listener failed on %s event", event.kind)
