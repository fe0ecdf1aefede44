"""Tests for CloudRecognitionProvider."""

from __future__ import annotations

import base64
import time
from queue import Queue
from typing import List, Optional
from unittest.mock import MagicMock, patch

import pytest

from errors import MICROPHONE_UNAVAILABLE, UNSUPPORTED, SpeechError
from models import AudioFrame, RecognitionConfig, RecognitionEvent, RecognitionKind
from recognizer import CloudRecognitionProvider, _pcm_to_wav_base64


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_frame(n_samples: int = 1600) -> AudioFrame:
    """Generate a silent AudioFrame (all zeros)."""
    return AudioFrame(
        pcm16_bytes=b"\x00\x00" * n_samples,
        sample_rate=16000,
        channels=1,
        timestamp_ms=0,
    )


class _ScriptedRecorder:
    """Queues the given frames on start and the sentinel on stop."""

    def __init__(self, frames: Optional[List[AudioFrame]] = None, start_error: Optional[SpeechError] = None) -> None:
        self.frames = frames if frames is not None else [_make_frame()]
        self.start_error = start_error
        self.start_calls = 0
        self.stop_calls = 0
        self._queue: Optional[Queue] = None

    def start(self, audio_queue: Queue) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self._queue = audio_queue
        for frame in self.frames:
            audio_queue.put(frame)

    def stop(self) -> None:
        self.stop_calls += 1
        if self._queue is not None:
            self._queue.put(None)
            self._queue = None


def _wait_for_end(events: list, *, timeout: float = 3.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if any(e.kind == RecognitionKind.END.value for e in events):
            return
        time.sleep(0.02)


def _kinds(events: List[RecognitionEvent]) -> List[str]:
    return [e.kind for e in events]


def _chunk(text: str) -> dict:
    return {"output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


def _run(provider: CloudRecognitionProvider, recorder: _ScriptedRecorder, config: RecognitionConfig) -> list:
    events: list[RecognitionEvent] = []
    provider.add_listener(events.append)
    provider.start(config)
    recorder.stop()
    _wait_for_end(events)
    return events


# ---------------------------------------------------------------
# _pcm_to_wav_base64
# ---------------------------------------------------------------

def test_pcm_to_wav_base64_produces_valid_base64() -> None:
    pcm = b"\x00\x00" * 1600  # 100ms of silence at 16kHz
    result = _pcm_to_wav_base64(pcm, sample_rate=16000, channels=1)
    decoded = base64.b64decode(result)
    # WAV header starts with RIFF
    assert decoded[:4] == b"RIFF"


# ---------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_streaming_emits_start_interims_final_and_end(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("hola"), _chunk("hola mundo")])
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    events = _run(provider, recorder, RecognitionConfig(language_code="es-ES"))

    assert _kinds(events) == ["start", "result", "result", "result", "end"]
    results = [e.results[0] for e in events if e.kind == RecognitionKind.RESULT.value]
    assert [(r.transcript, r.is_final) for r in results] == [
        ("hola", False),
        ("hola mundo", False),
        ("hola mundo", True),
    ]
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["asr_options"]["language"] == "es"
    assert kwargs["stream"] is True


@patch("recognizer.dashscope")
def test_interim_results_can_be_disabled(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("he"), _chunk("hello")])
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    events = _run(provider, recorder, RecognitionConfig(language_code="en-US", interim_results=False))

    assert _kinds(events) == ["start", "result", "end"]
    assert events[1].results[0].is_final is True


@patch("recognizer.dashscope")
def test_no_audio_reports_no_speech(mock_ds: MagicMock) -> None:
    recorder = _ScriptedRecorder(frames=[])
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    events = _run(provider, recorder, RecognitionConfig(language_code="en-US"))

    assert _kinds(events) == ["start", "error", "end"]
    assert events[1].code == "no-speech"
    mock_ds.MultiModalConversation.call.assert_not_called()


@patch("recognizer.dashscope")
def test_empty_transcript_reports_no_speech(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("  ")])
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    events = _run(provider, recorder, RecognitionConfig(language_code="en-US"))

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert [e.code for e in errors] == ["no-speech"]


# ---------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------

@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_emits_auth_failed() -> None:
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="", recorder=recorder)

    events = _run(provider, recorder, RecognitionConfig(language_code="en-US"))

    error = next(e for e in events if e.kind == RecognitionKind.ERROR.value)
    assert error.code == "auth-failed"


@pytest.mark.parametrize(
    "exception, code",
    [
        (ConnectionError("network timeout"), "network"),
        (Exception("401 Unauthorized: invalid api key"), "auth-failed"),
        (ValueError("unexpected payload"), "service-error"),
    ],
)
def test_sdk_exceptions_map_to_codes(exception: Exception, code: str) -> None:
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    with patch("recognizer.dashscope") as mock_ds:
        mock_ds.MultiModalConversation.call.side_effect = exception
        events = _run(provider, recorder, RecognitionConfig(language_code="en-US"))

    errors = [e for e in events if e.kind == RecognitionKind.ERROR.value]
    assert [e.code for e in errors] == [code]
    assert events[-1].kind == RecognitionKind.END.value


@patch("recognizer.dashscope", MagicMock())
def test_microphone_failure_is_reported_as_audio_capture() -> None:
    recorder = _ScriptedRecorder(start_error=SpeechError(MICROPHONE_UNAVAILABLE, "no mic"))
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)
    events: list[RecognitionEvent] = []
    provider.add_listener(events.append)

    provider.start(RecognitionConfig(language_code="en-US"))

    assert _kinds(events) == ["error", "end"]
    assert events[0].code == "audio-capture"
    assert events[0].message == "no mic"


@patch("recognizer.dashscope", None)
def test_dashscope_not_installed_is_unsupported() -> None:
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    with pytest.raises(SpeechError) as exc_info:
        provider.start(RecognitionConfig(language_code="en-US"))

    assert exc_info.value.code == UNSUPPORTED
    assert recorder.start_calls == 0


# ---------------------------------------------------------------
# Abort / listeners
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_abort_discards_audio_without_recognizing(mock_ds: MagicMock) -> None:
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)
    events: list[RecognitionEvent] = []
    provider.add_listener(events.append)

    provider.start(RecognitionConfig(language_code="en-US"))
    provider.abort()
    _wait_for_end(events)

    assert _kinds(events) == ["start", "end"]
    mock_ds.MultiModalConversation.call.assert_not_called()
    assert recorder.stop_calls == 1


@patch("recognizer.dashscope")
def test_removed_listener_receives_nothing(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("hi")])
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)
    removed: list[RecognitionEvent] = []
    provider.add_listener(removed.append)
    provider.remove_listener(removed.append)
    provider.remove_listener(removed.append)  # tolerated

    events = _run(provider, recorder, RecognitionConfig(language_code="en-US"))

    assert removed == []
    assert events[-1].kind == RecognitionKind.END.value


@patch("recognizer.dashscope")
def test_listener_fault_does_not_stop_delivery(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("hi")])
    recorder = _ScriptedRecorder()
    provider = CloudRecognitionProvider(api_key="test-key", recorder=recorder)

    def broken(event: RecognitionEvent) -> None:
        raise RuntimeError("boom")

    provider.add_listener(broken)
    events = _run(provider, recorder, RecognitionConfig(language_code="en-US"))

    assert _kinds(events) == ["start", "result", "result", "end"]
