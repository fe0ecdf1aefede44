"""Protocol interfaces for the speech providers and the microphone."""

from __future__ import annotations

from queue import Queue
from typing import Callable, List, Optional, Protocol

from models import AudioFrame, RecognitionConfig, RecognitionEvent, Utterance, Voice

RecognitionListener = Callable[[RecognitionEvent], None]
# Called once per utterance with None on completion or a provider error code.
UtteranceCallback = Callable[[Optional[str]], None]


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class RecognitionProvider(Protocol):
    def add_listener(self, listener: RecognitionListener) -> None: ...

    def remove_listener(self, listener: RecognitionListener) -> None: ...

    def start(self, config: RecognitionConfig) -> None: ...

    def stop(self) -> None: ...

    def abort(self) -> None: ...


class SynthesisProvider(Protocol):
    def speak(self, utterance: Utterance, on_done: UtteranceCallback) -> None: ...

    def cancel(self) -> None: ...

    def list_available_voices(self) -> List[Voice]: ...
