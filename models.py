"""Core data models for pronunciation practice."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    LISTENING = "LISTENING"


class FeedbackLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class RecognitionKind(str, Enum):
    START = "start"
    RESULT = "result"
    ERROR = "error"
    END = "end"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class CaptureResult:
    transcript: str
    confidence: float = 0.0
    is_final: bool = False


@dataclass
class CaptureError:
    kind: str
    message: str


@dataclass
class RecognitionEvent:
    """One event emitted by a recognition provider.

    ``results`` is only populated for ``result`` events, ``code`` only for
    ``error`` events.
    """

    kind: str
    results: List[CaptureResult] = field(default_factory=list)
    code: str = ""
    message: str = ""


@dataclass
class RecognitionConfig:
    language_code: str
    continuous: bool = False
    interim_results: bool = True
    max_alternatives: int = 1


@dataclass
class Voice:
    name: str
    language_tag: str
    is_local: bool = False


@dataclass
class SpeakOptions:
    rate: Optional[float] = None
    pitch: Optional[float] = None
    volume: Optional[float] = None


@dataclass
class Utterance:
    text: str
    language_code: str
    voice: Optional[Voice] = None
    rate: Optional[float] = None
    pitch: Optional[float] = None
    volume: Optional[float] = None


@dataclass
class CacheEntry:
    language_code: str
    text: str
    timestamp: float


@dataclass
class DetailedScore:
    score: float
    expected_text: str
    recognized_text: str
    normalized_expected: str
    normalized_recognized: str
    distance: int


@dataclass
class AttemptOutcome:
    score: float
    level: FeedbackLevel
    can_retry: bool
    transcript: str = ""


@dataclass
class PracticeState:
    is_listening: bool = False
    transcript: str = ""
    score: Optional[float] = None
    level: Optional[FeedbackLevel] = None
    error: Optional[CaptureError] = None
    permission_denied: bool = False
