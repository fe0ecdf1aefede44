"""Construction-time selection of the recognition and synthesis providers."""

from __future__ import annotations

from errors import UNSUPPORTED, SpeechError
from interfaces import RecognitionProvider, SynthesisProvider
from recognizer import CloudRecognitionProvider
from synthesizer import CloudSynthesisProvider, PlatformSynthesisProvider

PLATFORM = "platform"
CLOUD = "cloud"


def create_recognition_provider(name: str, api_key: str = "") -> RecognitionProvider:
    if name == CLOUD:
        return CloudRecognitionProvider(api_key=api_key)
    if name == PLATFORM:
        raise SpeechError(UNSUPPORTED, "No platform speech recognizer is available; use 'cloud'.")
    raise SpeechError(UNSUPPORTED, f"Unknown recognition provider: {name}")


def create_synthesis_provider(name: str, api_key: str = "") -> SynthesisProvider:
    if name == CLOUD:
        return CloudSynthesisProvider(api_key=api_key)
    if name == PLATFORM:
        provider = PlatformSynthesisProvider()
        if not provider.is_available():
            raise SpeechError(UNSUPPORTED, "The 'say' command is not available on this system.")
        return provider
    raise SpeechError(UNSUPPORTED, f"Unknown synthesis provider: {name}")
