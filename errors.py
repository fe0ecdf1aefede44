"""Shared error codes, provider code mapping and user-facing messages."""

from __future__ import annotations

from models import CaptureError

VALIDATION_ERROR = "VALIDATION_ERROR"
UNSUPPORTED = "UNSUPPORTED"
ALREADY_ACTIVE = "ALREADY_ACTIVE"
TIMEOUT = "TIMEOUT"
PERMISSION_DENIED = "PERMISSION_DENIED"
NO_SPEECH_DETECTED = "NO_SPEECH_DETECTED"
MICROPHONE_UNAVAILABLE = "MICROPHONE_UNAVAILABLE"
NETWORK_ERROR = "NETWORK_ERROR"
ABORTED = "ABORTED"
PROVIDER_ERROR = "PROVIDER_ERROR"

ERROR_MESSAGES = {
    VALIDATION_ERROR: "Text and language are required.",
    UNSUPPORTED: "Speech is not supported on this system.",
    ALREADY_ACTIVE: "Speech recognition is already active.",
    TIMEOUT: "Speech recognition failed to start within timeout.",
    PERMISSION_DENIED: "Microphone permission was denied. Please allow microphone access.",
    NO_SPEECH_DETECTED: "No speech was detected. Please try again.",
    MICROPHONE_UNAVAILABLE: "No microphone was found or microphone access was denied.",
    NETWORK_ERROR: "Network error occurred during speech recognition.",
    ABORTED: "Speech recognition was aborted.",
    PROVIDER_ERROR: "Speech recognition failed, please retry.",
}

# Provider-reported codes -> (kind, message).
_PROVIDER_CODES = {
    "no-speech": (NO_SPEECH_DETECTED, ERROR_MESSAGES[NO_SPEECH_DETECTED]),
    "audio-capture": (MICROPHONE_UNAVAILABLE, ERROR_MESSAGES[MICROPHONE_UNAVAILABLE]),
    "not-allowed": (PERMISSION_DENIED, ERROR_MESSAGES[PERMISSION_DENIED]),
    "service-not-allowed": (PERMISSION_DENIED, "Speech recognition service is not allowed."),
    "network": (NETWORK_ERROR, ERROR_MESSAGES[NETWORK_ERROR]),
    "aborted": (ABORTED, ERROR_MESSAGES[ABORTED]),
    "interrupted": (ABORTED, "Speech playback was interrupted."),
    "language-not-supported": (UNSUPPORTED, "The specified language is not supported."),
    "bad-grammar": (PROVIDER_ERROR, "Speech recognition grammar error."),
    "auth-failed": (PROVIDER_ERROR, "API key is invalid."),
    "synthesis-failed": (PROVIDER_ERROR, "Speech synthesis failed, please retry."),
}


class SpeechError(Exception):
    """Synchronous rejection carrying one of the error kinds above."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)

    def to_capture_error(self) -> CaptureError:
        return CaptureError(kind=self.code, message=self.message)


def capture_error_from_code(
    code: str, detail: str = "", source: str = "Speech recognition"
) -> CaptureError:
    """Map a provider error code onto the closed set of error kinds."""
    if code in _PROVIDER_CODES:
        kind, message = _PROVIDER_CODES[code]
        return CaptureError(kind=kind, message=message)
    message = f"{source} error: {code or 'unknown'}"
    if detail:
        message = f"{message} ({detail})"
    return CaptureError(kind=PROVIDER_ERROR, message=message)
