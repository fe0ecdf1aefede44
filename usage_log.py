"""Structured logging of speech API usage (TTS/STT)."""

from __future__ import annotations

import logging
import time
from typing import Optional

logger = logging.getLogger("speech_usage")


def now_ms() -> int:
    return int(time.time() * 1000)


def log_speech_usage(
    kind: str,
    language_code: str,
    success: bool,
    text: Optional[str] = None,
    error: Optional[str] = None,
    duration_ms: Optional[int] = None,
    cached: Optional[bool] = None,
) -> None:
    # Only the length of the text is logged, never its content.
    logger.info(
        "Speech API %s %s",
        kind.upper(),
        "success" if success else "failure",
        extra={
            "speech_kind": kind,
            "language_code": language_code,
            "text_length": len(text) if text is not None else None,
            "success": success,
            "speech_error": error,
            "duration_ms": duration_ms,
            "cached": cached,
        },
    )
