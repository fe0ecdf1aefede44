"""Defaults and a simple JSON-based config store."""

from __future__ import annotations

import json
from pathlib import Path

START_TIMEOUT_S = 5.0
CACHE_TTL_S = 60 * 60
DEFAULT_RETRY_THRESHOLD = 70.0
MAX_SCORED_TEXT_LENGTH = 500
DEFAULT_LANGUAGE_CODE = "en-US"

_DEFAULTS = {
    "api_key": "",
    "hotkey": "Key.alt_l",
    "language_code": DEFAULT_LANGUAGE_CODE,
    "retry_threshold": DEFAULT_RETRY_THRESHOLD,
    "recognition_provider": "cloud",
    "synthesis_provider": "platform",
    "log_level": "INFO",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "pronunciation_coach" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        return str(self._get("api_key"))

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_language_code(self) -> str:
        return str(self._get("language_code"))

    def set_language_code(self, language_code: str) -> None:
        self._set("language_code", language_code)

    def get_retry_threshold(self) -> float:
        try:
            return float(self._get("retry_threshold"))
        except (TypeError, ValueError):
            return DEFAULT_RETRY_THRESHOLD

    def set_retry_threshold(self, threshold: float) -> None:
        self._set("retry_threshold", float(threshold))

    def get_recognition_provider(self) -> str:
        return str(self._get("recognition_provider"))

    def set_recognition_provider(self, name: str) -> None:
        self._set("recognition_provider", name)

    def get_synthesis_provider(self) -> str:
        return str(self._get("synthesis_provider"))

    def set_synthesis_provider(self, name: str) -> None:
        self._set("synthesis_provider", name)

    def get_log_level(self) -> str:
        return str(self._get("log_level")).upper()

    def _get(self, key: str) -> object:
        return self._read_all().get(key, _DEFAULTS[key])

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
