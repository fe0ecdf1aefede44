"""Canonical text form used for pronunciation comparison."""

from __future__ import annotations

import unicodedata


def normalize_text(text: str | None) -> str:
    """Return ``text`` lowercased with diacritics and punctuation removed.

    Whitespace runs collapse to a single space and the ends are trimmed, so
    an empty or whitespace-only input normalizes to ``""``.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    lowered = stripped.lower()
    kept = "".join(ch if ch.isalnum() or ch.isspace() else "" for ch in lowered)
    return " ".join(kept.split())
