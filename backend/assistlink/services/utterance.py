"""Utterance normalisation for typed and transcribed citizen input."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from assistlink.core.errors import EmptyUtterance

SUPPORTED_LANGUAGES = ("en", "hi", "te")

# Frequent mis-transcriptions of domain nouns; matched whole-word, case-insensitively.
LEXICAL_CORRECTIONS: tuple[tuple[str, str], ...] = (
    ("blood donate", "blood donation"),
    ("elder care", "elderly care"),
    ("complain", "complaint"),
    ("goverment", "government"),
    ("servise", "service"),
    ("servis", "service"),
    ("medicin", "medicine"),
    ("hosptial", "hospital"),
    ("emergancy", "emergency"),
)

_CORRECTION_PATTERNS = tuple(
    (re.compile(rf"\b{re.escape(wrong)}\b", re.IGNORECASE), right)
    for wrong, right in LEXICAL_CORRECTIONS
)

_WHITESPACE = re.compile(r"\s+")
_TERMINAL_PUNCTUATION = (".", "!", "?", "।")
_DEVANAGARI = re.compile(r"[ऀ-ॿ]")
_TELUGU = re.compile(r"[ఀ-౿]")


@dataclass(frozen=True, slots=True)
class Utterance:
    """Canonical form of what the citizen said."""

    text: str
    language: str
    confidence: Optional[float] = None


def detect_language(text: str) -> str:
    """Guess hi/te/en from the script in use."""
    if _TELUGU.search(text):
        return "te"
    if _DEVANAGARI.search(text):
        return "hi"
    return "en"


def apply_corrections(text: str) -> str:
    for pattern, replacement in _CORRECTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def normalize(
    raw_text: Optional[str],
    language: Optional[str] = None,
    confidence: Optional[float] = None,
) -> Utterance:
    """
    Clean raw input into an Utterance.

    Collapses whitespace, applies domain corrections to English input,
    capitalises the first letter and closes the sentence. Deterministic.

    Raises:
        EmptyUtterance: nothing left after trimming
    """
    text = _WHITESPACE.sub(" ", raw_text or "").strip()
    if not text:
        raise EmptyUtterance("Please say or type what you need help with")

    lang = (language or "auto").lower().split("-")[0]
    if lang not in SUPPORTED_LANGUAGES:
        lang = detect_language(text)

    if lang == "en":
        text = apply_corrections(text)

    text = text[0].upper() + text[1:]
    if not text.endswith(_TERMINAL_PUNCTUATION):
        text += "."

    if confidence is not None:
        confidence = min(1.0, max(0.0, float(confidence)))

    return Utterance(text=text, language=lang, confidence=confidence)
