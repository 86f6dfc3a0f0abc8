"""
Two-tier utterance classifier.

The AI responder is tried first under a timeout. Any failure (missing
responder, timeout, transport error, unparseable output) falls through to a
deterministic keyword table that always produces a result.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from assistlink.core.config import settings
from assistlink.core.errors import ClassifierUnavailable
from assistlink.core.metrics import record_classification
from assistlink.models.requests import Priority
from assistlink.services.extraction import extract_blood_type
from assistlink.services.utterance import Utterance

logger = logging.getLogger(__name__)

BLOOD = "blood"
ELDER_SUPPORT = "elder_support"
COMPLAINT = "complaint"
GENERAL_INQUIRY = "general_inquiry"
CATEGORIES = (BLOOD, ELDER_SUPPORT, COMPLAINT, GENERAL_INQUIRY)

AI_CONFIDENCE = 0.9
KEYWORD_CONFIDENCE = 0.6
DEFAULT_CONFIDENCE = 0.3

# Responder vocabularies that differ from ours; None defers the category to the keyword table.
CATEGORY_ALIASES: Mapping[str, Optional[str]] = {
    "blood": BLOOD,
    "blood_request": BLOOD,
    "blood_donation": BLOOD,
    "elder_support": ELDER_SUPPORT,
    "elderly_support": ELDER_SUPPORT,
    "elder_care": ELDER_SUPPORT,
    "elderly_care": ELDER_SUPPORT,
    "complaint": COMPLAINT,
    "general_inquiry": GENERAL_INQUIRY,
    "general": GENERAL_INQUIRY,
    "emergency": None,
}


def _terms(*words: str) -> re.Pattern[str]:
    """Whole-word alternation for Latin terms; other scripts match as substrings."""
    latin = [re.escape(w) for w in words if w.isascii()]
    native = [re.escape(w) for w in words if not w.isascii()]
    parts = []
    if latin:
        parts.append(rf"\b(?:{'|'.join(latin)})\b")
    if native:
        parts.append(f"(?:{'|'.join(native)})")
    return re.compile("|".join(parts), re.IGNORECASE)


KEYWORD_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        BLOOD,
        _terms(
            "blood", "donate", "donation", "donor", "donors", "transfusion", "plasma", "platelets",
            "khoon", "rakth", "rakt", "raktham",
            "खून", "रक्त", "రక్తం",
        ),
    ),
    (
        ELDER_SUPPORT,
        _terms(
            "elderly", "elder", "old age", "senior", "seniors", "grandfather", "grandmother",
            "grandma", "grandpa", "caregiver", "nursing", "care", "medicine", "medicines",
            "grocery", "groceries", "bujurg",
            "बुजुर्ग", "दवा", "వృద్ధులు", "మందులు",
        ),
    ),
    (
        COMPLAINT,
        _terms(
            "complaint", "complaints", "problem", "issue", "broken", "not working", "damaged",
            "leak", "leaking", "repair", "fix", "street", "streetlight", "light", "road",
            "pothole", "potholes", "water", "electricity", "power cut", "garbage", "sewage",
            "drainage", "noise", "pollution", "shikayat",
            "शिकायत", "समस्या", "ఫిర్యాదు", "సమస్య",
        ),
    ),
)

URGENCY_TERMS = _terms(
    "urgent", "urgently", "emergency", "immediately", "immediate", "critical", "asap",
    "turant", "aapatkaal",
    "तुरंत", "आपातकाल", "అత్యవసరం",
)


@dataclass(frozen=True, slots=True)
class Classification:
    category: str
    priority: Priority
    confidence: float
    reply: Optional[str] = None
    source: str = "fallback"  # ai | fallback


class Responder(Protocol):
    """External AI responder: ``{text, language}`` in, ``{category, priority, reply}`` out."""

    async def respond(self, text: str, language: str) -> Mapping[str, Any]:
        ...


def keyword_priority(text: str) -> Priority:
    return Priority.URGENT if URGENCY_TERMS.search(text) else Priority.MEDIUM


def keyword_category(text: str) -> Optional[str]:
    if extract_blood_type(text) is not None and re.search(r"\b(need|needs|want|require|required)\b", text, re.I):
        return BLOOD
    for category, pattern in KEYWORD_RULES:
        if pattern.search(text):
            return category
    return None


def classify_by_keywords(utterance: Utterance) -> Classification:
    """Deterministic fallback; total over any non-empty utterance."""
    text = utterance.text.lower()
    category = keyword_category(text)
    return Classification(
        category=category or GENERAL_INQUIRY,
        priority=keyword_priority(text),
        confidence=KEYWORD_CONFIDENCE if category else DEFAULT_CONFIDENCE,
        source="fallback",
    )


def parse_responder_result(result: Any, utterance: Utterance) -> Classification:
    """
    Map a responder payload onto a Classification.

    Raises:
        ClassifierUnavailable: the payload has no usable category
    """
    if not isinstance(result, Mapping):
        raise ClassifierUnavailable(f"Responder returned {type(result).__name__}, expected a mapping")

    raw_category = str(result.get("category") or "").strip().lower()
    if raw_category not in CATEGORY_ALIASES:
        raise ClassifierUnavailable(f"Responder returned unknown category {raw_category!r}")

    category = CATEGORY_ALIASES[raw_category]
    text = utterance.text.lower()
    if category is None:
        category = keyword_category(text) or GENERAL_INQUIRY
        priority = Priority.URGENT
    else:
        try:
            priority = Priority(str(result.get("priority") or "").strip().lower())
        except ValueError:
            priority = keyword_priority(text)

    confidence = result.get("confidence")
    if not isinstance(confidence, (int, float)) or not 0 <= confidence <= 1:
        confidence = AI_CONFIDENCE

    reply = result.get("reply") or result.get("response")
    return Classification(
        category=category,
        priority=priority,
        confidence=float(confidence),
        reply=str(reply) if reply else None,
        source="ai",
    )


class Classifier:
    """Primary AI responder with a timeout, then the keyword table."""

    def __init__(self, responder: Optional[Responder] = None, timeout: Optional[float] = None) -> None:
        self.responder = responder
        self.timeout = settings.AI_RESPONDER_TIMEOUT if timeout is None else timeout

    async def _ask_responder(self, utterance: Utterance) -> Classification:
        if self.responder is None:
            raise ClassifierUnavailable("No AI responder configured")
        try:
            result = await asyncio.wait_for(
                self.responder.respond(utterance.text, utterance.language),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ClassifierUnavailable(f"AI responder timed out after {self.timeout}s") from exc
        except ClassifierUnavailable:
            raise
        except Exception as exc:
            raise ClassifierUnavailable(f"AI responder failed: {exc}") from exc
        return parse_responder_result(result, utterance)

    async def classify(self, utterance: Utterance) -> Classification:
        try:
            classification = await self._ask_responder(utterance)
        except ClassifierUnavailable as exc:
            if self.responder is not None:
                logger.warning("Falling back to keyword classification: %s", exc)
            classification = classify_by_keywords(utterance)

        record_classification(classification.source, classification.category)
        return classification
