"""Gemini generateContent connector used as the primary utterance classifier."""

import hashlib
import json
import logging
import re
import time
from typing import Any, Dict, Optional

import httpx
from redis.exceptions import RedisError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception_type,
)

from assistlink.core.config import settings
from assistlink.core.errors import ClassifierUnavailable
from assistlink.core.metrics import record_external_api_retry
from assistlink.core.redis import CacheService
from assistlink.services.classifier import CATEGORY_ALIASES

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"en": "English", "hi": "Hindi", "te": "Telugu"}

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

MAX_ATTEMPTS = 2
RETRY_WAIT_SECONDS = 0.25


def attempt_timeout(budget: float) -> float:
    """Per-request timeout that leaves room for the retry and its wait inside ``budget``."""
    return max((budget - RETRY_WAIT_SECONDS) / MAX_ATTEMPTS, 0.1)


def _record_gemini_retry(retry_state):
    """Tenacity before_sleep callback to track Gemini retries."""
    record_external_api_retry("gemini")


def build_prompt(text: str, language: str) -> str:
    reply_language = LANGUAGE_NAMES.get(language, "English")
    return (
        "You are the AssistLink community assistant. Citizens ask for blood donors, "
        "help for elderly people, or report civic problems.\n\n"
        f'User input: "{text}"\n'
        f"Reply in: {reply_language}\n\n"
        "Categories:\n"
        "- blood_request: blood donation or transfusion needs\n"
        "- elder_support: help for elderly citizens (medicine, groceries, care)\n"
        "- complaint: infrastructure issues, broken services, civic problems\n"
        "- emergency: urgent situations requiring immediate help\n"
        "- general_inquiry: everything else\n\n"
        "Priority levels: urgent, high, medium, low.\n\n"
        "Answer with JSON only:\n"
        '{"response": "short helpful reply", "category": "...", "priority": "..."}'
    )


def parse_generate_content(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pull ``{category, priority, reply}`` out of a generateContent response.

    Raises:
        ClassifierUnavailable: no candidate text or no JSON object in it
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ClassifierUnavailable("Gemini response has no candidate text") from exc

    match = _JSON_OBJECT.search(text)
    if not match:
        raise ClassifierUnavailable("Gemini response contains no JSON object")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ClassifierUnavailable("Gemini response JSON is malformed") from exc
    if not isinstance(data, dict):
        raise ClassifierUnavailable("Gemini response JSON is not an object")

    return {
        "category": data.get("category"),
        "priority": data.get("priority"),
        "reply": data.get("response") or data.get("reply"),
    }


class GeminiResponder:
    """
    Classifies an utterance and drafts a reply through Gemini.

    Results are cached per (model, language, text). A 429 from the API puts the
    responder into a cooldown during which every call fails fast, so the
    classifier goes straight to its keyword fallback.
    """

    def __init__(
        self,
        cache_service: Optional[CacheService] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = settings.GEMINI_BASE_URL.rstrip("/")
        self.cache = cache_service
        self.client = httpx.AsyncClient(timeout=attempt_timeout(settings.AI_RESPONDER_TIMEOUT))
        self._cooldown_until = 0.0

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    @property
    def in_cooldown(self) -> bool:
        return time.monotonic() < self._cooldown_until

    def _enter_cooldown(self) -> None:
        self._cooldown_until = time.monotonic() + settings.AI_QUOTA_COOLDOWN_SECONDS
        logger.warning(
            "Gemini quota exceeded; using keyword classification for %ss",
            settings.AI_QUOTA_COOLDOWN_SECONDS,
        )

    def reset_cooldown(self) -> None:
        self._cooldown_until = 0.0

    def _build_cache_key(self, text: str, language: str) -> str:
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
        return f"ai_responder:{self.model}:{language}:{digest}"

    async def _cached(self, key: str) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except RedisError as exc:
            logger.warning("AI responder cache read failed: %s", exc)
            return None

    async def _store(self, key: str, value: Dict[str, Any]) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, value, ttl=settings.AI_RESPONDER_CACHE_TTL)
        except RedisError as exc:
            logger.warning("AI responder cache write failed: %s", exc)

    @retry(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_fixed(RETRY_WAIT_SECONDS),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=_record_gemini_retry,
        reraise=True,
    )
    async def _generate(self, prompt: str) -> Dict[str, Any]:
        response = await self.client.post(
            f"{self.base_url}/models/{self.model}:generateContent",
            params={"key": self.api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {"temperature": 0.2, "maxOutputTokens": 512},
            },
        )
        if response.status_code == 429:
            self._enter_cooldown()
            raise ClassifierUnavailable("Gemini quota exceeded")
        response.raise_for_status()
        return response.json()

    async def respond(self, text: str, language: str) -> Dict[str, Any]:
        """
        Classify ``text`` and draft a reply.

        Returns:
            ``{"category", "priority", "reply"}`` in the responder's vocabulary

        Raises:
            ClassifierUnavailable: not configured, cooling down, or unusable output
        """
        if not self.api_key:
            raise ClassifierUnavailable("Gemini API key not configured")
        if self.in_cooldown:
            raise ClassifierUnavailable("Gemini quota cooldown in effect")

        cache_key = self._build_cache_key(text, language)
        cached = await self._cached(cache_key)
        if cached is not None:
            logger.debug("AI responder cache hit for %s", cache_key)
            return cached

        payload = await self._generate(build_prompt(text, language))
        result = parse_generate_content(payload)
        # Only results the classifier can use are cached.
        if str(result.get("category") or "").strip().lower() in CATEGORY_ALIASES:
            await self._store(cache_key, result)
        return result
