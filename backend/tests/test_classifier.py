"""Tests for the two-tier classifier."""

import asyncio

import httpx
import pytest
from prometheus_client import REGISTRY

from assistlink.core.errors import ClassifierUnavailable
from assistlink.models.requests import Priority
from assistlink.services.classifier import (
    AI_CONFIDENCE,
    BLOOD,
    COMPLAINT,
    DEFAULT_CONFIDENCE,
    ELDER_SUPPORT,
    GENERAL_INQUIRY,
    KEYWORD_CONFIDENCE,
    Classifier,
    classify_by_keywords,
    parse_responder_result,
)
from assistlink.services.utterance import normalize


class StaticResponder:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def respond(self, text, language):
        self.calls.append((text, language))
        return self.result


class SlowResponder:
    async def respond(self, text, language):
        await asyncio.sleep(5)
        return {"category": "complaint", "priority": "low"}


class FailingResponder:
    def __init__(self, exc):
        self.exc = exc

    async def respond(self, text, language):
        raise self.exc


class TestKeywordFallback:
    @pytest.mark.parametrize(
        "text, category",
        [
            ("I need O+ blood at the hospital", BLOOD),
            ("Looking for plasma donors", BLOOD),
            ("My grandmother needs her medicines delivered", ELDER_SUPPORT),
            ("Senior citizen needs help with groceries", ELDER_SUPPORT),
            ("Street light is broken near my house", COMPLAINT),
            ("Water pipe leaking on our lane", COMPLAINT),
            ("मुझे खून चाहिए", BLOOD),
            ("రోడ్డు సమస్య ఉంది", COMPLAINT),
            ("What are your office hours", GENERAL_INQUIRY),
        ],
    )
    def test_categories(self, text, category):
        assert classify_by_keywords(normalize(text)).category == category

    def test_blood_type_with_need_beats_other_keywords(self):
        result = classify_by_keywords(normalize("need AB- for my grandfather", "en"))

        assert result.category == BLOOD

    def test_detached_sign_is_not_a_blood_group(self):
        result = classify_by_keywords(normalize("We need water in block B - the taps are dry"))

        assert result.category == COMPLAINT

    def test_detached_sign_counts_with_blood_words(self):
        result = classify_by_keywords(normalize("Need B - blood group for surgery", "en"))

        assert result.category == BLOOD

    def test_blood_rules_win_over_elder_rules(self):
        result = classify_by_keywords(normalize("Blood donation for elderly patient", "en"))

        assert result.category == BLOOD

    def test_urgency_terms_raise_priority(self):
        assert classify_by_keywords(normalize("Need blood urgently", "en")).priority == Priority.URGENT
        assert classify_by_keywords(normalize("तुरंत खून चाहिए")).priority == Priority.URGENT
        assert classify_by_keywords(normalize("Need blood", "en")).priority == Priority.MEDIUM

    def test_confidence_reflects_match(self):
        assert classify_by_keywords(normalize("pothole on road", "en")).confidence == KEYWORD_CONFIDENCE
        assert classify_by_keywords(normalize("hello", "en")).confidence == DEFAULT_CONFIDENCE

    def test_whole_word_matching(self):
        # "bloody" and "careful" must not trigger blood or elder rules.
        result = classify_by_keywords(normalize("That was a bloody careful answer", "en"))

        assert result.category == GENERAL_INQUIRY

    def test_fallback_is_marked(self):
        result = classify_by_keywords(normalize("hello", "en"))

        assert result.source == "fallback"
        assert result.reply is None


class TestParseResponderResult:
    def test_maps_aliases_and_priority(self):
        result = parse_responder_result(
            {"category": "blood_request", "priority": "HIGH", "response": "Posting it now"},
            normalize("need blood", "en"),
        )

        assert result.category == BLOOD
        assert result.priority == Priority.HIGH
        assert result.reply == "Posting it now"
        assert result.confidence == AI_CONFIDENCE
        assert result.source == "ai"

    def test_emergency_is_urgent_with_keyword_category(self):
        result = parse_responder_result(
            {"category": "emergency", "priority": "low"},
            normalize("my grandfather fell, need care", "en"),
        )

        assert result.category == ELDER_SUPPORT
        assert result.priority == Priority.URGENT

    def test_invalid_priority_falls_back_to_keywords(self):
        result = parse_responder_result(
            {"category": "complaint", "priority": "whenever"},
            normalize("urgent: road flooded", "en"),
        )

        assert result.priority == Priority.URGENT

    @pytest.mark.parametrize("payload", [None, "complaint", {"category": "weather"}, {}])
    def test_unusable_payload_raises(self, payload):
        with pytest.raises(ClassifierUnavailable):
            parse_responder_result(payload, normalize("hello", "en"))


class TestClassifier:
    @pytest.mark.asyncio
    async def test_uses_ai_result_when_available(self):
        responder = StaticResponder({"category": "elderly_care", "priority": "medium", "reply": "Sure"})
        classifier = Classifier(responder, timeout=1)

        result = await classifier.classify(normalize("help for grandma", "en"))

        assert result.source == "ai"
        assert result.category == ELDER_SUPPORT
        assert responder.calls == [("Help for grandma.", "en")]

    @pytest.mark.asyncio
    async def test_no_responder_uses_keywords(self):
        result = await Classifier(None).classify(normalize("street light broken", "en"))

        assert result.source == "fallback"
        assert result.category == COMPLAINT

    @pytest.mark.asyncio
    async def test_leaking_tap_without_responder(self):
        utterance = normalize("I need help, my tap water is leaking badly", "en")

        result = await Classifier(None).classify(utterance)

        assert (result.category, result.priority, result.source) == (
            COMPLAINT,
            Priority.MEDIUM,
            "fallback",
        )

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        classifier = Classifier(SlowResponder(), timeout=0.05)

        result = await classifier.classify(normalize("need O- blood urgently", "en"))

        assert result.source == "fallback"
        assert result.category == BLOOD
        assert result.priority == Priority.URGENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("down"),
            ClassifierUnavailable("quota"),
            ValueError("bad json"),
        ],
    )
    async def test_responder_errors_fall_back(self, exc):
        result = await Classifier(FailingResponder(exc), timeout=1).classify(normalize("pothole", "en"))

        assert result.source == "fallback"
        assert result.category == COMPLAINT

    @pytest.mark.asyncio
    async def test_unknown_ai_category_falls_back(self):
        classifier = Classifier(StaticResponder({"category": "weather"}), timeout=1)

        result = await classifier.classify(normalize("garbage everywhere", "en"))

        assert result.source == "fallback"
        assert result.category == COMPLAINT

    @pytest.mark.asyncio
    async def test_records_classification_metric(self):
        labels = {"source": "fallback", "category": GENERAL_INQUIRY}
        before = REGISTRY.get_sample_value("assistlink_classifications_total", labels) or 0.0

        await Classifier(None).classify(normalize("hello", "en"))

        after = REGISTRY.get_sample_value("assistlink_classifications_total", labels)
        assert after == pytest.approx(before + 1)
