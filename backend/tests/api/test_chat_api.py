"""
Tests for the chat and voice intake endpoints.
"""

import pytest

from assistlink.main import app
from assistlink.api.v1.endpoints.chat import get_responder
from assistlink.utils.notifications import NotificationService


class CannedResponder:
    async def respond(self, text, language):
        return {"category": "elder_care", "priority": "high", "reply": "Help is on the way."}


@pytest.mark.asyncio
async def test_text_intake_creates_a_request(api_client, citizen, auth_headers):
    response = await api_client.post(
        "/api/v1/chat/text",
        json={"text": "need   b+ blood urgently", "language": "en"},
        headers=auth_headers(citizen),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["utterance"] == "Need b+ blood urgently."
    assert body["classification"] == {
        "category": "blood",
        "priority": "urgent",
        "confidence": 0.6,
        "source": "fallback",
    }
    assert body["request"]["kind"] == "blood"
    assert body["request"]["blood_type"] == "B+"
    assert body["request"]["source"] == "text_chat"
    assert body["missing_fields"] == []


@pytest.mark.asyncio
async def test_voice_intake_echoes_confidence(api_client, citizen, auth_headers):
    response = await api_client.post(
        "/api/v1/chat/voice",
        json={"text": "बुजुर्ग माँ के लिए दवा चाहिए", "language": "auto", "confidence": 1.7},
        headers=auth_headers(citizen),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["language"] == "hi"
    assert body["confidence"] == 1.0
    assert body["classification"]["category"] == "elder_support"
    assert body["request"]["source"] == "voice_chat"


@pytest.mark.asyncio
async def test_ai_responder_drives_the_reply(api_client, citizen, auth_headers):
    async def canned():
        return CannedResponder()

    app.dependency_overrides[get_responder] = canned
    response = await api_client.post(
        "/api/v1/chat/text",
        json={"text": "My grandfather needs groceries"},
        headers=auth_headers(citizen),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["classification"]["source"] == "ai"
    assert body["classification"]["priority"] == "high"
    assert body["reply"] == "Help is on the way."
    assert body["request"]["service_type"] == "Grocery Shopping"


@pytest.mark.asyncio
async def test_empty_utterance_is_rejected(api_client, citizen, auth_headers):
    response = await api_client.post(
        "/api/v1/chat/text", json={"text": "  \n "}, headers=auth_headers(citizen)
    )

    assert response.status_code == 400
    assert response.json()["error"] == "EMPTY_UTTERANCE"


@pytest.mark.asyncio
async def test_history_lists_own_exchanges(api_client, citizen, volunteer, auth_headers):
    for text in ("hello", "The road near my house has potholes"):
        await api_client.post("/api/v1/chat/text", json={"text": text}, headers=auth_headers(citizen))
    await api_client.post("/api/v1/chat/text", json={"text": "hi"}, headers=auth_headers(volunteer))

    response = await api_client.get("/api/v1/chat/history?limit=10", headers=auth_headers(citizen))

    assert response.status_code == 200
    entries = response.json()
    assert [entry["user_message"] for entry in entries] == [
        "The road near my house has potholes.",
        "Hello.",
    ]
    assert entries[0]["category"] == "complaint"
    assert entries[0]["request_id"] is not None
    assert entries[1]["request_id"] is None


@pytest.fixture
def urgent_alerts(monkeypatch):
    sent = []

    async def record_alert(kind, request_id, city=None):
        sent.append((kind, request_id))

    monkeypatch.setattr(NotificationService, "notify_urgent_request", record_alert)
    return sent


@pytest.mark.asyncio
@pytest.mark.parametrize("channel", ["text", "voice"])
async def test_urgent_intake_alerts_coordinators(api_client, citizen, auth_headers, urgent_alerts, channel):
    response = await api_client.post(
        f"/api/v1/chat/{channel}",
        json={"text": "urgent, need O+ blood immediately", "language": "en"},
        headers=auth_headers(citizen),
    )

    assert response.status_code == 200
    created = response.json()["request"]
    assert created["urgency_level"] == "urgent"
    assert urgent_alerts == [("blood", created["id"])]


@pytest.mark.asyncio
async def test_routine_intake_sends_no_alert(api_client, citizen, auth_headers, urgent_alerts):
    response = await api_client.post(
        "/api/v1/chat/text",
        json={"text": "The road near my house has potholes"},
        headers=auth_headers(citizen),
    )

    assert response.json()["request"]["kind"] == "complaint"
    assert urgent_alerts == []
