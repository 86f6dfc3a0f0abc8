"""Intake facade: utterance in, classification, reply and (when possible) a new request out."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assistlink.core.errors import RequestValidationFailed
from assistlink.core.security import AuthContext
from assistlink.models.chat import ChatMessage
from assistlink.models.requests import RequestSource, utcnow
from assistlink.schemas.intake import ClassificationOut, IntakeRequest, IntakeResponse
from assistlink.schemas.requests import Location
from assistlink.services import classifier as categories
from assistlink.services.classifier import Classification, Classifier
from assistlink.services.extraction import (
    build_complaint_title,
    extract_blood_type,
    extract_complaint_category,
    extract_elder_service,
    extract_place,
)
from assistlink.services.request_store import Record, RequestStore
from assistlink.services.utterance import Utterance, normalize

logger = logging.getLogger(__name__)

CHANNEL_SOURCES = {"text": RequestSource.TEXT_CHAT, "voice": RequestSource.VOICE_CHAT}

ELDER_DUE_AFTER = timedelta(days=1)
MIN_DESCRIPTION_LENGTH = 10

GENERAL_REPLY = (
    "I can help you find blood donors, arrange support for an elderly person, "
    "or report a civic problem. Tell me what you need."
)

FOLLOW_UPS = {
    "blood_type": "Which blood group is needed? For example O+ or AB-.",
    "phone": "Please share a phone number so a volunteer can reach you.",
    "description": "Could you describe the problem in a little more detail?",
}


def _created_reply(record: Record) -> str:
    if record.kind == "blood":
        return (
            f"I've posted your request for {record.blood_type.value} blood. Volunteers will see it "
            "now, and your number stays hidden until someone volunteers."
        )
    if record.kind == "elder_support":
        return (
            f"I've created an elder support request for {record.service_type.lower()}. "
            "A volunteer will be in touch once they take it on."
        )
    return f"I've registered your complaint: {record.title}. Volunteers can now apply to handle it."


def compose_reply(
    classification: Classification, record: Optional[Record], missing: List[str]
) -> str:
    """AI reply when there is one, else a template; follow-up questions are always appended."""
    if classification.reply:
        parts = [classification.reply]
    elif record is not None:
        parts = [_created_reply(record)]
    elif classification.category == categories.GENERAL_INQUIRY:
        parts = [GENERAL_REPLY]
    else:
        parts = ["I can register this for you."]
    parts.extend(FOLLOW_UPS.get(field, f"Please provide your {field}.") for field in missing)
    return " ".join(parts)


class IntakeService:
    """Normalizer -> Classifier -> RequestStore.create, recording each exchange."""

    def __init__(self, db: AsyncSession, classifier: Classifier, store: Optional[RequestStore] = None):
        self.db = db
        self.classifier = classifier
        self.store = store or RequestStore(db)

    @staticmethod
    def build_fields(
        utterance: Utterance, classification: Classification, intake: IntakeRequest
    ) -> Tuple[Dict[str, Any], List[str]]:
        """Derive kind-specific creation fields from the utterance; report what could not be derived."""
        text = utterance.text
        missing: List[str] = []
        fields: Dict[str, Any] = {}

        if classification.category == categories.BLOOD:
            blood_type = extract_blood_type(text)
            if blood_type is None:
                missing.append("blood_type")
            fields = {
                "kind": "blood",
                "blood_type": blood_type,
                "urgency_level": classification.priority,
            }
        elif classification.category == categories.ELDER_SUPPORT:
            fields = {
                "kind": "elder_support",
                "service_type": extract_elder_service(text),
                "due_date": utcnow() + ELDER_DUE_AFTER,
                "urgency_level": classification.priority,
            }
        elif classification.category == categories.COMPLAINT:
            category = extract_complaint_category(text)
            if len(text) < MIN_DESCRIPTION_LENGTH:
                missing.append("description")
            fields = {
                "kind": "complaint",
                "title": build_complaint_title(text, category),
                "description": text,
                "category": category,
                "priority": classification.priority,
            }

        if intake.phone:
            fields["phone"] = intake.phone
        if intake.location is not None:
            fields["location"] = intake.location
        else:
            place = extract_place(text)
            if place:
                fields["location"] = Location(city=place)
        return fields, missing

    async def handle(self, actor: AuthContext, intake: IntakeRequest, channel: str = "text") -> IntakeResponse:
        utterance = normalize(intake.text, intake.language, intake.confidence)
        classification = await self.classifier.classify(utterance)

        record: Optional[Record] = None
        missing: List[str] = []
        wants_request = classification.category in (
            categories.BLOOD,
            categories.ELDER_SUPPORT,
            categories.COMPLAINT,
        )
        if wants_request and intake.create_request:
            fields, missing = self.build_fields(utterance, classification, intake)
            if not missing:
                try:
                    record = await self.store.create(actor, fields, source=CHANNEL_SOURCES[channel])
                except RequestValidationFailed as exc:
                    missing = [error["field"] for error in exc.context.get("errors", [])]
                    logger.info("Intake could not create a request yet, missing %s", missing)

        reply = compose_reply(classification, record, missing)

        self.db.add(
            ChatMessage(
                user_id=actor.user_id,
                channel=channel,
                language=utterance.language,
                user_message=utterance.text,
                bot_response=reply,
                category=classification.category,
                priority=classification.priority.value,
                classifier_source=classification.source,
                confidence=utterance.confidence,
                request_id=record.id if record is not None else None,
            )
        )
        await self.db.commit()

        logger.info(
            "Intake classified as %s/%s via %s%s",
            classification.category,
            classification.priority.value,
            classification.source,
            f", created request {record.id}" if record is not None else "",
        )
        return IntakeResponse(
            utterance=utterance.text,
            language=utterance.language,
            confidence=utterance.confidence,
            classification=ClassificationOut(
                category=classification.category,
                priority=classification.priority,
                confidence=classification.confidence,
                source=classification.source,
            ),
            reply=reply,
            request=record,
            missing_fields=missing,
        )

    async def history(self, actor: AuthContext, limit: int = 50) -> List[ChatMessage]:
        """The caller's most recent exchanges, newest first."""
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.user_id == actor.user_id)
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
