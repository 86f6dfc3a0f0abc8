"""
Chat and voice intake endpoints.

Voice clients run speech-to-text on the device and post the transcript with
its language and recognition confidence; both channels share one pipeline.
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from assistlink.api.v1.endpoints.requests import schedule_urgent_alert
from assistlink.connectors.ai_responder import GeminiResponder
from assistlink.core.config import settings
from assistlink.core.database import get_db
from assistlink.core.rate_limiter import limiter
from assistlink.core.redis import CacheService, get_redis
from assistlink.core.security import AuthContext, get_current_user
from assistlink.schemas.intake import ChatHistoryEntry, IntakeRequest, IntakeResponse
from assistlink.services.classifier import Classifier
from assistlink.services.intake import IntakeService

router = APIRouter()

_responder: Optional[GeminiResponder] = None


async def get_responder(redis: Redis = Depends(get_redis)) -> Optional[GeminiResponder]:
    """Process-wide Gemini responder, or None when AI replies are switched off."""
    global _responder
    if not settings.AI_RESPONDER_ENABLED or not settings.GEMINI_API_KEY:
        return None
    if _responder is None:
        _responder = GeminiResponder(CacheService(redis))
    return _responder


async def close_responder():
    """Close the shared responder's HTTP client."""
    global _responder
    if _responder is not None:
        await _responder.close()
        _responder = None


def get_classifier(responder: Optional[GeminiResponder] = Depends(get_responder)) -> Classifier:
    return Classifier(responder)


def get_intake_service(
    db: AsyncSession = Depends(get_db),
    classifier: Classifier = Depends(get_classifier),
) -> IntakeService:
    return IntakeService(db, classifier)


@router.post("/text", response_model=IntakeResponse)
@limiter.limit(settings.INTAKE_RATE_LIMIT)
async def text_intake(
    request: Request,
    payload: IntakeRequest,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_current_user),
    service: IntakeService = Depends(get_intake_service),
):
    """
    Classify a typed message, reply, and create a request when one is implied.

    If the message lacks something a request needs (a blood group, a phone
    number) the reply asks for it and ``missing_fields`` lists it.
    """
    response = await service.handle(auth, payload, channel="text")
    if response.request is not None:
        schedule_urgent_alert(background_tasks, response.request)
    return response


@router.post("/voice", response_model=IntakeResponse)
@limiter.limit(settings.INTAKE_RATE_LIMIT)
async def voice_intake(
    request: Request,
    payload: IntakeRequest,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_current_user),
    service: IntakeService = Depends(get_intake_service),
):
    """Same pipeline as ``/text`` for a device transcript."""
    response = await service.handle(auth, payload, channel="voice")
    if response.request is not None:
        schedule_urgent_alert(background_tasks, response.request)
    return response


@router.get("/history", response_model=List[ChatHistoryEntry])
async def chat_history(
    limit: int = Query(50, ge=1, le=200),
    auth: AuthContext = Depends(get_current_user),
    service: IntakeService = Depends(get_intake_service),
):
    return await service.history(auth, limit=limit)
