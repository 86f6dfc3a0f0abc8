"""
Pydantic schemas for the chat and voice intake.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from assistlink.models.requests import Priority
from assistlink.schemas.requests import PHONE_PATTERN, Location, ServiceRequestRecord


class IntakeRequest(BaseModel):
    """What the utterance source hands over: text plus optional language and confidence."""

    model_config = ConfigDict(extra="forbid")

    text: str = Field(..., max_length=2000)
    language: Optional[str] = Field(None, max_length=10, description="en, hi, te or auto")
    confidence: Optional[float] = Field(
        None, description="Speech-to-text confidence; advisory only, echoed back"
    )
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    location: Optional[Location] = None
    create_request: bool = Field(
        True, description="Set False to classify and reply without creating a request"
    )


class ClassificationOut(BaseModel):
    category: str
    priority: Priority
    confidence: float
    source: str


class IntakeResponse(BaseModel):
    utterance: str
    language: str
    confidence: Optional[float] = None
    classification: ClassificationOut
    reply: str
    request: Optional[ServiceRequestRecord] = None
    missing_fields: List[str] = Field(default_factory=list)


class ChatHistoryEntry(BaseModel):
    id: UUID
    channel: str
    language: str
    user_message: str
    bot_response: str
    category: str
    priority: str
    classifier_source: str
    confidence: Optional[float] = None
    request_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
