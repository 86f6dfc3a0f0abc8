"""
Chat intake history.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, Uuid

from assistlink.core.database import Base
from assistlink.models.requests import utcnow


class ChatMessage(Base):
    """One intake exchange: what the citizen said and what the assistant answered."""

    __tablename__ = "chat_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(String(10), nullable=False)  # text, voice
    language = Column(String(10), nullable=False)
    user_message = Column(Text, nullable=False)
    bot_response = Column(Text, nullable=False)
    category = Column(String(30), nullable=False)
    priority = Column(String(10), nullable=False)
    classifier_source = Column(String(10), nullable=False)  # ai, fallback
    confidence = Column(Float)
    request_id = Column(Uuid, ForeignKey("service_requests.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
