"""
Authentication models for user management.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, String, Boolean, DateTime, Uuid, func

from assistlink.core.database import Base


class User(Base):
    """Citizen, volunteer or admin account; the profile supplies request contact defaults."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255))
    role = Column(String(50), nullable=False, default="citizen", index=True)
    phone = Column(String(20))

    # Profile address
    street = Column(String(255))
    city = Column(String(100))
    state = Column(String(100))
    postal_code = Column(String(12))

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_login_at = Column(DateTime(timezone=True))

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def __repr__(self) -> str:
        return f"<User(username={self.username}, role={self.role})>"
