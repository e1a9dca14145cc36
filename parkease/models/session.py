"""User session model: server-side validity record for one issued token pair."""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
from parkease.core.database import Base
from parkease.models.base import UUIDMixin, utcnow


class UserSession(UUIDMixin, Base):
    __tablename__ = "user_sessions"

    session_id = Column(String(512), unique=True, index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Not a foreign key: the device row may predate or outlive the session
    device_id = Column(String(255), nullable=False, index=True)

    # SHA-256 hex digests, never the tokens themselves
    access_token_hash = Column(String(128), nullable=False)
    refresh_token_hash = Column(String(128), nullable=True)

    is_valid = Column(Boolean, default=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    refresh_expires_at = Column(DateTime, nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_activity_at = Column(DateTime, default=utcnow, nullable=False)
    invalidated_at = Column(DateTime, nullable=True)
    invalidated_reason = Column(String(64), nullable=True)

    ip_address = Column(String(100), nullable=True)
    user_agent = Column(Text, nullable=True)

    user = relationship("User", back_populates="sessions")
