"""Device model: one row per physical client, bound to one user at a time."""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
from parkease.core.database import Base
from parkease.models.base import TimestampMixin, UUIDMixin, utcnow


class Device(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "devices"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    device_id = Column(String(255), unique=True, index=True, nullable=False)

    device_name = Column(String(255), nullable=True)
    platform = Column(String(50), nullable=True)
    app_version = Column(String(50), nullable=True)

    is_active = Column(Boolean, default=True, index=True, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    last_active_at = Column(DateTime, default=utcnow, nullable=True)

    ip_address = Column(String(100), nullable=True)
    user_agent = Column(Text, nullable=True)

    user = relationship("User", back_populates="devices")

    def __repr__(self):
        return f"<Device {self.device_id} user={self.user_id} active={self.is_active}>"
