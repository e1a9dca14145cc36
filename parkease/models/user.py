from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship, validates
from parkease.core.config import settings
from parkease.core.constants import UserType, UserRole
from parkease.core.database import Base
from parkease.models.base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    # Stored lower-cased, so equality lookups are case-insensitive
    username = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)

    # Account status
    user_type = Column(String(20), default=UserType.GUEST.value, index=True, nullable=False)
    role = Column(String(20), default=UserRole.OWNER.value, nullable=False)
    business_id = Column(String(255), index=True, nullable=True)
    is_active = Column(Boolean, default=True, index=True, nullable=False)

    # Guest trial window
    trial_starts_at = Column(DateTime, nullable=True)
    trial_expires_at = Column(DateTime, nullable=True)

    # Device policy
    multi_device_enabled = Column(Boolean, default=False, nullable=False)
    max_devices = Column(Integer, default=lambda: settings.DEFAULT_MAX_DEVICES, nullable=False)

    last_login_at = Column(DateTime, nullable=True)

    # Relationships
    devices = relationship("Device", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def is_guest(self) -> bool:
        return self.user_type == UserType.GUEST.value

    @validates("username")
    def normalize_username(self, key, value):
        return value.strip().lower() if value else value
