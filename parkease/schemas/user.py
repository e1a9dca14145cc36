"""User response schemas."""
from datetime import datetime
from typing import Optional

from parkease.schemas.common import CamelModel


class UserRead(CamelModel):
    id: str
    username: str
    full_name: Optional[str] = None
    user_type: str
    role: str
    business_id: Optional[str] = None
    is_active: bool
    trial_starts_at: Optional[datetime] = None
    trial_expires_at: Optional[datetime] = None
    multi_device_enabled: bool = False
    max_devices: int
    last_login_at: Optional[datetime] = None
