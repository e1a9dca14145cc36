"""Device request/response schemas."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from parkease.schemas.common import CamelModel


class DeviceRead(CamelModel):
    device_id: str
    device_name: Optional[str] = None
    platform: Optional[str] = None
    is_active: bool
    is_primary: bool
    last_active_at: Optional[datetime] = None


class DeviceSummary(CamelModel):
    """What a client needs to offer a 'log out elsewhere' choice."""
    device_id: str
    device_name: Optional[str] = None
    platform: Optional[str] = None
    last_active_at: Optional[datetime] = None


class LogoutOthersRequest(CamelModel):
    user_id: Optional[str] = None
    # Device to keep; defaults to the caller's own device
    device_id: Optional[str] = Field(None, min_length=1, max_length=255)


class LogoutOthersResponse(CamelModel):
    devices_logged_out: int
    sessions_invalidated: int


class DeviceStatusResponse(CamelModel):
    devices: List[DeviceRead]
    active_devices: int
    max_devices: int
    multi_device_enabled: bool
    can_add_more: bool
