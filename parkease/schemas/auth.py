from pydantic import Field, model_validator
from typing import Optional

from parkease.schemas.common import CamelModel
from parkease.schemas.user import UserRead


class GuestSignupRequest(CamelModel):
    """Guest signup from a mobile device"""
    full_name: Optional[str] = Field(None, max_length=255)
    parking_name: Optional[str] = Field(None, max_length=255)
    device_id: str = Field(..., min_length=1, max_length=255)
    device_name: Optional[str] = Field(None, max_length=255)
    platform: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def strip_names(self):
        self.full_name = (self.full_name or "").strip() or None
        self.parking_name = (self.parking_name or "").strip() or None
        return self

    @property
    def display_name(self) -> str:
        return self.full_name or self.parking_name or "Guest User"


class LoginRequest(CamelModel):
    """Username login; password is optional only for guest accounts"""
    username: str = Field(..., min_length=1, max_length=255)
    password: Optional[str] = None
    device_id: str = Field(..., min_length=1, max_length=255)
    device_name: Optional[str] = Field(None, max_length=255)
    platform: Optional[str] = Field(None, max_length=50)


class RefreshTokenRequest(CamelModel):
    """Request to refresh access token"""
    refresh_token: str = Field(..., min_length=1)


class AuthTokensResponse(CamelModel):
    """Login/signup payload. The mobile client reads ``token``, not ``accessToken``."""
    user: UserRead
    token: str
    refresh_token: str
    session_id: str


class RefreshTokensResponse(CamelModel):
    token: str
    refresh_token: str


class TrialWarning(CamelModel):
    message: str
    hours_remaining: int
    expires_at: str


class ValidateResponse(CamelModel):
    user: UserRead
    trial_warning: Optional[TrialWarning] = None
