from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from parkease.core.database import get_db
from parkease.dependencies.auth import get_current_user, get_trial_checked_user
from parkease.dependencies.rate_limit import rate_limit
from parkease.schemas.auth import (
    GuestSignupRequest,
    LoginRequest,
    RefreshTokenRequest,
    TrialWarning,
    ValidateResponse,
)
from parkease.schemas.user import UserRead
from parkease.services.auth_service import AuthService
from parkease.services.session_service import AuthContext
from parkease.utils.helpers import format_response, get_client_ip, get_user_agent

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/guest-signup", status_code=201)
async def guest_signup(
    payload: GuestSignupRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    """
    Create a guest account on first app launch
    - Starts the trial window
    - Binds the calling device and returns a token pair
    """
    result = AuthService.guest_signup(
        db,
        payload,
        ip_address=get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
    )
    return format_response(result)


@router.post("/login", status_code=200)
async def login(
    payload: LoginRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    """
    Username login
    - Password required except for guest accounts
    - 403 DEVICE_LIMIT_REACHED lists the devices currently signed in
    """
    result = AuthService.login(
        db,
        payload,
        ip_address=get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
    )
    return format_response(result)


@router.post("/refresh", status_code=200)
async def refresh_tokens(
    payload: RefreshTokenRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    """Exchange a valid refresh token for a new access + refresh token pair (rotation)."""
    result = AuthService.refresh(
        db,
        payload.refresh_token,
        ip_address=get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
    )
    return format_response(result)


@router.get("/validate", status_code=200)
async def validate(
    current_user: AuthContext = Depends(get_trial_checked_user),
    db: Session = Depends(get_db),
):
    """Confirm the token is live and return the account profile"""
    user = AuthService.get_user(db, current_user.user_id)
    warning = TrialWarning.model_validate(current_user.trial_warning) if current_user.trial_warning else None
    return format_response(ValidateResponse(user=UserRead.model_validate(user), trial_warning=warning))


@router.post("/logout", status_code=200)
async def logout(
    http_request: Request,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Logout user (invalidate current session)"""
    AuthService.logout(
        db,
        current_user,
        ip_address=get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
    )
    return format_response({"message": "Logged out successfully"})
