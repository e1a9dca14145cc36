from typing import Optional

from fastapi import Depends, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from parkease.core.database import get_db
from parkease.services.session_service import AuthContext, SessionService
from parkease.services.trial_service import TrialService

# auto_error=False so a missing header reaches us and maps to NO_TOKEN
security = HTTPBearer(auto_error=False)


def get_current_user_from_token(token: Optional[str], db: Session) -> AuthContext:
    """Validate a raw access token string and return the caller's identity."""
    return SessionService.validate(db, token)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Verify the bearer token against its session row"""
    token = credentials.credentials if credentials else None
    return get_current_user_from_token(token, db)


async def get_trial_checked_user(
    response: Response,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Authenticated caller whose account has passed the trial gate"""
    warning = TrialService.check(db, current_user.user_id)
    if warning:
        response.headers["X-Trial-Hours-Remaining"] = str(warning["hoursRemaining"])
        current_user.trial_warning = warning
    return current_user
