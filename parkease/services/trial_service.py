import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from parkease.core.config import settings
from parkease.core.constants import UserType
from parkease.models.base import utcnow
from parkease.models.user import User
from parkease.utils.errors import AccountDeactivatedError, TrialExpiredError, UserNotFoundError

logger = logging.getLogger(__name__)


class TrialService:

    @staticmethod
    def check(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[dict]:
        """Gate a request on the account's trial window.

        Returns a warning dict when a guest trial ends within the warning
        window, ``None`` otherwise. Raises for missing, inactive and expired
        accounts. If the account cannot be loaded the request is let through.
        """
        try:
            user = db.query(User).filter(User.id == user_id).first()
        except Exception:
            # Clear the failed transaction so the rest of the request can use the session
            db.rollback()
            logger.warning(f"Trial check could not load user {user_id}; allowing request", exc_info=True)
            return None

        if user is None:
            raise UserNotFoundError()
        if not user.is_active:
            raise AccountDeactivatedError()
        if user.user_type != UserType.GUEST.value or user.trial_expires_at is None:
            return None

        now = now or utcnow()
        expires_at = user.trial_expires_at
        if now > expires_at:
            days_expired = math.floor((now - expires_at).total_seconds() / 86400)
            logger.info(f"Trial expired for user {user_id} ({days_expired} day(s) ago)")
            raise TrialExpiredError(trial_expires_at=expires_at.isoformat(), days_expired=days_expired)

        remaining = expires_at - now
        if timedelta(0) < remaining < timedelta(hours=settings.TRIAL_WARNING_HOURS):
            hours_remaining = math.floor(remaining.total_seconds() / 3600)
            return {
                "message": f"Your trial expires in {hours_remaining} hour(s)",
                "hoursRemaining": hours_remaining,
                "expiresAt": expires_at.isoformat(),
            }
        return None
