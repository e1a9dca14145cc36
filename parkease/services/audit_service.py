import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from parkease.core.constants import AuditAction
from parkease.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    @staticmethod
    def record(
        db: Session,
        action: AuditAction,
        user_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        """Append an audit entry in its own commit.

        Call after the audited change has been committed. A failed write is
        logged and reported as ``False``; it never fails the request.
        """
        entry = AuditLog(
            user_id=user_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            db.add(entry)
            db.commit()
            return True
        except Exception:
            db.rollback()
            logger.exception(f"Audit logging failed for action={action.value} user={user_id}")
            return False
