import logging

from celery import shared_task
from sqlalchemy.exc import OperationalError

from parkease.core.database import SessionLocal
from parkease.services.session_service import SessionService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def sweep_expired_sessions(self):
    """Delete lapsed and long-invalidated session rows. Returns the number removed."""
    db = SessionLocal()
    try:
        return SessionService.sweep(db)
    except OperationalError as exc:
        db.rollback()
        logger.warning(f"Session sweep failed, retrying: {exc}")
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()
