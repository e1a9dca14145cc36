from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from parkease.core.constants import AuditAction
from parkease.core.database import get_db
from parkease.dependencies.auth import get_current_user, get_trial_checked_user
from parkease.schemas.device import LogoutOthersRequest
from parkease.services.audit_service import AuditService
from parkease.services.device_service import DeviceService
from parkease.services.session_service import AuthContext
from parkease.utils.errors import ForbiddenError
from parkease.utils.helpers import format_response, get_client_ip, get_user_agent

router = APIRouter(prefix="/api/devices", tags=["devices"])


def _ensure_same_user(current_user: AuthContext, user_id: Optional[str]) -> None:
    if user_id and user_id != current_user.user_id:
        raise ForbiddenError()


@router.post("/logout-others", status_code=200)
async def logout_others(
    http_request: Request,
    payload: Optional[LogoutOthersRequest] = None,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Sign out every other device of the caller's account
    - ``deviceId`` picks the device to keep (defaults to the caller's)
    - Frees a slot for a device that hit the device limit
    """
    payload = payload or LogoutOthersRequest()
    _ensure_same_user(current_user, payload.user_id)

    keep_device_id = payload.device_id or current_user.device_id
    result = DeviceService.logout_others(
        db,
        current_user.user_id,
        keep_device_id,
        current_session_id=current_user.session_id,
        current_device_id=current_user.device_id,
    )
    AuditService.record(
        db,
        AuditAction.LOGOUT_OTHERS,
        user_id=current_user.user_id,
        entity_type="device",
        entity_id=keep_device_id,
        details=result.model_dump(by_alias=True),
        ip_address=get_client_ip(http_request),
        user_agent=get_user_agent(http_request),
    )
    return format_response(result)


@router.get("/status", status_code=200)
async def device_status(
    user_id: Optional[str] = Query(None, alias="userId"),
    current_user: AuthContext = Depends(get_trial_checked_user),
    db: Session = Depends(get_db),
):
    """Devices bound to the caller's account and how many more may sign in"""
    _ensure_same_user(current_user, user_id)
    return format_response(DeviceService.status(db, current_user.user_id))
