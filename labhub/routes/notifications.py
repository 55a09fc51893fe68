import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_principal
from ..db import get_db
from ..schemas.common import DataResponse, ListResponse
from ..schemas.notifications import NotificationResponse
from ..services import notifications as service
from ..services.permissions import Principal


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ListResponse[NotificationResponse])
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    campus_id: Optional[uuid.UUID] = None,
    type: Optional[str] = None,
    is_read: Optional[bool] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows, pagination = service.list_notifications(
        db, principal, page=page, limit=limit, campus_id=campus_id, type=type, is_read=is_read
    )
    return {"success": True, "data": rows, "pagination": pagination}


@router.patch("/{notification_id}/read", response_model=DataResponse[NotificationResponse])
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    notification = service.mark_read(db, notification_id, principal)
    return {"success": True, "data": notification, "message": "Notification marked as read"}
