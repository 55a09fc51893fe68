"""
Notification inbox: campus-scoped listing and idempotent mark-read.
Rows are created only by the automation sweeps.
"""
import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.enums import NotificationType
from ..models.models import Notification, utcnow
from .errors import InvalidValue, NotFound
from .pagination import paginate
from .permissions import Principal, ensure_access, scoped_campus_id


def parse_notification_type(value: Optional[str]) -> Optional[NotificationType]:
    if value is None:
        return None
    try:
        return NotificationType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in NotificationType)
        raise InvalidValue(f"Invalid type. Must be one of: {allowed}")


def list_notifications(
    db: Session,
    actor: Principal,
    page: int = 1,
    limit: int = 20,
    campus_id: Optional[uuid.UUID] = None,
    type: Optional[str] = None,
    is_read: Optional[bool] = None,
) -> Tuple[List[Notification], Dict[str, int]]:
    notification_type = parse_notification_type(type)
    query = db.query(Notification)

    filter_campus_id = scoped_campus_id(actor, campus_id)
    if filter_campus_id:
        query = query.filter(Notification.campus_id == filter_campus_id)
    if notification_type:
        query = query.filter(Notification.type == notification_type.value)
    if is_read is not None:
        query = query.filter(Notification.is_read.is_(is_read))

    return paginate(query.order_by(Notification.created_at.desc()), page, limit)


def mark_read(db: Session, notification_id: uuid.UUID, actor: Principal) -> Notification:
    """
    Mark a notification as read.

    Marking an already-read notification returns the current row without
    issuing any write.
    """
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFound("Notification not found")
    ensure_access(actor, notification.campus_id)

    if notification.is_read:
        return notification

    try:
        notification.is_read = True
        notification.updated_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(notification)
    return notification
