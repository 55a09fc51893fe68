import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.enums import NotificationType


class NotificationResponse(BaseModel):
    id: uuid.UUID
    campus_id: uuid.UUID
    type: NotificationType
    entity_id: uuid.UUID
    message: str
    is_read: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SweepResponse(BaseModel):
    processed: int
    created: int
