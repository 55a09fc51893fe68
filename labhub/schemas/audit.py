import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    campus_id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    performed_by: uuid.UUID
    created_at: datetime
    integrity_hash: Optional[str] = None
    integrity_valid: Optional[bool] = None

    class Config:
        from_attributes = True
