import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_settings, require_roles
from ..config import Settings
from ..db import get_db
from ..models.enums import ADMIN_ROLES, AuditEntityType
from ..schemas.audit import AuditLogResponse
from ..schemas.common import ListResponse
from ..services.audit import get_audit_logs, verify_integrity
from ..services.permissions import Principal, scoped_campus_id


router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=ListResponse[AuditLogResponse])
def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    campus_id: Optional[uuid.UUID] = None,
    entity_type: Optional[AuditEntityType] = None,
    entity_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
    settings: Settings = Depends(get_settings),
):
    rows, pagination = get_audit_logs(
        db,
        campus_id=scoped_campus_id(principal, campus_id),
        entity_type=entity_type.value if entity_type else None,
        entity_id=entity_id,
        page=page,
        limit=limit,
    )
    secret = settings.audit_integrity_secret
    # integrity_valid stays null when no secret is configured
    data = [
        AuditLogResponse.model_validate(row).model_copy(
            update={"integrity_valid": verify_integrity(row, secret) if secret else None}
        )
        for row in rows
    ]
    return {"success": True, "data": data, "pagination": pagination}
