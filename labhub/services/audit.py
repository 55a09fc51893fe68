"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, Iterable, List, Tuple
from sqlalchemy.orm import Session

from ..models.enums import AuditAction, AuditEntityType
from ..models.models import AuditLog, utcnow
from .pagination import paginate


def snapshot(entity: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """JSON-safe copy of the given attributes of an ORM row."""
    result = {}
    for field in fields:
        value = getattr(entity, field)
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        result[field] = value
    return result


def _integrity_hash(payload: Dict[str, Any], secret: str) -> str:
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in payload.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    hash_input = f"{canonical_json}:{secret}"
    return hashlib.sha256(hash_input.encode()).hexdigest()


def create_audit_log(
    db: Session,
    campus_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    performed_by: uuid.UUID,
    old_value: Optional[Dict] = None,
    new_value: Optional[Dict] = None,
    integrity_secret: Optional[str] = None,
) -> AuditLog:
    """
    Stage an append-only audit log entry on the caller's session.

    The row is flushed, never committed: it becomes durable together with the
    mutation it describes when the caller commits, and disappears with it on
    rollback.

    Args:
        db: Database session holding the open transaction
        campus_id: Campus the audited entity belongs to
        entity_type: EQUIPMENT|INCIDENT|MAINTENANCE
        entity_id: Entity ID
        action: Action performed (STATUS_CHANGE)
        performed_by: User ID who performed the action
        old_value: Snapshot before the change
        new_value: Snapshot after the change
        integrity_secret: Optional secret for the integrity hash

    Returns:
        Created AuditLog object
    """
    created_at = utcnow()

    integrity_hash = None
    if integrity_secret:
        integrity_hash = _integrity_hash(
            {
                "campus_id": str(campus_id),
                "entity_type": AuditEntityType(entity_type).value,
                "entity_id": str(entity_id),
                "action": AuditAction(action).value,
                "performed_by": str(performed_by),
                "created_at": created_at.isoformat(),
                "old_value": old_value,
                "new_value": new_value,
            },
            integrity_secret,
        )

    audit_log = AuditLog(
        campus_id=campus_id,
        entity_type=AuditEntityType(entity_type).value,
        entity_id=entity_id,
        action=AuditAction(action).value,
        old_value=old_value,
        new_value=new_value,
        performed_by=performed_by,
        created_at=created_at,
        integrity_hash=integrity_hash,
    )

    db.add(audit_log)
    db.flush()

    return audit_log


def record_status_change(
    db: Session,
    entity_type: AuditEntityType,
    entity: Any,
    before: Dict[str, Any],
    after: Dict[str, Any],
    performed_by: uuid.UUID,
    integrity_secret: Optional[str] = None,
) -> Optional[AuditLog]:
    """
    Compare-and-audit: write one STATUS_CHANGE row iff the status moved.

    Shared by the incident, maintenance and equipment mutation paths.
    `before`/`after` are snapshots that must both carry a "status" key.
    """
    if before.get("status") == after.get("status"):
        return None
    return create_audit_log(
        db,
        campus_id=entity.campus_id,
        entity_type=entity_type,
        entity_id=entity.id,
        action=AuditAction.STATUS_CHANGE,
        performed_by=performed_by,
        old_value=before,
        new_value=after,
        integrity_secret=integrity_secret,
    )


def get_audit_logs(
    db: Session,
    campus_id: Optional[uuid.UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[AuditLog], Dict[str, int]]:
    """
    Get audit logs with optional filtering, newest first.
    """
    query = db.query(AuditLog)

    if campus_id:
        query = query.filter(AuditLog.campus_id == campus_id)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)

    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)

    return paginate(query.order_by(AuditLog.created_at.desc()), page, limit)


def verify_integrity(audit_log: AuditLog, integrity_secret: str) -> bool:
    """
    Recompute the integrity hash of a stored row.

    Served as `integrity_valid` on `GET /audit-logs` when a secret is configured.
    Rows written without a hash never verify.
    """
    if not audit_log.integrity_hash:
        return False
    expected = _integrity_hash(
        {
            "campus_id": str(audit_log.campus_id),
            "entity_type": audit_log.entity_type,
            "entity_id": str(audit_log.entity_id),
            "action": audit_log.action,
            "performed_by": str(audit_log.performed_by),
            "created_at": audit_log.created_at.isoformat(),
            "old_value": audit_log.old_value,
            "new_value": audit_log.new_value,
        },
        integrity_secret,
    )
    return expected == audit_log.integrity_hash
