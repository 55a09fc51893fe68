"""
Maintenance service.

Vendor lifecycle: PENDING -> SENT -> RETURNED -> COMPLETED.
Side effects on the linked equipment:
    PENDING -> SENT:     equipment.status = MAINTENANCE
    SENT    -> RETURNED: equipment.status = ACTIVE | DAMAGED
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..models.enums import (
    AuditEntityType,
    EquipmentOutcome,
    EquipmentStatus,
    MaintenanceStatus,
)
from ..models.models import Equipment, Incident, Maintenance, utcnow
from .audit import record_status_change, snapshot
from .errors import (
    CrossCampusReference,
    Forbidden,
    InvalidStatus,
    InvalidTransition,
    InvalidValue,
    MissingField,
    NotFound,
    reject_nulls,
)
from .pagination import paginate
from .permissions import Principal, ensure_access, scoped_campus_id


logger = structlog.get_logger(__name__)

AUDIT_FIELDS = ("status", "vendor_name", "cost", "resolution_notes")
EQUIPMENT_AUDIT_FIELDS = ("status",)

PREVIOUS_STATUS = {
    MaintenanceStatus.SENT: MaintenanceStatus.PENDING,
    MaintenanceStatus.RETURNED: MaintenanceStatus.SENT,
    MaintenanceStatus.COMPLETED: MaintenanceStatus.RETURNED,
}

OUTCOME_TO_EQUIPMENT_STATUS = {
    EquipmentOutcome.ACTIVE: EquipmentStatus.ACTIVE,
    EquipmentOutcome.DAMAGED: EquipmentStatus.DAMAGED,
}


@dataclass
class MaintenanceFields:
    vendor_name: Optional[str] = None
    equipment_outcome: Optional[str] = None
    cost: Optional[float] = None
    resolution_notes: Optional[str] = None


def parse_maintenance_status(value: Any) -> MaintenanceStatus:
    try:
        return MaintenanceStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in MaintenanceStatus)
        raise InvalidStatus(f"Invalid status. Must be one of: {allowed}")


def _parse_outcome(value: Optional[str]) -> EquipmentOutcome:
    if value is None or not str(value).strip():
        raise MissingField(["equipment_outcome"], "equipment_outcome is required when returning from vendor")
    try:
        return EquipmentOutcome(value)
    except ValueError:
        raise InvalidValue("equipment_outcome must be ACTIVE or DAMAGED")


def validate_maintenance_transition(
    record: Maintenance,
    requested_status: Any,
    actor: Principal,
    fields: MaintenanceFields,
) -> Tuple[MaintenanceStatus, Optional[EquipmentOutcome]]:
    """
    Check a requested transition without touching the store.

    Returns the parsed target status and, for RETURNED, the parsed outcome.
    """
    target = parse_maintenance_status(requested_status)
    ensure_access(actor, record.campus_id)

    if target == MaintenanceStatus.PENDING:
        raise InvalidTransition("Maintenance cannot be moved back to PENDING")
    if not actor.is_admin_level:
        raise Forbidden("Only ADMIN can change maintenance status")
    if record.status != PREVIOUS_STATUS[target].value:
        raise InvalidTransition(
            f"Cannot move maintenance from {record.status} to {target.value}"
        )

    outcome = None
    if target == MaintenanceStatus.SENT:
        if not (fields.vendor_name or "").strip() and not (record.vendor_name or "").strip():
            raise MissingField(["vendor_name"], "vendor_name is required when sending to vendor")
    elif target == MaintenanceStatus.RETURNED:
        outcome = _parse_outcome(fields.equipment_outcome)
    return target, outcome


def _set_equipment_status(
    db: Session,
    equipment_id: uuid.UUID,
    new_status: EquipmentStatus,
    actor: Principal,
    integrity_secret: Optional[str],
) -> None:
    equipment = db.query(Equipment).filter(Equipment.id == equipment_id).with_for_update().first()
    if not equipment:
        raise NotFound("Equipment not found")
    before = snapshot(equipment, EQUIPMENT_AUDIT_FIELDS)
    equipment.status = new_status.value
    equipment.updated_at = utcnow()
    db.flush()
    record_status_change(
        db,
        AuditEntityType.EQUIPMENT,
        equipment,
        before,
        snapshot(equipment, EQUIPMENT_AUDIT_FIELDS),
        performed_by=actor.id,
        integrity_secret=integrity_secret,
    )


def transition_maintenance(
    db: Session,
    maintenance_id: uuid.UUID,
    requested_status: Any,
    actor: Principal,
    fields: Optional[MaintenanceFields] = None,
    integrity_secret: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Maintenance:
    """
    Validate and apply one vendor lifecycle step.

    Maintenance update, equipment side effect and every audit row commit
    together or not at all.
    """
    fields = fields or MaintenanceFields()
    parse_maintenance_status(requested_status)
    now = now or utcnow()

    try:
        record = (
            db.query(Maintenance)
            .filter(Maintenance.id == maintenance_id, Maintenance.is_deleted.is_(False))
            .with_for_update()
            .first()
        )
        if not record:
            raise NotFound("Maintenance not found")

        target, outcome = validate_maintenance_transition(record, requested_status, actor, fields)
        before = snapshot(record, AUDIT_FIELDS)

        if target == MaintenanceStatus.SENT:
            record.sent_to_vendor_at = now
            if fields.vendor_name:
                record.vendor_name = fields.vendor_name
        elif target == MaintenanceStatus.RETURNED:
            record.returned_from_vendor_at = now
            if fields.cost is not None:
                record.cost = fields.cost
            if fields.resolution_notes is not None:
                record.resolution_notes = fields.resolution_notes
        elif target == MaintenanceStatus.COMPLETED:
            record.completed_date = now
        record.status = target.value
        record.updated_at = now
        db.flush()

        if target == MaintenanceStatus.SENT:
            _set_equipment_status(db, record.equipment_id, EquipmentStatus.MAINTENANCE, actor, integrity_secret)
        elif target == MaintenanceStatus.RETURNED:
            _set_equipment_status(db, record.equipment_id, OUTCOME_TO_EQUIPMENT_STATUS[outcome], actor, integrity_secret)

        record_status_change(
            db,
            AuditEntityType.MAINTENANCE,
            record,
            before,
            snapshot(record, AUDIT_FIELDS),
            performed_by=actor.id,
            integrity_secret=integrity_secret,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "maintenance_transition",
        maintenance_id=str(record.id),
        old_status=before["status"],
        new_status=record.status,
        equipment_id=str(record.equipment_id),
        actor_id=str(actor.id),
    )
    return record


# ---------- CRUD ----------

def create_maintenance(
    db: Session,
    actor: Principal,
    *,
    title: str,
    incident_id: uuid.UUID,
    equipment_id: uuid.UUID,
    description: Optional[str] = None,
    vendor_name: Optional[str] = None,
    scheduled_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Maintenance:
    """
    Open a PENDING maintenance record.

    The campus is taken from the equipment; the incident must live in the
    same campus.
    """
    equipment = db.query(Equipment).filter(Equipment.id == equipment_id, Equipment.is_deleted.is_(False)).first()
    if not equipment:
        raise NotFound("Equipment not found")
    ensure_access(actor, equipment.campus_id)
    incident = db.query(Incident).filter(Incident.id == incident_id, Incident.is_deleted.is_(False)).first()
    if not incident:
        raise NotFound("Incident not found")
    if incident.campus_id != equipment.campus_id:
        raise CrossCampusReference("Equipment and incident belong to different campuses")

    record = Maintenance(
        title=title,
        description=description,
        status=MaintenanceStatus.PENDING.value,
        incident_id=incident.id,
        equipment_id=equipment.id,
        campus_id=equipment.campus_id,
        lab_id=equipment.lab_id,
        created_by_id=actor.id,
        vendor_name=vendor_name,
        scheduled_date=scheduled_date,
        notes=notes,
        is_deleted=False,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("maintenance_created", maintenance_id=str(record.id), equipment_id=str(equipment.id), incident_id=str(incident.id))
    return record


def get_maintenance(db: Session, maintenance_id: uuid.UUID, actor: Principal, include_deleted: bool = False) -> Maintenance:
    query = db.query(Maintenance).filter(Maintenance.id == maintenance_id)
    if not include_deleted:
        query = query.filter(Maintenance.is_deleted.is_(False))
    record = query.first()
    if not record:
        raise NotFound("Maintenance not found")
    ensure_access(actor, record.campus_id)
    return record


def list_maintenance(
    db: Session,
    actor: Principal,
    *,
    page: int = 1,
    limit: int = 10,
    status: Optional[MaintenanceStatus] = None,
    campus_id: Optional[uuid.UUID] = None,
    equipment_id: Optional[uuid.UUID] = None,
    incident_id: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
) -> Tuple[List[Maintenance], Dict[str, int]]:
    query = db.query(Maintenance)
    if not include_deleted:
        query = query.filter(Maintenance.is_deleted.is_(False))
    filter_campus_id = scoped_campus_id(actor, campus_id)
    if filter_campus_id:
        query = query.filter(Maintenance.campus_id == filter_campus_id)
    if status:
        query = query.filter(Maintenance.status == status.value)
    if equipment_id:
        query = query.filter(Maintenance.equipment_id == equipment_id)
    if incident_id:
        query = query.filter(Maintenance.incident_id == incident_id)
    return paginate(query.order_by(Maintenance.created_at.desc()), page, limit)


UPDATABLE_FIELDS = ("title", "description", "vendor_name", "scheduled_date", "notes")
NOT_NULL_FIELDS = ("title",)


def update_maintenance(db: Session, maintenance_id: uuid.UUID, actor: Principal, changes: Dict[str, Any]) -> Maintenance:
    """Descriptive field update. Status only moves through transition_maintenance."""
    record = get_maintenance(db, maintenance_id, actor)
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidValue(f"Fields cannot be updated here: {', '.join(sorted(unknown))}")
    reject_nulls(changes, NOT_NULL_FIELDS)
    try:
        for key, value in changes.items():
            setattr(record, key, value)
        record.updated_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return record


def soft_delete_maintenance(db: Session, maintenance_id: uuid.UUID, actor: Principal) -> Maintenance:
    record = get_maintenance(db, maintenance_id, actor)
    record.is_deleted = True
    record.updated_at = utcnow()
    db.commit()
    db.refresh(record)
    return record


def restore_maintenance(db: Session, maintenance_id: uuid.UUID, actor: Principal) -> Maintenance:
    record = get_maintenance(db, maintenance_id, actor, include_deleted=True)
    if not record.is_deleted:
        raise InvalidTransition("Maintenance is not deleted")
    record.is_deleted = False
    record.updated_at = utcnow()
    db.commit()
    db.refresh(record)
    return record
