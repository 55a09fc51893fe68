"""
Equipment service.
Direct status edits go through the same compare-and-audit helper the
maintenance flow uses.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..models.enums import AuditEntityType, EquipmentStatus
from ..models.models import Equipment, Lab, utcnow
from .audit import record_status_change, snapshot
from .errors import Conflict, CrossCampusReference, InvalidTransition, InvalidValue, NotFound, reject_nulls
from .pagination import paginate
from .permissions import Principal, ensure_access, scoped_campus_id


logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = (
    "code",
    "name",
    "category",
    "brand",
    "serial_number",
    "purchase_date",
    "warranty_end_date",
    "status",
    "description",
    "lab_id",
)
NOT_NULL_FIELDS = ("code", "name", "category", "status", "lab_id")


def _get_lab(db: Session, lab_id: uuid.UUID) -> Lab:
    lab = db.query(Lab).filter(Lab.id == lab_id, Lab.is_deleted.is_(False)).first()
    if not lab:
        raise NotFound("Lab not found")
    return lab


def _ensure_unique_code(db: Session, code: str, campus_id: uuid.UUID, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = db.query(Equipment).filter(
        Equipment.code == code,
        Equipment.campus_id == campus_id,
        Equipment.is_deleted.is_(False),
    )
    if exclude_id:
        query = query.filter(Equipment.id != exclude_id)
    if query.first():
        raise Conflict("Equipment with this code already exists in this campus")


def create_equipment(
    db: Session,
    actor: Principal,
    *,
    code: str,
    name: str,
    category: str,
    lab_id: uuid.UUID,
    brand: Optional[str] = None,
    serial_number: Optional[str] = None,
    purchase_date: Optional[datetime] = None,
    warranty_end_date: Optional[datetime] = None,
    status: EquipmentStatus = EquipmentStatus.ACTIVE,
    description: Optional[str] = None,
) -> Equipment:
    # Campus is derived from the lab, never supplied by the caller
    lab = _get_lab(db, lab_id)
    ensure_access(actor, lab.campus_id)
    _ensure_unique_code(db, code, lab.campus_id)

    equipment = Equipment(
        code=code,
        name=name,
        category=category,
        brand=brand,
        serial_number=serial_number,
        purchase_date=purchase_date,
        warranty_end_date=warranty_end_date,
        status=EquipmentStatus(status).value,
        description=description,
        lab_id=lab.id,
        campus_id=lab.campus_id,
        is_deleted=False,
    )
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    logger.info("equipment_created", equipment_id=str(equipment.id), campus_id=str(equipment.campus_id))
    return equipment


def get_equipment(db: Session, equipment_id: uuid.UUID, actor: Principal, include_deleted: bool = False) -> Equipment:
    query = db.query(Equipment).filter(Equipment.id == equipment_id)
    if not include_deleted:
        query = query.filter(Equipment.is_deleted.is_(False))
    equipment = query.first()
    if not equipment:
        raise NotFound("Equipment not found")
    ensure_access(actor, equipment.campus_id)
    return equipment


def list_equipment(
    db: Session,
    actor: Principal,
    *,
    page: int = 1,
    limit: int = 10,
    campus_id: Optional[uuid.UUID] = None,
    lab_id: Optional[uuid.UUID] = None,
    status: Optional[EquipmentStatus] = None,
    category: Optional[str] = None,
    include_deleted: bool = False,
) -> Tuple[List[Equipment], Dict[str, int]]:
    query = db.query(Equipment)
    if not include_deleted:
        query = query.filter(Equipment.is_deleted.is_(False))
    filter_campus_id = scoped_campus_id(actor, campus_id)
    if filter_campus_id:
        query = query.filter(Equipment.campus_id == filter_campus_id)
    if lab_id:
        query = query.filter(Equipment.lab_id == lab_id)
    if status:
        query = query.filter(Equipment.status == status.value)
    if category:
        query = query.filter(Equipment.category == category)
    return paginate(query.order_by(Equipment.created_at.desc()), page, limit)


def update_equipment(
    db: Session,
    equipment_id: uuid.UUID,
    actor: Principal,
    changes: Dict[str, Any],
    integrity_secret: Optional[str] = None,
) -> Equipment:
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidValue(f"Fields cannot be updated here: {', '.join(sorted(unknown))}")
    reject_nulls(changes, NOT_NULL_FIELDS)

    try:
        equipment = get_equipment(db, equipment_id, actor)
        before = snapshot(equipment, ("status",))

        if changes.get("lab_id") and changes["lab_id"] != equipment.lab_id:
            lab = _get_lab(db, changes["lab_id"])
            if lab.campus_id != equipment.campus_id:
                raise CrossCampusReference("Lab belongs to a different campus")
        if changes.get("code") and changes["code"] != equipment.code:
            _ensure_unique_code(db, changes["code"], equipment.campus_id, exclude_id=equipment.id)

        for key, value in changes.items():
            if key == "status":
                value = EquipmentStatus(value).value
            setattr(equipment, key, value)
        equipment.updated_at = utcnow()
        db.flush()

        record_status_change(
            db,
            AuditEntityType.EQUIPMENT,
            equipment,
            before,
            snapshot(equipment, ("status",)),
            performed_by=actor.id,
            integrity_secret=integrity_secret,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(equipment)
    return equipment


def soft_delete_equipment(db: Session, equipment_id: uuid.UUID, actor: Principal) -> Equipment:
    equipment = get_equipment(db, equipment_id, actor)
    equipment.is_deleted = True
    equipment.updated_at = utcnow()
    db.commit()
    db.refresh(equipment)
    return equipment


def restore_equipment(db: Session, equipment_id: uuid.UUID, actor: Principal) -> Equipment:
    equipment = get_equipment(db, equipment_id, actor, include_deleted=True)
    if not equipment.is_deleted:
        raise InvalidTransition("Equipment is not deleted")
    _ensure_unique_code(db, equipment.code, equipment.campus_id, exclude_id=equipment.id)
    equipment.is_deleted = False
    equipment.updated_at = utcnow()
    db.commit()
    db.refresh(equipment)
    return equipment
