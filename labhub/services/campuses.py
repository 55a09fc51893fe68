"""
Campus and lab management.
"""
import uuid
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..models.models import Campus, Lab, utcnow
from .errors import Conflict, InvalidTransition, NotFound, reject_nulls
from .pagination import paginate
from .permissions import Principal, ensure_access, scoped_campus_id


logger = structlog.get_logger(__name__)


def _ensure_unique_campus_code(db: Session, code: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = db.query(Campus).filter(Campus.code == code)
    if exclude_id:
        query = query.filter(Campus.id != exclude_id)
    if query.first():
        raise Conflict("Campus with this code already exists")


def list_campuses(db: Session, page: int = 1, limit: int = 10, include_deleted: bool = False) -> Tuple[List[Campus], Dict[str, int]]:
    query = db.query(Campus)
    if not include_deleted:
        query = query.filter(Campus.is_deleted.is_(False))
    return paginate(query.order_by(Campus.created_at.desc()), page, limit)


def get_campus(db: Session, campus_id: uuid.UUID, include_deleted: bool = False) -> Campus:
    query = db.query(Campus).filter(Campus.id == campus_id)
    if not include_deleted:
        query = query.filter(Campus.is_deleted.is_(False))
    campus = query.first()
    if not campus:
        raise NotFound("Campus not found")
    return campus


def create_campus(db: Session, *, name: str, code: str, location: Optional[str] = None, description: Optional[str] = None) -> Campus:
    _ensure_unique_campus_code(db, code)
    campus = Campus(name=name, code=code, location=location, description=description, is_deleted=False)
    db.add(campus)
    db.commit()
    db.refresh(campus)
    logger.info("campus_created", campus_id=str(campus.id), code=code)
    return campus


def update_campus(db: Session, campus_id: uuid.UUID, changes: Dict[str, Any]) -> Campus:
    campus = get_campus(db, campus_id)
    reject_nulls(changes, ("name", "code"))
    if changes.get("code") and changes["code"] != campus.code:
        _ensure_unique_campus_code(db, changes["code"], exclude_id=campus.id)
    for key in ("name", "code", "location", "description"):
        if key in changes:
            setattr(campus, key, changes[key])
    campus.updated_at = utcnow()
    db.commit()
    db.refresh(campus)
    return campus


def set_campus_deleted(db: Session, campus_id: uuid.UUID, deleted: bool) -> Campus:
    campus = get_campus(db, campus_id, include_deleted=True)
    if campus.is_deleted == deleted:
        if deleted:
            raise NotFound("Campus not found")
        raise InvalidTransition("Campus is not deleted")
    campus.is_deleted = deleted
    campus.updated_at = utcnow()
    db.commit()
    db.refresh(campus)
    return campus


# ---------- Labs ----------

LAB_FIELDS = ("name", "code", "capacity", "location")


def _ensure_unique_lab_code(db: Session, code: str, campus_id: uuid.UUID, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = db.query(Lab).filter(Lab.campus_id == campus_id, Lab.code == code, Lab.is_deleted.is_(False))
    if exclude_id:
        query = query.filter(Lab.id != exclude_id)
    if query.first():
        raise Conflict("Lab with this code already exists in this campus")


def list_labs(
    db: Session,
    actor: Principal,
    page: int = 1,
    limit: int = 10,
    campus_id: Optional[uuid.UUID] = None,
) -> Tuple[List[Lab], Dict[str, int]]:
    query = db.query(Lab).filter(Lab.is_deleted.is_(False))
    filter_campus_id = scoped_campus_id(actor, campus_id)
    if filter_campus_id:
        query = query.filter(Lab.campus_id == filter_campus_id)
    return paginate(query.order_by(Lab.created_at.desc()), page, limit)


def create_lab(
    db: Session,
    actor: Principal,
    *,
    name: str,
    code: str,
    campus_id: uuid.UUID,
    capacity: Optional[int] = None,
    location: Optional[str] = None,
) -> Lab:
    campus = get_campus(db, campus_id)
    ensure_access(actor, campus.id)
    _ensure_unique_lab_code(db, code, campus.id)
    lab = Lab(name=name, code=code, campus_id=campus.id, capacity=capacity, location=location, is_deleted=False)
    db.add(lab)
    db.commit()
    db.refresh(lab)
    return lab


def get_lab(db: Session, lab_id: uuid.UUID, actor: Principal, include_deleted: bool = False) -> Lab:
    query = db.query(Lab).filter(Lab.id == lab_id)
    if not include_deleted:
        query = query.filter(Lab.is_deleted.is_(False))
    lab = query.first()
    if not lab:
        raise NotFound("Lab not found")
    ensure_access(actor, lab.campus_id)
    return lab


def update_lab(db: Session, lab_id: uuid.UUID, actor: Principal, changes: Dict[str, Any]) -> Lab:
    lab = get_lab(db, lab_id, actor)
    reject_nulls(changes, ("name", "code"))
    if changes.get("code") and changes["code"] != lab.code:
        _ensure_unique_lab_code(db, changes["code"], lab.campus_id, exclude_id=lab.id)
    for key in LAB_FIELDS:
        if key in changes:
            setattr(lab, key, changes[key])
    db.commit()
    db.refresh(lab)
    return lab


def set_lab_deleted(db: Session, lab_id: uuid.UUID, actor: Principal, deleted: bool) -> Lab:
    lab = get_lab(db, lab_id, actor, include_deleted=True)
    if lab.is_deleted == deleted:
        if deleted:
            raise NotFound("Lab not found")
        raise InvalidTransition("Lab is not deleted")
    if not deleted:
        _ensure_unique_lab_code(db, lab.code, lab.campus_id, exclude_id=lab.id)
    lab.is_deleted = deleted
    db.commit()
    db.refresh(lab)
    logger.info("lab_deleted" if deleted else "lab_restored", lab_id=str(lab.id))
    return lab
