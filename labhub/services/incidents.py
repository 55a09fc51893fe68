"""
Incident service.

Lifecycle: OPEN -> ASSIGNED -> IN_PROGRESS -> RESOLVED -> VERIFIED -> CLOSED.
Strictly linear: no skipping, no going back, no self-loops.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, List

import structlog
from sqlalchemy.orm import Session

from ..models.enums import (
    AuditEntityType,
    IncidentStatus,
    ProblemScope,
    Severity,
)
from ..models.models import Campus, Equipment, Incident, Lab, User, utcnow
from .audit import record_status_change, snapshot
from .errors import (
    AccessDenied,
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

ISO_FIELDS = ("root_cause", "corrective_action", "preventive_action")
AUDIT_FIELDS = ("status", "assigned_to_id") + ISO_FIELDS

# requested status -> the only status it may be reached from
PREVIOUS_STATUS = {
    IncidentStatus.ASSIGNED: IncidentStatus.OPEN,
    IncidentStatus.IN_PROGRESS: IncidentStatus.ASSIGNED,
    IncidentStatus.RESOLVED: IncidentStatus.IN_PROGRESS,
    IncidentStatus.VERIFIED: IncidentStatus.RESOLVED,
    IncidentStatus.CLOSED: IncidentStatus.VERIFIED,
}


@dataclass
class IncidentFields:
    """Optional values a status request may carry."""
    assigned_to_id: Optional[uuid.UUID] = None
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None
    preventive_action: Optional[str] = None


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def parse_incident_status(value: Any) -> IncidentStatus:
    try:
        return IncidentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in IncidentStatus)
        raise InvalidStatus(f"Invalid status. Must be one of: {allowed}")


def _require_current(incident: Incident, target: IncidentStatus, message: str) -> None:
    if incident.status != PREVIOUS_STATUS[target].value:
        raise InvalidTransition(message)


def validate_incident_transition(
    incident: Incident,
    requested_status: Any,
    actor: Principal,
    fields: IncidentFields,
) -> IncidentStatus:
    """
    Check a requested transition without touching the store.
    Rules are evaluated in order; the first failing rule raises.
    """
    target = parse_incident_status(requested_status)
    ensure_access(actor, incident.campus_id)

    if target == IncidentStatus.ASSIGNED:
        if not actor.is_admin_level:
            raise Forbidden("Only ADMIN can assign incidents")
        _require_current(incident, target, "Can only assign OPEN incidents")
        if fields.assigned_to_id is None:
            raise MissingField(["assigned_to_id"], "assigned_to_id is required when assigning incident")

    elif target == IncidentStatus.IN_PROGRESS:
        _require_current(incident, target, "Can only move ASSIGNED incidents to IN_PROGRESS")
        if not actor.is_super and incident.assigned_to_id != actor.id:
            raise Forbidden("Only the assigned user can move an incident to IN_PROGRESS")

    elif target == IncidentStatus.RESOLVED:
        _require_current(incident, target, "Can only resolve IN_PROGRESS incidents")
        missing = [
            name
            for name in ISO_FIELDS
            if _blank(getattr(fields, name)) and _blank(getattr(incident, name))
        ]
        if missing:
            raise MissingField(
                missing,
                f"ISO compliance: Missing required fields for resolution: {', '.join(missing)}",
            )

    elif target == IncidentStatus.VERIFIED:
        if not actor.is_admin_level:
            raise Forbidden("Only ADMIN can verify incidents")
        _require_current(incident, target, "Can only verify RESOLVED incidents")

    elif target == IncidentStatus.CLOSED:
        _require_current(incident, target, "Incident must be VERIFIED before CLOSED")

    elif target == IncidentStatus.OPEN:
        raise InvalidTransition("Incidents cannot be moved back to OPEN")

    return target


def _load_assignee(db: Session, incident: Incident, assignee_id: uuid.UUID) -> User:
    assignee = db.query(User).filter(User.id == assignee_id, User.is_active.is_(True)).first()
    if not assignee:
        raise NotFound("Assigned user not found")
    if assignee.campus_id is not None and assignee.campus_id != incident.campus_id:
        raise CrossCampusReference("Assigned user belongs to a different campus")
    return assignee


def transition_incident(
    db: Session,
    incident_id: uuid.UUID,
    requested_status: Any,
    actor: Principal,
    fields: Optional[IncidentFields] = None,
    integrity_secret: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Incident:
    """
    Validate and apply one lifecycle step.

    The status update and its audit row share one transaction: both persist
    or neither does.
    """
    fields = fields or IncidentFields()
    parse_incident_status(requested_status)
    now = now or utcnow()

    try:
        incident = (
            db.query(Incident)
            .filter(Incident.id == incident_id, Incident.is_deleted.is_(False))
            .with_for_update()
            .first()
        )
        if not incident:
            raise NotFound("Incident not found")

        target = validate_incident_transition(incident, requested_status, actor, fields)
        before = snapshot(incident, AUDIT_FIELDS)

        if target == IncidentStatus.ASSIGNED:
            _load_assignee(db, incident, fields.assigned_to_id)
            incident.assigned_to_id = fields.assigned_to_id
        # Blank values never overwrite a stored ISO field
        for name in ISO_FIELDS:
            value = getattr(fields, name)
            if not _blank(value):
                setattr(incident, name, value.strip())
        if target == IncidentStatus.RESOLVED:
            incident.resolved_at = now
        if target == IncidentStatus.VERIFIED:
            incident.verified_at = now
        incident.status = target.value
        incident.updated_at = now
        db.flush()

        after = snapshot(incident, AUDIT_FIELDS)
        record_status_change(
            db,
            AuditEntityType.INCIDENT,
            incident,
            before,
            after,
            performed_by=actor.id,
            integrity_secret=integrity_secret,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "incident_transition",
        incident_id=str(incident.id),
        old_status=before["status"],
        new_status=incident.status,
        actor_id=str(actor.id),
    )
    return incident


# ---------- CRUD ----------

def get_incident(db: Session, incident_id: uuid.UUID, actor: Principal, include_deleted: bool = False) -> Incident:
    query = db.query(Incident).filter(Incident.id == incident_id)
    if not include_deleted:
        query = query.filter(Incident.is_deleted.is_(False))
    incident = query.first()
    if not incident:
        raise NotFound("Incident not found")
    ensure_access(actor, incident.campus_id)
    return incident


def list_incidents(
    db: Session,
    actor: Principal,
    *,
    page: int = 1,
    limit: int = 10,
    status: Optional[IncidentStatus] = None,
    severity: Optional[Severity] = None,
    lab_id: Optional[uuid.UUID] = None,
    equipment_id: Optional[uuid.UUID] = None,
    campus_id: Optional[uuid.UUID] = None,
    assigned_to_id: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
) -> Tuple[List[Incident], Dict[str, int]]:
    query = db.query(Incident)
    if not include_deleted:
        query = query.filter(Incident.is_deleted.is_(False))

    filter_campus_id = scoped_campus_id(actor, campus_id)
    if filter_campus_id:
        query = query.filter(Incident.campus_id == filter_campus_id)
    if status:
        query = query.filter(Incident.status == status.value)
    if severity:
        query = query.filter(Incident.severity == severity.value)
    if lab_id:
        query = query.filter(Incident.lab_id == lab_id)
    if equipment_id:
        query = query.filter(Incident.equipment_id == equipment_id)
    if assigned_to_id:
        query = query.filter(Incident.assigned_to_id == assigned_to_id)

    return paginate(query.order_by(Incident.created_at.desc()), page, limit)


def _resolve_report_campus(db: Session, actor: Principal, campus_id: Optional[uuid.UUID]) -> uuid.UUID:
    # Non-super roles always report into their own campus
    if not actor.is_super:
        if actor.campus_id is None:
            raise InvalidValue("User has no campus assigned")
        if campus_id and campus_id != actor.campus_id:
            raise AccessDenied("Cannot report incident for a different campus")
        return actor.campus_id
    if not campus_id:
        raise MissingField(["campus_id"], "campus_id is required")
    campus = db.query(Campus).filter(Campus.id == campus_id, Campus.is_deleted.is_(False)).first()
    if not campus:
        raise NotFound("Campus not found")
    return campus.id


def _check_references(
    db: Session,
    campus_id: uuid.UUID,
    equipment_id: Optional[uuid.UUID],
    lab_id: Optional[uuid.UUID],
) -> None:
    if equipment_id:
        equipment = db.query(Equipment).filter(Equipment.id == equipment_id, Equipment.is_deleted.is_(False)).first()
        if not equipment:
            raise NotFound("Equipment not found")
        if equipment.campus_id != campus_id:
            raise CrossCampusReference("Equipment belongs to a different campus")
    if lab_id:
        lab = db.query(Lab).filter(Lab.id == lab_id, Lab.is_deleted.is_(False)).first()
        if not lab:
            raise NotFound("Lab not found")
        if lab.campus_id != campus_id:
            raise CrossCampusReference("Lab belongs to a different campus")


def create_incident(
    db: Session,
    actor: Principal,
    *,
    category: str,
    severity: Severity,
    description: str,
    problem_scope: ProblemScope = ProblemScope.OTHER,
    equipment_id: Optional[uuid.UUID] = None,
    lab_id: Optional[uuid.UUID] = None,
    campus_id: Optional[uuid.UUID] = None,
) -> Incident:
    target_campus_id = _resolve_report_campus(db, actor, campus_id)
    _check_references(db, target_campus_id, equipment_id, lab_id)

    incident = Incident(
        problem_scope=ProblemScope(problem_scope).value,
        category=category,
        severity=Severity(severity).value,
        description=description,
        status=IncidentStatus.OPEN.value,
        equipment_id=equipment_id,
        lab_id=lab_id,
        campus_id=target_campus_id,
        reported_by_id=actor.id,
        is_deleted=False,
    )
    db.add(incident)
    db.commit()
    db.refresh(incident)
    logger.info("incident_reported", incident_id=str(incident.id), campus_id=str(target_campus_id), severity=incident.severity)
    return incident


UPDATABLE_FIELDS = (
    "problem_scope",
    "category",
    "severity",
    "description",
    "root_cause",
    "corrective_action",
    "preventive_action",
    "equipment_id",
    "lab_id",
)
NOT_NULL_FIELDS = ("problem_scope", "category", "severity", "description")
RESOLVED_STATUSES = (
    IncidentStatus.RESOLVED.value,
    IncidentStatus.VERIFIED.value,
    IncidentStatus.CLOSED.value,
)


def update_incident(db: Session, incident_id: uuid.UUID, actor: Principal, changes: Dict[str, Any]) -> Incident:
    """Descriptive field update. Status only moves through transition_incident."""
    incident = get_incident(db, incident_id, actor)
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidValue(f"Fields cannot be updated here: {', '.join(sorted(unknown))}")

    reject_nulls(changes, NOT_NULL_FIELDS)
    if incident.status in RESOLVED_STATUSES:
        blanked = [name for name in ISO_FIELDS if name in changes and _blank(changes[name])]
        if blanked:
            raise InvalidValue(f"ISO fields of a resolved incident cannot be cleared: {', '.join(blanked)}")

    _check_references(db, incident.campus_id, changes.get("equipment_id"), changes.get("lab_id"))
    try:
        for key, value in changes.items():
            if key in ("problem_scope", "severity"):
                value = (ProblemScope if key == "problem_scope" else Severity)(value).value
            setattr(incident, key, value)
        incident.updated_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(incident)
    return incident


def soft_delete_incident(db: Session, incident_id: uuid.UUID, actor: Principal) -> Incident:
    incident = get_incident(db, incident_id, actor)
    incident.is_deleted = True
    incident.updated_at = utcnow()
    db.commit()
    db.refresh(incident)
    return incident


def restore_incident(db: Session, incident_id: uuid.UUID, actor: Principal) -> Incident:
    incident = get_incident(db, incident_id, actor, include_deleted=True)
    if not incident.is_deleted:
        raise InvalidTransition("Incident is not deleted")
    incident.is_deleted = False
    incident.updated_at = utcnow()
    db.commit()
    db.refresh(incident)
    return incident
