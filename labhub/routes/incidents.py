import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_principal, get_settings, require_roles
from ..config import Settings
from ..db import get_db
from ..models.enums import ADMIN_ROLES, STAFF_ROLES, IncidentStatus, Severity
from ..schemas.common import DataResponse, ListResponse
from ..schemas.incidents import IncidentCreate, IncidentResponse, IncidentStatusUpdate, IncidentUpdate
from ..services import incidents as service
from ..services.errors import Forbidden
from ..services.permissions import Principal


router = APIRouter(prefix="/incidents", tags=["incidents"])


@router.get("", response_model=ListResponse[IncidentResponse])
def list_incidents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    status: Optional[IncidentStatus] = None,
    severity: Optional[Severity] = None,
    lab_id: Optional[uuid.UUID] = None,
    equipment_id: Optional[uuid.UUID] = None,
    campus_id: Optional[uuid.UUID] = None,
    assigned_to_id: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    if include_deleted and not principal.is_admin_level:
        raise Forbidden("Only ADMIN can list deleted incidents")
    rows, pagination = service.list_incidents(
        db,
        principal,
        page=page,
        limit=limit,
        status=status,
        severity=severity,
        lab_id=lab_id,
        equipment_id=equipment_id,
        campus_id=campus_id,
        assigned_to_id=assigned_to_id,
        include_deleted=include_deleted,
    )
    return {"success": True, "data": rows, "pagination": pagination}


@router.get("/{incident_id}", response_model=DataResponse[IncidentResponse])
def get_incident(
    incident_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"success": True, "data": service.get_incident(db, incident_id, principal)}


@router.post("", response_model=DataResponse[IncidentResponse], status_code=201)
def create_incident(
    body: IncidentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    incident = service.create_incident(db, principal, **body.model_dump())
    return {"success": True, "data": incident, "message": "Incident reported successfully"}


@router.put("/{incident_id}", response_model=DataResponse[IncidentResponse])
def update_incident(
    incident_id: uuid.UUID,
    body: IncidentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*STAFF_ROLES)),
):
    incident = service.update_incident(db, incident_id, principal, body.model_dump(exclude_unset=True))
    return {"success": True, "data": incident, "message": "Incident updated successfully"}


@router.patch("/{incident_id}/status", response_model=DataResponse[IncidentResponse])
def update_incident_status(
    incident_id: uuid.UUID,
    body: IncidentStatusUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_roles(*STAFF_ROLES)),
):
    fields = service.IncidentFields(
        assigned_to_id=body.assigned_to_id,
        root_cause=body.root_cause,
        corrective_action=body.corrective_action,
        preventive_action=body.preventive_action,
    )
    incident = service.transition_incident(
        db,
        incident_id,
        body.status,
        principal,
        fields,
        integrity_secret=settings.audit_integrity_secret,
    )
    return {"success": True, "data": incident, "message": f"Incident status updated to {incident.status}"}


@router.delete("/{incident_id}", response_model=DataResponse[IncidentResponse])
def delete_incident(
    incident_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    incident = service.soft_delete_incident(db, incident_id, principal)
    return {"success": True, "data": incident, "message": "Incident deleted successfully"}


@router.post("/{incident_id}/restore", response_model=DataResponse[IncidentResponse])
def restore_incident(
    incident_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    incident = service.restore_incident(db, incident_id, principal)
    return {"success": True, "data": incident, "message": "Incident restored successfully"}
