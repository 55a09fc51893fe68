import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_principal, get_settings, require_roles
from ..config import Settings
from ..db import get_db
from ..models.enums import ADMIN_ROLES, STAFF_ROLES, MaintenanceStatus
from ..schemas.common import DataResponse, ListResponse
from ..schemas.maintenance import (
    MaintenanceCreate,
    MaintenanceResponse,
    MaintenanceStatusUpdate,
    MaintenanceUpdate,
)
from ..services import maintenance as service
from ..services.errors import Forbidden
from ..services.permissions import Principal


router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.get("", response_model=ListResponse[MaintenanceResponse])
def list_maintenance(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    status: Optional[MaintenanceStatus] = None,
    campus_id: Optional[uuid.UUID] = None,
    equipment_id: Optional[uuid.UUID] = None,
    incident_id: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    if include_deleted and not principal.is_admin_level:
        raise Forbidden("Only ADMIN can list deleted maintenance records")
    rows, pagination = service.list_maintenance(
        db,
        principal,
        page=page,
        limit=limit,
        status=status,
        campus_id=campus_id,
        equipment_id=equipment_id,
        incident_id=incident_id,
        include_deleted=include_deleted,
    )
    return {"success": True, "data": rows, "pagination": pagination}


@router.get("/{maintenance_id}", response_model=DataResponse[MaintenanceResponse])
def get_maintenance(
    maintenance_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"success": True, "data": service.get_maintenance(db, maintenance_id, principal)}


@router.post("", response_model=DataResponse[MaintenanceResponse], status_code=201)
def create_maintenance(
    body: MaintenanceCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*STAFF_ROLES)),
):
    record = service.create_maintenance(db, principal, **body.model_dump())
    return {"success": True, "data": record, "message": "Maintenance created successfully"}


@router.put("/{maintenance_id}", response_model=DataResponse[MaintenanceResponse])
def update_maintenance(
    maintenance_id: uuid.UUID,
    body: MaintenanceUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*STAFF_ROLES)),
):
    record = service.update_maintenance(db, maintenance_id, principal, body.model_dump(exclude_unset=True))
    return {"success": True, "data": record, "message": "Maintenance updated successfully"}


@router.patch("/{maintenance_id}/status", response_model=DataResponse[MaintenanceResponse])
def update_maintenance_status(
    maintenance_id: uuid.UUID,
    body: MaintenanceStatusUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    fields = service.MaintenanceFields(
        vendor_name=body.vendor_name,
        equipment_outcome=body.equipment_outcome,
        cost=body.cost,
        resolution_notes=body.resolution_notes,
    )
    record = service.transition_maintenance(
        db,
        maintenance_id,
        body.status,
        principal,
        fields,
        integrity_secret=settings.audit_integrity_secret,
    )
    return {"success": True, "data": record, "message": f"Maintenance status updated to {record.status}"}


@router.delete("/{maintenance_id}", response_model=DataResponse[MaintenanceResponse])
def delete_maintenance(
    maintenance_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    record = service.soft_delete_maintenance(db, maintenance_id, principal)
    return {"success": True, "data": record, "message": "Maintenance deleted successfully"}


@router.post("/{maintenance_id}/restore", response_model=DataResponse[MaintenanceResponse])
def restore_maintenance(
    maintenance_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    record = service.restore_maintenance(db, maintenance_id, principal)
    return {"success": True, "data": record, "message": "Maintenance restored successfully"}
