import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_principal, get_settings, require_roles
from ..config import Settings
from ..db import get_db
from ..models.enums import ADMIN_ROLES, STAFF_ROLES, EquipmentStatus
from ..schemas.common import DataResponse, ListResponse
from ..schemas.equipment import EquipmentCreate, EquipmentResponse, EquipmentUpdate
from ..services import equipment as service
from ..services.permissions import Principal


router = APIRouter(prefix="/equipment", tags=["equipment"])


@router.get("", response_model=ListResponse[EquipmentResponse])
def list_equipment(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    campus_id: Optional[uuid.UUID] = None,
    lab_id: Optional[uuid.UUID] = None,
    status: Optional[EquipmentStatus] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows, pagination = service.list_equipment(
        db,
        principal,
        page=page,
        limit=limit,
        campus_id=campus_id,
        lab_id=lab_id,
        status=status,
        category=category,
    )
    return {"success": True, "data": rows, "pagination": pagination}


@router.get("/{equipment_id}", response_model=DataResponse[EquipmentResponse])
def get_equipment(
    equipment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"success": True, "data": service.get_equipment(db, equipment_id, principal)}


@router.post("", response_model=DataResponse[EquipmentResponse], status_code=201)
def create_equipment(
    body: EquipmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*STAFF_ROLES)),
):
    equipment = service.create_equipment(db, principal, **body.model_dump())
    return {"success": True, "data": equipment, "message": "Equipment created successfully"}


@router.put("/{equipment_id}", response_model=DataResponse[EquipmentResponse])
def update_equipment(
    equipment_id: uuid.UUID,
    body: EquipmentUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_roles(*STAFF_ROLES)),
):
    equipment = service.update_equipment(
        db,
        equipment_id,
        principal,
        body.model_dump(exclude_unset=True),
        integrity_secret=settings.audit_integrity_secret,
    )
    return {"success": True, "data": equipment, "message": "Equipment updated successfully"}


@router.delete("/{equipment_id}", response_model=DataResponse[EquipmentResponse])
def delete_equipment(
    equipment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    equipment = service.soft_delete_equipment(db, equipment_id, principal)
    return {"success": True, "data": equipment, "message": "Equipment deleted successfully"}


@router.post("/{equipment_id}/restore", response_model=DataResponse[EquipmentResponse])
def restore_equipment(
    equipment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    equipment = service.restore_equipment(db, equipment_id, principal)
    return {"success": True, "data": equipment, "message": "Equipment restored successfully"}
