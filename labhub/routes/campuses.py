import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_principal, require_roles
from ..db import get_db
from ..models.enums import ADMIN_ROLES, SUPER_ROLES
from ..schemas.campuses import CampusCreate, CampusResponse, CampusUpdate, LabCreate, LabResponse, LabUpdate
from ..schemas.common import DataResponse, ListResponse
from ..services import campuses as service
from ..services.permissions import Principal


router = APIRouter(tags=["campuses"])


@router.get("/campuses", response_model=ListResponse[CampusResponse])
def list_campuses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows, pagination = service.list_campuses(db, page, limit)
    return {"success": True, "data": rows, "pagination": pagination}


@router.get("/campuses/{campus_id}", response_model=DataResponse[CampusResponse])
def get_campus(
    campus_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"success": True, "data": service.get_campus(db, campus_id)}


@router.post("/campuses", response_model=DataResponse[CampusResponse], status_code=201)
def create_campus(
    body: CampusCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*SUPER_ROLES)),
):
    campus = service.create_campus(db, **body.model_dump())
    return {"success": True, "data": campus, "message": "Campus created successfully"}


@router.put("/campuses/{campus_id}", response_model=DataResponse[CampusResponse])
def update_campus(
    campus_id: uuid.UUID,
    body: CampusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*SUPER_ROLES)),
):
    campus = service.update_campus(db, campus_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": campus, "message": "Campus updated successfully"}


@router.delete("/campuses/{campus_id}", response_model=DataResponse[CampusResponse])
def delete_campus(
    campus_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*SUPER_ROLES)),
):
    campus = service.set_campus_deleted(db, campus_id, True)
    return {"success": True, "data": campus, "message": "Campus deleted successfully"}


@router.post("/campuses/{campus_id}/restore", response_model=DataResponse[CampusResponse])
def restore_campus(
    campus_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*SUPER_ROLES)),
):
    campus = service.set_campus_deleted(db, campus_id, False)
    return {"success": True, "data": campus, "message": "Campus restored successfully"}


@router.get("/labs", response_model=ListResponse[LabResponse])
def list_labs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    campus_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows, pagination = service.list_labs(db, principal, page, limit, campus_id)
    return {"success": True, "data": rows, "pagination": pagination}


@router.post("/labs", response_model=DataResponse[LabResponse], status_code=201)
def create_lab(
    body: LabCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    lab = service.create_lab(db, principal, **body.model_dump())
    return {"success": True, "data": lab, "message": "Lab created successfully"}


@router.get("/labs/{lab_id}", response_model=DataResponse[LabResponse])
def get_lab(
    lab_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"success": True, "data": service.get_lab(db, lab_id, principal)}


@router.put("/labs/{lab_id}", response_model=DataResponse[LabResponse])
def update_lab(
    lab_id: uuid.UUID,
    body: LabUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    lab = service.update_lab(db, lab_id, principal, body.model_dump(exclude_unset=True))
    return {"success": True, "data": lab, "message": "Lab updated successfully"}


@router.delete("/labs/{lab_id}", response_model=DataResponse[LabResponse])
def delete_lab(
    lab_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    lab = service.set_lab_deleted(db, lab_id, principal, True)
    return {"success": True, "data": lab, "message": "Lab deleted successfully"}


@router.post("/labs/{lab_id}/restore", response_model=DataResponse[LabResponse])
def restore_lab(
    lab_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    lab = service.set_lab_deleted(db, lab_id, principal, False)
    return {"success": True, "data": lab, "message": "Lab restored successfully"}
