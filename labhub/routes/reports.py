import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.enums import ADMIN_ROLES
from ..schemas.common import DataResponse
from ..schemas.reports import EquipmentHealth, IncidentSummary, MaintenanceCostSummary
from ..services import reports as service
from ..services.permissions import Principal, scoped_campus_id


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/incidents-summary", response_model=DataResponse[IncidentSummary])
def incidents_summary(
    campus_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    data = service.incident_summary(db, scoped_campus_id(principal, campus_id))
    return {"success": True, "data": data}


@router.get("/equipment-health", response_model=DataResponse[EquipmentHealth])
def equipment_health(
    campus_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    data = service.equipment_health(db, scoped_campus_id(principal, campus_id))
    return {"success": True, "data": data}


@router.get("/maintenance-cost", response_model=DataResponse[MaintenanceCostSummary])
def maintenance_cost(
    campus_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    data = service.maintenance_cost_summary(db, scoped_campus_id(principal, campus_id))
    return {"success": True, "data": data}


@router.get("/capa-export")
def capa_export(
    campus_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    rows = service.capa_export_rows(db, scoped_campus_id(principal, campus_id))
    return Response(
        content=service.capa_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="capa-export.csv"'},
    )
