from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from ..auth.security import get_settings
from ..config import Settings
from ..db import get_db
from ..schemas.common import DataResponse
from ..schemas.notifications import SweepResponse
from ..services.automation import AutomationService


logger = structlog.get_logger(__name__)


def verify_cron_secret(
    request: Request,
    x_cron_secret: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Shared-secret guard for scheduler calls; open when no secret is configured."""
    expected = settings.cron_secret
    if not expected:
        return
    provided = x_cron_secret
    if not provided and authorization and authorization.startswith("Bearer "):
        provided = authorization[len("Bearer "):]
    if provided != expected:
        logger.warning("cron_unauthorized", path=request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized cron request")


def get_automation(request: Request) -> AutomationService:
    return request.app.state.automation


router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/warranty", methods=["GET", "POST"], response_model=DataResponse[SweepResponse])
def run_warranty(db: Session = Depends(get_db), automation: AutomationService = Depends(get_automation)):
    return {"success": True, "data": automation.run_warranty_check(db).to_dict()}


@router.api_route("/incident-escalation", methods=["GET", "POST"], response_model=DataResponse[SweepResponse])
def run_incident_escalation(db: Session = Depends(get_db), automation: AutomationService = Depends(get_automation)):
    return {"success": True, "data": automation.run_incident_escalation_check(db).to_dict()}


@router.api_route("/maintenance-overdue", methods=["GET", "POST"], response_model=DataResponse[SweepResponse])
def run_maintenance_overdue(db: Session = Depends(get_db), automation: AutomationService = Depends(get_automation)):
    return {"success": True, "data": automation.run_maintenance_overdue_check(db).to_dict()}
