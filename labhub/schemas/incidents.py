import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models.enums import IncidentStatus, ProblemScope, Severity


class IncidentCreate(BaseModel):
    category: str = Field(min_length=1)
    severity: Severity
    description: str = Field(min_length=1)
    problem_scope: ProblemScope = ProblemScope.OTHER
    equipment_id: Optional[uuid.UUID] = None
    lab_id: Optional[uuid.UUID] = None
    campus_id: Optional[uuid.UUID] = None  # only honoured for SUPER_ADMIN/DEVELOPER


class IncidentUpdate(BaseModel):
    problem_scope: Optional[ProblemScope] = None
    category: Optional[str] = None
    severity: Optional[Severity] = None
    description: Optional[str] = None
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None
    preventive_action: Optional[str] = None
    equipment_id: Optional[uuid.UUID] = None
    lab_id: Optional[uuid.UUID] = None


class IncidentStatusUpdate(BaseModel):
    # Plain string: unknown values are reported as InvalidStatus, not a 422
    status: str
    assigned_to_id: Optional[uuid.UUID] = None
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None
    preventive_action: Optional[str] = None


class IncidentResponse(BaseModel):
    id: uuid.UUID
    problem_scope: ProblemScope
    category: str
    severity: Severity
    description: str
    status: IncidentStatus
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None
    preventive_action: Optional[str] = None
    equipment_id: Optional[uuid.UUID] = None
    lab_id: Optional[uuid.UUID] = None
    campus_id: uuid.UUID
    reported_by_id: uuid.UUID
    assigned_to_id: Optional[uuid.UUID] = None
    resolved_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    is_deleted: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
