import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel


class SeverityCount(BaseModel):
    severity: str
    count: int


class ProblemScopeCount(BaseModel):
    problem_scope: str
    count: int


class AgingCount(BaseModel):
    aging_category: str
    count: int


class AgingDetail(BaseModel):
    incident_id: uuid.UUID
    open_hours: float
    aging_category: str


class Aging(BaseModel):
    by_category: List[AgingCount]
    details: List[AgingDetail]


class IncidentSummary(BaseModel):
    total_incidents: int
    by_status: Dict[str, int]
    by_severity: List[SeverityCount]
    by_problem_scope: List[ProblemScopeCount]
    aging: Aging


class EquipmentHealth(BaseModel):
    total_equipment: int
    by_status: Dict[str, int]
    warranty_expired: int
    warranty_expiring_within_30_days: int


class CampusCost(BaseModel):
    campus_id: uuid.UUID
    campus_name: Optional[str] = None
    campus_code: Optional[str] = None
    total_cost: float
    mttr_hours: float


class EquipmentCost(BaseModel):
    equipment_id: uuid.UUID
    equipment_name: Optional[str] = None
    equipment_code: Optional[str] = None
    total_cost: float


class MaintenanceCostSummary(BaseModel):
    total_cost_per_campus: List[CampusCost]
    total_cost_per_equipment: List[EquipmentCost]
    mttr_hours: float
