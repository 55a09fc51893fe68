import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models.enums import MaintenanceStatus


class MaintenanceCreate(BaseModel):
    title: str = Field(min_length=1)
    incident_id: uuid.UUID
    equipment_id: uuid.UUID
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None


class MaintenanceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None


class MaintenanceStatusUpdate(BaseModel):
    status: str
    vendor_name: Optional[str] = None
    equipment_outcome: Optional[str] = None  # ACTIVE|DAMAGED, required for RETURNED
    cost: Optional[float] = Field(default=None, ge=0)
    resolution_notes: Optional[str] = None


class MaintenanceResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: MaintenanceStatus
    incident_id: uuid.UUID
    equipment_id: uuid.UUID
    campus_id: uuid.UUID
    lab_id: Optional[uuid.UUID] = None
    created_by_id: uuid.UUID
    vendor_name: Optional[str] = None
    cost: Optional[float] = None
    resolution_notes: Optional[str] = None
    notes: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    sent_to_vendor_at: Optional[datetime] = None
    returned_from_vendor_at: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    is_deleted: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
