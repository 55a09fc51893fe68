import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models.enums import EquipmentStatus


class EquipmentBase(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    purchase_date: Optional[datetime] = None
    warranty_end_date: Optional[datetime] = None
    description: Optional[str] = None


class EquipmentCreate(EquipmentBase):
    lab_id: uuid.UUID
    status: EquipmentStatus = EquipmentStatus.ACTIVE


class EquipmentUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    purchase_date: Optional[datetime] = None
    warranty_end_date: Optional[datetime] = None
    status: Optional[EquipmentStatus] = None
    description: Optional[str] = None
    lab_id: Optional[uuid.UUID] = None


class EquipmentResponse(EquipmentBase):
    id: uuid.UUID
    status: EquipmentStatus
    lab_id: uuid.UUID
    campus_id: uuid.UUID
    is_deleted: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
