import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CampusCreate(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=50)
    location: Optional[str] = None
    description: Optional[str] = None


class CampusUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class CampusResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: str
    location: Optional[str] = None
    description: Optional[str] = None
    is_deleted: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LabCreate(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=50)
    campus_id: uuid.UUID
    capacity: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None


class LabUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    capacity: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None


class LabResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: str
    campus_id: uuid.UUID
    capacity: Optional[int] = None
    location: Optional[str] = None
    is_deleted: bool
    created_at: datetime

    class Config:
        from_attributes = True
