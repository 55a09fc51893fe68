import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash, require_roles
from ..db import get_db
from ..models.enums import ADMIN_ROLES, Role
from ..schemas.auth import UserCreate, UserResponse
from ..schemas.common import DataResponse, ListResponse
from ..services import users as service
from ..services.permissions import Principal


router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=ListResponse[UserResponse])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    campus_id: Optional[uuid.UUID] = None,
    role: Optional[Role] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    rows, pagination = service.list_users(db, principal, page, limit, campus_id, role)
    return {"success": True, "data": rows, "pagination": pagination}


@router.post("", response_model=DataResponse[UserResponse], status_code=201)
def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(*ADMIN_ROLES)),
):
    user = service.create_user(
        db,
        principal,
        name=body.name,
        email=body.email,
        password_hash=get_password_hash(body.password),
        role=body.role,
        campus_id=body.campus_id,
    )
    return {"success": True, "data": user, "message": "User created successfully"}
