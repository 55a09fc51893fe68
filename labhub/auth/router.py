import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..db import get_db
from ..models.models import User
from ..schemas.auth import LoginRequest, TokenResponse, UserResponse
from ..services.users import authenticate
from .security import create_access_token, get_current_user, get_settings, verify_password


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(
    req: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = authenticate(db, req.email, req.password, verify_password)
    if not user:
        logger.warning("login_failed", email=req.email, client=request.client.host if request.client else None)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenResponse(access_token=create_access_token(settings, user))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user
