import uuid
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..models.enums import Role, SUPER_ROLES
from ..models.models import Campus, User, utcnow
from .errors import AccessDenied, Conflict, Forbidden, MissingField, NotFound
from .pagination import paginate
from .permissions import Principal, scoped_campus_id


logger = structlog.get_logger(__name__)


def authenticate(db: Session, email: str, password: str, verify) -> Optional[User]:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not user.is_active or not verify(password, user.password_hash):
        return None
    user.last_login_at = utcnow()
    db.commit()
    return user


def create_user(
    db: Session,
    actor: Principal,
    *,
    name: str,
    email: str,
    password_hash: str,
    role: Role,
    campus_id: Optional[uuid.UUID] = None,
) -> User:
    """
    Create an account.

    An ADMIN can only create users inside its own campus and never a
    SUPER_ADMIN or DEVELOPER.
    """
    role = Role(role)
    if not actor.is_super:
        if role in SUPER_ROLES:
            raise Forbidden("Only SUPER_ADMIN can create super-level accounts")
        if actor.campus_id is None:
            raise AccessDenied("User has no campus assigned")
        if campus_id and campus_id != actor.campus_id:
            raise AccessDenied("Access denied: different campus")
        campus_id = actor.campus_id
    elif role not in SUPER_ROLES and campus_id is None:
        raise MissingField(["campus_id"], "campus_id is required for campus-scoped roles")

    if campus_id is not None:
        campus = db.query(Campus).filter(Campus.id == campus_id, Campus.is_deleted.is_(False)).first()
        if not campus:
            raise NotFound("Campus not found")

    email = email.lower()
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User with this email already exists")

    user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role.value,
        campus_id=campus_id,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_created", user_id=str(user.id), role=user.role, created_by=str(actor.id))
    return user


def list_users(
    db: Session,
    actor: Principal,
    page: int = 1,
    limit: int = 10,
    campus_id: Optional[uuid.UUID] = None,
    role: Optional[Role] = None,
) -> Tuple[List[User], Dict[str, int]]:
    query = db.query(User)
    filter_campus_id = scoped_campus_id(actor, campus_id)
    if filter_campus_id:
        query = query.filter(User.campus_id == filter_campus_id)
    if role:
        query = query.filter(User.role == Role(role).value)
    return paginate(query.order_by(User.created_at.desc()), page, limit)
