import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from container_check.database import get_db
from container_check.errors import ForeignKeyConstraint, NotFound, ValidationFailed
from container_check.models import User
from container_check.routers.auth_router import get_current_session, hash_password
from container_check.services.dashboard_cache import dashboard_cache
from container_check.services.session import Role, UserSession, require_role
from container_check.utils import success_resp

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


# Pydantic models for request/response
class UserCreate(BaseModel):
    name: str
    email: EmailStr
    role: Role
    password: str
    confirm_password: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def require_admin(session: UserSession = Depends(get_current_session)) -> UserSession:
    return require_role(session, Role.ADMIN)


def _check_password(password: str, confirm: Optional[str]):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password != confirm:
        raise ValidationFailed("confirm_password", "Passwords do not match")


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)
    return user


def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.scalar(stmt) is not None


def _as_response(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump()


@router.get("")
def get_all_users(db: Session = Depends(get_db), admin: UserSession = Depends(require_admin)):
    """Get all users"""
    users: List[User] = db.scalars(select(User).order_by(User.created_at.desc(), User.id.desc())).all()
    return success_resp("Users fetched", [_as_response(u) for u in users])


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), admin: UserSession = Depends(require_admin)):
    return success_resp("User fetched", _as_response(_get_user(db, user_id)))


@router.post("")
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: UserSession = Depends(require_admin)):
    name = payload.name.strip()
    if not name:
        raise ValidationFailed("name", "name is required")
    _check_password(payload.password, payload.confirm_password)
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=409, detail="Email is already registered")

    pwd_hash, salt = hash_password(payload.password)
    user = User(name=name, email=payload.email, role=payload.role.value, password_hash=pwd_hash, password_salt=salt)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email is already registered")
    db.refresh(user)
    dashboard_cache.invalidate(Role.ADMIN)
    logger.info("User %s (%s) created by admin %s", user.id, user.role, admin.user_id)
    return success_resp("User created", _as_response(user), 201)


@router.put("/{user_id}")
def update_user(
    user_id: int, payload: UserUpdate, db: Session = Depends(get_db), admin: UserSession = Depends(require_admin)
):
    """Update user; the password only changes when one is given."""
    user = _get_user(db, user_id)

    if payload.email is not None and payload.email != user.email:
        if _email_taken(db, payload.email, exclude_id=user.id):
            raise HTTPException(status_code=409, detail="Email is already registered")
        user.email = payload.email
    if payload.name is not None:
        if not payload.name.strip():
            raise ValidationFailed("name", "name is required")
        user.name = payload.name.strip()
    if payload.role is not None:
        user.role = payload.role.value
    if payload.password:
        _check_password(payload.password, payload.confirm_password)
        user.password_hash, user.password_salt = hash_password(payload.password)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email is already registered")
    db.refresh(user)
    logger.info("User %s updated by admin %s", user.id, admin.user_id)
    return success_resp("User updated", _as_response(user))


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), admin: UserSession = Depends(require_admin)):
    if user_id == admin.user_id:
        raise ValidationFailed("user_id", "You cannot delete your own account")
    user = _get_user(db, user_id)
    name = user.name

    try:
        db.delete(user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("User %s is still referenced and cannot be deleted: %s", user_id, e)
        raise ForeignKeyConstraint("User still has inspection records and cannot be deleted")

    dashboard_cache.invalidate(Role.ADMIN)
    logger.info("User %s deleted by admin %s", user_id, admin.user_id)
    return success_resp(f"User '{name}' deleted successfully", {"id": user_id})
