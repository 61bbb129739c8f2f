# auth_router.py
import binascii
import hashlib
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, EmailStr
from sqlalchemy import select
from sqlalchemy.orm import Session

from container_check import config
from container_check.database import get_db
from container_check.models import User
from container_check.services.session import Role, UserSession
from container_check.utils import error_resp, success_resp

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def hash_password(password: str, salt: Optional[str] = None):
    """
    PBKDF2-HMAC-SHA256 password hashing with salt.
    Returns (hash, salt).
    """
    if salt is None:
        salt = binascii.hexlify(os.urandom(16)).decode()
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000)
    return binascii.hexlify(dk).decode(), salt


def create_jwt_token(payload: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = payload.copy()
    if expires_delta is None:
        expires_delta = timedelta(days=config.JWT_EXP_DAYS)
    now = datetime.now(timezone.utc)
    to_encode.update({"exp": now + expires_delta, "iat": now})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def token_for(user: User) -> str:
    return create_jwt_token({"user_id": user.id, "name": user.name, "role": user.role, "email": user.email})


def get_current_session(authorization: Optional[str] = Header(None)) -> UserSession:
    """Decode the Bearer token into the caller's session."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authenticated")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    try:
        payload = jwt.decode(parts[1], config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        return UserSession(user_id=int(payload["user_id"]), name=payload.get("name", ""), role=Role(payload["role"]))
    except (KeyError, ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token")


@router.post("/login")
def login_user(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == body.email))
    if not user or not user.password_hash or not user.password_salt:
        return error_resp("Invalid user credentials or no user found", 401, {})

    pwd_hash, _ = hash_password(body.password, user.password_salt)
    if pwd_hash != user.password_hash:
        return error_resp("Password is not correct", 401, {"email": body.email})

    logger.info("User %s logged in", user.id)
    return success_resp(
        "Login successful",
        {
            "token": token_for(user),
            "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
        },
    )


@router.get("/me")
def whoami(session: UserSession = Depends(get_current_session)):
    return success_resp("Current session", {"user_id": session.user_id, "name": session.name, "role": session.role.value})
