"""Authentication helpers: password hashing, bearer JWTs and the principal dependency.

This module provides a FastAPI dependency ``get_current_user`` that:
1. Extracts the ``Authorization: Bearer <token>`` header.
2. Verifies the HS256 signature and expiry against ``AUTH_SECRET_KEY``.
3. Loads the ``models.User`` named by the token's ``sub`` claim.

Pipelines never look at credentials; they only receive the user this
dependency yields. With ``AUTH_ENABLED=false`` every request runs as a local
development user so the builder can be exercised without a login.
"""
from __future__ import annotations

import structlog
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, HTTPException, status, Request
from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from database import get_db
from settings import Settings, get_settings
import crud
import models
import schemas

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"
LOCAL_DEV_EMAIL = "local@example.com"


class TokenPayload(BaseModel):
    sub: str
    email: Optional[str] = None
    exp: int


# --- Password helpers ---
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    user = crud.get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


# --- Token helpers ---
def create_access_token(user: models.User, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"sub": str(user.id), "email": user.email, "exp": expire}
    return jwt.encode(claims, settings.auth_secret_key, algorithm=ALGORITHM)


def verify_token(token: str, settings: Settings) -> TokenPayload:
    """Verify a bearer JWT and return its payload.

    Raises HTTPException(401) on failure.
    """
    try:
        payload = jwt.decode(token, settings.auth_secret_key, algorithms=[ALGORITHM])
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError) as exc:
        logger.warning("JWT verification failed", exc=str(exc))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


# Helper to extract Authorization header (works with FastAPI DI)
def _get_authorization_header(request: Request) -> Optional[str]:
    return request.headers.get("Authorization")


def _get_or_create_local_user(db: Session) -> models.User:
    user = crud.get_user_by_email(db, LOCAL_DEV_EMAIL)
    if not user:
        user = crud.create_user(
            db,
            schemas.UserCreate(name="Local Developer", email=LOCAL_DEV_EMAIL, password="local-dev"),
            hashed_password=None,
        )
        crud.provision_subscription(db, user.id)
        db.commit()
    return user


# --- FastAPI dependency ---
async def get_current_user(
    authorization: Annotated[Optional[str], Depends(_get_authorization_header)],
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> models.User:
    if not settings.auth_enabled:
        return _get_or_create_local_user(db)

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(authorization.split(" ", 1)[1], settings)
    try:
        user_id = int(payload.sub)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = crud.get_user_by_id(db, user_id)
    if not user:
        logger.warning("Token for unknown user", user_id=user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user
