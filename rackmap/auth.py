import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import database, models
from .config import settings

logger = logging.getLogger(__name__)

COOKIE_NAME = "access_token"
MIN_PASSWORD_LENGTH = 6


def verify_password(plain_password, hashed_password):
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode("utf-8")
    if isinstance(plain_password, str):
        plain_password = plain_password.encode("utf-8")
    try:
        return bcrypt.checkpw(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def get_password_hash(password):
    if isinstance(password, str):
        password = password.encode("utf-8")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[str]:
    """Return the email carried in ``token``, or None when it is not valid."""
    if token.startswith("Bearer "):
        token = token.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    return payload.get("sub")


def set_login_cookie(response, user):
    token = create_access_token({"sub": user.email, "tenant_id": user.tenant_id})
    response.set_cookie(
        key=COOKIE_NAME,
        value=f"Bearer {token}",
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.access_token_expire_minutes * 60,
    )
    return response


def authenticate(db: Session, email, password):
    email = (email or "").strip().lower()
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not verify_password(password or "", user.hashed_password):
        logger.info("Failed login for %s", email)
        return None
    return user


def change_password(db: Session, user, current_password, new_password, confirm_password):
    if not verify_password(current_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if new_password != confirm_password:
        raise HTTPException(status_code=400, detail="New password and confirmation do not match")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"New password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    # The injected user may belong to another session
    db_user = db.get(models.User, user.id)
    db_user.hashed_password = get_password_hash(new_password)
    db.commit()
    db.refresh(db_user)
    logger.info("Password changed for user %s", db_user.id)
    return db_user


def update_profile(db: Session, user, full_name=None, role=None):
    db_user = db.get(models.User, user.id)
    db_user.full_name = (full_name or "").strip() or None
    db_user.role = (role or "").strip() or None
    db.commit()
    db.refresh(db_user)
    return db_user


def ensure_default_admin(db: Session):
    """Create the default tenant and admin account on an empty database."""
    if db.query(models.User).first() is not None:
        return None
    tenant = db.query(models.Tenant).filter(models.Tenant.name == settings.default_tenant_name).first()
    if tenant is None:
        tenant = models.Tenant(name=settings.default_tenant_name)
        db.add(tenant)
        db.flush()
    user = models.User(
        email=settings.default_admin_email.lower(),
        hashed_password=get_password_hash(settings.default_admin_password),
        tenant_id=tenant.id,
        role="admin",
    )
    db.add(user)
    db.commit()
    logger.info("Created default admin %s in tenant %s", user.email, tenant.name)
    return user


# Dependency to get current user from Cookie (for browser)
def get_current_user(request: Request, db: Session = Depends(database.get_db)):
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    email = decode_access_token(token)
    if email is None:
        return None
    return db.query(models.User).filter(models.User.email == email).first()


# Page routes send anonymous visitors to the login form
def get_current_user_required(user: Optional[models.User] = Depends(get_current_user)):
    if not user:
        raise HTTPException(
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            detail="Not authenticated",
            headers={"Location": "/login"},
        )
    return user


def get_api_user(user: Optional[models.User] = Depends(get_current_user)):
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user
