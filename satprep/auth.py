"""Authentication for the SAT prep API.

Minimal JWT bearer authentication:
- Password hashing using bcrypt
- Token creation and verification using PyJWT
- A FastAPI dependency resolving the current user from the request
"""

import logging
import os
import re
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Header
from sqlalchemy.orm import Session

from .database.connection import get_db_dependency
from .database.models import User

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get("JWT_EXPIRATION_HOURS", "24"))

MIN_PASSWORD_LENGTH = 8
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )


def create_access_token(user_id: str, email: str) -> str:
    """Create a signed token carrying user_id and email claims."""
    expire = datetime.utcnow() + timedelta(hours=JWT_EXPIRATION_HOURS)
    payload = {
        "user_id": user_id,
        "email": email,
        "exp": expire,
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate an access token.

    Raises HTTPException(401) on invalid or expired tokens.
    """
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def register_user(db: Session, email: str, password: str, name: Optional[str] = None) -> User:
    """Create a learner account.

    Raises:
        ValueError: On a malformed email or short password
        LookupError: If the email is already registered
    """
    email = email.strip().lower()
    if not _EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if db.query(User).filter_by(email=email).first():
        raise LookupError("Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
        is_active=True,
        current_level=5.0,
        auto_adjust=True,
        adjustment_speed=3,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Return the active user matching the credentials, or None."""
    user = db.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        return None
    return user


async def get_current_user(
    authorization: str = Header(None),
    db: Session = Depends(get_db_dependency),
) -> User:
    """FastAPI dependency resolving the user from the bearer token.

    Raises 401 if the token is missing, invalid, or the user doesn't exist.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Missing or invalid Authorization header",
        )

    token = authorization.split(" ", 1)[1]
    payload = decode_access_token(token)

    user = db.query(User).filter_by(id=payload["user_id"]).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="User account is deactivated")

    return user
