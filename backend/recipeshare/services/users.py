# recipeshare/services/users.py
"""
User lookup helpers.

Emails are normalized (strip + lowercase) before every lookup and write so the
unique index on ``users.email`` is case-insensitive in practice.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from recipeshare.core.errors import InvalidIdentifier
from recipeshare.models.user import User

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 100


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def is_valid_user_id(value: str | None) -> bool:
    """User ids are uuid4 hex strings (32 lowercase hex chars)."""
    if not value or len(value) != 32:
        return False
    try:
        return uuid.UUID(hex=value).hex == value
    except ValueError:
        return False


def require_user_id(value: str | None) -> str:
    if not is_valid_user_id(value):
        raise InvalidIdentifier()
    return str(value)


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Look up a user by email address."""
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username.strip()).first()


def get_user_by_google_id(db: Session, google_id: str) -> Optional[User]:
    if not google_id:
        return None
    return db.query(User).filter(User.google_id == google_id).first()


def available_username(db: Session, desired: str) -> str:
    """
    Returns `desired`, or `desired` with a numeric suffix when it is taken.
    Used for Google sign-ups where the display name is not chosen by the user.
    """
    base = (desired or "").strip()[: USERNAME_MAX_LENGTH - 8] or "user"
    candidate = base
    suffix = 1
    while get_user_by_username(db, candidate) is not None:
        suffix += 1
        candidate = f"{base}{suffix}"
    if candidate != base:
        logger.info("Username %r taken; using %r", base, candidate)
    return candidate
