from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from recipeshare.core.config import Settings
from recipeshare.core.security import SecretHasher, as_utc, generate_one_time_token, now_utc
from recipeshare.models.user import User

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "reset_password"
    DELETE_ACCOUNT = "delete_account"


def _expiry_minutes(config: Settings, kind: TokenKind) -> int:
    if kind is TokenKind.VERIFICATION:
        return config.VERIFICATION_TOKEN_EXPIRE_MINUTES
    if kind is TokenKind.PASSWORD_RESET:
        return config.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
    return config.DELETE_ACCOUNT_TOKEN_EXPIRE_MINUTES


class OneTimeTokenWorkflow:
    """
    Single-use, hashed-at-rest, time-limited tokens stored on the user row.

    One instance per kind (verification, password reset, account deletion).
    Each kind owns a `<kind>_token_hash` / `<kind>_expires_at` column pair.
    Validation never says *why* a token was rejected.
    """

    def __init__(self, db: Session, config: Settings, kind: TokenKind, hasher: SecretHasher | None = None):
        self.db = db
        self.kind = kind
        self.ttl = timedelta(minutes=_expiry_minutes(config, kind))
        self.hasher = hasher or SecretHasher(config)

    @property
    def hash_column(self):
        return getattr(User, f"{self.kind.value}_token_hash")

    @property
    def expires_column(self):
        return getattr(User, f"{self.kind.value}_expires_at")

    def stored(self, user: User) -> tuple[str | None, datetime | None]:
        return (
            getattr(user, f"{self.kind.value}_token_hash"),
            getattr(user, f"{self.kind.value}_expires_at"),
        )

    def no_active_token_clause(self, now: datetime | None = None):
        """Filter matching users without a live token of this kind."""
        return or_(self.expires_column.is_(None), self.expires_column <= (now or now_utc()))

    def issue(self, user: User) -> str | None:
        """
        Stores a fresh token hash unless a live one already exists.

        Returns the plaintext token, or None when an unexpired token blocks
        re-issue. The write is a conditional UPDATE, so two racing requests
        can both succeed; the later write wins and only its token validates.
        """
        now = now_utc()
        token = generate_one_time_token()
        updated = (
            self.db.query(User)
            .filter(User.id == user.id, self.no_active_token_clause(now))
            .update(
                {
                    self.hash_column: self.hasher.hash(token),
                    self.expires_column: now + self.ttl,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        self.db.refresh(user)

        if not updated:
            logger.info("Skipped %s token issue: active token exists for user_id=%s", self.kind.value, user.id)
            return None
        logger.info("Issued %s token for user_id=%s", self.kind.value, user.id)
        return token

    def validate(self, user_id: str, plaintext: str | None) -> User | None:
        if not plaintext:
            return None
        user = self.db.get(User, user_id)
        if user is None:
            return None

        token_hash, expires_at = self.stored(user)
        if not token_hash or expires_at is None:
            return None
        if as_utc(expires_at) <= now_utc():
            return None
        if not self.hasher.verify(plaintext, token_hash):
            return None
        return user

    def consume(self, user: User, **effects: Any) -> bool:
        """
        Applies `effects` and clears the token in one UPDATE guarded on the
        stored hash, so a token can only be spent once.
        """
        token_hash, _ = self.stored(user)
        if not token_hash:
            return False

        values = {getattr(User, field): value for field, value in effects.items()}
        values[self.hash_column] = None
        values[self.expires_column] = None

        updated = (
            self.db.query(User)
            .filter(User.id == user.id, self.hash_column == token_hash)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(user)
        return bool(updated)

    def clear(self, user: User) -> None:
        (
            self.db.query(User)
            .filter(User.id == user.id)
            .update({self.hash_column: None, self.expires_column: None}, synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(user)
