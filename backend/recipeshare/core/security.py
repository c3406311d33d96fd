# recipeshare/core/security.py
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from jose import jwt
from passlib.context import CryptContext

from recipeshare.core.config import Settings


# -------------------------
# Secret hashing (passwords + one-time tokens)
# -------------------------
@lru_cache(maxsize=8)
def _crypt_context(rounds: int) -> CryptContext:
    # bcrypt_sha256 pre-hashes the secret, so bytes past bcrypt's 72-byte cutoff still count.
    return CryptContext(
        schemes=["bcrypt_sha256", "bcrypt"],
        deprecated="auto",
        bcrypt_sha256__rounds=rounds,
        bcrypt__rounds=rounds,
    )


class SecretHasher:
    """
    Salted one-way hashing for passwords and one-time tokens.
    verify() is passlib's constant-time compare and never raises on bad input.
    """

    def __init__(self, config: Settings):
        self._ctx = _crypt_context(int(config.BCRYPT_ROUNDS))

    def hash(self, secret: str) -> str:
        return self._ctx.hash(secret)

    def verify(self, secret: str | None, hashed: str | None) -> bool:
        if not secret or not hashed:
            return False
        try:
            return self._ctx.verify(secret, hashed)
        except (ValueError, TypeError):
            # unrecognized / malformed stored hash
            return False


def generate_one_time_token() -> str:
    # 32 random bytes, 64 hex chars
    return secrets.token_hex(32)


# -------------------------
# JWT helpers
# -------------------------
def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite round-trips tz-aware datetimes as naive (stored as UTC).
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_jwt_secret(config: Settings) -> str:
    secret = (config.JWT_SECRET or "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET must be set (auth is required).")
    return secret


def encode_token(config: Settings, claims: dict[str, Any]) -> str:
    return jwt.encode(claims, _require_jwt_secret(config), algorithm=config.JWT_ALGORITHM)


def decode_token(config: Settings, token: str) -> dict[str, Any]:
    # Let callers decide how to handle JWTError
    return jwt.decode(token, _require_jwt_secret(config), algorithms=[config.JWT_ALGORITHM])


# -------------------------
# Refresh token ledger key
# -------------------------
def hash_refresh_token(config: Settings, raw_token: str) -> str:
    """
    Ledger rows are keyed by an HMAC of the signed token, never the raw string.
    """
    secret = _require_jwt_secret(config).encode("utf-8")
    return hmac.new(secret, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()
