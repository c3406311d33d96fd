from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Request, Response
from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipeshare.auth.identity import AuthMethod
from recipeshare.core.config import Settings
from recipeshare.core.errors import PersistenceError
from recipeshare.core.security import as_utc, decode_token, encode_token, hash_refresh_token, now_utc
from recipeshare.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)

ACCESS_PURPOSE = "access"
REFRESH_PURPOSE = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    auth_method: AuthMethod


class TokenService:
    """
    Signed access tokens (stateless) and refresh tokens (signed + recorded in
    the refresh token ledger so logout can revoke them before they expire).
    """

    def __init__(self, db: Session, config: Settings):
        self.db = db
        self.config = config

    # -----------------------------
    # Access tokens
    # -----------------------------
    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def access_token_ttl_ms(self) -> int:
        return int(self.access_token_ttl.total_seconds() * 1000)

    def issue_access_token(self, user_id: str, auth_method: AuthMethod = AuthMethod.EMAIL) -> str:
        return self._encode(user_id, auth_method, ACCESS_PURPOSE, self.access_token_ttl)

    def validate_access_token(self, token: str | None) -> TokenClaims | None:
        return self._decode(token, ACCESS_PURPOSE)

    # -----------------------------
    # Refresh tokens
    # -----------------------------
    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(hours=self.config.REFRESH_TOKEN_EXPIRE_HOURS)

    def issue_refresh_token(self, user_id: str, auth_method: AuthMethod = AuthMethod.EMAIL) -> str:
        """
        Mints a refresh JWT and records it in the ledger. The token must not be
        handed out if the ledger write fails.
        """
        token = self._encode(user_id, auth_method, REFRESH_PURPOSE, self.refresh_token_ttl)
        exp = int(jwt.get_unverified_claims(token)["exp"])

        row = RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(self.config, token),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to persist refresh token for user_id=%s", user_id)
            raise PersistenceError("Failed to create refresh token.") from exc
        return token

    def validate_refresh_token(self, token: str | None) -> TokenClaims | None:
        """
        Valid only if the ledger still holds an unexpired row AND the JWT itself
        verifies (signature + exp).
        """
        if not token:
            return None
        row = self._ledger_row(token)
        if row is None:
            return None
        if as_utc(row.expires_at) <= now_utc():
            return None

        claims = self._decode(token, REFRESH_PURPOSE)
        if claims is None or claims.user_id != row.user_id:
            return None
        return claims

    def revoke_refresh_token(self, token: str) -> bool:
        deleted = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_refresh_token(self.config, token))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if not deleted:
            logger.warning("Refresh token revoke found no ledger row")
        return bool(deleted)

    def revoke_all_for_user(self, user_id: str) -> int:
        deleted = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return int(deleted or 0)

    # -----------------------------
    # Internals
    # -----------------------------
    def _ledger_row(self, token: str) -> RefreshToken | None:
        return (
            self.db.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_refresh_token(self.config, token))
            .first()
        )

    def _encode(self, user_id: str, auth_method: AuthMethod, purpose: str, ttl: timedelta) -> str:
        now = now_utc()
        payload = {
            "sub": str(user_id),
            "authMethod": AuthMethod(auth_method).value,
            "purpose": purpose,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return encode_token(self.config, payload)

    def _decode(self, token: str | None, purpose: str) -> TokenClaims | None:
        if not token:
            return None
        try:
            payload = decode_token(self.config, token)
        except JWTError:
            return None

        if payload.get("purpose") != purpose:
            return None
        user_id = payload.get("sub")
        auth_method = AuthMethod.parse(payload.get("authMethod"))
        if not isinstance(user_id, str) or not user_id or auth_method is None:
            return None
        return TokenClaims(user_id=user_id, auth_method=auth_method)


def purge_expired_refresh_tokens(db: Session) -> int:
    """
    Removes ledger rows past their expiry. Validation re-checks expiry anyway;
    this only keeps the table small.
    """
    deleted = (
        db.query(RefreshToken)
        .filter(RefreshToken.expires_at <= now_utc())
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Purged %s expired refresh tokens", deleted)
    return int(deleted or 0)


# -----------------------------
# Cookie helpers
# -----------------------------
def cookie_samesite(config: Settings) -> str:
    v = str(config.REFRESH_COOKIE_SAMESITE or "strict").lower().strip()
    if v not in {"lax", "strict", "none"}:
        return "strict"
    return v


def set_refresh_cookie(resp: Response, config: Settings, raw_refresh_token: str) -> None:
    resp.set_cookie(
        key=config.REFRESH_COOKIE_NAME,
        value=raw_refresh_token,
        httponly=True,
        secure=config.is_prod,
        samesite=cookie_samesite(config),
        max_age=config.REFRESH_TOKEN_EXPIRE_HOURS * 3600,
        path=config.REFRESH_COOKIE_PATH,
        domain=config.REFRESH_COOKIE_DOMAIN,
    )


def clear_refresh_cookie(resp: Response, config: Settings) -> None:
    # Overwrites the cookie with an empty, already-expired value.
    resp.delete_cookie(
        key=config.REFRESH_COOKIE_NAME,
        path=config.REFRESH_COOKIE_PATH,
        domain=config.REFRESH_COOKIE_DOMAIN,
        secure=config.is_prod,
        httponly=True,
        samesite=cookie_samesite(config),
    )


def read_refresh_cookie(req: Request, config: Settings) -> str | None:
    val = req.cookies.get(config.REFRESH_COOKIE_NAME)
    if not val:
        return None
    val = val.strip()
    return val or None
