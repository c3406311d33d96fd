from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt
from sqlalchemy.exc import SQLAlchemyError

from recipeshare.auth.identity import AuthMethod
from recipeshare.core.errors import PersistenceError
from recipeshare.core.security import as_utc, hash_refresh_token, now_utc
from recipeshare.models.refresh_token import RefreshToken
from recipeshare.services.tokens import TokenService, purge_expired_refresh_tokens

USER_ID = "0123456789abcdef0123456789abcdef"


@pytest.mark.parametrize("auth_method", [AuthMethod.EMAIL, AuthMethod.GOOGLE])
def test_access_token_round_trip(token_service, auth_method):
    token = token_service.issue_access_token(USER_ID, auth_method)
    claims = token_service.validate_access_token(token)
    assert claims is not None
    assert claims.user_id == USER_ID
    assert claims.auth_method is auth_method


def test_access_token_invalid_after_expiry(db_session, config):
    config.ACCESS_TOKEN_EXPIRE_MINUTES = -1
    service = TokenService(db_session, config)
    token = service.issue_access_token(USER_ID, AuthMethod.EMAIL)
    assert service.validate_access_token(token) is None


def test_access_token_rejects_garbage_and_tampering(token_service, config):
    assert token_service.validate_access_token(None) is None
    assert token_service.validate_access_token("") is None
    assert token_service.validate_access_token("not-a-jwt") is None

    token = token_service.issue_access_token(USER_ID, AuthMethod.EMAIL)
    forged = jwt.encode(jwt.get_unverified_claims(token), "some-other-secret", algorithm=config.JWT_ALGORITHM)
    assert token_service.validate_access_token(forged) is None


def test_access_token_rejects_unknown_auth_method(token_service, config):
    claims = jwt.get_unverified_claims(token_service.issue_access_token(USER_ID, AuthMethod.EMAIL))
    claims["authMethod"] = "facebook"
    token = jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    assert token_service.validate_access_token(token) is None


def test_access_token_ttl_ms_matches_config(token_service, config):
    assert token_service.access_token_ttl_ms == config.ACCESS_TOKEN_EXPIRE_MINUTES * 60 * 1000


def test_refresh_token_is_recorded_in_ledger(token_service, db_session, config):
    token = token_service.issue_refresh_token(USER_ID, AuthMethod.GOOGLE)

    row = db_session.query(RefreshToken).one()
    assert row.user_id == USER_ID
    # The ledger holds a keyed hash, never the signed token itself.
    assert row.token_hash == hash_refresh_token(config, token)
    assert row.token_hash != token

    exp = jwt.get_unverified_claims(token)["exp"]
    assert abs(int(as_utc(row.expires_at).timestamp()) - exp) <= 1

    claims = token_service.validate_refresh_token(token)
    assert claims is not None
    assert claims.user_id == USER_ID
    assert claims.auth_method is AuthMethod.GOOGLE


def test_refresh_tokens_minted_together_are_distinct(token_service, db_session):
    first = token_service.issue_refresh_token(USER_ID)
    second = token_service.issue_refresh_token(USER_ID)
    assert first != second
    assert db_session.query(RefreshToken).count() == 2


def test_revoked_refresh_token_is_invalid_before_expiry(token_service):
    token = token_service.issue_refresh_token(USER_ID)
    assert token_service.revoke_refresh_token(token) is True
    assert token_service.validate_refresh_token(token) is None
    # Second revoke finds nothing.
    assert token_service.revoke_refresh_token(token) is False


def test_refresh_token_requires_ledger_row(token_service, config):
    # Cryptographically valid, but never recorded.
    claims = jwt.get_unverified_claims(token_service.issue_access_token(USER_ID))
    claims["purpose"] = "refresh"
    unrecorded = jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    assert token_service.validate_refresh_token(unrecorded) is None


def test_refresh_token_invalid_when_ledger_row_expired(token_service, db_session):
    token = token_service.issue_refresh_token(USER_ID)
    row = db_session.query(RefreshToken).one()
    row.expires_at = now_utc() - timedelta(seconds=1)
    db_session.commit()
    assert token_service.validate_refresh_token(token) is None


def test_access_token_is_not_a_refresh_token(token_service, db_session, config):
    access = token_service.issue_access_token(USER_ID)
    # Even if someone managed to record it, the purpose claim does not match.
    db_session.add(
        RefreshToken(
            user_id=USER_ID,
            token_hash=hash_refresh_token(config, access),
            expires_at=now_utc() + timedelta(hours=1),
        )
    )
    db_session.commit()
    assert token_service.validate_refresh_token(access) is None


def test_refresh_token_is_not_an_access_token(token_service):
    refresh = token_service.issue_refresh_token(USER_ID)
    assert token_service.validate_access_token(refresh) is None


def test_revoke_all_and_purge_expired(token_service, db_session):
    other = "f" * 32
    token_service.issue_refresh_token(USER_ID)
    token_service.issue_refresh_token(USER_ID)
    keep = token_service.issue_refresh_token(other)

    assert token_service.revoke_all_for_user(USER_ID) == 2
    assert db_session.query(RefreshToken).count() == 1

    row = db_session.query(RefreshToken).one()
    row.expires_at = now_utc() - timedelta(minutes=5)
    db_session.commit()

    assert purge_expired_refresh_tokens(db_session) == 1
    assert db_session.query(RefreshToken).count() == 0
    assert token_service.validate_refresh_token(keep) is None


def test_refresh_token_not_returned_when_ledger_write_fails(token_service, db_session, monkeypatch):
    def broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(PersistenceError):
        token_service.issue_refresh_token(USER_ID)
