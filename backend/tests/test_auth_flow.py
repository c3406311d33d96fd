from __future__ import annotations

from datetime import timedelta

from recipeshare.auth.identity import AuthMethod
from recipeshare.core.security import now_utc
from recipeshare.models.cookbook import Cookbook
from recipeshare.models.refresh_token import RefreshToken
from recipeshare.models.user import User

from conftest import API, PASSWORD


def _register(client, username="ann", email="ann@example.com", password=PASSWORD):
    return client.post(f"{API}/users", json={"username": username, "email": email, "password": password})


def test_register_confirm_login_scenario(client, db_session, outbox):
    res = _register(client)
    assert res.status_code == 202
    body = res.json()
    assert body["message"] == "Verification email sent. Please check your inbox and spam folder."
    user_id = body["userId"]

    user = db_session.get(User, user_id)
    assert user.verified is False
    assert user.hashed_password != PASSWORD
    assert outbox.sent[-1].to_email == "ann@example.com"

    # Not usable before confirmation, and the failure is the generic one.
    res2 = client.post(f"{API}/auth/login", json={"email": "ann@example.com", "password": PASSWORD})
    assert res2.status_code == 401
    assert res2.json()["message"] == "Invalid email or password."

    token = outbox.last_token("confirmation-token")
    res3 = client.post(f"{API}/users/{user_id}/confirmation", json={"token": token})
    assert res3.status_code == 200

    db_session.expire_all()
    assert db_session.get(User, user_id).verified is True
    assert db_session.query(Cookbook).filter(Cookbook.user_id == user_id).count() == 1

    res4 = client.post(f"{API}/auth/login", json={"email": "ann@example.com", "password": PASSWORD})
    assert res4.status_code == 200
    body4 = res4.json()
    assert body4["message"] == "Successful login"
    assert body4["userId"] == user_id
    assert isinstance(body4["accessToken"], str) and body4["accessToken"]
    assert body4["accessTokenExpiration"] == 3600000

    set_cookie = res4.headers.get("set-cookie", "")
    assert "refreshToken=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()
    assert "Path=/api/v1" in set_cookie
    assert "Max-Age=86400" in set_cookie


def test_confirmation_link_is_single_use(client, outbox):
    user_id = _register(client).json()["userId"]
    token = outbox.last_token("confirmation-token")

    assert client.post(f"{API}/users/{user_id}/confirmation", json={"token": token}).status_code == 200
    res = client.post(f"{API}/users/{user_id}/confirmation", json={"token": token})
    assert res.status_code == 401
    assert res.json()["error"] == "UNAUTHORIZED"


def test_confirmation_rejects_wrong_token_and_wrong_user(client, outbox, users):
    user_id = _register(client, username="carl", email="carl@example.com").json()["userId"]
    token = outbox.last_token("confirmation-token")
    other, _ = users

    assert client.post(f"{API}/users/{user_id}/confirmation", json={"token": "0" * 64}).status_code == 401
    assert client.post(f"{API}/users/{other.id}/confirmation", json={"token": token}).status_code == 401
    # The right pair still works afterwards.
    assert client.post(f"{API}/users/{user_id}/confirmation", json={"token": token}).status_code == 200


def test_register_conflicts(client, users):
    res = _register(client, username="someone", email="ANN@example.com")
    assert res.status_code == 409
    assert res.json()["error"] == "CONFLICT"

    res2 = _register(client, username="bob", email="new@example.com")
    assert res2.status_code == 409


def test_register_normalizes_email(client, db_session):
    res = _register(client, username="dora", email="Dora@Example.COM")
    assert res.status_code == 202
    assert db_session.get(User, res.json()["userId"]).email == "dora@example.com"


def test_register_validation(client):
    assert _register(client, email="not-an-email").status_code == 422
    assert client.post(f"{API}/users", json={"email": "x@example.com", "password": PASSWORD}).status_code == 422

    res = _register(client, username="eve", email="eve@example.com", password="short")
    assert res.status_code == 400
    assert res.json()["details"]["code"] == "WEAK_PASSWORD"


def test_register_survives_mail_failure(client, outbox, db_session):
    outbox.fail = True
    res = _register(client)
    assert res.status_code == 202

    # The token is stored even though nothing was delivered.
    user = db_session.get(User, res.json()["userId"])
    assert user.verification_token_hash is not None


def test_login_failures_are_generic(client, make_user):
    make_user(email="ann@example.com", username="ann")
    make_user(email="unverified@example.com", username="unverified", verified=False)
    make_user(email="google@example.com", username="google", password=None, google_id="g-1")

    attempts = [
        {"email": "ann@example.com", "password": "wrong-password"},
        {"email": "nobody@example.com", "password": PASSWORD},
        {"email": "unverified@example.com", "password": PASSWORD},
        {"email": "google@example.com", "password": PASSWORD},
    ]
    bodies = []
    for payload in attempts:
        res = client.post(f"{API}/auth/login", json=payload)
        assert res.status_code == 401
        assert res.headers.get("www-authenticate") == "Bearer"
        bodies.append(res.json())
    assert all(b == bodies[0] for b in bodies)


def test_login_is_case_insensitive_on_email(client, users, login):
    res, refresh_token = login(email="ANN@example.com")
    assert res.status_code == 200
    assert refresh_token


def test_refresh_issues_new_access_token_without_rotation(client, users, login, token_service, db_session):
    user_a, _ = users
    res, refresh_token = login()
    assert res.status_code == 200

    res2 = client.post(f"{API}/auth/refresh")
    assert res2.status_code == 200
    body = res2.json()
    assert body["userId"] == user_a.id
    assert body["accessTokenExpiration"] == 3600000
    claims = token_service.validate_access_token(body["accessToken"])
    assert claims.user_id == user_a.id
    assert claims.auth_method is AuthMethod.EMAIL

    # Same refresh token, still one ledger row.
    assert "refreshToken=" not in res2.headers.get("set-cookie", "")
    assert db_session.query(RefreshToken).count() == 1
    assert token_service.validate_refresh_token(refresh_token) is not None


def test_refresh_preserves_google_auth_method(client_with_cookie, make_user, token_service):
    user = make_user(email="g@example.com", username="g", password=None, google_id="g-7")
    refresh_token = token_service.issue_refresh_token(user.id, AuthMethod.GOOGLE)

    with client_with_cookie(refresh_token) as c:
        res = c.post(f"{API}/auth/refresh")
    assert res.status_code == 200
    claims = token_service.validate_access_token(res.json()["accessToken"])
    assert claims.auth_method is AuthMethod.GOOGLE


def test_logout_revokes_refresh_token(client, users, login, token_service):
    _, refresh_token = login()

    res = client.post(f"{API}/auth/logout")
    assert res.status_code == 200
    assert res.json()["message"] == "Successful logout"
    set_cookie = res.headers.get("set-cookie", "")
    assert "refreshToken=" in set_cookie
    assert "Max-Age=0" in set_cookie or "expires=" in set_cookie.lower()

    assert token_service.validate_refresh_token(refresh_token) is None

    # Cookie is gone from the jar: refresh is unauthorized.
    res2 = client.post(f"{API}/auth/refresh")
    assert res2.status_code == 401


def test_revoked_cookie_cannot_refresh_or_logout(client, users, login, client_with_cookie):
    _, refresh_token = login()
    assert client.post(f"{API}/auth/logout").status_code == 200

    # A copy of the old cookie replayed from elsewhere.
    with client_with_cookie(refresh_token) as c:
        assert c.post(f"{API}/auth/refresh").status_code == 401
        assert c.post(f"{API}/auth/logout").status_code == 401


def test_refresh_and_logout_without_cookie_are_401(client):
    client.cookies.clear()
    assert client.post(f"{API}/auth/refresh").status_code == 401
    assert client.post(f"{API}/auth/logout").status_code == 401


def test_multiple_sessions_are_independent(client, users, login, token_service, db_session):
    _, first = login()
    _, second = login()
    assert first != second
    assert db_session.query(RefreshToken).count() == 2

    token_service.revoke_refresh_token(first)
    assert token_service.validate_refresh_token(second) is not None


def test_resend_verification_is_enumeration_safe(client, outbox, db_session, users):
    user_id = _register(client, username="fay", email="fay@example.com").json()["userId"]
    sent_after_register = len(outbox.sent)

    unknown = client.post(f"{API}/auth/verification-resend", json={"email": "nobody@example.com"})
    verified = client.post(f"{API}/auth/verification-resend", json={"email": "ann@example.com"})
    pending = client.post(f"{API}/auth/verification-resend", json={"email": "fay@example.com"})

    assert unknown.status_code == verified.status_code == pending.status_code == 200
    assert unknown.content == verified.content == pending.content
    # The first token is still live, so nothing new was issued.
    assert len(outbox.sent) == sent_after_register

    user = db_session.get(User, user_id)
    user.verification_expires_at = now_utc() - timedelta(minutes=1)
    db_session.commit()

    client.post(f"{API}/auth/verification-resend", json={"email": "fay@example.com"})
    assert len(outbox.sent) == sent_after_register + 1
    token = outbox.last_token("confirmation-token")
    assert client.post(f"{API}/users/{user_id}/confirmation", json={"token": token}).status_code == 200


def test_access_token_endpoint(client, users, auth_headers, db_session):
    user_a, _ = users
    user_id = user_a.id
    headers = auth_headers(user_a)
    res = client.get(f"{API}/auth/access-token", headers=headers)
    assert res.status_code == 200
    assert res.json() == {"message": "Access token is valid", "userId": user_id, "authMethod": "email"}

    db_session.delete(user_a)
    db_session.commit()
    res2 = client.get(f"{API}/auth/access-token", headers=headers)
    assert res2.status_code == 401


def test_login_checks_password_beyond_72_bytes(client, make_user):
    shared_prefix = "Zq8#" * 18  # 72 bytes
    make_user(email="long@example.com", username="long", password=shared_prefix + "realtail99")

    wrong = client.post(
        f"{API}/auth/login",
        json={"email": "long@example.com", "password": shared_prefix + "WRONG-SUFFIX"},
    )
    assert wrong.status_code == 401

    right = client.post(
        f"{API}/auth/login",
        json={"email": "long@example.com", "password": shared_prefix + "realtail99"},
    )
    assert right.status_code == 200
