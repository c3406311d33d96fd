from __future__ import annotations

import pytest

from recipeshare.core.errors import ValidationFailed
from recipeshare.core.password_policy import ensure_strong_password, evaluate_password

from conftest import API


@pytest.mark.parametrize(
    "password, expected",
    [
        ("short", ["min_length"]),
        ("x" * 129, ["max_length"]),
        ("ann-rocks-2024", ["contains_email"]),
        ("password123", ["denylist_common"]),
    ],
)
def test_evaluate_password_violations(password, expected):
    assert evaluate_password(password, min_length=8, email="ann@example.com") == expected


def test_username_in_password():
    assert evaluate_password("my-chefbob-pw", min_length=8, username="ChefBob") == ["contains_name"]


def test_short_identifiers_are_ignored():
    # Identifiers shorter than 3 chars are not matched.
    assert evaluate_password("al-cooks-a-lot", min_length=8, email="al@example.com", username="al") == []


def test_scenario_password_is_accepted():
    assert evaluate_password("pw123456", min_length=8, email="ann@example.com", username="ann") == []


def test_ensure_strong_password_uses_configured_minimum(config):
    config.PASSWORD_MIN_LENGTH = 12
    with pytest.raises(ValidationFailed) as exc:
        ensure_strong_password(config, "pw123456")
    assert exc.value.details == {"code": "WEAK_PASSWORD", "violations": ["min_length"]}


def test_register_rejects_weak_password(client):
    res = client.post(
        f"{API}/users",
        json={"username": "weakling", "email": "weak@example.com", "password": "password"},
    )
    assert res.status_code == 400
    detail = res.json().get("details")
    assert detail["code"] == "WEAK_PASSWORD"
    assert "denylist_common" in detail["violations"]


def test_login_allows_existing_weak_password(client, make_user):
    # Policy applies when a password is set, not when it is used.
    make_user(email="old@example.com", username="old", password="password")
    res = client.post(f"{API}/auth/login", json={"email": "old@example.com", "password": "password"})
    assert res.status_code == 200
