from __future__ import annotations

from typing import List

from recipeshare.core.config import Settings
from recipeshare.core.errors import ValidationFailed

PASSWORD_MAX_LENGTH = 128

COMMON_WEAK_PASSWORDS = frozenset(
    {
        "password",
        "password1",
        "password123",
        "passw0rd",
        "12345678",
        "123456789",
        "qwerty123",
        "iloveyou",
        "letmein1",
        "welcome1",
        "trustno1",
        "sunshine",
        "recipeshare",
        "cookbook",
        "cookbook1",
        "recipes123",
        "chocolate",
        "pancakes",
    }
)


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def evaluate_password(
    password: str,
    *,
    min_length: int,
    email: str | None = None,
    username: str | None = None,
) -> List[str]:
    """
    Returns a list of violation codes if the password does not meet policy.
    """
    pw = password or ""
    violations: list[str] = []

    if len(pw) < max(min_length, 1):
        violations.append("min_length")
    if len(pw) > PASSWORD_MAX_LENGTH:
        violations.append("max_length")

    normalized_pw = pw.lower()

    email_norm = _normalize(email)
    local_part = email_norm.split("@")[0] if email_norm else ""
    if local_part and len(local_part) >= 3 and local_part in normalized_pw:
        violations.append("contains_email")

    username_norm = _normalize(username)
    if username_norm and len(username_norm) >= 3 and username_norm in normalized_pw:
        violations.append("contains_name")

    if normalized_pw in COMMON_WEAK_PASSWORDS:
        violations.append("denylist_common")

    return violations


def ensure_strong_password(
    config: Settings,
    password: str,
    *,
    email: str | None = None,
    username: str | None = None,
) -> None:
    violations = evaluate_password(
        password,
        min_length=int(config.PASSWORD_MIN_LENGTH or 0),
        email=email,
        username=username,
    )
    if violations:
        raise ValidationFailed(
            "Password does not meet requirements.",
            details={"code": "WEAK_PASSWORD", "violations": violations},
        )
