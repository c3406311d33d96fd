# recipeshare/auth/identity.py
"""
Canonical authenticated identity model.

The authentication gate resolves every request into an ``Identity`` so route
handlers can reason about "who is calling, and how did they sign in?" without
touching raw JWT claims. ``auth_method`` decides which re-authentication path
account deletion requires later.

The Identity object is INTERNAL ONLY and should not be returned directly
to clients.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AuthMethod(str, Enum):
    EMAIL = "email"
    GOOGLE = "google"

    @classmethod
    def parse(cls, value: Any) -> AuthMethod | None:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class Identity:
    """
    Representation of an authenticated (or anonymous) caller.

    Attributes:
        user_id: Internal user id carried by the access token (``sub``).
        auth_method: How the session was started (email/password or Google).
        is_authenticated: True if a valid access token was presented.
    """

    user_id: str | None = None
    auth_method: AuthMethod | None = None
    is_authenticated: bool = False

    @classmethod
    def anonymous(cls) -> Identity:
        return cls(user_id=None, auth_method=None, is_authenticated=False)

    @classmethod
    def from_token(cls, user_id: str, auth_method: AuthMethod) -> Identity:
        return cls(user_id=user_id, auth_method=auth_method, is_authenticated=True)

    def owns(self, user_id: str | None) -> bool:
        return self.is_authenticated and user_id is not None and self.user_id == user_id
