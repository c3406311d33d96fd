from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from recipeshare.core.config import Settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_TIMEOUT = 10.0


class GoogleOAuthError(Exception):
    """Raised when the code exchange or profile fetch fails."""


@dataclass(frozen=True)
class GoogleProfile:
    email: str
    display_name: str | None
    external_id: str


def new_oauth_state() -> str:
    return secrets.token_urlsafe(24)


class GoogleOAuthClient:
    def __init__(self, config: Settings):
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.google_enabled

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.config.GOOGLE_CLIENT_ID,
            "redirect_uri": self.config.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def fetch_profile(self, code: str) -> GoogleProfile:
        """
        Exchanges the authorization code and reads the Google profile.

        Raises:
            GoogleOAuthError: on transport failures, provider errors, or a
            profile without a verified email.
        """
        if not code:
            raise GoogleOAuthError("Missing authorization code.")

        try:
            token_res = httpx.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.config.GOOGLE_CLIENT_ID,
                    "client_secret": self.config.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": self.config.GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
                timeout=GOOGLE_TIMEOUT,
            )
            token_data = token_res.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GoogleOAuthError("Unable to exchange authorization code.") from exc

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if token_res.status_code != 200 or not access_token:
            error = token_data.get("error_description") if isinstance(token_data, dict) else None
            raise GoogleOAuthError(f"Google token exchange failed: {error or token_res.status_code}")

        try:
            info_res = httpx.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=GOOGLE_TIMEOUT,
            )
            info = info_res.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GoogleOAuthError("Unable to fetch Google profile.") from exc

        if info_res.status_code != 200 or not isinstance(info, dict):
            raise GoogleOAuthError(f"Google profile request failed: {info_res.status_code}")

        email = str(info.get("email") or "").strip().lower()
        external_id = str(info.get("id") or "").strip()
        if not email or not external_id:
            raise GoogleOAuthError("Google profile is missing email or id.")
        if info.get("verified_email") is False:
            raise GoogleOAuthError("Google email is not verified.")

        logger.info("Fetched Google profile for google_id=%s", external_id)
        return GoogleProfile(
            email=email,
            display_name=(info.get("name") or "").strip() or None,
            external_id=external_id,
        )
