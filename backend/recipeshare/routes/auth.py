# recipeshare/routes/auth.py
# No `from __future__ import annotations` here: slowapi wraps these handlers and
# FastAPI resolves string annotations against the wrapper's module globals.
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from recipeshare.auth.identity import Identity
from recipeshare.core.config import Settings
from recipeshare.core.errors import AppError
from recipeshare.core.rate_limit import EMAIL_REQUEST_LIMIT, LOGIN_LIMIT, limiter
from recipeshare.dependencies.auth import (
    get_account_service,
    get_google_client,
    get_settings,
    require_identity,
)
from recipeshare.schemas.auth import AccessCheckOut, EmailIn, LoginIn, MessageOut, SessionOut
from recipeshare.services.accounts import AccountService
from recipeshare.services.google_oauth import GoogleOAuthClient, GoogleOAuthError, new_oauth_state
from recipeshare.services.tokens import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

PASSWORD_LOST_MESSAGE = "If this email is in our system, you will receive a password reset link shortly."
RESEND_MESSAGE = "If this email belongs to an account pending verification, a new confirmation link was sent."

OAUTH_STATE_COOKIE = "oauthState"
OAUTH_STATE_MAX_AGE = 600


def _frontend_redirect(config: Settings, page: str, **params: str) -> RedirectResponse:
    url = f"{config.FRONTEND_BASE_URL}/{page}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=302)


# -----------------------------
# Sessions
# -----------------------------
@router.post("/login", response_model=SessionOut)
@limiter.limit(LOGIN_LIMIT)
def login(
    request: Request,
    payload: LoginIn,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    config: Settings = Depends(get_settings),
):
    session = accounts.login(payload.email, payload.password)
    set_refresh_cookie(response, config, session.refresh_token)
    return {
        "message": "Successful login",
        "userId": session.user_id,
        "accessToken": session.access_token,
        "accessTokenExpiration": session.access_token_expiration,
    }


@router.post("/refresh", response_model=SessionOut)
def refresh(
    request: Request,
    accounts: AccountService = Depends(get_account_service),
    config: Settings = Depends(get_settings),
):
    session = accounts.refresh(read_refresh_cookie(request, config))
    return {
        "message": "Access token refreshed",
        "userId": session.user_id,
        "accessToken": session.access_token,
        "accessTokenExpiration": session.access_token_expiration,
    }


@router.post("/logout", response_model=MessageOut)
def logout(
    request: Request,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    config: Settings = Depends(get_settings),
):
    accounts.logout(read_refresh_cookie(request, config))
    clear_refresh_cookie(response, config)
    return {"message": "Successful logout"}


@router.get("/access-token", response_model=AccessCheckOut)
def check_access_token(
    identity: Identity = Depends(require_identity),
    accounts: AccountService = Depends(get_account_service),
):
    user = accounts.check_access(identity)
    return {
        "message": "Access token is valid",
        "userId": user.id,
        "authMethod": identity.auth_method.value,
    }


# -----------------------------
# Email-keyed requests (enumeration-safe)
# -----------------------------
@router.post("/password-lost", response_model=MessageOut)
@limiter.limit(EMAIL_REQUEST_LIMIT)
def password_lost(
    request: Request,
    payload: EmailIn,
    accounts: AccountService = Depends(get_account_service),
):
    accounts.request_password_reset(payload.email)
    return {"message": PASSWORD_LOST_MESSAGE}


@router.post("/verification-resend", response_model=MessageOut)
@limiter.limit(EMAIL_REQUEST_LIMIT)
def resend_verification(
    request: Request,
    payload: EmailIn,
    accounts: AccountService = Depends(get_account_service),
):
    accounts.resend_verification(payload.email)
    return {"message": RESEND_MESSAGE}


# -----------------------------
# Google OAuth
# -----------------------------
@router.get("/google")
def google_login(
    google: GoogleOAuthClient = Depends(get_google_client),
    config: Settings = Depends(get_settings),
):
    if not google.enabled:
        return _frontend_redirect(config, "login.html", error="google_not_configured")

    state = new_oauth_state()
    resp = RedirectResponse(url=google.authorization_url(state), status_code=302)
    # Lax: the callback is a cross-site top-level redirect from Google.
    resp.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=state,
        httponly=True,
        secure=config.is_prod,
        samesite="lax",
        max_age=OAUTH_STATE_MAX_AGE,
        path=f"{config.API_PREFIX}/auth/google",
    )
    return resp


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    google: GoogleOAuthClient = Depends(get_google_client),
    accounts: AccountService = Depends(get_account_service),
    config: Settings = Depends(get_settings),
):
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not google.enabled or not code or not state or not expected_state or state != expected_state:
        logger.warning("Rejected Google callback (state mismatch or missing code)")
        return _frontend_redirect(config, "login.html", error="google_auth_failed")

    try:
        profile = google.fetch_profile(code)
        session = accounts.google_login(profile)
    except GoogleOAuthError:
        logger.exception("Google OAuth exchange failed")
        return _frontend_redirect(config, "login.html", error="google_auth_failed")
    except AppError as exc:
        logger.warning("Google sign-in failed: %s", exc.message)
        return _frontend_redirect(config, "login.html", error="google_auth_failed")

    resp = _frontend_redirect(config, "google-callback.html", **{"user-id": session.user_id})
    set_refresh_cookie(resp, config, session.refresh_token)
    resp.delete_cookie(OAUTH_STATE_COOKIE, path=f"{config.API_PREFIX}/auth/google")
    return resp
