# recipeshare/dependencies/auth.py
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from recipeshare.auth.identity import Identity
from recipeshare.core.config import Settings
from recipeshare.core.database import get_db
from recipeshare.core.errors import Forbidden, Unauthorized
from recipeshare.services.accounts import AccountService
from recipeshare.services.email import EmailSender
from recipeshare.services.google_oauth import GoogleOAuthClient
from recipeshare.services.notifications import AccountMailer
from recipeshare.services.tokens import TokenService
from recipeshare.services.users import require_user_id

bearer_scheme = HTTPBearer(auto_error=False)

TARGET_USER_PARAM = "user_id"


# -----------------------------
# Service providers
# -----------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
) -> TokenService:
    return TokenService(db, config)


def get_email_sender(config: Settings = Depends(get_settings)) -> EmailSender:
    return EmailSender(config)


def get_account_mailer(
    sender: EmailSender = Depends(get_email_sender),
    config: Settings = Depends(get_settings),
) -> AccountMailer:
    return AccountMailer(sender, config)


def get_account_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    mailer: AccountMailer = Depends(get_account_mailer),
    tokens: TokenService = Depends(get_token_service),
) -> AccountService:
    return AccountService(db, config, mailer, tokens=tokens)


def get_google_client(config: Settings = Depends(get_settings)) -> GoogleOAuthClient:
    return GoogleOAuthClient(config)


# -----------------------------
# Authentication gate
# -----------------------------
def target_user_id(request: Request) -> str | None:
    """
    Validates the `{user_id}` path segment (when the route has one) before any
    credential check, and exposes it on request.state for optional-auth routes.
    """
    if TARGET_USER_PARAM not in request.path_params:
        return None
    user_id = require_user_id(request.path_params[TARGET_USER_PARAM])
    request.state.target_user_id = user_id
    return user_id


def _authenticate(
    request: Request,
    creds: HTTPAuthorizationCredentials | None,
    tokens: TokenService,
    *,
    optional: bool,
) -> Identity:
    if creds is None or not creds.credentials:
        if optional:
            identity = Identity.anonymous()
            request.state.identity = identity
            return identity
        raise Unauthorized("Missing Authorization header.")

    claims = tokens.validate_access_token(creds.credentials)
    if claims is None:
        raise Unauthorized("Invalid or expired token.")

    identity = Identity.from_token(claims.user_id, claims.auth_method)
    request.state.identity = identity
    return identity


def require_identity(
    request: Request,
    _target: str | None = Depends(target_user_id),
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """
    Validates:
      - the target user id in the path (if any)
      - Authorization: Bearer <access token> (signature + exp)
    Returns:
      - the caller's Identity; ownership is checked by the handler
    """
    return _authenticate(request, creds, tokens, optional=False)


def optional_identity(
    request: Request,
    _target: str | None = Depends(target_user_id),
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """Same as require_identity, but a missing credential yields an anonymous Identity."""
    return _authenticate(request, creds, tokens, optional=True)


def ensure_owner(identity: Identity, user_id: str, message: str | None = None) -> None:
    if not identity.owns(user_id):
        raise Forbidden(message)
