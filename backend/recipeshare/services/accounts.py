# recipeshare/services/accounts.py
"""
Account lifecycle: register, confirm, login/refresh/logout, password reset,
rename, Google sign-in and the two-step account deletion.

Every workflow raises ``recipeshare.core.errors`` types; routes only translate
results into response bodies. Mail failures are logged by ``AccountMailer``
and never fail a workflow.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from recipeshare.auth.identity import AuthMethod, Identity
from recipeshare.core.config import Settings
from recipeshare.core.errors import (
    Conflict,
    Forbidden,
    NotFound,
    PartialFailure,
    PersistenceError,
    Unauthorized,
    ValidationFailed,
)
from recipeshare.core.password_policy import ensure_strong_password
from recipeshare.core.security import SecretHasher
from recipeshare.models.user import User
from recipeshare.services.cookbooks import create_cookbook, delete_cookbook
from recipeshare.services.google_oauth import GoogleProfile
from recipeshare.services.notifications import AccountMailer
from recipeshare.services.one_time_tokens import OneTimeTokenWorkflow, TokenKind
from recipeshare.services.reviews import delete_all_reviews_by_author
from recipeshare.services.tokens import TokenService
from recipeshare.services.users import (
    available_username,
    get_user,
    get_user_by_email,
    get_user_by_google_id,
    get_user_by_username,
    normalize_email,
)

logger = logging.getLogger(__name__)

INVALID_LOGIN = "Invalid email or password."
INVALID_REFRESH = "Invalid or expired refresh token."
INVALID_DELETE_TOKEN = "Invalid or expired delete token. Please restart the deletion process."
COOKBOOK_FAILED = "Account verified, but failed to create personal cookbook. Please contact support."


@dataclass(frozen=True)
class SessionTokens:
    user_id: str
    access_token: str | None = None
    access_token_expiration: int | None = None  # ms
    refresh_token: str | None = None


class DeletionOutcome(str, Enum):
    CONFIRMATION_SENT = "confirmation_sent"
    ALREADY_PENDING = "already_pending"
    DELETED = "deleted"


class AccountService:
    def __init__(
        self,
        db: Session,
        config: Settings,
        mailer: AccountMailer,
        *,
        tokens: TokenService | None = None,
        hasher: SecretHasher | None = None,
    ):
        self.db = db
        self.config = config
        self.mailer = mailer
        self.hasher = hasher or SecretHasher(config)
        self.tokens = tokens or TokenService(db, config)
        self.verification = OneTimeTokenWorkflow(db, config, TokenKind.VERIFICATION, self.hasher)
        self.password_reset = OneTimeTokenWorkflow(db, config, TokenKind.PASSWORD_RESET, self.hasher)
        self.account_deletion = OneTimeTokenWorkflow(db, config, TokenKind.DELETE_ACCOUNT, self.hasher)

    # -----------------------------
    # Registration / confirmation
    # -----------------------------
    def register(self, username: str, email: str, password: str) -> User:
        username = (username or "").strip()
        email = normalize_email(email)
        if not username:
            raise ValidationFailed("Username is required.")
        if not email:
            raise ValidationFailed("Email is required.")

        ensure_strong_password(self.config, password, email=email, username=username)

        if get_user_by_email(self.db, email) or get_user_by_username(self.db, username):
            raise Conflict()

        user = User(
            email=email,
            username=username,
            hashed_password=self.hasher.hash(password),
            verified=False,
        )
        self._commit_new_user(user)
        logger.info("Registered user_id=%s", user.id)

        token = self.verification.issue(user)
        if token:
            self.mailer.send_confirmation(user.email, user.id, token)
        return user

    def resend_verification(self, email: str) -> None:
        """Enumeration-safe: callers always get the same response."""
        user = get_user_by_email(self.db, email)
        if user is None or user.verified:
            logger.info("Verification resend ignored (no pending account)")
            return
        token = self.verification.issue(user)
        if token:
            self.mailer.send_confirmation(user.email, user.id, token)

    def confirm_account(self, user_id: str, token: str) -> User:
        user = self.verification.validate(user_id, token)
        if user is None or user.verified:
            raise Unauthorized("Invalid or expired confirmation token.")
        if not self.verification.consume(user, verified=True):
            raise Unauthorized("Invalid or expired confirmation token.")
        logger.info("Verified user_id=%s", user.id)

        self._ensure_cookbook(user)
        return user

    # -----------------------------
    # Sessions
    # -----------------------------
    def login(self, email: str, password: str) -> SessionTokens:
        user = get_user_by_email(self.db, email)
        # One generic failure for unknown email, wrong password, unverified
        # account and Google-only accounts without a password.
        if user is None or not user.verified or not user.has_password:
            raise Unauthorized(INVALID_LOGIN)
        if not self.hasher.verify(password, user.hashed_password):
            raise Unauthorized(INVALID_LOGIN)

        access_token = self.tokens.issue_access_token(user.id, AuthMethod.EMAIL)
        refresh_token = self.tokens.issue_refresh_token(user.id, AuthMethod.EMAIL)
        logger.info("Login succeeded for user_id=%s", user.id)
        return SessionTokens(
            user_id=user.id,
            access_token=access_token,
            access_token_expiration=self.tokens.access_token_ttl_ms,
            refresh_token=refresh_token,
        )

    def refresh(self, refresh_token: str | None) -> SessionTokens:
        """Mints a new access token; the refresh token itself is not rotated."""
        if not refresh_token:
            raise Unauthorized("Refresh token missing.")
        claims = self.tokens.validate_refresh_token(refresh_token)
        if claims is None:
            raise Unauthorized(INVALID_REFRESH)

        return SessionTokens(
            user_id=claims.user_id,
            access_token=self.tokens.issue_access_token(claims.user_id, claims.auth_method),
            access_token_expiration=self.tokens.access_token_ttl_ms,
        )

    def logout(self, refresh_token: str | None) -> None:
        if not refresh_token:
            raise Unauthorized("Refresh token missing.")
        claims = self.tokens.validate_refresh_token(refresh_token)
        if claims is None:
            raise Unauthorized(INVALID_REFRESH)
        self.tokens.revoke_refresh_token(refresh_token)
        logger.info("Logout for user_id=%s", claims.user_id)

    def check_access(self, identity: Identity) -> User:
        user = get_user(self.db, identity.user_id) if identity.is_authenticated else None
        if user is None:
            raise Unauthorized("User not found.")
        return user

    # -----------------------------
    # Password reset
    # -----------------------------
    def request_password_reset(self, email: str) -> None:
        """Enumeration-safe: the caller's response never depends on a match."""
        user = (
            self.db.query(User)
            .filter(
                User.email == normalize_email(email),
                self.password_reset.no_active_token_clause(),
            )
            .first()
        )
        if user is None:
            logger.info("Password reset requested for unknown email or pending reset")
            return
        token = self.password_reset.issue(user)
        if token:
            self.mailer.send_password_reset(user.email, user.id, token)

    def reset_password(self, user_id: str, token: str, new_password: str) -> User:
        user = self.password_reset.validate(user_id, token)
        if user is None:
            raise Unauthorized("Invalid or expired reset token.")
        if user.has_password and self.hasher.verify(new_password, user.hashed_password):
            raise ValidationFailed("New password must be different from the old password.")
        ensure_strong_password(self.config, new_password, email=user.email, username=user.username)

        if not self.password_reset.consume(user, hashed_password=self.hasher.hash(new_password)):
            raise Unauthorized("Invalid or expired reset token.")

        revoked = self.tokens.revoke_all_for_user(user.id)
        logger.info("Password reset for user_id=%s (revoked %s sessions)", user.id, revoked)
        return user

    # -----------------------------
    # Profile
    # -----------------------------
    def get_profile(self, user_id: str) -> User:
        user = get_user(self.db, user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    def rename(self, user_id: str, *, username: str | None = None, email: str | None = None) -> User:
        user = self.get_profile(user_id)

        new_username = username.strip() if username is not None else None
        new_email = normalize_email(email) if email is not None else None
        if not new_username and not new_email:
            raise ValidationFailed("Provide a username or an email to update.")

        changes: dict[str, str] = {}
        if new_username and new_username != user.username:
            other = get_user_by_username(self.db, new_username)
            if other is not None and other.id != user.id:
                raise Conflict("Username already exists.")
            changes["username"] = new_username
        if new_email and new_email != user.email:
            other = get_user_by_email(self.db, new_email)
            if other is not None and other.id != user.id:
                raise Conflict("Email already exists.")
            changes["email"] = new_email

        if not changes:
            raise ValidationFailed("Nothing to update.")

        for field, value in changes.items():
            setattr(user, field, value)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise Conflict() from exc
        self.db.refresh(user)
        logger.info("Updated %s for user_id=%s", ",".join(sorted(changes)), user.id)
        return user

    # -----------------------------
    # Google sign-in
    # -----------------------------
    def google_login(self, profile: GoogleProfile) -> SessionTokens:
        """
        Links or creates the account for a Google assertion and issues a
        refresh token only; the client obtains its access token via refresh.
        """
        user = get_user_by_google_id(self.db, profile.external_id) or get_user_by_email(self.db, profile.email)

        if user is None:
            username = available_username(self.db, profile.display_name or f"GoogleUser{profile.external_id}")
            user = User(
                email=profile.email,
                username=username,
                hashed_password=None,
                verified=True,
                google_id=profile.external_id,
            )
            self._commit_new_user(user)
            logger.info("Registered Google user_id=%s", user.id)
        else:
            if not user.google_id:
                user.google_id = profile.external_id
                logger.info("Linked Google identity to user_id=%s", user.id)
            if not user.verified:
                # Google already proved ownership of the email.
                user.verified = True
                user.verification_token_hash = None
                user.verification_expires_at = None
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise Conflict("Google account is already linked to another user.") from exc

        self._ensure_cookbook(user)

        return SessionTokens(
            user_id=user.id,
            refresh_token=self.tokens.issue_refresh_token(user.id, AuthMethod.GOOGLE),
        )

    # -----------------------------
    # Account deletion
    # -----------------------------
    def delete_account(
        self,
        user_id: str,
        identity: Identity,
        *,
        password: str | None = None,
        delete_token: str | None = None,
    ) -> DeletionOutcome:
        """
        Step 1 (password, or a Google session): re-authenticate and email a
        deletion token. Step 2 (delete token): cascade-delete the account.
        Supplying both step-1 and step-2 credentials is rejected.
        """
        if identity.is_authenticated and not identity.owns(user_id):
            raise Forbidden("You can only delete your own account.")

        user = get_user(self.db, user_id)
        if user is None:
            raise NotFound("User not found or already deleted.")

        google_session = identity.is_authenticated and identity.auth_method is AuthMethod.GOOGLE
        if password or google_session:
            if delete_token:
                raise ValidationFailed("Cannot provide both password and delete token.")
            return self._request_deletion(user, password=password, google_session=google_session)
        if delete_token:
            return self._confirm_deletion(user, delete_token)
        raise ValidationFailed("Password or a valid delete token is required.")

    def _request_deletion(self, user: User, *, password: str | None, google_session: bool) -> DeletionOutcome:
        if not google_session and not self.hasher.verify(password, user.hashed_password):
            raise Unauthorized("Invalid password.")

        token = self.account_deletion.issue(user)
        if token is None:
            return DeletionOutcome.ALREADY_PENDING
        self.mailer.send_account_deletion(user.email, user.id, token)
        logger.info("Deletion confirmation sent for user_id=%s", user.id)
        return DeletionOutcome.CONFIRMATION_SENT

    def _confirm_deletion(self, user: User, delete_token: str) -> DeletionOutcome:
        if self.account_deletion.validate(user.id, delete_token) is None:
            # Force a restart of the deletion process.
            self.account_deletion.clear(user)
            raise Unauthorized(INVALID_DELETE_TOKEN)

        user_id, email = user.id, user.email
        token_hash, _ = self.account_deletion.stored(user)
        try:
            self.tokens.revoke_all_for_user(user_id)
            delete_all_reviews_by_author(self.db, user_id)
            delete_cookbook(self.db, user_id)
            deleted = (
                self.db.query(User)
                .filter(User.id == user_id, User.delete_account_token_hash == token_hash)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            # Each step is idempotent, so the same delete token can re-run the cascade.
            self.db.rollback()
            logger.exception("Account deletion failed part-way for user_id=%s", user_id)
            raise PersistenceError(
                "An internal server error occurred during user removal. Please try again later."
            ) from exc

        if not deleted:
            logger.warning("User user_id=%s was found but not deleted", user_id)
            raise NotFound("User not found or already deleted.")

        self.db.expunge(user)
        self.mailer.send_account_deleted(email)
        logger.info("Deleted user_id=%s and associated data", user_id)
        return DeletionOutcome.DELETED

    # -----------------------------
    # Internals
    # -----------------------------
    def _commit_new_user(self, user: User) -> None:
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race on the unique email/username indexes.
            self.db.rollback()
            raise Conflict() from exc
        self.db.refresh(user)

    def _ensure_cookbook(self, user: User) -> None:
        try:
            create_cookbook(self.db, user.id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Cookbook creation failed for verified user_id=%s", user.id)
            raise PartialFailure(COOKBOOK_FAILED, details={"userId": user.id}) from exc
