"""
Account emails carrying one-time links.

Delivery failures are logged and reported as False; they never undo the token
that was stored before sending.
"""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from recipeshare.core.config import Settings
from recipeshare.services.email import EmailDeliveryError, EmailNotConfiguredError, EmailSender

logger = logging.getLogger(__name__)


class AccountMailer:
    def __init__(self, sender: EmailSender, config: Settings):
        self.sender = sender
        self.config = config

    def _link(self, page: str, **params: str) -> str:
        return f"{self.config.FRONTEND_BASE_URL}/{page}?{urlencode(params)}"

    def _deliver(self, kind: str, to_email: str, subject: str, body: str) -> bool:
        try:
            msg_id = self.sender.send(to_email=to_email, subject=subject, body=body)
        except (EmailNotConfiguredError, EmailDeliveryError):
            logger.exception("Failed to send %s email to=%s", kind, to_email)
            return False
        # Log without leaking the token/link.
        logger.info("Queued %s email to=%s msg_id=%s", kind, to_email, msg_id)
        return True

    def send_confirmation(self, to_email: str, user_id: str, token: str) -> bool:
        link = self._link("verify-account.html", **{"confirmation-token": token, "user-id": user_id})
        body = "\n".join(
            [
                "Hi,",
                "",
                "please confirm your recipeshare registration by visiting the link below:",
                link,
                "",
                f"The link expires in {self.config.VERIFICATION_TOKEN_EXPIRE_MINUTES} minutes.",
                "If you did not create this account, you can ignore this email.",
            ]
        )
        return self._deliver("verification", to_email, "Confirm your account", body)

    def send_password_reset(self, to_email: str, user_id: str, token: str) -> bool:
        link = self._link("password-reset.html", **{"reset-token": token, "user-id": user_id})
        body = "\n".join(
            [
                "Hi,",
                "",
                "to reset your recipeshare password visit the link below:",
                link,
                "",
                f"The link expires in {self.config.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES} minutes.",
                "If you did not ask for a reset, you can ignore this email.",
            ]
        )
        return self._deliver("password_reset", to_email, "Reset your password", body)

    def send_account_deletion(self, to_email: str, user_id: str, token: str) -> bool:
        link = self._link("account-deletion.html", **{"delete-token": token, "user-id": user_id})
        body = "\n".join(
            [
                "Hi,",
                "",
                "to confirm the deletion of your recipeshare account visit the link below:",
                link,
                "",
                f"The link expires in {self.config.DELETE_ACCOUNT_TOKEN_EXPIRE_MINUTES} minutes.",
                "If you did not ask to delete your account, change your password.",
            ]
        )
        return self._deliver("account_deletion", to_email, "Confirm account deletion", body)

    def send_account_deleted(self, to_email: str) -> bool:
        body = "\n".join(
            [
                "Hi,",
                "",
                "this email confirms that your recipeshare account and all associated data were deleted.",
            ]
        )
        return self._deliver("account_deleted", to_email, "Account deleted", body)
