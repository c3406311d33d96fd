from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText
from email.utils import formatdate
from html import escape as html_escape

import boto3
import resend
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError, NoCredentialsError

from recipeshare.core.config import Settings

logger = logging.getLogger(__name__)


class EmailNotConfiguredError(RuntimeError):
    pass


class EmailDeliveryError(RuntimeError):
    """
    Raised when a provider is configured but delivery fails.
    """


def _normalize_provider(raw: str | None) -> str:
    """
    Supported providers:
    - resend (default when unset)
    - ses
    - smtp
    Legacy alias:
    - gmail -> smtp
    """
    provider = (raw or "").strip().lower()
    if not provider:
        return "resend"
    if provider == "gmail":
        return "smtp"
    if provider in {"resend", "ses", "smtp"}:
        return provider
    raise EmailNotConfiguredError(
        f"Unsupported EMAIL_PROVIDER={provider!r}. Supported: resend (default), ses, smtp. Legacy alias: gmail -> smtp."
    )


class EmailSender:
    """
    Outbound mail: send(to_email, subject, body).

    With EMAIL_ENABLED off, messages are only logged (subject + recipient, never the body,
    since bodies carry one-time links).
    """

    def __init__(self, config: Settings):
        self.config = config

    def send(self, to_email: str, subject: str, body: str) -> str | None:
        if not self.config.EMAIL_ENABLED:
            logger.info("Email disabled; dropping message to=%s subject=%r", to_email, subject)
            return None

        provider = _normalize_provider(self.config.EMAIL_PROVIDER)
        if provider == "smtp":
            self._send_smtp(to_email=to_email, subject=subject, body=body)
            return None
        if provider == "ses":
            return self._send_ses(to_email=to_email, subject=subject, body=body)
        return self._send_resend(to_email=to_email, subject=subject, body=body)

    # -----------------------------
    # Providers
    # -----------------------------
    def _require_from_email(self) -> str:
        if not self.config.FROM_EMAIL:
            raise EmailNotConfiguredError("FROM_EMAIL is not set")
        return self.config.FROM_EMAIL

    def _send_ses(self, to_email: str, subject: str, body: str) -> str | None:
        region = (self.config.AWS_REGION or "").strip()
        if not region:
            raise EmailNotConfiguredError("AWS_REGION is not set (required for SES)")
        from_email = self._require_from_email()
        client = boto3.client("ses", region_name=region)

        try:
            res = client.send_email(
                Source=from_email,
                Destination={"ToAddresses": [to_email]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": body, "Charset": "UTF-8"}},
                },
            )
        except NoCredentialsError as e:
            raise EmailDeliveryError("SES email failed: AWS credentials not available") from e
        except EndpointConnectionError as e:
            raise EmailDeliveryError("SES email failed: could not connect to SES endpoint") from e
        except ClientError as e:
            code = (e.response or {}).get("Error", {}).get("Code", "ClientError")
            raise EmailDeliveryError(f"SES email failed: {code}") from e
        except BotoCoreError as e:
            raise EmailDeliveryError("SES email failed") from e

        msg_id = res.get("MessageId")
        logger.info("SES email sent: to=%s msg_id=%s", to_email, msg_id)
        return msg_id

    def _send_resend(self, to_email: str, subject: str, body: str) -> str | None:
        api_key = (self.config.RESEND_API_KEY or "").strip()
        if not api_key:
            raise EmailNotConfiguredError("RESEND_API_KEY is not set")
        from_email = self._require_from_email()

        payload = {
            "from": from_email,
            "to": [to_email],
            "subject": subject,
            "text": body,
            "html": f"<pre>{html_escape(body)}</pre>",
        }

        try:
            resend.api_key = api_key
            res = resend.Emails.send(payload)  # type: ignore[attr-defined]
        except Exception as e:  # noqa: BLE001 - resend raises SDK-specific errors
            raise EmailDeliveryError(f"Resend send failed: {e}") from e

        msg_id: str | None = None
        if isinstance(res, dict):
            if res.get("error"):
                raise EmailDeliveryError(f"Resend API error: {res.get('error')}")
            v = res.get("id")
            if isinstance(v, str) and v.strip():
                msg_id = v.strip()

        logger.info("Resend email sent: to=%s msg_id=%s", to_email, msg_id)
        return msg_id

    def _send_smtp(self, to_email: str, subject: str, body: str) -> None:
        cfg = self.config
        if not cfg.SMTP_HOST:
            raise EmailNotConfiguredError("SMTP_HOST is not set")
        if not cfg.SMTP_FROM_EMAIL:
            raise EmailNotConfiguredError("SMTP_FROM_EMAIL is not set")

        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = cfg.SMTP_FROM_EMAIL
        msg["To"] = to_email
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)

        try:
            if cfg.SMTP_USE_SSL:
                server: smtplib.SMTP = smtplib.SMTP_SSL(cfg.SMTP_HOST, cfg.SMTP_PORT, timeout=10)
            else:
                server = smtplib.SMTP(cfg.SMTP_HOST, cfg.SMTP_PORT, timeout=10)
        except OSError as e:
            raise EmailDeliveryError("SMTP connection failed") from e

        try:
            server.ehlo()
            if cfg.SMTP_USE_TLS and not cfg.SMTP_USE_SSL:
                server.starttls()
                server.ehlo()
            if cfg.SMTP_USERNAME:
                server.login(cfg.SMTP_USERNAME, cfg.SMTP_PASSWORD)
            server.sendmail(cfg.SMTP_FROM_EMAIL, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError("SMTP send failed") from e
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError):
                pass

        logger.info("SMTP email sent: to=%s", to_email)
