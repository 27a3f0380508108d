"""Transactional email over SMTP, with Mailgun as a fallback transport."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage

import requests

from ..config import get_settings
from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when no transport could deliver a message."""


@dataclass(slots=True, frozen=True)
class SignupEmailResult:
    welcome_sent: bool
    admin_notified: bool


def _resolve_email_password() -> str:
    try:
        return require_secret("EMAIL_PASSWORD")
    except MissingSecretError as exc:
        raise EmailDeliveryError(str(exc)) from exc


def _resolve_mailgun_api_key() -> str:
    try:
        return require_secret("MAILGUN_API_KEY")
    except MissingSecretError as exc:
        raise EmailDeliveryError(str(exc)) from exc


def _smtp_enabled() -> bool:
    settings = get_settings()
    return bool(settings.email_host and settings.email_from_address)


def _mailgun_enabled() -> bool:
    settings = get_settings()
    if is_placeholder(settings.mailgun_api_key):
        return False
    return bool(settings.mailgun_domain and settings.email_from_address)


def email_delivery_configured() -> bool:
    return _smtp_enabled() or _mailgun_enabled()


def _send_via_smtp(to_address: str, subject: str, body: str) -> None:
    settings = get_settings()
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = f"{settings.app_name} <{settings.email_from_address}>"
    message["To"] = to_address
    message.set_content(body)

    username = (settings.email_username or "").strip()
    try:
        with smtplib.SMTP(settings.email_host, settings.email_port, timeout=20) as smtp:
            if settings.email_use_tls:
                smtp.starttls()
            if username:
                smtp.login(username, _resolve_email_password())
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.exception("SMTP delivery failed for %s", to_address)
        raise EmailDeliveryError(str(exc)) from exc


def _send_via_mailgun(to_address: str, subject: str, body: str) -> None:
    settings = get_settings()
    api_key = _resolve_mailgun_api_key()
    url = f"https://api.mailgun.net/v3/{settings.mailgun_domain}/messages"
    try:
        response = requests.post(
            url,
            auth=("api", api_key),
            data={
                "from": f"{settings.app_name} <{settings.email_from_address}>",
                "to": to_address,
                "subject": subject,
                "text": body,
            },
            timeout=20,
        )
    except requests.RequestException as exc:
        logger.exception("Mailgun request failed for %s", to_address)
        raise EmailDeliveryError(str(exc)) from exc

    if response.status_code >= 400:
        logger.error("Mailgun returned %s: %s", response.status_code, response.text)
        raise EmailDeliveryError(f"Mailgun delivery failed with status {response.status_code}")


def send_email(to_address: str, subject: str, body: str) -> bool:
    """Send a plaintext email through the first transport that works.

    Raises ``EmailDeliveryError`` when the payload is incomplete, no
    transport is configured, or every configured transport fails.
    """

    if not to_address or not subject or not body:
        raise EmailDeliveryError("Email payload is incomplete")

    smtp_enabled = _smtp_enabled()
    mailgun_enabled = _mailgun_enabled()
    if not smtp_enabled and not mailgun_enabled:
        raise EmailDeliveryError("Email delivery is not configured. Provide SMTP settings or Mailgun credentials.")

    if smtp_enabled:
        try:
            _send_via_smtp(to_address, subject, body)
            return True
        except EmailDeliveryError as exc:
            logger.warning("SMTP delivery failed, trying Mailgun if available: %s", exc)
            if not mailgun_enabled:
                raise

    _send_via_mailgun(to_address, subject, body)
    return True


def send_welcome_email(user_email: str, username: str) -> bool:
    settings = get_settings()
    app_name = settings.app_name
    base_url = settings.public_base_url.rstrip("/")
    body = (
        f"Hi {username}!\n\n"
        f"Thank you for joining {app_name}! We're excited to have you as part of our community.\n\n"
        "Here's what you can do now:\n"
        "- Connect with friends and family\n"
        "- Share your thoughts and experiences\n"
        "- Discover new people and content\n"
        "- Stay updated with real-time notifications\n\n"
        f"Get started: {base_url}/chat\n\n"
        f"Best regards,\nThe {app_name} Team\n\n"
        "---\n"
        f"This email was sent to {user_email}\n"
        f"If you didn't sign up for {app_name}, you can safely ignore this email."
    )
    return send_email(user_email, f"Welcome to {app_name}!", body)


def send_admin_signup_notification(user_email: str, username: str) -> bool:
    """Tell ``ADMIN_EMAIL`` about a new account; ``False`` when no admin address is set."""

    settings = get_settings()
    if not settings.admin_email:
        return False
    signed_up_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    body = (
        f"A new user has signed up for {settings.app_name}.\n\n"
        f"Username: {username}\n"
        f"Email: {user_email}\n"
        f"Signup time: {signed_up_at}\n"
    )
    return send_email(str(settings.admin_email), f"New user signup - {settings.app_name}", body)


def send_signup_emails(user_email: str | None, username: str) -> SignupEmailResult:
    """Best-effort welcome and admin emails after registration. Never raises."""

    settings = get_settings()
    if not settings.signup_emails_enabled or not user_email:
        return SignupEmailResult(welcome_sent=False, admin_notified=False)
    if not email_delivery_configured():
        logger.info("Email delivery not configured; skipping signup emails for %s", username)
        return SignupEmailResult(welcome_sent=False, admin_notified=False)

    try:
        welcome_sent = send_welcome_email(user_email, username)
    except EmailDeliveryError as exc:
        logger.warning("Welcome email to %s failed: %s", user_email, exc)
        welcome_sent = False

    try:
        admin_notified = send_admin_signup_notification(user_email, username)
    except EmailDeliveryError as exc:
        logger.warning("Admin signup notification for %s failed: %s", username, exc)
        admin_notified = False

    return SignupEmailResult(welcome_sent=welcome_sent, admin_notified=admin_notified)


__all__ = [
    "EmailDeliveryError",
    "SignupEmailResult",
    "email_delivery_configured",
    "send_email",
    "send_welcome_email",
    "send_admin_signup_notification",
    "send_signup_emails",
]
