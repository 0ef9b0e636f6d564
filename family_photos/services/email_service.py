import html
import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

import aiosmtplib
import httpx

from family_photos.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    html_body: str
    text_body: str = ""


class EmailProvider(Protocol):
    async def send(self, message: EmailMessage) -> dict: ...


class ResendProvider:
    """Transactional email via the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = "https://api.resend.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.api_url = api_url.rstrip("/")
        self.transport = transport

    async def send(self, message: EmailMessage) -> dict:
        payload = {
            "from": self.from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
        }
        if message.text_body:
            payload["text"] = message.text_body

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(
                    f"{self.api_url}/emails",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )

                if response.status_code in (200, 201):
                    try:
                        email_id = response.json().get("id")
                    except ValueError:
                        logger.warning("Resend accepted the message but returned no JSON body")
                        email_id = None
                    return {"success": True, "id": email_id}
                return {
                    "success": False,
                    "error": f"HTTP {response.status_code}: {response.text}",
                }
        except httpx.HTTPError as e:
            logger.exception("Resend send failed")
            return {"success": False, "error": str(e)}


class SmtpProvider:
    """Email via SMTP."""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = settings.smtp_use_tls
        self.from_address = settings.email_from

    async def send(self, message: EmailMessage) -> dict:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.from_address
        msg["To"] = message.to

        if message.text_body:
            msg.attach(MIMEText(message.text_body, "plain"))
        msg.attach(MIMEText(message.html_body, "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.smtp_use_tls,
            )
            return {"success": True}
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.exception("SMTP send failed")
            return {"success": False, "error": str(e)}


class DisabledProvider:
    """Used when no provider is configured. Never delivers anything."""

    async def send(self, message: EmailMessage) -> dict:
        logger.warning("Email provider not configured - %r to %s not sent", message.subject, message.to)
        return {"success": False, "error": "Email provider not configured"}


def get_email_provider() -> EmailProvider:
    settings = get_settings()
    mode = settings.get_email_mode()
    if mode == "resend":
        return ResendProvider(settings.resend_api_key, settings.email_from, settings.resend_api_url)
    if mode == "smtp":
        return SmtpProvider(settings)
    return DisabledProvider()


def _button(url: str, label: str) -> str:
    return (
        f'<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{html.escape(url)}" style="background-color: #3b82f6; color: white; '
        f'padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">'
        f"{label}</a></div>"
    )


def build_invitation_email(
    to: str, app_url: str, invitation_token: str, full_name: Optional[str] = None
) -> EmailMessage:
    greeting = f"Hi {full_name}," if full_name else "Hi,"
    link = f"{app_url.rstrip('/')}/login?invitation={invitation_token}"
    html_body = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h1 style="color: #333; text-align: center;">You\'re Invited!</h1>'
        f"<p>{html.escape(greeting)}</p>"
        "<p>You've been invited to join our private family photo sharing app. "
        "You can now sign in to view and share photos with the family.</p>"
        f"{_button(link, 'Sign In to Family Photos')}"
        '<p style="color: #666; font-size: 14px;">'
        f"Simply click the link above and enter your email address ({html.escape(to)}) to get started. "
        "We'll send you a magic link to sign in securely.</p></div>"
    )
    text_body = (
        f"{greeting}\n\nYou've been invited to join our private family photo sharing app.\n"
        f"Sign in at {link} with {to} and we'll send you a magic link.\n"
    )
    return EmailMessage(
        to=to,
        subject="You're invited to join our family photos!",
        html_body=html_body,
        text_body=text_body,
    )


def build_magic_link_email(to: str, login_url: str, expires_minutes: int) -> EmailMessage:
    html_body = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h1 style="color: #333; text-align: center;">Sign in to Family Photos</h1>'
        f"{_button(login_url, 'Sign In')}"
        f'<p style="color: #666; font-size: 14px;">This link can be used once and expires in '
        f"{expires_minutes} minutes. If you didn't ask to sign in, you can ignore this email.</p></div>"
    )
    text_body = f"Sign in to Family Photos: {login_url}\n\nThe link expires in {expires_minutes} minutes.\n"
    return EmailMessage(
        to=to,
        subject="Your Family Photos sign-in link",
        html_body=html_body,
        text_body=text_body,
    )
