"""
Invitation email delivery.

Provider order: SendGrid when ``SENDGRID_API_KEY`` is set, then AWS SES when
``AWS_SES_REGION`` and AWS credentials are present, then the log. Outside
production the log is always used.

Provider calls block; async callers run them in a worker thread.
"""

import html
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import boto3
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

INVITATION_SUBJECT = "You're invited to join ProjectHub!"


@dataclass(frozen=True)
class InvitationEmail:
    """Everything the invitation email renders, captured at commit time."""
    to_email: str
    invitation_link: str
    role: str
    inviter_name: str
    expires_at: datetime
    department: Optional[str] = None
    message: Optional[str] = None
    project_name: Optional[str] = None


@dataclass(frozen=True)
class RenderedEmail:
    to_email: str
    subject: str
    html_body: str
    text_body: str


def render_invitation(invitation: InvitationEmail) -> RenderedEmail:
    """Build the HTML and plain-text bodies. User-supplied text is escaped in HTML."""
    inviter = html.escape(invitation.inviter_name)
    link = html.escape(invitation.invitation_link, quote=True)
    expires = f"{invitation.expires_at:%B %d, %Y at %H:%M} UTC"

    facts = [("Role", invitation.role.capitalize())]
    if invitation.department:
        facts.append(("Department", invitation.department))
    if invitation.project_name:
        facts.append(("Project", invitation.project_name))

    html_facts = "".join(
        f"<p><strong>{label}:</strong> {html.escape(value)}</p>" for label, value in facts
    )
    text_facts = "".join(f"{label}: {value}\n" for label, value in facts)

    html_note = ""
    text_note = ""
    if invitation.message:
        html_note = (
            '<div class="note">'
            f"<p><strong>A note from {inviter}:</strong></p>"
            f"<p>{html.escape(invitation.message)}</p>"
            "</div>"
        )
        text_note = f"\nA note from {invitation.inviter_name}:\n{invitation.message}\n"

    html_body = f"""<!DOCTYPE html>
<html>
<head>
  <style>
    body {{ font-family: Helvetica, Arial, sans-serif; color: #1f2937; }}
    .wrap {{ max-width: 560px; margin: 0 auto; padding: 24px; }}
    .banner {{ background: #4f46e5; color: #fff; padding: 18px; text-align: center; border-radius: 8px 8px 0 0; }}
    .body {{ background: #f9fafb; padding: 28px; }}
    .facts {{ background: #fff; border: 1px solid #e5e7eb; border-radius: 8px; padding: 16px; margin: 16px 0; }}
    .note {{ border-left: 4px solid #4f46e5; background: #eef2ff; padding: 12px; margin: 16px 0; }}
    .cta {{ display: inline-block; background: #4f46e5; color: #fff; padding: 12px 28px; border-radius: 6px; text-decoration: none; font-weight: bold; }}
    .small {{ color: #6b7280; font-size: 12px; text-align: center; }}
  </style>
</head>
<body>
  <div class="wrap">
    <div class="banner"><h1>Join your team on ProjectHub</h1></div>
    <div class="body">
      <p><strong>{inviter}</strong> has invited you to join their team on ProjectHub.</p>
      <div class="facts">{html_facts}</div>
      {html_note}
      <p style="text-align: center;"><a class="cta" href="{link}">Accept Invitation</a></p>
      <p>If the button does not work, open this link:</p>
      <p style="word-break: break-all;">{link}</p>
      <p>The invitation expires on {expires}.</p>
    </div>
    <p class="small">Not expecting this? You can ignore this email.</p>
  </div>
</body>
</html>
"""

    text_body = (
        f"{INVITATION_SUBJECT}\n\n"
        f"{invitation.inviter_name} has invited you to join their team on ProjectHub.\n\n"
        f"{text_facts}{text_note}\n"
        f"Accept your invitation:\n{invitation.invitation_link}\n\n"
        f"The invitation expires on {expires}.\n\n"
        "Not expecting this? You can ignore this email.\n"
    )
    return RenderedEmail(
        to_email=invitation.to_email,
        subject=INVITATION_SUBJECT,
        html_body=html_body,
        text_body=text_body,
    )


class EmailService:
    """Sends rendered emails through the first configured provider."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.is_production = settings.is_production
        self.sendgrid_key = settings.sendgrid_api_key
        self.ses_region = settings.aws_ses_region
        self.from_email = settings.email_from_address
        self.from_name = settings.email_from_name

    def _get_provider(self) -> str:
        if not self.is_production:
            return "console"
        if self.sendgrid_key:
            return "sendgrid"
        if self.ses_region and os.getenv("AWS_ACCESS_KEY_ID"):
            return "ses"
        return "console"

    def send_invitation_email(self, invitation: InvitationEmail) -> bool:
        """Render and deliver the invitation. True when the provider accepted it."""
        return self.deliver(render_invitation(invitation))

    def deliver(self, email: RenderedEmail) -> bool:
        provider = self._get_provider()
        if provider == "sendgrid":
            return self._send_via_sendgrid(email)
        if provider == "ses":
            return self._send_via_ses(email)
        return self._send_via_console(email)

    def _send_via_sendgrid(self, email: RenderedEmail) -> bool:
        mail = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(email.to_email),
            subject=email.subject,
        )
        mail.add_content(Content("text/plain", email.text_body))
        mail.add_content(Content("text/html", email.html_body))
        try:
            response = SendGridAPIClient(self.sendgrid_key).send(mail)
        except Exception as e:
            logger.error(f"SendGrid delivery to {email.to_email} failed: {e}")
            return False
        if response.status_code not in (200, 201, 202):
            logger.error(f"SendGrid rejected email to {email.to_email}: HTTP {response.status_code}")
            return False
        logger.info(f"Email sent via SendGrid to {email.to_email}")
        return True

    def _send_via_ses(self, email: RenderedEmail) -> bool:
        try:
            response = boto3.client("ses", region_name=self.ses_region).send_email(
                Source=f"{self.from_name} <{self.from_email}>",
                Destination={"ToAddresses": [email.to_email]},
                Message={
                    "Subject": {"Data": email.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": email.text_body, "Charset": "UTF-8"},
                        "Html": {"Data": email.html_body, "Charset": "UTF-8"},
                    },
                },
            )
        except Exception as e:
            logger.error(f"SES delivery to {email.to_email} failed: {e}")
            return False
        logger.info(f"Email sent via SES to {email.to_email} ({response['MessageId']})")
        return True

    def _send_via_console(self, email: RenderedEmail) -> bool:
        logger.info(
            "EMAIL (console mode)\nTo: %s\nFrom: %s <%s>\nSubject: %s\n%s",
            email.to_email,
            self.from_name,
            self.from_email,
            email.subject,
            email.text_body,
        )
        return True


def get_email_service() -> EmailService:
    """FastAPI dependency; tests override it with a recording double."""
    return EmailService()
