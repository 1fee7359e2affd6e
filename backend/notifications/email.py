"""
Email delivery via SendGrid.

Email is a side channel: callers never fail a request because a message
could not be sent. Every sender returns True only when SendGrid accepted it.
"""

from html import escape

import sendgrid
import structlog
from sendgrid.helpers.mail import Mail

from core.config import get_settings

logger = structlog.get_logger()


async def send_email(to_email: str, subject: str, html_content: str) -> bool:
    settings = get_settings()
    if not settings.sendgrid_api_key:
        logger.warning("email.skipped_no_api_key", to=to_email, subject=subject)
        return False

    try:
        sg = sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)
        message = Mail(
            from_email=settings.email_from,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        response = sg.send(message)
    except Exception as exc:  # noqa: BLE001
        logger.error("email.send_failed", to=to_email, subject=subject, error=str(exc))
        return False

    sent = response.status_code in (200, 201, 202)
    if not sent:
        logger.warning("email.rejected", to=to_email, status_code=response.status_code)
    return sent


def invitation_link(token: str) -> str:
    return f"{get_settings().app_url.rstrip('/')}/invite/accept?token={token}"


async def send_invitation_email(
    to_email: str,
    name: str,
    inviter_name: str,
    company_name: str,
    role: str,
    token: str,
    personal_message: str | None = None,
) -> bool:
    link = invitation_link(token)
    role_label = role.replace("_", " ").title()
    note = f"<p><em>{escape(personal_message)}</em></p>" if personal_message else ""
    body = f"""
    <p>Hi {escape(name)},</p>
    <p>{escape(inviter_name)} invited you to join <strong>{escape(company_name)}</strong> as a {role_label}.</p>
    {note}
    <p><a href="{link}">Accept invitation</a></p>
    <p>This invitation expires in 3 days.</p>
    """
    return await send_email(to_email, f"You're invited to join {company_name}", body)


async def send_invitation_accepted_email(to_email: str, inviter_name: str, new_user_name: str, role: str) -> bool:
    body = f"""
    <p>Hi {escape(inviter_name)},</p>
    <p>{escape(new_user_name)} accepted your invitation and joined as a {role.replace("_", " ").title()}.</p>
    """
    return await send_email(to_email, f"{new_user_name} joined your team", body)


async def send_password_reset_email(to_email: str, name: str, token: str) -> bool:
    link = f"{get_settings().app_url.rstrip('/')}/reset-password?token={token}"
    body = f"""
    <p>Hi {escape(name)},</p>
    <p><a href="{link}">Reset your password</a>. The link expires in 1 hour.</p>
    """
    return await send_email(to_email, "Reset your password", body)
