"""
Email service using Resend
"""
import logging
from typing import Optional
import resend
from leadflow.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Configure Resend
if settings.resend_api_key:
    resend.api_key = settings.resend_api_key


_LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: {color}; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
        .content {{ background: #f9fafb; padding: 24px; border-radius: 0 0 10px 10px; }}
        .button {{ display: inline-block; padding: 12px 30px; background: #1f2937; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
        .footer {{ text-align: center; margin-top: 20px; font-size: 12px; color: #666; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>{title}</h1></div>
        <div class="content">
            {body}
            <p style="text-align: center;">
                <a href="{link}" class="button">Open lead</a>
            </p>
        </div>
        <div class="footer"><p>LeadFlow</p></div>
    </div>
</body>
</html>
"""


def _lead_link(lead) -> str:
    return f"{settings.frontend_url}/leads/{lead.id}"


def _greeting(user) -> str:
    return f"<p>Hi{f' {user.first_name}' if user.first_name else ''}!</p>"


def render_lead_assigned(seller, lead) -> tuple[str, str]:
    subject = f"New lead: {lead.vehicle_title}"
    body = (
        _greeting(seller)
        + f"<p>You have been assigned a new lead from <strong>{lead.contact_name}</strong> "
        f"about <strong>{lead.vehicle_title}</strong>.</p>"
        f"<p>Please accept or decline it within {settings.acceptance_timeout_hours:g} hours.</p>"
    )
    return subject, _LAYOUT.format(color="#2563eb", title="📥 New lead", body=body, link=_lead_link(lead))


def render_acceptance_reminder(seller, lead, hours_remaining: float) -> tuple[str, str]:
    hours = f"{hours_remaining:g}"
    subject = f"Reminder: accept lead {lead.vehicle_title} ({hours} h left)"
    body = (
        _greeting(seller)
        + f"<p>The lead from <strong>{lead.contact_name}</strong> about "
        f"<strong>{lead.vehicle_title}</strong> is still waiting for your answer.</p>"
        f"<p><strong>{hours} hour(s) left</strong> before it is passed on to the next seller.</p>"
    )
    return subject, _LAYOUT.format(color="#d97706", title="⏰ Lead waiting", body=body, link=_lead_link(lead))


def render_manager_timeout(manager, seller, lead) -> tuple[str, str]:
    subject = f"Lead not accepted in time: {lead.vehicle_title}"
    body = (
        _greeting(manager)
        + f"<p><strong>{seller.full_name}</strong> did not accept or decline the lead from "
        f"<strong>{lead.contact_name}</strong> about <strong>{lead.vehicle_title}</strong> "
        "in time.</p>"
        "<p>The lead was passed on to the next seller in the rotation, "
        "or returned to the unassigned pool if nobody was available.</p>"
    )
    return subject, _LAYOUT.format(color="#dc2626", title="🚨 Lead timed out", body=body, link=_lead_link(lead))


async def send_email(to: str, subject: str, html: str) -> Optional[str]:
    """
    Sends one email through Resend.

    Returns:
        The Resend message id.

    Raises:
        RuntimeError if email is not configured; Resend errors propagate.
    """
    if not settings.resend_api_key:
        raise RuntimeError("Resend API key not configured")

    params = {
        "from": f"LeadFlow <{settings.email_from}>",
        "to": [to],
        "subject": subject,
        "html": html,
    }

    response = resend.Emails.send(params)
    message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    logger.info(f"📧 Email sent to {to}. ID: {message_id}")
    return message_id
