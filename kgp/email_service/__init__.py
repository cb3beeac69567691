import httpx
from flask import current_app, render_template

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"

# kind -> (template, subject format)
TEMPLATES = {
    "application_received": ("email/application_received.html", "{short_name} Membership Application Received"),
    "new_application": ("email/new_application.html", "New {short_name} Membership Application"),
    "application_approved": (
        "email/application_approved.html",
        "Congratulations! Your {short_name} Membership Application has been Approved",
    ),
    "application_rejected": ("email/application_rejected.html", "{short_name} Membership Application Update"),
    "membership_renewed": ("email/membership_renewed.html", "Your {short_name} Membership has been Renewed"),
    "resignation_received": ("email/resignation_received.html", "{short_name} Resignation Request Received"),
}


class UnknownTemplate(ValueError):
    pass


def _send_email(subject, recipient, html_body):
    """Deliver one message through Brevo. Returns True when accepted."""
    brevo_key = current_app.config.get("BREVO_API_KEY")
    sender = current_app.config.get("MAIL_DEFAULT_SENDER")
    sender_name = current_app.config.get("MAIL_DEFAULT_SENDER_NAME")
    if not brevo_key:
        current_app.logger.debug("Email skipped (BREVO_API_KEY not configured): %s", subject)
        return False
    try:
        resp = httpx.post(
            BREVO_SEND_URL,
            headers={
                "api-key": brevo_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json={
                "sender": {"name": sender_name, "email": sender},
                "to": [{"email": recipient}],
                "subject": subject,
                "htmlContent": html_body,
            },
            timeout=15,
        )
        resp.raise_for_status()
    except httpx.HTTPError as e:
        current_app.logger.error("Failed to send email to %s: %s", recipient, e)
        return False
    return True


def render_notification(kind, data):
    """Return ``(subject, html)`` for a notification kind."""
    try:
        template, subject_format = TEMPLATES[kind]
    except KeyError:
        raise UnknownTemplate(f"No email template for notification kind {kind!r}") from None
    config = current_app.config
    subject = subject_format.format(short_name=config["PARTY_SHORT_NAME"])
    html = render_template(
        template,
        data=data,
        party_name=config["PARTY_NAME"],
        party_short_name=config["PARTY_SHORT_NAME"],
        frontend_url=config["FRONTEND_URL"],
    )
    return subject, html


def send_notification_email(recipient, kind, data):
    subject, html = render_notification(kind, data)
    return _send_email(subject=subject, recipient=recipient, html_body=html)
