"""Transactional email: templates and SMTP delivery.

Routes and services never talk to SMTP directly. They call ``queue_email``
which hands the template name and context to a Celery task; the task renders
the template and delivers it with ``send_email``.
"""

import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import structlog
from kombu.exceptions import OperationalError as KombuOperationalError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from productbazar.config import get_settings
from productbazar.utils.text import mask_email

logger = structlog.get_logger()


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _layout(title: str, body_html: str) -> str:
    settings = get_settings()
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937; background: #f9fafb; padding: 24px;">
    <div style="max-width: 560px; margin: 0 auto; background: #ffffff; border-radius: 8px; padding: 32px;">
      <h2 style="color: #7c3aed; margin-top: 0;">{escape(title)}</h2>
      {body_html}
      <p style="color: #6b7280; font-size: 12px; margin-top: 32px;">
        Sent by {escape(settings.app_name)}. If you did not expect this email you can ignore it.
      </p>
    </div>
  </body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'<p><a href="{escape(url)}" style="display: inline-block; background: #7c3aed; '
        f'color: #ffffff; padding: 12px 20px; border-radius: 6px; text-decoration: none;">'
        f"{escape(label)}</a></p>"
    )


def render_verification(name: str, verify_url: str) -> RenderedEmail:
    return RenderedEmail(
        subject="Verify your email address",
        html=_layout(
            "Verify your email",
            f"<p>Hi {escape(name)},</p>"
            "<p>Please confirm your email address to finish setting up your account. "
            "This link is valid for 24 hours.</p>" + _button(verify_url, "Verify email"),
        ),
        text=f"Hi {name},\n\nConfirm your email address (valid for 24 hours):\n{verify_url}\n",
    )


def render_password_reset(name: str, reset_url: str) -> RenderedEmail:
    return RenderedEmail(
        subject="Reset your password",
        html=_layout(
            "Password reset",
            f"<p>Hi {escape(name)},</p>"
            "<p>We received a request to reset your password. This link expires in one hour.</p>"
            + _button(reset_url, "Reset password"),
        ),
        text=f"Hi {name},\n\nReset your password (valid for one hour):\n{reset_url}\n",
    )


def render_password_changed(name: str) -> RenderedEmail:
    return RenderedEmail(
        subject="Your password was changed",
        html=_layout(
            "Password changed",
            f"<p>Hi {escape(name)},</p>"
            "<p>Your password was just changed and all other sessions were signed out. "
            "If this was not you, reset your password immediately.</p>",
        ),
        text=(
            f"Hi {name},\n\nYour password was just changed and all other sessions were "
            "signed out. If this was not you, reset your password immediately.\n"
        ),
    )


def render_welcome(name: str) -> RenderedEmail:
    url = get_settings().client_url
    return RenderedEmail(
        subject="Welcome to Product Bazar",
        html=_layout(
            "Welcome aboard",
            f"<p>Hi {escape(name)},</p>"
            "<p>Your account is ready. Discover new products, launch your own and find "
            "your next role.</p>" + _button(url, "Get started"),
        ),
        text=f"Hi {name},\n\nYour account is ready. Get started at {url}\n",
    )


def render_application_received(
    poster_name: str, job_title: str, applicant_name: str, job_url: str
) -> RenderedEmail:
    return RenderedEmail(
        subject=f"New application for {job_title}",
        html=_layout(
            "New application",
            f"<p>Hi {escape(poster_name)},</p>"
            f"<p><strong>{escape(applicant_name)}</strong> applied to "
            f"<strong>{escape(job_title)}</strong>.</p>" + _button(job_url, "Review applications"),
        ),
        text=f"Hi {poster_name},\n\n{applicant_name} applied to {job_title}.\n{job_url}\n",
    )


def render_application_status(
    applicant_name: str, job_title: str, status: str, job_url: str
) -> RenderedEmail:
    return RenderedEmail(
        subject=f"Update on your application for {job_title}",
        html=_layout(
            "Application update",
            f"<p>Hi {escape(applicant_name)},</p>"
            f"<p>Your application for <strong>{escape(job_title)}</strong> is now "
            f"<strong>{escape(status)}</strong>.</p>" + _button(job_url, "View job"),
        ),
        text=(
            f"Hi {applicant_name},\n\nYour application for {job_title} is now {status}.\n"
            f"{job_url}\n"
        ),
    )


TEMPLATES = {
    "verification": render_verification,
    "password_reset": render_password_reset,
    "password_changed": render_password_changed,
    "welcome": render_welcome,
    "application_received": render_application_received,
    "application_status": render_application_status,
}


def render(template: str, context: dict) -> RenderedEmail:
    try:
        builder = TEMPLATES[template]
    except KeyError:
        raise ValueError(f"Unknown email template: {template}") from None
    return builder(**context)


@retry(
    retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    reraise=True,
)
def _deliver(message: MIMEMultipart, to_email: str) -> None:
    settings = get_settings()
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        server.starttls()
        if settings.smtp_user and settings.smtp_password:
            server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(message["From"], [to_email], message.as_string())


def send_email(to_email: str, rendered: RenderedEmail) -> bool:
    """Deliver a rendered email. Returns False when SMTP is not configured."""
    settings = get_settings()
    if not settings.smtp_host:
        logger.info(
            "email_skipped_no_smtp", to=mask_email(to_email), subject=rendered.subject
        )
        return False

    message = MIMEMultipart("alternative")
    message["Subject"] = rendered.subject
    message["From"] = settings.email_from
    message["To"] = to_email
    message.attach(MIMEText(rendered.text, "plain", "utf-8"))
    message.attach(MIMEText(rendered.html, "html", "utf-8"))

    _deliver(message, to_email)
    logger.info("email_sent", to=mask_email(to_email), subject=rendered.subject)
    return True


def queue_email(template: str, to_email: str | None, **context) -> None:
    """Hand an email to the worker queue. Missing recipients are ignored."""
    if not to_email:
        return
    from productbazar.workers.tasks import send_templated_email

    try:
        send_templated_email.delay(template, to_email, context)
    except (KombuOperationalError, OSError) as e:
        # Email is best effort; a broker outage must not fail the request
        logger.error(
            "email_queue_failed", template=template, to=mask_email(to_email), error=str(e)
        )
