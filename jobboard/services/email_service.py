import smtplib
from email.message import EmailMessage
from ..config import settings
import logging

logger = logging.getLogger(__name__)


def send_email(to_email: str, to_name: str, subject: str, body: str) -> dict:
    """
    Send email using SMTP, or log a simulated send when SMTP is not configured
    """
    if not settings.smtp_configured:
        logger.info(f"Simulating email send (no SMTP configured) to {to_email}: {subject}")
        return {
            "success": True,
            "simulated": True,
        }

    try:
        logger.info(f"Sending email to {to_email} with subject: {subject}")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{settings.email_from_name} <{settings.smtp_user}>"
        msg["To"] = to_email

        formatted_body = f"Hi {to_name},\n\n{body}\n\nBest regards,\n{settings.email_from_name} Team"

        msg.set_content(formatted_body, subtype="plain", charset="utf-8")

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)

        logger.info(f"Email sent successfully to {to_email}")

        return {
            "success": True,
            "message": "Email sent successfully"
        }

    except Exception as e:
        logger.error(f"Error sending email: {e}")
        return {
            "success": False,
            "error": str(e)
        }


def send_application_received(to_email: str, to_name: str, job_title: str, application_id: int) -> dict:
    body = (
        f"Your application (ID: {application_id}) for the role \"{job_title}\" has been received.\n"
        f"The employer will review it and you will see status changes in your applications list."
    )
    return send_email(to_email, to_name, f"Application received for {job_title}", body)


def send_password_reset(to_email: str, to_name: str, reset_link: str) -> dict:
    body = (
        f"We received a request to reset your password.\n\n"
        f"Use the link below within {settings.password_reset_expire_minutes} minutes:\n"
        f"{reset_link}\n\n"
        f"If you did not request this, you can ignore this email."
    )
    return send_email(to_email, to_name, "Reset your password", body)
