import logging
import smtplib
from email.message import EmailMessage

from pcdungeon import config

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


def send_mail(to: str, subject: str, html: str) -> None:
    if not config.SMTP_HOST:
        raise MailError("SMTP is not configured")
    msg = EmailMessage()
    msg["From"] = config.FROM_EMAIL
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content("This message requires an HTML capable mail client.")
    msg.add_alternative(html, subtype="html")
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=15) as smtp:
            smtp.starttls()
            if config.SMTP_USER:
                smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailError(str(exc)) from exc


def send_password_reset(to: str, username: str, reset_url: str) -> None:
    html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #dc2626;">Password Reset Request</h2>
            <p>Hello {username or 'Admin'},</p>
            <p>You have requested a password reset for your PC Dungeon account.</p>
            <p><a href="{reset_url}">Reset Password</a></p>
            <p style="word-break: break-all; color: #6b7280;">{reset_url}</p>
            <p><strong>This link will expire in {config.PASSWORD_RESET_EXPIRES_MIN} minutes.</strong></p>
            <p>If you didn't request this password reset, please ignore this email.</p>
        </div>
    """
    send_mail(to, "Password Reset Request - PC Dungeon", html)
