"""
Email Service for Faculty Portfolio
===================================
Delivers one-time passwords for account signup and email verification over
SMTP. The account flow depends only on ``send_otp(email, code) -> bool``, so a
different transport can be injected in its place.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from app.core.config import settings
from app.core.logging_config import logger


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.smtp_timeout = settings.SMTP_TIMEOUT
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = subject

        # Add plain text version (fallback)
        if text_content:
            message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True,
                timeout=self.smtp_timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

        logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
        return True

    async def send_otp_email(self, to_email: str, otp: str) -> bool:
        """Send a one-time password for account verification"""
        minutes = settings.OTP_EXPIRE_MINUTES
        subject = f"Your {settings.APP_NAME} verification code"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2>{settings.APP_NAME}</h2>
                <p>Use the code below to verify your email address:</p>
                <p style="font-size: 28px; font-weight: 700; letter-spacing: 6px;">{otp}</p>
                <p>This code expires in {minutes} minutes. If you did not request it, you can ignore this email.</p>
            </div>
        </body>
        </html>
        """

        text_content = (
            f"Your {settings.APP_NAME} verification code is {otp}.\n"
            f"It expires in {minutes} minutes."
        )

        return await self.send_email(to_email, subject, html_content, text_content)


# Singleton instance
email_service = EmailService()
