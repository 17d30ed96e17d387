"""
Email Service for RepairDesk
Sends transactional mail (password reset, support request alerts)
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from repairdesk.core.config import Settings, settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending notifications"""

    def __init__(self, smtp_host: str = None, smtp_port: int = 587):
        self.smtp_host = smtp_host or "localhost"
        self.smtp_port = smtp_port
        self.username = ""
        self.password = ""
        self.use_tls = True
        self.from_email = "noreply@repairdesk.local"
        self.from_name = "RepairDesk"
        self.configured = False

    def configure(
        self,
        smtp_host: str,
        smtp_port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_email: str = "noreply@repairdesk.local",
        from_name: str = "RepairDesk",
    ) -> None:
        """Configure SMTP settings"""
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.from_name = from_name
        self.configured = True
        logger.info(f"Email service configured for {smtp_host}")

    @classmethod
    def from_settings(cls, config: Settings) -> "EmailService":
        """Build a service from settings; left unconfigured without SMTP credentials."""
        service = cls(config.smtp_host, config.smtp_port)
        if config.smtp_user:
            service.configure(
                smtp_host=config.smtp_host,
                smtp_port=config.smtp_port,
                username=config.smtp_user,
                password=config.smtp_password,
                use_tls=config.smtp_use_tls,
                from_email=config.smtp_from_email,
                from_name=config.smtp_from_name,
            )
        return service

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email

        Args:
            to: Recipient email address
            subject: Email subject
            body: Plain text body
            html_body: Optional HTML body

        Returns:
            True if sent successfully
        """
        if not self.configured:
            logger.warning(f"Email not configured, would send to {to}: {subject}")
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = formataddr((self.from_name, self.from_email))
        msg['To'] = to
        msg.attach(MIMEText(body, 'plain'))
        if html_body:
            msg.attach(MIMEText(html_body, 'html'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

        logger.info(f"Email sent to {to}: {subject}")
        return True


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Process-wide email service built from settings on first use."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService.from_settings(settings)
    return _email_service
