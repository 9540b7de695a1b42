"""
Outbound SMTP mail
"""

from email.message import EmailMessage
from html import escape
import smtplib
import structlog

from iam_service.core.config import Settings
from iam_service.core.errors import ErrorCode, IamOperationError

logger = structlog.get_logger(__name__)


WELCOME_TEMPLATE = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #222;">
    <h2>Welcome aboard!</h2>
    <p>Your organization workspace is ready. Sign in with the username
       <strong>{username}</strong> using the link below.</p>
    <p><a href="{login_url}">{login_url}</a></p>
    <p>If you have not set a password yet, check your inbox for the
       account setup email.</p>
  </body>
</html>
"""


class Mailer:
    """Sends HTML mail through the configured SMTP relay"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def send_html(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = self.settings.SMTP_FROM
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(
                self.settings.SMTP_HOST,
                self.settings.SMTP_PORT,
                timeout=self.settings.SMTP_TIMEOUT_SECONDS,
            ) as smtp:
                if self.settings.SMTP_STARTTLS:
                    smtp.starttls()
                if self.settings.SMTP_AUTH and self.settings.SMTP_USERNAME:
                    smtp.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send mail to {to}: {e}")
            raise IamOperationError(ErrorCode.EMAIL_SEND_FAILED) from e

        logger.info(f"Mail sent to {to}: {subject}")

    def send_welcome_email(self, to: str, login_url: str, username: str) -> None:
        html = WELCOME_TEMPLATE.format(
            username=escape(username),
            login_url=escape(login_url, quote=True),
        )
        self.send_html(to, self.settings.WELCOME_EMAIL_SUBJECT, html)
