import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Protocol

from pathfinder.core import config
from pathfinder.core.errors import MailDeliveryError

logger = logging.getLogger(__name__)

SUBJECT = 'Your EIC Pathway verification code'


class Mailer(Protocol):
    def send(self, email: str, code: str) -> None: ...


class LoggingMailer:
    """Development transport: writes the code to the log instead of sending it."""

    def send(self, email: str, code: str) -> None:
        logger.info('Verification code for %s: %s', email, code)


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = '',
        password: str = '',
        use_tls: bool = True,
        from_email: str = '',
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or username
        self.timeout = timeout

    def build_message(self, email: str, code: str) -> EmailMessage:
        message = EmailMessage()
        message['Subject'] = SUBJECT
        message['From'] = self.from_email
        message['To'] = email
        message.set_content(
            f'Your verification code is {code}.\n\n'
            f'It expires in {config.VERIFICATION_CODE_TTL_MINUTES} minutes. '
            'If you did not request it, you can ignore this email.\n'
        )
        return message

    def send(self, email: str, code: str) -> None:
        message = self.build_message(email, code)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f'Failed to send verification email to {email}') from exc


def build_mailer() -> Mailer:
    if config.SMTP_HOST:
        return SmtpMailer(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            use_tls=config.SMTP_USE_TLS,
            from_email=config.MAIL_FROM,
        )
    return LoggingMailer()
