import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

from imageshare.core.config import Settings
from imageshare.core.errors import DependencyFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    to: str
    subject: str
    text: str
    html: str


class Mailer:
    """SMTP notification sender. ``send`` reports failure, it never raises."""

    def __init__(
        self,
        *,
        host: str | None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        sender: str = "noreply@imageshare.com",
        use_tls: bool = True,
        timeout: float = 10,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.email_from,
            use_tls=settings.smtp_use_tls,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    def _deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DependencyFailure(f"SMTP delivery failed: {exc}") from exc

    def send(self, to: str, subject: str, text: str, html: str) -> bool:
        if not self.configured:
            logger.info("mail_skipped reason=smtp_not_configured to=%s subject=%r", to, subject)
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            self._deliver(msg)
        except DependencyFailure as exc:
            logger.warning("mail_failed to=%s subject=%r error=%s", to, subject, exc)
            return False
        logger.info("mail_sent to=%s subject=%r", to, subject)
        return True

    def send_notification(self, notification: Notification) -> bool:
        return self.send(notification.to, notification.subject, notification.text, notification.html)
