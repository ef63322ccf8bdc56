"""Notifier delegates delivering down/up alerts to monitor owners."""

import uuid
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Dict, List, Optional, Protocol

import aiosmtplib

from uptime_monitor.config import EmailConfig
from uptime_monitor.core.exceptions import NotifierFailure
from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)

DOWN_SUBJECT = "🚨 Site Down Alert: {label}"
UP_SUBJECT = "✅ Site Restored: {label}"

DOWN_BODY = """Hello,

Your monitored site is currently down:

Site: {name}
URL: {url}
Status: DOWN
Time: {timestamp}

We will continue monitoring and notify you when the site is back online.

Best regards,
Uptime Monitor Team"""

UP_BODY = """Hello,

Good news! Your monitored site is back online:

Site: {name}
URL: {url}
Status: UP
Time: {timestamp}
{downtime}
Your site is now responding normally.

Best regards,
Uptime Monitor Team"""


class NotificationResult:
    """Outcome reported by a notifier delegate."""

    def __init__(
        self,
        success: bool,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.success = success
        self.message_id = message_id
        self.error = error

    def __repr__(self) -> str:
        return (
            f"<NotificationResult(success={self.success}, "
            f"message_id={self.message_id!r}, error={self.error!r})>"
        )


class Notifier(Protocol):
    """Capability consumed by the transition detector."""

    async def send_down_notification(
        self,
        email: str,
        url: str,
        name: Optional[str] = None
    ) -> NotificationResult:
        ...

    async def send_up_notification(
        self,
        email: str,
        url: str,
        name: Optional[str] = None,
        duration_text: Optional[str] = None
    ) -> NotificationResult:
        ...


def render_down_message(url: str, name: Optional[str] = None) -> tuple:
    """Return (subject, body) of a down alert."""
    subject = DOWN_SUBJECT.format(label=name or url)
    body = DOWN_BODY.format(
        name=name or "Monitor",
        url=url,
        timestamp=datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")
    )
    return subject, body


def render_up_message(
    url: str,
    name: Optional[str] = None,
    duration_text: Optional[str] = None
) -> tuple:
    """Return (subject, body) of a recovery alert; downtime line only when known."""
    subject = UP_SUBJECT.format(label=name or url)
    body = UP_BODY.format(
        name=name or "Monitor",
        url=url,
        timestamp=datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC"),
        downtime=f"Downtime: {duration_text}\n" if duration_text else ""
    )
    return subject, body


class EmailNotifier:
    """
    Sends alerts over SMTP.

    Delivery problems are reported through ``NotificationResult`` rather
    than raised.
    """

    def __init__(self, config: EmailConfig):
        """
        Initialize email notifier.

        Args:
            config: SMTP settings
        """
        self.config = config

        logger.info(
            "Email notifier initialized",
            extra={
                "enabled": config.enabled,
                "smtp_host": config.smtp_host,
                "smtp_port": config.smtp_port
            }
        )

    async def send_down_notification(
        self,
        email: str,
        url: str,
        name: Optional[str] = None
    ) -> NotificationResult:
        subject, body = render_down_message(url, name)
        return await self.send_email(email, subject, body)

    async def send_up_notification(
        self,
        email: str,
        url: str,
        name: Optional[str] = None,
        duration_text: Optional[str] = None
    ) -> NotificationResult:
        subject, body = render_up_message(url, name, duration_text)
        return await self.send_email(email, subject, body)

    async def send_email(self, to: str, subject: str, body: str) -> NotificationResult:
        """
        Send one plain-text email.

        Args:
            to: Recipient address
            subject: Subject line
            body: Plain-text body

        Returns:
            NotificationResult: success with the Message-ID, or the error
        """
        try:
            message_id = await self._deliver(to, subject, body)
        except NotifierFailure as e:
            logger.error(
                "Failed to send email notification",
                extra={"to": to, "subject": subject, "error": str(e)}
            )
            return NotificationResult(success=False, error=str(e))

        logger.info(
            "Email notification sent",
            extra={"to": to, "subject": subject, "message_id": message_id}
        )
        return NotificationResult(success=True, message_id=message_id)

    async def _deliver(self, to: str, subject: str, body: str) -> str:
        if not self.config.enabled:
            raise NotifierFailure("Email service not configured (SMTP disabled)")

        msg = MIMEMultipart()
        msg['From'] = f"{self.config.from_name} <{self.config.from_addr}>"
        msg['To'] = to
        msg['Subject'] = subject
        message_id = make_msgid(domain=self.config.from_addr.rpartition("@")[2] or None)
        msg['Message-ID'] = message_id
        msg.attach(MIMEText(body, 'plain', 'utf-8'))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                username=self.config.smtp_user or None,
                password=self.config.smtp_password or None,
                use_tls=self.config.smtp_use_tls,
                start_tls=self.config.smtp_start_tls and not self.config.smtp_use_tls,
                timeout=self.config.timeout
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise NotifierFailure(str(e) or e.__class__.__name__) from e

        return message_id


class InMemoryNotifier:
    """
    Records alerts instead of delivering them.

    Used when ``EMAIL_TEST_MODE`` is set and by the test suite. Setting
    ``should_fail`` makes every send report failure.
    """

    def __init__(self, should_fail: bool = False, failure_reason: str = "Mock failure"):
        self.sent: List[Dict[str, Optional[str]]] = []
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    async def send_down_notification(
        self,
        email: str,
        url: str,
        name: Optional[str] = None
    ) -> NotificationResult:
        subject, body = render_down_message(url, name)
        return self._record("down", email, url, name, subject, body)

    async def send_up_notification(
        self,
        email: str,
        url: str,
        name: Optional[str] = None,
        duration_text: Optional[str] = None
    ) -> NotificationResult:
        subject, body = render_up_message(url, name, duration_text)
        return self._record("up", email, url, name, subject, body, duration_text)

    def _record(self, kind, email, url, name, subject, body, duration_text=None) -> NotificationResult:
        if self.should_fail:
            return NotificationResult(success=False, error=self.failure_reason)

        message_id = f"test-{uuid.uuid4().hex[:12]}"
        self.sent.append({
            "kind": kind,
            "to": email,
            "url": url,
            "name": name,
            "subject": subject,
            "body": body,
            "duration_text": duration_text,
            "message_id": message_id,
        })
        logger.info(
            "[TEST MODE] Would send email",
            extra={"to": email, "subject": subject}
        )
        return NotificationResult(success=True, message_id=message_id)

    def by_kind(self, kind: str) -> List[Dict[str, Optional[str]]]:
        return [m for m in self.sent if m["kind"] == kind]

    def clear(self) -> None:
        self.sent.clear()


def build_notifier(config: EmailConfig) -> Notifier:
    """Pick the in-memory notifier in test mode, SMTP otherwise."""
    if config.test_mode:
        logger.info("Email test mode enabled, alerts are recorded in memory")
        return InMemoryNotifier()
    return EmailNotifier(config)
