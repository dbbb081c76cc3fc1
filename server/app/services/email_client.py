from __future__ import annotations

import email
import imaplib
import logging
from email import policy
from email.header import decode_header, make_header
from email.message import EmailMessage
from typing import Optional

from app.core.config import settings
from app.core.errors import DependencyError
from app.services.payment_notifications import PaymentNotification

logger = logging.getLogger(__name__)


def _decode(value: str | None) -> str:
    if not value:
        return ""
    try:
        return str(make_header(decode_header(value)))
    except (LookupError, UnicodeError, ValueError):
        return value


def _text_body(msg: EmailMessage) -> str:
    parts = msg.walk() if msg.is_multipart() else [msg]
    html: Optional[str] = None
    for part in parts:
        disposition = part.get("Content-Disposition", "")
        if disposition and "attachment" in disposition.lower():
            continue
        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        charset = part.get_content_charset() or "utf-8"
        payload = part.get_payload(decode=True) or b""
        try:
            decoded = payload.decode(charset, errors="replace")
        except LookupError:
            decoded = payload.decode("utf-8", errors="replace")
        if content_type == "text/plain":
            return decoded.strip()
        if html is None:
            html = decoded
    if html is None:
        return ""
    return " ".join(html.replace("<", " <").replace(">", "> ").split())


def subject_search_criteria(keywords: list[str]) -> str:
    """IMAP SEARCH criteria OR-ing the subject keywords together."""

    if not keywords:
        return "ALL"
    criteria = f'SUBJECT "{keywords[-1]}"'
    for keyword in reversed(keywords[:-1]):
        criteria = f'OR SUBJECT "{keyword}" {criteria}'
    return f"({criteria})"


class ImapNotificationSource:
    """Pulls payment notification emails from the configured IMAP folder."""

    def __init__(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        folder: str | None = None,
        keywords: list[str] | None = None,
    ):
        self.host = host or settings.EMAIL_IMAP_HOST
        self.port = port or settings.EMAIL_IMAP_PORT
        self.username = username or settings.EMAIL_IMAP_USERNAME
        self.password = password or settings.EMAIL_IMAP_PASSWORD
        self.folder = folder or settings.EMAIL_IMAP_FOLDER
        self.keywords = keywords if keywords is not None else list(settings.NOTIFICATION_SUBJECT_KEYWORDS)

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def _connect(self) -> imaplib.IMAP4:
        if not self.configured:
            raise DependencyError("Payment notification inbox not configured")
        try:
            if settings.EMAIL_IMAP_USE_SSL:
                client = imaplib.IMAP4_SSL(self.host, self.port)
            else:
                client = imaplib.IMAP4(self.host, self.port)
                if settings.EMAIL_IMAP_USE_TLS:
                    client.starttls()
            client.login(self.username, self.password)
        except (imaplib.IMAP4.error, OSError) as exc:
            logger.warning("notification_inbox_connect_failed", extra={"host": self.host, "error": str(exc)})
            raise DependencyError("Unable to connect to payment notification inbox") from exc
        return client

    def fetch(self, limit: int) -> list[PaymentNotification]:
        client = self._connect()
        try:
            status_ok, _ = client.select(self.folder)
            if status_ok != "OK":
                raise DependencyError("Failed to open notification mailbox", folder=self.folder)
            result, data = client.search(None, subject_search_criteria(self.keywords))
            if result != "OK" or not data or not data[0]:
                return []
            selected = data[0].split()[-limit:]
            messages: list[PaymentNotification] = []
            for uid in reversed(selected):
                fetch_result, msg_data = client.fetch(uid, "(RFC822)")
                if fetch_result != "OK" or not msg_data or not msg_data[0]:
                    continue
                _, raw = msg_data[0]
                msg = email.message_from_bytes(raw, policy=policy.default)
                messages.append(
                    PaymentNotification(
                        message_id=_decode(msg.get("Message-ID")).strip("<> ") or uid.decode(),
                        subject=_decode(msg.get("Subject")),
                        sender=_decode(msg.get("From")),
                        body=_text_body(msg),
                        received_at=msg["Date"].datetime if msg["Date"] else None,  # type: ignore[union-attr]
                    )
                )
            return messages
        except (imaplib.IMAP4.error, OSError) as exc:
            raise DependencyError("Payment notification inbox read failed") from exc
        finally:
            try:
                client.logout()
            except (imaplib.IMAP4.error, OSError):
                logger.debug("notification_inbox_logout_failed")


def get_notification_source() -> ImapNotificationSource:
    return ImapNotificationSource()
