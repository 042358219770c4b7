"""SMTP sender for operator alerts.

Delivers moderation alerts to the operator mailbox via a local SMTP relay.
Retries up to 3 times with exponential backoff before reporting ``FAILED``.
Every connect and reply is bounded by ``timeout``; a relay that accepts the
connection but never answers counts as a failed attempt.

Safety: alert bodies carry names and ids only, never matched contact data;
the recipient address is never logged.
"""
from __future__ import annotations

import logging
import smtplib
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Literal

from contactguard.collaborators.interfaces import OperatorNotification

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_BACKOFF_BASE = 1  # seconds: 1, 2, 4
_SMTP_TIMEOUT = 10  # seconds per connect or reply


@dataclass
class DeliveryReceipt:
    """Record of a single alert delivery attempt."""

    status: Literal["SENT", "FAILED"]
    timestamp: datetime
    smtp_response: str | None
    attempt_count: int


class OperatorEmailSender:
    """Send operator alerts via SMTP."""

    def __init__(
        self,
        smtp_host: str,
        recipient: str,
        smtp_port: int = 587,
        sender: str = "noreply@moderation.local",
        backoff_base: float = _BACKOFF_BASE,
        timeout: float = _SMTP_TIMEOUT,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.recipient = recipient
        self.sender = sender
        self.backoff_base = backoff_base
        self.timeout = timeout

    def send_alert(self, notification: OperatorNotification) -> DeliveryReceipt:
        """Send *notification*, retrying on SMTP errors; never raises."""
        msg = MIMEText(f"{notification.body}\n\nReview: {notification.link_ref}", "plain", "utf-8")
        msg["Subject"] = f"[{notification.severity.upper()}] {notification.title}"
        msg["From"] = self.sender
        msg["To"] = self.recipient

        last_error: str | None = None
        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                    server.sendmail(self.sender, [self.recipient], msg.as_string())
                logger.info("Delivered operator alert (severity=%s, attempt %d)", notification.severity, attempt)
                return DeliveryReceipt(
                    status="SENT",
                    timestamp=datetime.now(timezone.utc),
                    smtp_response="250 OK",
                    attempt_count=attempt,
                )
            except (smtplib.SMTPException, OSError) as exc:
                last_error = str(exc)
                logger.warning("SMTP error for operator alert attempt %d: %s", attempt, last_error)
                if attempt < _MAX_RETRIES:
                    time.sleep(self.backoff_base * (2 ** (attempt - 1)))

        logger.error("Operator alert delivery failed after %d attempts", _MAX_RETRIES)
        return DeliveryReceipt(
            status="FAILED",
            timestamp=datetime.now(timezone.utc),
            smtp_response=last_error,
            attempt_count=_MAX_RETRIES,
        )
