"""Tests for contactguard/notification/."""
from __future__ import annotations

import smtplib
import socket
import time
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from contactguard.collaborators.interfaces import OperatorNotification
from contactguard.db.models import AdminNotification, Company
from contactguard.notification.email_sender import OperatorEmailSender
from contactguard.notification.notifier import SUSPENDED_STATUS, SqlNotifier

NOTIFICATION = OperatorNotification(
    title="CRITICAL: Contact sharing blocked: Acme Builders / Sam Taylor",
    body='Company "Acme Builders" was blocked for sharing contact information.',
    severity="critical",
    link_ref="/admin/moderation/conversation/conv-1",
)


def _sender() -> OperatorEmailSender:
    return OperatorEmailSender(smtp_host="localhost", recipient="ops@example.test", backoff_base=0)


@pytest.fixture()
def silent_relay():
    """A listening socket that accepts connections but never sends a greeting."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    yield sock.getsockname()[1]
    sock.close()


# ===========================================================================
# OperatorEmailSender
# ===========================================================================

class TestOperatorEmailSender:
    @patch("contactguard.notification.email_sender.smtplib.SMTP")
    def test_sent_first_attempt(self, mock_smtp):
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server

        receipt = _sender().send_alert(NOTIFICATION)

        assert receipt.status == "SENT"
        assert receipt.attempt_count == 1
        server.sendmail.assert_called_once()
        from_addr, to_addrs, raw = server.sendmail.call_args[0]
        assert to_addrs == ["ops@example.test"]
        assert "Subject: [CRITICAL]" in raw

    @patch("contactguard.notification.email_sender.smtplib.SMTP")
    def test_retries_then_succeeds(self, mock_smtp):
        server = MagicMock()
        server.sendmail.side_effect = [smtplib.SMTPException("busy"), None]
        mock_smtp.return_value.__enter__.return_value = server

        receipt = _sender().send_alert(NOTIFICATION)

        assert receipt.status == "SENT"
        assert receipt.attempt_count == 2

    @patch("contactguard.notification.email_sender.smtplib.SMTP")
    def test_fails_after_three_attempts(self, mock_smtp):
        mock_smtp.side_effect = OSError("connection refused")

        receipt = _sender().send_alert(NOTIFICATION)

        assert receipt.status == "FAILED"
        assert receipt.attempt_count == 3
        assert mock_smtp.call_count == 3
        assert "connection refused" in receipt.smtp_response

    @patch("contactguard.notification.email_sender.smtplib.SMTP")
    def test_timeout_passed_to_smtp(self, mock_smtp):
        mock_smtp.return_value.__enter__.return_value = MagicMock()
        sender = OperatorEmailSender(
            smtp_host="relay.test", smtp_port=2525, recipient="ops@example.test", timeout=4
        )
        sender.send_alert(NOTIFICATION)
        mock_smtp.assert_called_once_with("relay.test", 2525, timeout=4)

    def test_silent_relay_fails_within_timeout(self, silent_relay):
        sender = OperatorEmailSender(
            smtp_host="127.0.0.1", smtp_port=silent_relay, recipient="ops@example.test", backoff_base=0, timeout=0.2
        )
        started = time.monotonic()
        receipt = sender.send_alert(NOTIFICATION)
        assert time.monotonic() - started < 5.0
        assert receipt.status == "FAILED"
        assert receipt.attempt_count == 3


# ===========================================================================
# SqlNotifier
# ===========================================================================

class TestSqlNotifier:
    def test_notification_stored(self, seeded):
        SqlNotifier(seeded).notify_operators(NOTIFICATION)
        with seeded() as db:
            row = db.execute(select(AdminNotification)).scalars().one()
            assert row.severity == "critical"
            assert row.action_url == "/admin/moderation/conversation/conv-1"
            assert row.is_read is False

    def test_email_failure_does_not_fail_notification(self, seeded):
        sender = MagicMock()
        sender.send_alert.return_value = MagicMock(status="FAILED")
        SqlNotifier(seeded, email_sender=sender).notify_operators(NOTIFICATION)
        sender.send_alert.assert_called_once_with(NOTIFICATION)
        with seeded() as db:
            assert db.execute(select(AdminNotification)).scalars().one()

    def test_suspension(self, seeded):
        SqlNotifier(seeded).request_account_suspension("user-co-1", "Contact sharing detected: phone number")
        with seeded() as db:
            company = db.get(Company, "co-1")
            assert company.subscription_status == SUSPENDED_STATUS
            assert company.suspension_reason == "Contact sharing detected: phone number"
            assert company.suspended_at is not None

    def test_suspension_is_idempotent(self, seeded):
        notifier = SqlNotifier(seeded)
        notifier.request_account_suspension("user-co-1", "first")
        with seeded() as db:
            first_at = db.get(Company, "co-1").suspended_at
        notifier.request_account_suspension("user-co-1", "second")
        with seeded() as db:
            company = db.get(Company, "co-1")
            assert company.suspension_reason == "first"
            assert company.suspended_at == first_at

    def test_unknown_account(self, seeded):
        with pytest.raises(LookupError, match="No employer account"):
            SqlNotifier(seeded).request_account_suspension("user-cand-1", "reason")


class TestNotifierWiring:
    def test_smtp_timeout_from_environment(self, seeded, clean_settings, monkeypatch):
        from contactguard.api.deps import get_notifier
        from contactguard.core.settings import get_settings

        monkeypatch.setenv("SMTP_HOST", "relay.test")
        monkeypatch.setenv("OPERATOR_EMAIL", "ops@example.test")
        monkeypatch.setenv("SMTP_TIMEOUT", "2.5")
        get_settings.cache_clear()

        notifier = get_notifier(seeded)

        assert notifier.email_sender.timeout == 2.5
        assert notifier.email_sender.smtp_host == "relay.test"
