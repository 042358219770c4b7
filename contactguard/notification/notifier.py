"""Notification collaborator backed by the admin tables.

``notify_operators`` always persists an ``AdminNotification`` row; the
email copy is best effort and its failure does not fail the step.
``request_account_suspension`` is idempotent: an account that is already
suspended keeps its original suspension time and reason.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from contactguard.collaborators.interfaces import OperatorNotification
from contactguard.db.models import AdminNotification, Company
from contactguard.notification.email_sender import OperatorEmailSender

logger = logging.getLogger(__name__)

SUSPENDED_STATUS = "suspended"


class SqlNotifier:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        email_sender: OperatorEmailSender | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.email_sender = email_sender

    def notify_operators(self, notification: OperatorNotification) -> None:
        with self.session_factory.begin() as db:
            db.add(
                AdminNotification(
                    title=notification.title,
                    message=notification.body,
                    severity=notification.severity,
                    action_url=notification.link_ref,
                )
            )
        logger.info("Operator notification stored (severity=%s)", notification.severity)

        if self.email_sender is not None:
            receipt = self.email_sender.send_alert(notification)
            if receipt.status != "SENT":
                logger.warning("Operator email not delivered; notification is still stored")

    def request_account_suspension(self, account_id: str, reason: str) -> None:
        with self.session_factory.begin() as db:
            company = db.execute(
                select(Company).where(Company.account_id == account_id)
            ).scalar_one_or_none()
            if company is None:
                raise LookupError(f"No employer account {account_id}")
            if company.subscription_status == SUSPENDED_STATUS:
                logger.debug("Account %s already suspended", account_id)
                return
            company.subscription_status = SUSPENDED_STATUS
            company.suspended_at = datetime.now(timezone.utc)
            company.suspension_reason = reason
        logger.warning("Employer account %s suspended", account_id)
