"""Append-only audit logger.

Provides ``record_event()`` to persist ``AuditEvent`` rows.
All writes are immutable: ``immutable=True`` always.

Safety: target_id, rationale and details are never logged; only
event_type and actor.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from contactguard.audit.events import SUSPENSION_EVENT_TYPES, VALID_EVENT_TYPES
from contactguard.db.models import AuditEvent

logger = logging.getLogger(__name__)


def record_event(
    db_session: Session,
    event_type: str,
    actor: str,
    target_type: str | None = None,
    target_id: str | None = None,
    decision: str | None = None,
    rationale: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Create and persist an immutable ``AuditEvent``.

    Raises ``ValueError`` for invalid inputs.  Flushes but does **not**
    commit; the caller controls the transaction boundary.
    """
    if event_type not in VALID_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type {event_type!r}; "
            f"must be one of {sorted(VALID_EVENT_TYPES)}"
        )

    if not actor or not actor.strip():
        raise ValueError("actor must be a non-empty string")

    if event_type in SUSPENSION_EVENT_TYPES:
        if not target_id:
            raise ValueError(f"target_id is required for {event_type} events")
        if "automatic" not in (details or {}):
            raise ValueError(f"details.automatic is required for {event_type} events")

    event = AuditEvent(
        event_type=event_type,
        actor=actor,
        target_type=target_type,
        target_id=target_id,
        decision=decision,
        rationale=rationale,
        details=details,
        immutable=True,
    )
    db_session.add(event)
    db_session.flush()

    logger.info("Audit event recorded: type=%s actor=%s", event_type, actor)
    return event


def get_target_history(
    db_session: Session,
    target_id: str,
) -> list[AuditEvent]:
    """Return all ``AuditEvent`` rows for *target_id*, ordered by timestamp."""
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.target_id == target_id)
        .order_by(AuditEvent.timestamp.asc())
    )
    return list(db_session.execute(stmt).scalars().all())
