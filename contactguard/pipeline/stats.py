"""Operator dashboard statistics.

Read-only.  Any storage failure yields a zeroed snapshot flagged
``degraded=True`` so the admin UI keeps rendering.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from contactguard.collaborators.interfaces import StorageCollaborator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModerationStats:
    flags_today: int
    pending_reviews: int
    blocked_conversations: int
    total_flags: int
    companies_flagged: int
    last_updated: datetime
    degraded: bool = False

    @classmethod
    def zeroed(cls, now: datetime | None = None) -> ModerationStats:
        return cls(
            flags_today=0,
            pending_reviews=0,
            blocked_conversations=0,
            total_flags=0,
            companies_flagged=0,
            last_updated=now or datetime.now(timezone.utc),
            degraded=True,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_updated"] = self.last_updated.isoformat()
        return data


class StatsAggregator:
    def __init__(self, storage: StorageCollaborator) -> None:
        self.storage = storage

    def get_stats(self) -> ModerationStats:
        now = datetime.now(timezone.utc)
        try:
            return ModerationStats(
                flags_today=self.storage.count_flags_today(),
                pending_reviews=self.storage.count_pending_reviews(),
                blocked_conversations=self.storage.count_blocked_conversations(),
                total_flags=self.storage.count_total_flags(),
                companies_flagged=self.storage.count_companies_flagged(),
                last_updated=now,
            )
        except Exception as exc:
            logger.warning("Moderation stats unavailable, returning zeroed snapshot: %s", type(exc).__name__)
            return ModerationStats.zeroed(now)
