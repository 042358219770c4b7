"""FastAPI dependency injection: database sessions and service factories."""
from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from contactguard.core.settings import get_settings
from contactguard.db.session import get_session_factory
from contactguard.notification.email_sender import OperatorEmailSender
from contactguard.notification.notifier import SqlNotifier
from contactguard.pipeline.service import ContentRiskPipeline, DetectionStages
from contactguard.pipeline.stats import StatsAggregator
from contactguard.review.queue_manager import ReviewQueueManager
from contactguard.storage.sql import SqlStorage


def get_session_maker() -> sessionmaker:
    """Return the process-wide session factory."""
    return get_session_factory()


def get_db(factory: sessionmaker = Depends(get_session_maker)) -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_storage(factory: sessionmaker = Depends(get_session_maker)) -> SqlStorage:
    return SqlStorage(factory)


def get_notifier(factory: sessionmaker = Depends(get_session_maker)) -> SqlNotifier:
    settings = get_settings()
    email_sender = None
    if settings.smtp_host and settings.operator_email:
        email_sender = OperatorEmailSender(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            timeout=settings.smtp_timeout,
            recipient=settings.operator_email,
        )
    return SqlNotifier(factory, email_sender=email_sender)


@lru_cache(maxsize=1)
def get_detection_stages() -> DetectionStages:
    """Return the process-wide detector, context analyzer and scorer."""
    return DetectionStages.from_settings(get_settings())


def get_pipeline(
    storage: SqlStorage = Depends(get_storage),
    notifier: SqlNotifier = Depends(get_notifier),
    stages: DetectionStages = Depends(get_detection_stages),
) -> ContentRiskPipeline:
    """Return a pipeline wired to the SQL collaborators and the shared detection stages."""
    return ContentRiskPipeline.from_settings(storage, notifier, get_settings(), stages=stages)


def get_stats_aggregator(storage: SqlStorage = Depends(get_storage)) -> StatsAggregator:
    return StatsAggregator(storage)


def get_review_queue(db: Session = Depends(get_db)) -> ReviewQueueManager:
    """Return a ReviewQueueManager bound to the current DB session."""
    return ReviewQueueManager(db)
