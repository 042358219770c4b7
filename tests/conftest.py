from __future__ import annotations

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contactguard.db.base import Base
from contactguard.db.models import Candidate, Company, Conversation, Job


@pytest.fixture()
def session_factory():
    """In-memory SQLite shared by every session the factory opens."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture()
def seeded(session_factory):
    """One employer, one candidate, one job and an open conversation between them."""
    with session_factory.begin() as db:
        db.add(Company(id="co-1", name="Acme Builders", account_id="user-co-1"))
        db.add(Candidate(id="cand-1", name="Sam Taylor", account_id="user-cand-1"))
        db.add(Job(id="job-1", title="Electrician Apprentice", company_id="co-1"))
        db.add(
            Conversation(id="conv-1", company_id="co-1", candidate_id="cand-1", job_id="job-1")
        )
    return session_factory


@pytest.fixture()
def clean_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")

    from contactguard.core.settings import get_settings

    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
    os.environ.pop("DATABASE_URL", None)
