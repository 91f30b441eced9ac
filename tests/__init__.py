#!/usr/bin/env python3
"""
Test suite configuration and utilities.

All tests run against SQLite through the production models and
repositories; no external services are needed:

    python -m pytest tests/ -v

    # Only tests that touch the database
    python -m pytest tests/ -v -m "db"
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.app_context import AppContext
from core.config_loader import AppConfig, DatabaseConfig
from database.models import Base, User, JobListing, utcnow


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_session_factory(db_path: Optional[str] = None) -> sessionmaker:
    """
    Fresh schema on SQLite.

    In-memory by default (one shared connection). Pass a file path when a
    test needs real concurrent connections.
    """
    if db_path is None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    event.listen(engine, "connect", _enable_foreign_keys)
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_config(**sections) -> AppConfig:
    return AppConfig(database=DatabaseConfig(url="sqlite://"), **sections)


def build_context(session_factory, config: Optional[AppConfig] = None, **collaborators) -> AppContext:
    from tests.mocks.fakes import FakeScoringOracle, FakeSynthesizer, FakeGateway, FakeNotifier

    collaborators.setdefault('oracle', FakeScoringOracle())
    collaborators.setdefault('synthesizer', FakeSynthesizer())
    collaborators.setdefault('gateway', FakeGateway())
    collaborators.setdefault('notifier', FakeNotifier())
    return AppContext.build(config or make_config(), session_factory=session_factory, **collaborators)


def create_user(session_factory, **fields) -> uuid.UUID:
    fields.setdefault('email', f"user-{uuid.uuid4().hex[:8]}@example.com")
    fields.setdefault('name', "Test User")
    fields.setdefault('is_verified', True)
    fields.setdefault('matching_enabled', True)
    fields.setdefault('min_score', 30)
    fields.setdefault('wallet_balance_cents', 100)
    fields.setdefault('opening_balance_cents', fields['wallet_balance_cents'])
    fields.setdefault('profile', {'resume': {'skills': ['python']}, 'preferences': {'remote': True}})

    session = session_factory()
    try:
        user = User(**fields)
        session.add(user)
        session.commit()
        return user.id
    finally:
        session.close()


def create_job(session_factory, title: str = "Backend Engineer", scraped_date: Optional[datetime] = None, **fields) -> uuid.UUID:
    now = utcnow()
    fields.setdefault('company', "Acme")
    fields.setdefault('location', "Remote")
    fields.setdefault('source', "linkedin")
    fields.setdefault('url', f"https://jobs.example.com/{uuid.uuid4().hex[:8]}")
    fields.setdefault('description', f"{title} role")
    fields.setdefault('posted_date', scraped_date or now)

    session = session_factory()
    try:
        job = JobListing(title=title, scraped_date=scraped_date or now, **fields)
        session.add(job)
        session.commit()
        return job.id
    finally:
        session.close()
