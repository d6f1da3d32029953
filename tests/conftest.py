"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("SECRET_KEY", "secret-key")
os.environ.setdefault("ENVIRONMENT", "test")

# Ensure the app package is importable when tests run from the repo root.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.append(str(BACKEND_ROOT))

from app.db.base_class import Base
from app.models.catalog.bookmark_model import Bookmark
from app.models.catalog.resource_model import Resource
from app.models.catalog.skill_model import Skill, skill_resources
from app.services.url_verifier import UrlVerifier
from tests.utils import FakeHttpSession

TABLES = [
    Skill.__table__,
    Resource.__table__,
    skill_resources,
    Bookmark.__table__,
]

KNOWN_TEST_DOMAINS = ["youtube.com", "coursera.org", "known-platform.test"]


@pytest.fixture()
def engine():
    # One shared connection so worker threads see the same in-memory database.
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=TABLES)
        engine.dispose()


@pytest.fixture()
def db_session(engine) -> Session:
    SessionLocal = sessionmaker(bind=engine, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def http_session() -> FakeHttpSession:
    return FakeHttpSession()


@pytest.fixture()
def verifier(http_session) -> UrlVerifier:
    return UrlVerifier(
        KNOWN_TEST_DOMAINS,
        strict_tls=False,
        timeout=1.0,
        concurrency=3,
        dispatch_delay=0,
        session=http_session,
    )
