"""
Test configuration and fixtures.

Provides:
- In-memory SQLite session (fresh schema per test)
- Tenants in UTC and America/New_York
"""
import os
from typing import Generator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import models, models_integration  # noqa: F401
from app.database import Base
from app.models import Tenant
from helpers import make_tenant


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSession()
    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def tenant(db) -> Tenant:
    return make_tenant(db)


@pytest.fixture
def ny_tenant(db) -> Tenant:
    return make_tenant(db, tz="America/New_York")
