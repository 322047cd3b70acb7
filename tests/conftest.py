import os
from contextlib import contextmanager

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studiobook.api import deps
from studiobook.api.errors import register_error_handlers
from studiobook.api.routes import (
    auth,
    bookings,
    classes,
    credits,
    misc,
    payments,
    reports,
    settings as settings_routes,
    waitlist,
)
from studiobook.config import get_settings
from studiobook.core.rate_limit import limiter
from studiobook.db import models  # noqa: F401
from studiobook.db.session import Base, get_db
from studiobook.services.notification_service import (
    EmailDeliveryError,
    NotificationDispatcher,
    RetryPolicy,
)


def make_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    # let SQLAlchemy own BEGIN so SAVEPOINTs work on pysqlite
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    return engine


class RecordingEmailSender:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.failures_left = 0

    def fail_next(self, times: int = 1) -> None:
        self.failures_left = times

    def send(self, *, to: str, subject: str, html: str) -> str | None:
        if self.failures_left:
            self.failures_left -= 1
            raise EmailDeliveryError("provider unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return f"email-{len(self.sent)}"


@pytest.fixture(autouse=True)
def _reset_state():
    limiter.reset()
    get_settings.cache_clear()
    yield
    limiter.reset()
    get_settings.cache_clear()


@pytest.fixture()
def configure(monkeypatch):
    def apply(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, str(value))
        get_settings.cache_clear()

    yield apply
    get_settings.cache_clear()


@pytest.fixture()
def db_session():
    engine = make_engine()
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def email_sender():
    return RecordingEmailSender()


@pytest.fixture()
def dispatcher(db_session, email_sender):
    @contextmanager
    def session_scope():
        yield db_session

    return NotificationDispatcher(
        session_scope,
        email_sender,
        RetryPolicy(base_seconds=60, max_attempts=3),
    )


@pytest.fixture()
def api_client(email_sender):
    engine = make_engine()
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    test_dispatcher = NotificationDispatcher(
        TestingSessionLocal,
        email_sender,
        RetryPolicy(base_seconds=60, max_attempts=3),
    )

    test_app = FastAPI()
    register_error_handlers(test_app)
    for module in (
        auth, bookings, classes, credits, misc, payments, reports, settings_routes, waitlist
    ):
        test_app.include_router(module.router, prefix="/api/v1")
    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_dispatcher] = lambda: test_dispatcher

    with TestClient(test_app) as client:
        yield client, TestingSessionLocal

    test_app.dependency_overrides.clear()
    engine.dispose()
