"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from frame_tracker.api import app
from frame_tracker.config import Settings, get_settings
from frame_tracker.db.base import Base, get_db
from frame_tracker.db.services import CustomerService, OrderService, UserService
from frame_tracker.realtime.notifier import InMemoryChannel, get_notifier
from frame_tracker.schemas.orders import CustomerCreate, OrderCreate, UserCreate


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    from frame_tracker.db import models  # noqa: F401

    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def notifier() -> InMemoryChannel:
    return InMemoryChannel()


@pytest.fixture
def events(notifier):
    """Every event broadcast on ``notifier`` during the test."""
    received = []
    notifier.subscribe(received.append)
    return received


@pytest.fixture
def client(session_factory, notifier, settings) -> Generator[TestClient, None, None]:
    """API client bound to the test database, notifier and settings."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def staff_user(db_session):
    return UserService(db_session).create(
        UserCreate(email="framer@shop.local", first_name="Sam", last_name="Framer")
    )


@pytest.fixture
def customer(db_session):
    return CustomerService(db_session).create(
        CustomerCreate(name="Ada Customer", email="ada@example.com", phone="555-0100")
    )


@pytest.fixture
def make_order(db_session, customer, notifier, settings, now):
    """Factory creating orders through the service layer."""
    service = OrderService(db_session, notifier, settings)

    def _make(**overrides):
        fields = {
            "customer_id": customer.id,
            "due_date": now + timedelta(days=10),
            "estimated_hours": 3.0,
        }
        fields.update(overrides)
        return service.create(OrderCreate(**fields), settings.system_actor_id)

    return _make
