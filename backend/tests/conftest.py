"""Pytest fixtures — fresh SQLite database per test, API client, event recorder."""
import os

# Point the app at SQLite before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.events.dispatcher import dispatcher
from app.events.types import DomainEvent
from app.main import app, notifications
from app.notifications.mailer import MemoryMailer
from app.seed import ensure_admin
from app.services.auth_service import create_access_token, hash_password
from app.services.travel_request_service import local_today

# Import all models so they register with Base.metadata
from app.models.user import User, UserRole                 # noqa: F401
from app.models.travel_request import TravelRequest         # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session, closed after the test."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine, mailer):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def mailer():
    """Swap the app's mailer for an in-memory outbox."""
    original = notifications.mailer
    notifications.mailer = MemoryMailer()
    yield notifications.mailer
    notifications.mailer = original


@pytest.fixture(scope="function")
def recorded_events():
    """Collect every domain event dispatched during the test."""
    events: list[DomainEvent] = []
    dispatcher.subscribe(DomainEvent, events.append)
    yield events
    dispatcher.unsubscribe(DomainEvent, events.append)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def days_from_today(days: int) -> str:
    return (local_today() + timedelta(days=days)).isoformat()


def make_user(db, name: str = "Test User", email: str = None, role: UserRole = UserRole.user) -> User:
    """Insert a user directly (no API), returning the ORM object."""
    user = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        password_hash=hash_password("password123"),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_admin(db, name: str = "Admin User", email: str = "admin@example.com") -> User:
    return ensure_admin(db, name, email, "password123")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def register_user(client: TestClient, name: str = "Test User", email: str = None) -> dict:
    """Helper — POST /api/auth/register and return response JSON."""
    resp = client.post("/api/auth/register", json={
        "name": name,
        "email": email or f"{name.lower().replace(' ', '.')}@example.com",
        "password": "password123",
        "password_confirmation": "password123",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_travel_request(
    client: TestClient,
    headers: dict,
    destination: str = "Lisbon",
    start_in: int = 10,
    end_in: int = 15,
    **extra,
) -> dict:
    """Helper — POST /api/travel-requests and return the resource."""
    resp = client.post("/api/travel-requests/", headers=headers, json={
        "destination": destination,
        "start_date": days_from_today(start_in),
        "end_date": days_from_today(end_in),
        **extra,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def make_travel_request(db, owner: User, **overrides) -> TravelRequest:
    """Insert a travel request directly, bypassing the lifecycle rules."""
    data = {
        "user_id": owner.user_id,
        "requester_name": owner.name,
        "destination": "Lisbon",
        "start_date": local_today() + timedelta(days=10),
        "end_date": local_today() + timedelta(days=15),
    }
    data.update(overrides)
    travel_request = TravelRequest(**data)
    db.add(travel_request)
    db.commit()
    db.refresh(travel_request)
    return travel_request
