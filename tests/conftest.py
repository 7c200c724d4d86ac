"""Pytest fixtures."""

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SWEEPER_ENABLED"] = "false"
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["TWILIO_PHONE_NUMBER"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sos_dispatch import models  # noqa: F401 - register for create_all
from sos_dispatch.core.alert_policies import SENT, VOLUNTEER_ACTIVE, VOLUNTEER_PENDING
from sos_dispatch.core.deps import get_dispatcher
from sos_dispatch.core.security import create_access_token, hash_password
from sos_dispatch.db.base import Base
from sos_dispatch.db.session import get_db, get_session_factory
from sos_dispatch.main import app
from sos_dispatch.models.user import User
from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.services.notification_service import NotificationDispatcher
from sos_dispatch.services.sms_gateway import GatewayOutcome

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "secret123"
_PASSWORD_HASH = hash_password(PASSWORD)
_ids = itertools.count(1)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingPublisher:
    """Publisher that keeps every event instead of pushing it."""

    def __init__(self):
        self.events = []

    def publish(self, subscriber_id, event, payload):
        self.events.append((subscriber_id, event, payload))

    def for_event(self, event):
        return [(sid, payload) for sid, e, payload in self.events if e == event]


class FakeGateway:
    """Scripted SMS/voice gateway. Numbers in `failing` raise on send."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sms = []
        self.calls = []

    def send_sms(self, phone, text):
        if phone in self.failing:
            raise RuntimeError("carrier rejected")
        self.sms.append((phone, text))
        return GatewayOutcome(status=SENT, sid=f"SM{len(self.sms)}")

    def call(self, phone, script):
        if phone in self.failing:
            raise RuntimeError("carrier rejected")
        self.calls.append((phone, script))
        return GatewayOutcome(status=SENT, sid=f"CA{len(self.calls)}")


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables(setup_db):
    """Empty every table after each test."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db(setup_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher(publisher, gateway):
    return NotificationDispatcher(publisher=publisher, gateway=gateway)


@pytest.fixture
def client(setup_db, dispatcher):
    """Test client with overridden DB and notification channels."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Create a user directly in the database."""

    def _make(role="user", full_name=None, phone=None):
        n = next(_ids)
        user = User(
            email=f"user{n}@test.com",
            hashed_password=_PASSWORD_HASH,
            full_name=full_name or f"User {n}",
            phone=phone,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_volunteer(db, make_user):
    """Create a volunteer; verified, active and on duty unless told otherwise."""

    def _make(latitude=None, longitude=None, verified=True, on_duty=True, full_name=None):
        user = make_user(role="volunteer", full_name=full_name)
        volunteer = Volunteer(
            user_id=user.id,
            id_type="aadhar",
            id_number=f"ID-{user.id}",
            is_verified=verified,
            status=VOLUNTEER_ACTIVE if verified else VOLUNTEER_PENDING,
            is_on_duty=on_duty,
            latitude=latitude,
            longitude=longitude,
        )
        db.add(volunteer)
        db.commit()
        db.refresh(volunteer)
        return volunteer

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def session_factory(setup_db):
    return TestingSessionLocal
