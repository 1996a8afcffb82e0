import uuid
from datetime import datetime

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from eventreg.database.db import Base, get_db
from eventreg.main import app
from eventreg.models.events import Event, EventStatus
from eventreg.models.users import User
from eventreg.routes.deps import get_notification_service
from eventreg.services.registrations import RegistrationService

# Import models so that they register with Base.metadata
from eventreg.models import notifications, registrations  # noqa: F401


class RecordingNotifier:
    """NotificationService double that remembers what it was asked to send."""

    def __init__(self):
        self.confirmations: list[tuple[uuid.UUID, uuid.UUID]] = []
        self.waitlist_available: list[tuple[uuid.UUID, uuid.UUID]] = []
        self.fail = False

    def notify_registration_confirmation(self, user_id, event_id):
        if self.fail:
            raise RuntimeError("mail server unavailable")
        self.confirmations.append((user_id, event_id))

    def notify_waitlist_available(self, user_id, event_id):
        if self.fail:
            raise RuntimeError("mail server unavailable")
        self.waitlist_available.append((user_id, event_id))


@pytest.fixture
def engine(tmp_path) -> Engine:
    # A file-backed database gives every session its own connection,
    # which the concurrency tests rely on.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'eventreg.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def redis_client(fake_redis, monkeypatch: pytest.MonkeyPatch):
    """Route the registration lock to fakeredis."""
    monkeypatch.setattr("eventreg.services.registrations.get_redis_client", lambda: fake_redis)
    return fake_redis


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(db_session: Session, notifier: RecordingNotifier, redis_client) -> RegistrationService:
    return RegistrationService.from_session(db_session, notifier, redis_client=redis_client)


@pytest.fixture
def make_user(db_session: Session):
    counter = {"n": 0}

    def _make_user(name: str | None = None) -> User:
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        user = User(name=name, email=f"{name}@example.com")
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def organizer(make_user) -> User:
    return make_user("organizer")


@pytest.fixture
def make_event(db_session: Session, organizer: User):
    def _make_event(
        capacity: int | None = 10,
        registration_deadline: datetime | None = None,
        status: str = EventStatus.PUBLISHED.value,
        title: str = "Community Meetup",
    ) -> Event:
        event = Event(
            organizer_id=organizer.id,
            title=title,
            capacity=capacity,
            registration_deadline=registration_deadline,
            status=status,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def client(session_factory, notifier: RecordingNotifier, redis_client):
    # Override the database and notification dependencies
    def override_get_db():
        db: Session = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
