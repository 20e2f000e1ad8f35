import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from gymnex.config import Settings
from gymnex.db.session import Base
from gymnex.services.enrollment_service import ClassEnrollmentFacade


class RecordingNotifier:
    """In-memory stand-in for NotificationDispatcher."""

    def __init__(self):
        self._lock = threading.Lock()
        self.calls = []

    def _record(self, name, *args):
        with self._lock:
            self.calls.append((name, *args))

    def booking_confirmed(self, member_id, class_id):
        self._record("booking_confirmed", member_id, class_id)

    def waitlist_joined(self, member_id, class_id, position):
        self._record("waitlist_joined", member_id, class_id, position)

    def waitlist_promoted(self, member_id, class_id):
        self._record("waitlist_promoted", member_id, class_id)

    def booking_cancelled(self, member_id, class_id):
        self._record("booking_cancelled", member_id, class_id)

    def class_cancelled(self, member_ids, class_id, reason=""):
        self._record("class_cancelled", list(member_ids), class_id, reason)

    def custom_announcement(self, member_ids, class_id, title, body):
        self._record("custom_announcement", list(member_ids), class_id, title, body)

    def instructor_changed(self, member_ids, class_id, instructor_name):
        self._record("instructor_changed", list(member_ids), class_id, instructor_name)

    def class_reminder(self, member_ids, class_id):
        self._record("class_reminder", list(member_ids), class_id)

    def names(self):
        return [call[0] for call in self.calls]


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'enrollment.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )
    try:
        yield TestingSessionLocal
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def test_settings():
    return Settings(ENROLLMENT_MAX_ATTEMPTS=4, ENROLLMENT_BACKOFF_MAX=0.01)


@pytest.fixture()
def enrollment(session_factory, notifier, test_settings):
    return ClassEnrollmentFacade(session_factory, notifier=notifier, settings=test_settings)
