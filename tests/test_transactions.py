import threading
import time

import pytest
from sqlalchemy.exc import OperationalError

from factories import create_class, create_member
from gymnex.core import errors
from gymnex.db import models
from gymnex.services.transactions import ClassLockRegistry, ClassTransactions


def locked_error():
    return OperationalError("INSERT INTO bookings", {}, Exception("database is locked"))


def test_contention_is_retried_then_succeeds(db_session, session_factory):
    class_session = create_class(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=4, backoff_max=0.01)
    attempts = []

    def work(unit):
        attempts.append(unit.class_id)
        if len(attempts) < 3:
            raise locked_error()
        return "done"

    assert transactions.run(class_session.id, work) == "done"
    assert len(attempts) == 3


def test_contention_surfaces_try_again_after_bounded_attempts(db_session, session_factory):
    class_session = create_class(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=4, backoff_max=0.01)
    attempts = []

    def work(unit):
        attempts.append(1)
        raise locked_error()

    with pytest.raises(errors.TryAgain) as excinfo:
        transactions.run(class_session.id, work)
    assert excinfo.value.code == "TRY_AGAIN"
    assert excinfo.value.category == "contention"
    assert len(attempts) == 4


def test_business_errors_are_not_retried(db_session, session_factory):
    class_session = create_class(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=4, backoff_max=0.01)
    attempts = []

    def work(unit):
        attempts.append(1)
        raise errors.AlreadyBooked()

    with pytest.raises(errors.AlreadyBooked):
        transactions.run(class_session.id, work)
    assert len(attempts) == 1


def test_failed_unit_rolls_back_writes(db_session, session_factory):
    class_session = create_class(db_session)
    member = create_member(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=1)

    def work(unit):
        unit.db.add(models.Booking(member_id=member.id, class_id=unit.class_id))
        unit.db.flush()
        raise errors.InvalidTransition()

    with pytest.raises(errors.InvalidTransition):
        transactions.run(class_session.id, work)
    assert db_session.query(models.Booking).count() == 0


def test_deadline_while_class_is_busy_leaves_state_unchanged(db_session, enrollment):
    class_session = create_class(db_session, capacity=1)
    member = create_member(db_session)
    lock = enrollment.transactions.locks.lock_for(class_session.id)
    lock.acquire()
    try:
        with pytest.raises(errors.DeadlineExceeded) as excinfo:
            enrollment.book(class_session.id, member.id, timeout=0.05)
    finally:
        lock.release()

    assert excinfo.value.category == "deadline"
    assert db_session.query(models.Booking).count() == 0
    assert enrollment.book(class_session.id, member.id).confirmed


def test_deadline_passing_before_commit_rolls_back(db_session, session_factory):
    class_session = create_class(db_session)
    member = create_member(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=1)

    def work(unit):
        unit.db.add(models.Booking(member_id=member.id, class_id=unit.class_id))
        time.sleep(0.1)

    with pytest.raises(errors.DeadlineExceeded):
        transactions.run(class_session.id, work, timeout=0.05)
    assert db_session.query(models.Booking).count() == 0


def test_hooks_run_after_commit_and_failures_are_swallowed(db_session, session_factory, caplog):
    class_session = create_class(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=1)
    seen = []

    def broken():
        raise RuntimeError("sms gateway down")

    def work(unit):
        unit.after_commit(broken)
        unit.after_commit(lambda: seen.append("second hook"))
        return "ok"

    assert transactions.run(class_session.id, work) == "ok"
    assert seen == ["second hook"]
    assert "Post-commit hook failed" in caplog.text


def test_hooks_do_not_run_when_unit_fails(db_session, session_factory):
    class_session = create_class(db_session)
    transactions = ClassTransactions(session_factory, max_attempts=1)
    seen = []

    def work(unit):
        unit.after_commit(lambda: seen.append("hook"))
        raise errors.CapacityBelowActiveBookings()

    with pytest.raises(errors.CapacityBelowActiveBookings):
        transactions.run(class_session.id, work)
    assert seen == []


def test_failing_notifier_never_fails_booking(db_session, enrollment, monkeypatch):
    class_session = create_class(db_session, capacity=1)
    member = create_member(db_session)

    def explode(*_args, **_kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(enrollment.notifier, "booking_confirmed", explode)

    result = enrollment.book(class_session.id, member.id)

    assert result.confirmed
    assert db_session.query(models.Booking).count() == 1


def test_lock_registry_hands_out_one_lock_per_class():
    registry = ClassLockRegistry()
    assert registry.lock_for(1) is registry.lock_for(1)
    assert registry.lock_for(1) is not registry.lock_for(2)

    held = threading.Event()
    release = threading.Event()

    def holder():
        with registry.hold(1):
            held.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(timeout=5)
    try:
        with registry.hold(2, deadline=None):
            pass
        with pytest.raises(errors.DeadlineExceeded):
            with registry.hold(1, deadline=0):
                pass
    finally:
        release.set()
        thread.join()
