from datetime import datetime, timezone

import pytest

from factories import create_class, create_member, fill_class
from gymnex.core import errors
from gymnex.db import models


def test_join_returns_live_position(db_session, enrollment, notifier):
    class_session = create_class(db_session, capacity=1)
    fill_class(db_session, class_session)
    members = [create_member(db_session, f"M{i}") for i in range(3)]

    positions = [enrollment.join_waitlist(class_session.id, m.id).position for m in members]

    assert positions == [1, 2, 3]
    assert enrollment.waitlist_count(class_session.id) == 3
    assert [call[0] for call in notifier.calls] == ["waitlist_joined"] * 3
    assert [call[3] for call in notifier.calls] == [1, 2, 3]


def test_join_twice_is_rejected(db_session, enrollment):
    class_session = create_class(db_session)
    fill_class(db_session, class_session)
    member = create_member(db_session)

    enrollment.join_waitlist(class_session.id, member.id)
    with pytest.raises(errors.AlreadyWaitlisted) as excinfo:
        enrollment.join_waitlist(class_session.id, member.id)
    assert excinfo.value.code == "ALREADY_WAITLISTED"
    assert enrollment.waitlist_count(class_session.id) == 1


def test_booking_full_class_while_waiting_is_rejected(db_session, enrollment):
    class_session = create_class(db_session, capacity=1)
    m1 = create_member(db_session, "M1")
    m2 = create_member(db_session, "M2")
    enrollment.book(class_session.id, m1.id)
    enrollment.book(class_session.id, m2.id)

    with pytest.raises(errors.AlreadyWaitlisted):
        enrollment.book(class_session.id, m2.id)


def test_booked_member_cannot_join(db_session, enrollment):
    class_session = create_class(db_session, capacity=1)
    member = create_member(db_session)
    enrollment.book(class_session.id, member.id)

    with pytest.raises(errors.AlreadyBooked):
        enrollment.join_waitlist(class_session.id, member.id)


def test_leave_shifts_everyone_behind(db_session, enrollment):
    class_session = create_class(db_session)
    fill_class(db_session, class_session)
    a, b, c = (create_member(db_session, name) for name in "ABC")
    entry_a = enrollment.join_waitlist(class_session.id, a.id)
    enrollment.join_waitlist(class_session.id, b.id)
    enrollment.join_waitlist(class_session.id, c.id)

    assert enrollment.leave_waitlist(entry_a.waitlist_id) is True

    assert enrollment.waitlist_position(class_session.id, a.id) is None
    assert enrollment.waitlist_position(class_session.id, b.id) == 1
    assert enrollment.waitlist_position(class_session.id, c.id) == 2
    assert [entry.member_id for entry in enrollment.class_waitlist(class_session.id)] == [b.id, c.id]

    # second leave is a no-op
    assert enrollment.leave_waitlist(entry_a.waitlist_id) is False


def test_leave_unknown_entry(enrollment):
    with pytest.raises(errors.WaitlistEntryNotFound):
        enrollment.leave_waitlist(404)


def test_member_can_rejoin_after_leaving(db_session, enrollment):
    class_session = create_class(db_session)
    fill_class(db_session, class_session)
    a = create_member(db_session, "A")
    b = create_member(db_session, "B")
    first = enrollment.join_waitlist(class_session.id, a.id)
    enrollment.join_waitlist(class_session.id, b.id)
    enrollment.leave_waitlist(first.waitlist_id)

    again = enrollment.join_waitlist(class_session.id, a.id)

    assert again.waitlist_id != first.waitlist_id
    assert again.position == 2


def test_fifo_promotion_skips_nobody(db_session, enrollment):
    class_session = create_class(db_session, capacity=1)
    holder = create_member(db_session, "Holder")
    a = create_member(db_session, "A")
    b = create_member(db_session, "B")
    booking = enrollment.book(class_session.id, holder.id)
    enrollment.book(class_session.id, a.id)
    enrollment.book(class_session.id, b.id)

    result = enrollment.cancel(booking.booking_id)

    assert result.promotion.member_id == a.id
    assert enrollment.waitlist_position(class_session.id, b.id) == 1


def test_joined_at_ties_break_by_insertion_order(db_session, enrollment):
    class_session = create_class(db_session, capacity=1)
    holder = create_member(db_session, "Holder")
    a = create_member(db_session, "A")
    b = create_member(db_session, "B")
    booking = enrollment.book(class_session.id, holder.id)
    same_instant = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    db_session.add_all(
        [
            models.WaitlistEntry(member_id=b.id, class_id=class_session.id, joined_at=same_instant),
            models.WaitlistEntry(member_id=a.id, class_id=class_session.id, joined_at=same_instant),
        ]
    )
    db_session.commit()

    assert enrollment.waitlist_position(class_session.id, b.id) == 1
    assert enrollment.waitlist_position(class_session.id, a.id) == 2
    assert enrollment.cancel(booking.booking_id).promotion.member_id == b.id


def test_member_waitlist_lists_positions_per_class(db_session, enrollment):
    yoga = create_class(db_session, name="Yoga")
    boxing = create_class(db_session, name="Boxing")
    fill_class(db_session, yoga)
    fill_class(db_session, boxing)
    other = create_member(db_session, "Other")
    member = create_member(db_session, "Member")
    enrollment.join_waitlist(yoga.id, other.id)
    enrollment.join_waitlist(yoga.id, member.id)
    enrollment.join_waitlist(boxing.id, member.id)

    entries = enrollment.member_waitlist(member.id)

    assert {(entry.class_id, entry.position) for entry in entries} == {(yoga.id, 2), (boxing.id, 1)}


def test_join_cancelled_class_is_rejected(db_session, enrollment):
    class_session = create_class(db_session)
    member = create_member(db_session)
    enrollment.cancel_class(class_session.id, actor="admin")

    with pytest.raises(errors.ClassCancelled):
        enrollment.join_waitlist(class_session.id, member.id)


def test_join_with_free_seats_is_rejected(db_session, enrollment, notifier):
    class_session = create_class(db_session, capacity=2)
    a, b, c = (create_member(db_session, name) for name in "ABC")

    with pytest.raises(errors.SeatsAvailable) as excinfo:
        enrollment.join_waitlist(class_session.id, a.id)
    assert excinfo.value.code == "SEATS_AVAILABLE"
    assert excinfo.value.category == "precondition"
    assert enrollment.waitlist_count(class_session.id) == 0

    # Later bookers cannot jump an earlier member who was turned away
    assert enrollment.book(class_session.id, b.id).confirmed
    assert enrollment.book(class_session.id, c.id).confirmed
    assert enrollment.join_waitlist(class_session.id, a.id).position == 1
    assert notifier.names().count("waitlist_joined") == 1


def test_join_after_seat_frees_is_rejected(db_session, enrollment):
    class_session = create_class(db_session, capacity=1)
    holder = create_member(db_session, "Holder")
    member = create_member(db_session, "Member")
    booking = enrollment.book(class_session.id, holder.id)
    enrollment.cancel(booking.booking_id)

    with pytest.raises(errors.SeatsAvailable):
        enrollment.join_waitlist(class_session.id, member.id)
    assert enrollment.book(class_session.id, member.id).confirmed
