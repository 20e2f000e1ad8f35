import httpx
import pytest

from factories import create_class, create_member
from gymnex.config import Settings
from gymnex.db import models
from gymnex.services import notification_service
from gymnex.services.enrollment_service import ClassEnrollmentFacade
from gymnex.services.notification_service import (
    NotificationDispatcher,
    SmsGateway,
    build_sms_gateway,
    normalize_phone,
)


class FakeSmsGateway:
    def __init__(self):
        self.sent = []

    def send(self, phones, message):
        self.sent.append((list(phones), message))
        return len(self.sent[-1][0])


@pytest.fixture()
def mock_sms_transport(monkeypatch):
    requests = []
    failing = set()

    def handler(request):
        requests.append(request)
        body = dict(httpx.QueryParams(request.content.decode()))
        if body["recipient"] in failing:
            return httpx.Response(500, json={"status": "error"})
        return httpx.Response(200, json={"status": "success"})

    real_client = httpx.Client

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(notification_service.httpx, "Client", client_factory)
    return requests, failing


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0712345678", "94712345678"),
        ("+94 71 234 5678", "94712345678"),
        ("0094712345678", "94712345678"),
        ("94712345678", "94712345678"),
        ("712345678", "94712345678"),
        ("(071) 234-5678", "94712345678"),
        ("07123", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_booking_flow_stores_in_app_notifications(db_session, session_factory, test_settings):
    class_session = create_class(db_session, capacity=1, name="Yoga Flow")
    m1 = create_member(db_session, "M1")
    m2 = create_member(db_session, "M2")
    enrollment = ClassEnrollmentFacade(session_factory, settings=test_settings)

    booking = enrollment.book(class_session.id, m1.id)
    enrollment.book(class_session.id, m2.id)
    enrollment.cancel(booking.booking_id)

    rows = (
        db_session.query(models.ClassNotification)
        .order_by(models.ClassNotification.id)
        .all()
    )
    assert [(row.member_id, row.type) for row in rows] == [
        (m1.id, models.NotificationType.booking_confirmation),
        (m2.id, models.NotificationType.waitlist_joined),
        (m1.id, models.NotificationType.booking_cancelled),
        (m2.id, models.NotificationType.waitlist_promotion),
    ]
    assert rows[0].message == "You've booked Yoga Flow on Monday at 18:00"
    assert "#1 on the waitlist" in rows[1].message
    assert all(row.read is False for row in rows)


def test_dispatcher_sends_sms_to_members_with_phones(db_session, session_factory):
    class_session = create_class(db_session, name="Boxing")
    with_phone = create_member(db_session, "Phone", phone="0712345678")
    without_phone = create_member(db_session, "NoPhone")
    sms = FakeSmsGateway()
    dispatcher = NotificationDispatcher(session_factory, sms=sms)

    dispatcher.class_cancelled(
        [with_phone.id, without_phone.id, with_phone.id], class_session.id, "Coach is ill"
    )

    rows = db_session.query(models.ClassNotification).all()
    assert sorted(row.member_id for row in rows) == [with_phone.id, without_phone.id]
    assert sms.sent == [
        (["0712345678"], "Class Cancelled\nBoxing has been cancelled. Reason: Coach is ill")
    ]


def test_dispatcher_skips_missing_class(db_session, session_factory):
    member = create_member(db_session)
    sms = FakeSmsGateway()
    dispatcher = NotificationDispatcher(session_factory, sms=sms)

    dispatcher.booking_confirmed(member.id, 999)

    assert db_session.query(models.ClassNotification).count() == 0
    assert sms.sent == []


def test_sms_gateway_posts_each_recipient(mock_sms_transport):
    requests, failing = mock_sms_transport
    failing.add("94770000000")
    gateway = SmsGateway("https://sms.example.test/api/v3/sms/send", "token", "GymNex")

    sent = gateway.send(["0712345678", "0770000000", "not a phone"], "Class Reminder")

    assert sent == 1
    assert len(requests) == 2
    assert requests[0].headers["Authorization"] == "Bearer token"
    body = dict(httpx.QueryParams(requests[0].content.decode()))
    assert body == {
        "recipient": "94712345678",
        "sender_id": "GymNex",
        "type": "plain",
        "message": "Class Reminder",
    }


def test_sms_gateway_requires_configuration():
    assert build_sms_gateway(Settings()) is None
    gateway = build_sms_gateway(
        Settings(SMS_API_URL="https://sms.example.test", SMS_API_TOKEN="secret")
    )
    assert isinstance(gateway, SmsGateway)
    assert gateway.sender_id == "GymNex"


def test_sms_failure_does_not_fail_booking(db_session, session_factory, test_settings, mock_sms_transport):
    _, failing = mock_sms_transport
    failing.add("94712345678")
    class_session = create_class(db_session)
    member = create_member(db_session, phone="0712345678")
    dispatcher = NotificationDispatcher(
        session_factory, sms=SmsGateway("https://sms.example.test", "token", "GymNex")
    )
    enrollment = ClassEnrollmentFacade(session_factory, notifier=dispatcher, settings=test_settings)

    result = enrollment.book(class_session.id, member.id)

    assert result.confirmed
    assert db_session.query(models.ClassNotification).count() == 1


def test_announcement_reaches_active_bookings_only(db_session, enrollment, notifier):
    class_session = create_class(db_session, capacity=1)
    booked = create_member(db_session, "Booked")
    waiting = create_member(db_session, "Waiting")
    enrollment.book(class_session.id, booked.id)
    enrollment.book(class_session.id, waiting.id)

    recipients = enrollment.announce(class_session.id, "Bring a towel", "Mats are being cleaned", actor_id=1)

    assert recipients == [booked.id]
    assert notifier.calls[-1] == (
        "custom_announcement",
        [booked.id],
        class_session.id,
        "Bring a towel",
        "Mats are being cleaned",
    )
    log = db_session.query(models.AuditLog).one()
    assert log.action == "class_announcement"


def test_instructor_change_notifies_enrolled_members(db_session, enrollment, notifier):
    class_session = create_class(db_session, capacity=2)
    member = create_member(db_session)
    instructor = models.Instructor(full_name="Coach Perera")
    db_session.add(instructor)
    db_session.commit()
    enrollment.book(class_session.id, member.id)

    updated = enrollment.change_instructor(class_session.id, instructor.id)

    assert updated.instructor_id == instructor.id
    assert notifier.calls[-1] == (
        "instructor_changed",
        [member.id],
        class_session.id,
        "Coach Perera",
    )
