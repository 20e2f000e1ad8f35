"""Member notifications for class enrollment events.

Every notification is stored in the in-app notification centre
(``class_notifications``) and, when an SMS gateway is configured, also sent
as a text message to members with a phone number. Delivery is best effort:
callers run these methods after their own transaction has committed and log
whatever they raise.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import models

logger = logging.getLogger(__name__)

_PHONE_CLEANUP = re.compile(r"[\s\-()]")
_PHONE_FORMAT = re.compile(r"^94\d{9}$")


def normalize_phone(phone: str | None) -> str | None:
    """Return the phone in ``94XXXXXXXXX`` form, or ``None`` if it is not valid.

    Accepts local (``0712345678``), international (``+94712345678``,
    ``0094712345678``) and bare subscriber numbers.
    """
    if not phone or not isinstance(phone, str):
        return None
    cleaned = _PHONE_CLEANUP.sub("", phone)
    if cleaned.startswith("0094"):
        cleaned = cleaned[2:]
    elif cleaned.startswith("+94"):
        cleaned = cleaned[1:]
    elif cleaned.startswith("0"):
        cleaned = "94" + cleaned[1:]
    elif not cleaned.startswith("94"):
        cleaned = "94" + cleaned
    return cleaned if _PHONE_FORMAT.match(cleaned) else None


class SmsGateway:
    def __init__(self, api_url: str, api_token: str, sender_id: str, *, timeout: float = 10) -> None:
        self.api_url = api_url
        self.api_token = api_token
        self.sender_id = sender_id
        self.timeout = timeout

    def send(self, phones: Iterable[str], message: str) -> int:
        recipients = [number for number in (normalize_phone(p) for p in phones) if number]
        if not recipients:
            return 0
        sent = 0
        with httpx.Client(timeout=self.timeout) as client:
            for recipient in recipients:
                try:
                    response = client.post(
                        self.api_url,
                        data={
                            "recipient": recipient,
                            "sender_id": self.sender_id,
                            "type": "plain",
                            "message": message,
                        },
                        headers={
                            "Authorization": f"Bearer {self.api_token}",
                            "Accept": "application/json",
                        },
                    )
                    response.raise_for_status()
                    sent += 1
                except httpx.HTTPError:
                    logger.exception("Failed to send SMS", extra={"recipient": recipient})
        return sent


def build_sms_gateway(settings: Settings | None = None) -> SmsGateway | None:
    settings = settings or get_settings()
    if not settings.sms_api_url or not settings.sms_api_token:
        return None
    return SmsGateway(settings.sms_api_url, settings.sms_api_token, settings.sms_sender_id)


@dataclass(slots=True)
class ClassInfo:
    id: int
    name: str
    day: str | None
    time: str | None


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sms: SmsGateway | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.sms = sms

    def booking_confirmed(self, member_id: int, class_id: int) -> None:
        self._send(
            [member_id],
            class_id,
            models.NotificationType.booking_confirmation,
            "Class Booked Successfully!",
            lambda info: f"You've booked {info.name} on {info.day} at {info.time}",
        )

    def waitlist_joined(self, member_id: int, class_id: int, position: int) -> None:
        self._send(
            [member_id],
            class_id,
            models.NotificationType.waitlist_joined,
            "Added to Waitlist",
            lambda info: (
                f"You're #{position} on the waitlist for {info.name}. "
                "We'll notify you if a spot opens!"
            ),
        )

    def waitlist_promoted(self, member_id: int, class_id: int) -> None:
        self._send(
            [member_id],
            class_id,
            models.NotificationType.waitlist_promotion,
            "Spot Available!",
            lambda info: (
                f"Good news! A spot opened in {info.name} "
                "and you've been automatically enrolled!"
            ),
        )

    def booking_cancelled(self, member_id: int, class_id: int) -> None:
        self._send(
            [member_id],
            class_id,
            models.NotificationType.booking_cancelled,
            "Booking Cancelled",
            lambda info: f"Your booking for {info.name} on {info.day} has been cancelled.",
        )

    def class_cancelled(self, member_ids: list[int], class_id: int, reason: str = "") -> None:
        def message(info: ClassInfo) -> str:
            if reason:
                return f"{info.name} has been cancelled. Reason: {reason}"
            return f"{info.name} has been cancelled by the instructor."

        self._send(
            member_ids,
            class_id,
            models.NotificationType.class_cancelled,
            "Class Cancelled",
            message,
        )

    def custom_announcement(
        self, member_ids: list[int], class_id: int, title: str, body: str
    ) -> None:
        self._send(
            member_ids,
            class_id,
            models.NotificationType.announcement,
            title,
            lambda info: f"{body}\n\nClass: {info.name}",
        )

    def instructor_changed(
        self, member_ids: list[int], class_id: int, instructor_name: str
    ) -> None:
        self._send(
            member_ids,
            class_id,
            models.NotificationType.instructor_change,
            "Instructor Changed",
            lambda info: f"{info.name} will now be taught by {instructor_name}",
        )

    def class_reminder(self, member_ids: list[int], class_id: int) -> None:
        self._send(
            member_ids,
            class_id,
            models.NotificationType.reminder,
            "Class Reminder",
            lambda info: f"Your class {info.name} is tomorrow at {info.time}",
        )

    def _send(
        self,
        member_ids: list[int],
        class_id: int,
        kind: models.NotificationType,
        title: str,
        build_message: Callable[[ClassInfo], str],
    ) -> None:
        member_ids = list(dict.fromkeys(member_ids))
        if not member_ids:
            return
        with self.session_factory() as db:
            class_session = db.get(models.ClassSession, class_id)
            if class_session is None:
                logger.warning(
                    "Skipping notification for missing class",
                    extra={"class_id": class_id, "kind": kind.value},
                )
                return
            info = ClassInfo(
                id=class_session.id,
                name=class_session.name,
                day=class_session.day_of_week.value.title() if class_session.day_of_week else None,
                time=class_session.start_time,
            )
            message = build_message(info)
            db.add_all(
                [
                    models.ClassNotification(
                        member_id=member_id,
                        class_id=class_id,
                        type=kind,
                        title=title,
                        message=message,
                    )
                    for member_id in member_ids
                ]
            )
            db.commit()
            phones = []
            if self.sms is not None:
                phones = list(
                    db.scalars(
                        select(models.Member.phone).where(
                            models.Member.id.in_(member_ids),
                            models.Member.phone.is_not(None),
                        )
                    )
                )
        logger.info(
            "Notification stored",
            extra={"class_id": class_id, "kind": kind.value, "recipients": len(member_ids)},
        )
        if phones:
            self.sms.send(phones, f"{title}\n{message}")
