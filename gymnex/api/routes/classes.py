from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import EnrollmentError
from ...db.session import get_db
from ...db import models, schemas
from ...services import schedule_service
from ...services.enrollment_service import ClassEnrollmentFacade

router = APIRouter(prefix="/classes", tags=["classes"])


def _class_payload(overview: schedule_service.ClassOverview) -> schemas.ClassSession:
    payload = schemas.ClassSession.model_validate(overview.class_session)
    payload.booked_seats = overview.booked_seats
    payload.available_seats = overview.available_seats
    payload.waitlist_count = overview.waitlist_count
    return payload


@router.get("", response_model=list[schemas.ClassSession])
def list_classes(
    day_of_week: models.DayOfWeek | None = None,
    instructor_id: int | None = None,
    include_cancelled: bool = False,
    db: Session = Depends(get_db),
):
    overview = schedule_service.list_classes(
        db,
        day_of_week=day_of_week,
        instructor_id=instructor_id,
        include_cancelled=include_cancelled,
    )
    return [_class_payload(item) for item in overview]


@router.post("", response_model=schemas.ClassSession)
def create_class(
    payload: schemas.ClassSessionCreate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        class_session = schedule_service.create_class(db, **payload.model_dump())
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return _class_payload(
        schedule_service.ClassOverview(
            class_session=class_session,
            booked_seats=0,
            available_seats=class_session.max_capacity,
            waitlist_count=0,
        )
    )


@router.patch("/{class_id}/capacity", response_model=schemas.CapacityUpdateResult)
def update_capacity(
    class_id: int,
    payload: schemas.CapacityUpdate,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        result = enrollment.update_capacity(class_id, payload.max_capacity, actor_id=admin.id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return schemas.CapacityUpdateResult(
        class_id=result.class_id,
        max_capacity=result.max_capacity,
        active_bookings=result.active_bookings,
        promoted_member_ids=[promotion.member_id for promotion in result.promotions],
    )


@router.post("/{class_id}/cancel", response_model=schemas.ClassCancellationResult)
def cancel_class(
    class_id: int,
    payload: schemas.ClassCancel,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager", "instructor")),
):
    try:
        result = enrollment.cancel_class(
            class_id, payload.reason, actor=admin.login, actor_id=admin.id
        )
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return schemas.ClassCancellationResult(
        class_id=result.class_id,
        already_cancelled=result.already_cancelled,
        cancelled_booking_ids=result.cancelled_booking_ids,
        affected_member_ids=result.affected_member_ids,
    )


@router.post("/{class_id}/announcements")
def announce(
    class_id: int,
    payload: schemas.Announcement,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager", "instructor")),
):
    try:
        recipients = enrollment.announce(class_id, payload.title, payload.body, actor_id=admin.id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return {"recipients": len(recipients)}


@router.put("/{class_id}/instructor", response_model=schemas.ClassSession)
def assign_instructor(
    class_id: int,
    payload: schemas.InstructorAssign,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        class_session = enrollment.change_instructor(class_id, payload.instructor_id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return schemas.ClassSession.model_validate(class_session)


@router.get("/{class_id}/roster", response_model=list[schemas.Booking])
def roster(
    class_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "instructor")),
):
    try:
        return enrollment.class_roster(class_id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc


@router.get("/{class_id}/waitlist", response_model=list[schemas.WaitlistEntry])
def class_waitlist(
    class_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
):
    return enrollment.class_waitlist(class_id)


@router.get("/{class_id}/rating", response_model=schemas.RatingSummary)
def class_rating(
    class_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
):
    return enrollment.average_rating(class_id).as_dict()


@router.get("/{class_id}/reviews", response_model=list[schemas.Review])
def class_reviews(
    class_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
):
    return enrollment.class_reviews(class_id)
