from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import EnrollmentError
from ...db.session import get_db
from ...db import models, schemas
from ...services.enrollment_service import ClassEnrollmentFacade

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    class_id: int | None = None,
    member_id: int | None = None,
    status_filter: models.BookingStatus | None = None,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "instructor")),
):
    query = db.query(models.Booking)
    if class_id:
        query = query.filter(models.Booking.class_id == class_id)
    if member_id:
        query = query.filter(models.Booking.member_id == member_id)
    if status_filter:
        query = query.filter(models.Booking.status == status_filter)
    return query.order_by(models.Booking.id).all()


@router.post("", response_model=schemas.BookingOutcome)
def create_booking(
    payload: schemas.BookingCreate,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: str = Depends(deps.get_caller),
):
    try:
        source = models.BookingSource(payload.source)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown booking source"
        ) from exc
    try:
        result = enrollment.book(payload.class_id, payload.member_id, source=source)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return schemas.BookingOutcome(
        status=result.status,
        position=result.position,
        booking_id=result.booking_id,
        waitlist_id=result.waitlist_id,
    )


@router.post("/{booking_id}/cancel", response_model=schemas.CancelOutcome)
def cancel_booking(
    booking_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    actor: str = Depends(deps.get_caller),
):
    try:
        result = enrollment.cancel(booking_id, actor=actor)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    promotion = result.promotion
    return schemas.CancelOutcome(
        booking_id=result.booking_id,
        already_cancelled=result.already_cancelled,
        promoted_member_id=promotion.member_id if promotion else None,
        promoted_booking_id=promotion.booking_id if promotion else None,
    )


@router.post("/{booking_id}/attend")
def mark_attended(
    booking_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "instructor")),
):
    try:
        enrollment.mark_attended(booking_id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return {}
