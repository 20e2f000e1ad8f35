from fastapi import APIRouter, Depends
from ...api import deps
from ...core.errors import EnrollmentError
from ...db import schemas
from ...services.enrollment_service import ClassEnrollmentFacade

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.post("", response_model=schemas.WaitlistEntry)
def join_waitlist(
    payload: schemas.WaitlistJoin,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: str = Depends(deps.get_caller),
):
    try:
        return enrollment.join_waitlist(payload.class_id, payload.member_id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc


@router.delete("/{waitlist_id}")
def leave_waitlist(
    waitlist_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: str = Depends(deps.get_caller),
):
    try:
        left = enrollment.leave_waitlist(waitlist_id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return {"left": left}


@router.get("/position", response_model=schemas.WaitlistPosition)
def waitlist_position(
    class_id: int,
    member_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
):
    return schemas.WaitlistPosition(
        class_id=class_id,
        member_id=member_id,
        position=enrollment.waitlist_position(class_id, member_id),
    )


@router.get("/count", response_model=schemas.WaitlistCount)
def waitlist_count(
    class_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
):
    return schemas.WaitlistCount(class_id=class_id, count=enrollment.waitlist_count(class_id))


@router.get("/members/{member_id}", response_model=list[schemas.WaitlistEntry])
def member_waitlist(
    member_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: str = Depends(deps.get_caller),
):
    return enrollment.member_waitlist(member_id)
