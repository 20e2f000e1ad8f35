from fastapi import APIRouter, Depends
from ...api import deps
from ...core.errors import EnrollmentError
from ...db import models, schemas
from ...services.enrollment_service import ClassEnrollmentFacade

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post("", response_model=schemas.RatingSubmitted)
def submit_rating(
    payload: schemas.RatingSubmit,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: str = Depends(deps.get_caller),
):
    try:
        submitted = enrollment.submit_rating(
            payload.member_id, payload.class_id, payload.rating, payload.review
        )
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return schemas.RatingSubmitted(
        review=schemas.Review.model_validate(submitted.review),
        updated=submitted.updated,
    )


@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    enrollment: ClassEnrollmentFacade = Depends(deps.get_enrollment),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        enrollment.delete_review(review_id)
    except EnrollmentError as exc:
        raise deps.enrollment_http_error(exc) from exc
    return {"status": "deleted"}
