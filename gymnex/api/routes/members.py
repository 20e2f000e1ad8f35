from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(tags=["members"])


@router.get("/members", response_model=list[schemas.Member])
def list_members(
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "instructor")),
):
    return db.query(models.Member).order_by(models.Member.full_name).all()


@router.post("/members", response_model=schemas.Member)
def create_member(
    payload: schemas.MemberCreate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    member = models.Member(**payload.model_dump())
    db.add(member)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
        ) from exc
    db.refresh(member)
    return member


@router.get("/instructors", response_model=list[schemas.Instructor])
def list_instructors(db: Session = Depends(get_db)):
    return (
        db.query(models.Instructor)
        .filter(models.Instructor.is_active.is_(True))
        .order_by(models.Instructor.full_name)
        .all()
    )


@router.post("/instructors", response_model=schemas.Instructor)
def create_instructor(
    payload: schemas.InstructorCreate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin")),
):
    instructor = models.Instructor(**payload.model_dump())
    db.add(instructor)
    db.commit()
    db.refresh(instructor)
    return instructor
