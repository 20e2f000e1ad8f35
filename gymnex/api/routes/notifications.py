from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{member_id}", response_model=list[schemas.Notification])
def list_notifications(
    member_id: int,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    _: str = Depends(deps.get_caller),
):
    query = db.query(models.ClassNotification).filter(
        models.ClassNotification.member_id == member_id
    )
    if unread_only:
        query = query.filter(models.ClassNotification.read.is_(False))
    return query.order_by(models.ClassNotification.id.desc()).all()


@router.post("/{member_id}/{notification_id}/read", response_model=schemas.Notification)
def mark_read(
    member_id: int,
    notification_id: int,
    db: Session = Depends(get_db),
    _: str = Depends(deps.get_caller),
):
    notification = db.get(models.ClassNotification, notification_id)
    if not notification or notification.member_id != member_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification
