from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ClassNotFound, InvalidRating, MemberNotFound, ReviewNotFound
from ..db import models

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RatingSummary:
    average: float
    count: int

    def as_dict(self) -> dict:
        return {"average": self.average, "count": self.count}


@dataclass(slots=True)
class SubmittedRating:
    review: models.ClassReview
    updated: bool


def _validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRating()
    return rating


class RatingAggregator:
    """One review per member and class; the latest submission wins."""

    def submit(
        self,
        db: Session,
        member_id: int,
        class_id: int,
        rating: int,
        review: str = "",
    ) -> SubmittedRating:
        rating = _validate_rating(rating)
        if db.get(models.ClassSession, class_id) is None:
            raise ClassNotFound()
        if db.get(models.Member, member_id) is None:
            raise MemberNotFound()

        existing = self.member_review(db, member_id, class_id)
        if existing is None:
            created = models.ClassReview(
                member_id=member_id,
                class_id=class_id,
                rating=rating,
                review=review or "",
            )
            db.add(created)
            try:
                db.commit()
            except IntegrityError:
                # Lost a race with a concurrent first submission; update theirs
                db.rollback()
                existing = self.member_review(db, member_id, class_id)
                if existing is None:
                    raise
            else:
                db.refresh(created)
                return SubmittedRating(review=created, updated=False)

        existing.rating = rating
        existing.review = review or ""
        existing.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(existing)
        return SubmittedRating(review=existing, updated=True)

    def average_for(self, db: Session, class_id: int) -> RatingSummary:
        total, count = db.execute(
            select(
                func.coalesce(func.sum(models.ClassReview.rating), 0),
                func.count(models.ClassReview.id),
            ).where(models.ClassReview.class_id == class_id)
        ).one()
        if not count:
            return RatingSummary(average=0, count=0)
        average = (Decimal(int(total)) / Decimal(count)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )
        return RatingSummary(average=float(average), count=count)

    def reviews_for(self, db: Session, class_id: int) -> list[models.ClassReview]:
        return list(
            db.execute(
                select(models.ClassReview)
                .where(models.ClassReview.class_id == class_id)
                .order_by(models.ClassReview.created_at.desc(), models.ClassReview.id.desc())
            ).scalars()
        )

    def member_review(
        self, db: Session, member_id: int, class_id: int
    ) -> models.ClassReview | None:
        return db.execute(
            select(models.ClassReview).where(
                models.ClassReview.member_id == member_id,
                models.ClassReview.class_id == class_id,
            )
        ).scalar_one_or_none()

    def delete_review(self, db: Session, review_id: int) -> None:
        review = db.get(models.ClassReview, review_id)
        if review is None:
            raise ReviewNotFound()
        db.delete(review)
        db.commit()
        logger.info("Review deleted", extra={"review_id": review_id})
