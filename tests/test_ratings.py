import pytest

from factories import create_class, create_member
from gymnex.core import errors
from gymnex.db import models


def rate(session, enrollment, class_session, ratings):
    for index, rating in enumerate(ratings):
        member = create_member(session, f"Rater{index}")
        enrollment.submit_rating(member.id, class_session.id, rating)


def test_average_of_unrated_class_is_zero(db_session, enrollment):
    class_session = create_class(db_session)

    summary = enrollment.average_rating(class_session.id)

    assert summary.as_dict() == {"average": 0, "count": 0}


@pytest.mark.parametrize(
    ("ratings", "expected"),
    [
        ([4, 5], 4.5),
        ([4, 4, 5], 4.3),
        ([5, 4, 4, 4], 4.3),
        ([5, 5, 5, 4], 4.8),
        ([1], 1.0),
    ],
)
def test_average_rounds_half_up_to_one_decimal(db_session, enrollment, ratings, expected):
    class_session = create_class(db_session)
    rate(db_session, enrollment, class_session, ratings)

    summary = enrollment.average_rating(class_session.id)

    assert summary.average == expected
    assert summary.count == len(ratings)


def test_resubmission_replaces_previous_rating(db_session, enrollment):
    class_session = create_class(db_session)
    member = create_member(db_session)

    first = enrollment.submit_rating(member.id, class_session.id, 2, "Too crowded")
    second = enrollment.submit_rating(member.id, class_session.id, 5, "Much better now")

    assert first.updated is False
    assert second.updated is True
    assert second.review.id == first.review.id
    assert db_session.query(models.ClassReview).count() == 1
    assert enrollment.average_rating(class_session.id).as_dict() == {"average": 5.0, "count": 1}
    assert enrollment.member_review(member.id, class_session.id).review == "Much better now"


@pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", True, None])
def test_rating_outside_range_is_rejected(db_session, enrollment, rating):
    class_session = create_class(db_session)
    member = create_member(db_session)

    with pytest.raises(errors.InvalidRating) as excinfo:
        enrollment.submit_rating(member.id, class_session.id, rating)

    assert excinfo.value.code == "INVALID_RATING"
    assert excinfo.value.category == "invalid"
    assert db_session.query(models.ClassReview).count() == 0


def test_rating_unknown_class_or_member(db_session, enrollment):
    class_session = create_class(db_session)
    member = create_member(db_session)

    with pytest.raises(errors.ClassNotFound):
        enrollment.submit_rating(member.id, 999, 4)
    with pytest.raises(errors.MemberNotFound):
        enrollment.submit_rating(999, class_session.id, 4)


def test_reviews_are_listed_newest_first(db_session, enrollment):
    class_session = create_class(db_session)
    a = create_member(db_session, "A")
    b = create_member(db_session, "B")
    enrollment.submit_rating(a.id, class_session.id, 3, "ok")
    enrollment.submit_rating(b.id, class_session.id, 5, "great")

    reviews = enrollment.class_reviews(class_session.id)

    assert [review.member_id for review in reviews] == [b.id, a.id]


def test_delete_review_updates_average(db_session, enrollment):
    class_session = create_class(db_session)
    a = create_member(db_session, "A")
    b = create_member(db_session, "B")
    kept = enrollment.submit_rating(a.id, class_session.id, 4)
    removed = enrollment.submit_rating(b.id, class_session.id, 1, "spam")

    enrollment.delete_review(removed.review.id)

    assert enrollment.average_rating(class_session.id).as_dict() == {"average": 4.0, "count": 1}
    assert [review.id for review in enrollment.class_reviews(class_session.id)] == [kept.review.id]
    with pytest.raises(errors.ReviewNotFound):
        enrollment.delete_review(removed.review.id)
