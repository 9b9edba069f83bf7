"""
Database Models for the Study Planner
=====================================

Three tables back the planner:
1. StudyPreference - per-user time-of-day preference, daily cap and courses
2. Lecture - lecture metadata the half-life model reads (difficulty, duration)
3. ScheduledReview - one spaced-repetition record per (user, lecture)

The half-life maths lives in services/spaced_repetition.py; the helpers at the
bottom of this module look up history, call it, and persist the result in a
single transaction.
"""

import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from db import db
from errors import PersistenceError
from services.spaced_repetition import (
    DEFAULT_PARAMS,
    HalfLifeParams,
    LectureMetadata,
    calculate_half_life,
    convert_difficulty_to_numeric,
    estimate_study_duration,
    estimate_task_complexity,
    parse_duration_minutes,
    schedule_next_review,
)
from utils.datetime_utils import (
    Clock,
    days_between,
    ensure_timezone_aware,
    format_relative_timing,
    now_utc,
    utc,
)
from utils.logging_utils import get_logger

logger = get_logger(__name__)


class StudyPreference(db.Model):
    __tablename__ = "study_preferences"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(100), nullable=False, unique=True, index=True)
    preferred_time_of_day = db.Column(db.String(20), nullable=True)  # MORNING/EVENING
    max_hours_per_day = db.Column(db.Integer, default=4, nullable=False)
    courses = db.Column(db.Text, nullable=True)  # JSON array of course names

    @property
    def course_list(self) -> List[str]:
        if not self.courses:
            return []
        try:
            courses = json.loads(self.courses)
        except json.JSONDecodeError:
            return []
        # Only plain course names are usable as session labels
        return [c for c in courses if isinstance(c, str)]

    def to_dict(self) -> Dict:
        return {
            "userId": self.user_id,
            "preferredTimeOfDay": self.preferred_time_of_day,
            "maxHoursPerDay": self.max_hours_per_day,
            "courses": self.course_list,
        }


class Lecture(db.Model):
    __tablename__ = "lectures"

    id = db.Column(db.String(100), primary_key=True)
    course_id = db.Column(db.String(100), nullable=True, index=True)
    title = db.Column(db.String(200), nullable=False, default="")
    description = db.Column(db.Text, nullable=True)
    difficulty = db.Column(db.String(50), nullable=True)  # "3", "Hard", ...
    duration = db.Column(db.String(50), nullable=True)  # "60 minutes"

    def to_metadata(self) -> LectureMetadata:
        """Numeric view used by the half-life model; keyword guesses fill missing fields"""
        if self.difficulty:
            difficulty = convert_difficulty_to_numeric(self.difficulty)
        else:
            difficulty = estimate_task_complexity(self.title, self.description)
        if self.duration:
            duration = parse_duration_minutes(self.duration)
        else:
            duration = estimate_study_duration(self.title, self.description)

        return LectureMetadata(
            difficulty=difficulty,
            duration=duration,
            title=self.title or "",
            description=self.description or "",
            raw_difficulty=self.difficulty or "Medium",
        )


class ScheduledReview(db.Model):
    """Latest spaced-repetition state for one lecture of one user"""

    __tablename__ = "scheduled_reviews"
    __table_args__ = (
        db.UniqueConstraint("user_id", "lecture_id", name="uq_review_user_lecture"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(100), nullable=False, index=True)
    course_id = db.Column(db.String(100), nullable=True, index=True)
    lecture_id = db.Column(db.String(100), nullable=False)

    review_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    half_life = db.Column(db.Float, nullable=False)  # days
    last_score = db.Column(db.Integer, nullable=False)  # 0-100
    last_review_date = db.Column(db.DateTime(timezone=True), nullable=False)
    study_count = db.Column(db.Integer, default=1, nullable=False)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def is_due(self, reference: datetime) -> bool:
        return ensure_timezone_aware(self.review_date) <= ensure_timezone_aware(reference)

    def to_dict(self, reference: Optional[datetime] = None, tz=utc) -> Dict:
        """JSON view with dates rendered in tz"""
        review_date = ensure_timezone_aware(self.review_date).astimezone(tz)
        last_review_date = ensure_timezone_aware(self.last_review_date).astimezone(tz)
        return {
            "id": self.id,
            "userId": self.user_id,
            "courseId": self.course_id,
            "lectureId": self.lecture_id,
            "reviewDate": review_date.isoformat(),
            "halfLife": round(self.half_life, 4),
            "lastScore": self.last_score,
            "lastReviewDate": last_review_date.isoformat(),
            "studyCount": self.study_count,
            "timing": format_relative_timing(review_date, reference),
        }


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def get_study_preference(user_id: str) -> Optional[StudyPreference]:
    if not user_id:
        return None
    return StudyPreference.query.filter_by(user_id=user_id).first()


def get_lecture_metadata(lecture_id: str) -> LectureMetadata:
    """Metadata for a lecture; defaults (difficulty 3, 30 minutes) when unknown"""
    lecture = db.session.get(Lecture, lecture_id) if lecture_id else None
    if lecture is None:
        logger.info("No lecture found for ID %s, using default metadata", lecture_id)
        return LectureMetadata()
    return lecture.to_metadata()


def find_scheduled_review(user_id: str, lecture_id: str) -> Optional[ScheduledReview]:
    return ScheduledReview.query.filter_by(user_id=user_id, lecture_id=lecture_id).first()


def save_scheduled_review(
    user_id: str,
    course_id: Optional[str],
    lecture_id: str,
    score: float,
    quiz_date=None,
    study_count: Optional[int] = None,
    now: Clock = now_utc,
    params: HalfLifeParams = DEFAULT_PARAMS,
) -> ScheduledReview:
    """
    Create or update the review record for (user_id, lecture_id).

    History comes from the existing record: study count + 1, its half-life as
    the previous half-life, and days since its last review. An explicit
    study_count overrides the derived one. Raises PersistenceError after
    rolling back when the write fails.
    """
    quiz_time = ensure_timezone_aware(quiz_date) if quiz_date is not None else now()
    score = int(round(min(100, max(0, score))))

    try:
        existing = find_scheduled_review(user_id, lecture_id)
        metadata = get_lecture_metadata(lecture_id)

        if existing is not None:
            derived_count = existing.study_count + 1
            previous_half_life = existing.half_life
            time_since_last_review = days_between(existing.last_review_date, quiz_time)
        else:
            derived_count = 1
            previous_half_life = None
            time_since_last_review = 0

        count = study_count if study_count is not None else derived_count

        half_life = calculate_half_life(
            score,
            metadata.duration,
            metadata.difficulty,
            time_since_last_review,
            previous_half_life,
            count,
            params,
        )
        review_date = schedule_next_review(half_life, quiz_time, params=params)

        if existing is not None:
            review = existing
        else:
            review = ScheduledReview(user_id=user_id, lecture_id=lecture_id)
            db.session.add(review)

        review.course_id = course_id
        review.review_date = review_date
        review.half_life = half_life
        review.last_score = score
        review.last_review_date = quiz_time
        review.study_count = count

        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Failed to save review for lecture %s: %s", lecture_id, e)
        raise PersistenceError(f"Could not save scheduled review: {e}") from e

    logger.info(
        "Scheduled review for lecture %s in %.2f days (study count %d)",
        lecture_id,
        half_life,
        count,
        extra={"user_id": user_id, "action": "schedule_review"},
    )
    return review


def get_scheduled_reviews(user_id: str) -> List[ScheduledReview]:
    return (
        ScheduledReview.query.filter_by(user_id=user_id)
        .order_by(ScheduledReview.review_date)
        .all()
    )


def get_due_reviews(user_id: str, now: Clock = now_utc) -> List[ScheduledReview]:
    reference = now()
    return [r for r in get_scheduled_reviews(user_id) if r.is_due(reference)]


def delete_scheduled_reviews(
    user_id: str, course_id: Optional[str] = None, lecture_id: Optional[str] = None
) -> int:
    """Delete a user's reviews, optionally narrowed to a course or lecture"""
    query = ScheduledReview.query.filter_by(user_id=user_id)
    if course_id:
        query = query.filter_by(course_id=course_id)
    if lecture_id:
        query = query.filter_by(lecture_id=lecture_id)

    try:
        deleted = query.delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise PersistenceError(f"Could not delete scheduled reviews: {e}") from e

    return deleted
