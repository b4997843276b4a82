"""Derived statistics: quiz analytics, content quiz history, study streaks and
the per-user dashboard.

Quiz and content analytics are a cache over the completed-attempt set.  They
are always rebuilt from the attempts rather than incremented, so a missed
update heals on the next submission.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from studyhub.config import settings
from studyhub.db.models import (
    ActivityTypeEnum,
    AttemptStatusEnum,
    Content,
    Quiz,
    QuizAttempt,
    StudyActivity,
    User,
    as_utc,
)
from studyhub.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


# ── Quiz analytics ────────────────────────────────────────────────────────────


def recompute_quiz_analytics(db: Session, quiz: Quiz) -> None:
    """Rebuild the denormalized analytics on *quiz* from its completed attempts."""
    completed = (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.quiz_id == quiz.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .all()
    )
    quiz.total_attempts = len(completed)
    if not completed:
        quiz.average_score = 0.0
        quiz.best_score = 0
        quiz.pass_rate = 0.0
        quiz.average_time_spent = 0.0
        quiz.last_taken_at = None
        return

    scores = [a.percentage or 0 for a in completed]
    quiz.average_score = float(_round_half_up(sum(scores) / len(scores)))
    quiz.best_score = max(scores)
    quiz.pass_rate = float(
        _round_half_up(100 * sum(1 for a in completed if a.passed) / len(completed))
    )
    quiz.average_time_spent = round(
        sum(a.time_spent_minutes for a in completed) / len(completed), 1
    )
    quiz.last_taken_at = max(as_utc(a.completed_at) for a in completed if a.completed_at)
    logger.info(
        "Quiz %s analytics: attempts=%d avg=%s best=%s pass_rate=%s",
        quiz.id,
        quiz.total_attempts,
        quiz.average_score,
        quiz.best_score,
        quiz.pass_rate,
    )


def update_content_quiz_history(
    db: Session, content: Content, quiz: Quiz, user_id: uuid.UUID
) -> None:
    """Rebuild the quiz-history block on *content* for the owner's attempts."""
    completed = (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.quiz_id == quiz.id,
            QuizAttempt.user_id == user_id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .order_by(QuizAttempt.completed_at.asc())
        .all()
    )
    content.has_quiz = True
    content.quiz_id = quiz.id
    content.quiz_total_attempts = len(completed)
    content.quiz_best_score = max((a.percentage or 0 for a in completed), default=0)
    content.quiz_passed = any(a.passed for a in completed)
    content.quiz_last_attempt_at = completed[-1].completed_at if completed else None
    content.quiz_attempt_history = [
        {
            "attempt_id": str(a.id),
            "score": a.score,
            "passed": a.passed,
            "completed_at": as_utc(a.completed_at).isoformat(),
        }
        for a in completed[-settings.QUIZ_HISTORY_LIMIT :]
    ]


# ── Streaks / activity ────────────────────────────────────────────────────────


def update_study_streak(user: User, now: datetime) -> None:
    """Same day: unchanged; next day: +1; any gap: back to 1."""
    today = now.date()
    last = as_utc(user.last_activity_at)
    if last is None:
        user.current_streak = 1
    else:
        gap = (today - last.date()).days
        if gap == 1:
            user.current_streak = (user.current_streak or 0) + 1
        elif gap > 1 or not user.current_streak:
            user.current_streak = 1
    user.longest_streak = max(user.longest_streak or 0, user.current_streak)
    user.last_activity_at = now


def record_activity(
    db: Session,
    user_id: uuid.UUID,
    activity_type: ActivityTypeEnum,
    minutes: int,
    *,
    content_id: uuid.UUID | None = None,
    quiz_id: uuid.UUID | None = None,
    occurred_at: datetime | None = None,
) -> StudyActivity:
    activity = StudyActivity(
        user_id=user_id,
        activity_type=activity_type,
        minutes=max(0, minutes),
        content_id=content_id,
        quiz_id=quiz_id,
        occurred_at=occurred_at or datetime.now(timezone.utc),
    )
    db.add(activity)
    return activity


# ── Dashboard ─────────────────────────────────────────────────────────────────


def timeframe_start(timeframe: str, now: datetime) -> datetime:
    days = TIMEFRAME_DAYS.get(timeframe)
    if days is None:
        raise ValidationFailed(
            f"Unknown timeframe {timeframe!r}; expected one of {', '.join(TIMEFRAME_DAYS)}"
        )
    return now - timedelta(days=days)


def _day_series(
    activities: list[StudyActivity], start: datetime, now: datetime
) -> list[dict]:
    minutes: dict[date, int] = defaultdict(int)
    sessions: dict[date, int] = defaultdict(int)
    for a in activities:
        day = as_utc(a.occurred_at).date()
        minutes[day] += a.minutes
        sessions[day] += 1
    series = []
    day = start.date()
    while day <= now.date():
        series.append(
            {
                "date": day.isoformat(),
                "minutes": minutes.get(day, 0),
                "sessions": sessions.get(day, 0),
            }
        )
        day += timedelta(days=1)
    return series


def compute_dashboard(
    db: Session, user: User, timeframe: str = "30d", now: datetime | None = None
) -> dict:
    """Read-only aggregation of the user's learning activity over *timeframe*."""
    now = now or datetime.now(timezone.utc)
    start = timeframe_start(timeframe, now)

    contents = (
        db.query(Content)
        .filter(Content.owner_id == user.id, Content.is_active.is_(True))
        .all()
    )
    completed_content = sum(1 for c in contents if c.progress_percent >= 100)

    quizzes = (
        db.query(Quiz)
        .filter(
            Quiz.owner_id == user.id,
            Quiz.is_active.is_(True),
            Quiz.community_id.is_(None),
        )
        .all()
    )
    attempts = (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.user_id == user.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .all()
    )
    passed_quiz_ids = {a.quiz_id for a in attempts if a.passed}
    owned_ids = {q.id for q in quizzes}
    passed_quizzes = len(passed_quiz_ids & owned_ids)
    scores = [a.percentage or 0 for a in attempts]

    activities = (
        db.query(StudyActivity)
        .filter(StudyActivity.user_id == user.id, StudyActivity.occurred_at >= start)
        .order_by(StudyActivity.occurred_at.desc())
        .all()
    )
    study_minutes = sum(a.minutes for a in activities)

    categories = Counter(c.category for c in contents)
    titles = {c.id: c.title for c in contents}
    titles.update({q.id: q.title for q in quizzes})

    return {
        "timeframe": timeframe,
        "overview": {
            "total_content": len(contents),
            "completed_content": completed_content,
            "content_completion_rate": _rate(completed_content, len(contents)),
            "total_quizzes": len(quizzes),
            "passed_quizzes": passed_quizzes,
            "quiz_pass_rate": _rate(passed_quizzes, len(quizzes)),
            "total_study_minutes": study_minutes,
            "average_session_minutes": (
                _round_half_up(study_minutes / len(activities)) if activities else 0
            ),
        },
        "activity": {
            "current_streak": user.current_streak,
            "longest_streak": user.longest_streak,
            "recent_sessions": [
                {
                    "type": a.activity_type.value,
                    "title": titles.get(a.content_id or a.quiz_id),
                    "minutes": a.minutes,
                    "occurred_at": as_utc(a.occurred_at),
                }
                for a in activities[:5]
            ],
            "study_time_by_day": _day_series(activities, start, now),
        },
        "performance": {
            "average_quiz_score": (
                _round_half_up(sum(scores) / len(scores)) if scores else 0
            ),
            "completed_attempts": len(attempts),
            "strongest_categories": [
                {"category": name, "count": count}
                for name, count in categories.most_common(3)
            ],
        },
    }


def _rate(part: int, whole: int) -> int:
    return _round_half_up(100 * part / whole) if whole else 0


def quiz_performance(
    db: Session, user: User, timeframe: str = "30d", now: datetime | None = None
) -> list[dict]:
    """Per-category breakdown of the user's completed attempts."""
    now = now or datetime.now(timezone.utc)
    start = timeframe_start(timeframe, now)
    rows = (
        db.query(
            Quiz.category,
            func.count(QuizAttempt.id),
            func.avg(QuizAttempt.percentage),
            func.max(QuizAttempt.percentage),
            func.sum(QuizAttempt.time_spent_minutes),
            func.count(func.distinct(QuizAttempt.quiz_id)),
        )
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .filter(
            QuizAttempt.user_id == user.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
            QuizAttempt.completed_at >= start,
        )
        .group_by(Quiz.category)
        .all()
    )
    passed_by_category = dict(
        db.query(Quiz.category, func.count(func.distinct(QuizAttempt.quiz_id)))
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .filter(
            QuizAttempt.user_id == user.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
            QuizAttempt.completed_at >= start,
            QuizAttempt.passed.is_(True),
        )
        .group_by(Quiz.category)
        .all()
    )
    result = [
        {
            "category": category,
            "total_attempts": attempts,
            "average_score": round(float(avg or 0), 1),
            "best_score": best or 0,
            "pass_rate": round(100 * passed_by_category.get(category, 0) / quizzes, 1),
            "avg_time_per_quiz": round((total_time or 0) / quizzes, 1),
        }
        for category, attempts, avg, best, total_time, quizzes in rows
    ]
    result.sort(key=lambda r: r["average_score"], reverse=True)
    return result
