"""Leaderboards built from scored attempts.

Ranks are positional: entries are sorted by best score (desc), best time
(asc) and first completion (asc) and numbered 1..N.  Two users with identical
keys still get different ranks.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from studyhub.config import settings
from studyhub.db.models import QuizAttempt, User, as_utc

logger = logging.getLogger(__name__)


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: uuid.UUID
    display_name: str
    score: int
    time_taken: int | None
    attempts: int
    last_attempt: datetime | None


def compute_leaderboard(
    db: Session, quiz_id: uuid.UUID, limit: int | None = None
) -> list[LeaderboardEntry]:
    limit = limit or settings.LEADERBOARD_DEFAULT_LIMIT
    best_score = func.max(QuizAttempt.score)
    best_time = func.min(QuizAttempt.total_time_taken)
    first_completed = func.min(QuizAttempt.completed_at)
    rows = (
        db.query(
            QuizAttempt.user_id,
            best_score.label("best_score"),
            best_time.label("best_time"),
            func.count(QuizAttempt.id).label("attempts"),
            func.max(QuizAttempt.completed_at).label("last_attempt"),
        )
        .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.score.is_not(None))
        .group_by(QuizAttempt.user_id)
        .order_by(
            best_score.desc(),
            best_time.asc().nulls_last(),
            first_completed.asc(),
        )
        .limit(limit)
        .all()
    )
    if not rows:
        return []

    users = {
        u.id: u
        for u in db.query(User).filter(User.id.in_([r.user_id for r in rows])).all()
    }
    return [
        LeaderboardEntry(
            rank=position,
            user_id=row.user_id,
            display_name=users[row.user_id].display_name
            if row.user_id in users
            else "Anonymous",
            score=row.best_score,
            time_taken=row.best_time,
            attempts=row.attempts,
            last_attempt=as_utc(row.last_attempt),
        )
        for position, row in enumerate(rows, start=1)
    ]


def refresh_attempt_ranks(db: Session, quiz_id: uuid.UUID) -> int:
    """Re-number the ``rank`` of every scored attempt of *quiz_id*.

    Called lazily when a leaderboard is read; the caller commits.
    """
    attempts = (
        db.query(QuizAttempt)
        .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.score.is_not(None))
        .order_by(
            QuizAttempt.score.desc(),
            QuizAttempt.total_time_taken.asc().nulls_last(),
            QuizAttempt.completed_at.asc(),
        )
        .all()
    )
    changed = 0
    for position, attempt in enumerate(attempts, start=1):
        if attempt.rank != position:
            attempt.rank = position
            changed += 1
    if changed:
        logger.debug("Re-ranked %d attempt(s) for quiz %s", changed, quiz_id)
    return changed
