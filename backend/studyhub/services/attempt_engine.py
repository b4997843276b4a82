"""Quiz attempt lifecycle: start/resume, submit, abandon, time-out.

State machine::

    [none] --start--> in-progress
    in-progress --submit--> completed   (terminal)
    in-progress --abandon--> abandoned  (terminal)
    in-progress --expire--> timed-out   (terminal)

Start/resume is a single find-or-create.  The table carries a partial unique
index on ``(quiz_id, user_id) WHERE status = 'in-progress'`` and a unique
``(quiz_id, user_id, attempt_number)``; the new row is inserted with
``ON CONFLICT DO NOTHING`` and the in-progress row is then read back.  When
two requests race, the loser's insert is a no-op and it reads the winner's
row, which is reported as a resume.

Scoring conventions
-------------------
Personal quizzes: ``score`` = points-weighted percentage (0-100).
Community quizzes: ``score`` = number of correct answers; ``percentage`` holds
the 0-100 value.  ``passed`` always compares ``percentage`` with the quiz's
passing score.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from sqlalchemy import func, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhub.db.models import (
    ActivityTypeEnum,
    AttemptAnswer,
    AttemptStatusEnum,
    CommunityMember,
    Content,
    Question,
    Quiz,
    QuizAccess,
    QuizAttempt,
    QuizStatusEnum,
    QuizVisibilityEnum,
    User,
    as_utc,
)
from studyhub.exceptions import (
    AccessDenied,
    AttemptLimitExceeded,
    AttemptNotFound,
    Conflict,
    QuestionReferenceInvalid,
    QuizNotFound,
    ValidationFailed,
)
from studyhub.services import analytics
from studyhub.services.grading import (
    GradedAnswer,
    grade_answer,
    percentage,
    section_breakdown,
)
from studyhub.services.text_generation import (
    GeneratedPerformanceSummary,
    TextGenerationClient,
    build_performance_summary_prompt,
)

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

_START_RETRIES = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Inputs / results ──────────────────────────────────────────────────────────


@dataclass
class SubmittedAnswer:
    question_id: str
    user_answer: str | None = None
    time_spent_seconds: int = 0


@dataclass
class StartResult:
    attempt: QuizAttempt
    quiz: Quiz
    resumed: bool
    question_order: list[Question] = field(default_factory=list)


@dataclass
class SubmissionResult:
    attempt: QuizAttempt
    quiz: Quiz
    can_retake: bool


# ── Access ────────────────────────────────────────────────────────────────────


def _load_quiz(db: Session, quiz_id: uuid.UUID) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if quiz is None or not quiz.is_active or quiz.status != QuizStatusEnum.PUBLISHED:
        raise QuizNotFound()
    return quiz


def active_membership(
    db: Session, user_id: uuid.UUID, community_id: uuid.UUID
) -> CommunityMember | None:
    return (
        db.query(CommunityMember)
        .filter(
            CommunityMember.user_id == user_id,
            CommunityMember.community_id == community_id,
            CommunityMember.is_active.is_(True),
        )
        .first()
    )


def ensure_quiz_access(db: Session, user: User, quiz: Quiz) -> None:
    """Raise unless *user* may take *quiz*.

    A personal quiz is visible to its owner (or anyone when public); for
    anyone else it does not exist.  A community quiz needs an active
    membership, and a private one also an allow-list entry.
    """
    if quiz.owner_id == user.id:
        return
    if not quiz.is_community:
        if quiz.visibility != QuizVisibilityEnum.PUBLIC:
            raise QuizNotFound()
        return
    if active_membership(db, user.id, quiz.community_id) is None:
        raise AccessDenied("You must be a member to take community quizzes")
    if quiz.visibility == QuizVisibilityEnum.PRIVATE:
        allowed = (
            db.query(QuizAccess.id)
            .filter(QuizAccess.quiz_id == quiz.id, QuizAccess.user_id == user.id)
            .first()
        )
        if allowed is None:
            raise AccessDenied("You do not have access to this private quiz")


def _in_progress(db: Session, quiz_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttempt | None:
    return (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user_id,
            QuizAttempt.status == AttemptStatusEnum.IN_PROGRESS,
        )
        .first()
    )


def count_completed(db: Session, quiz_id: uuid.UUID, user_id: uuid.UUID) -> int:
    return (
        db.query(func.count(QuizAttempt.id))
        .filter(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user_id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .scalar()
        or 0
    )


def _count_all(db: Session, quiz_id: uuid.UUID, user_id: uuid.UUID) -> int:
    return (
        db.query(func.count(QuizAttempt.id))
        .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
        .scalar()
        or 0
    )


def shuffled_questions(quiz: Quiz, attempt: QuizAttempt) -> list[Question]:
    """Question order shown for *attempt*; stable for the attempt's lifetime."""
    questions = list(quiz.questions)
    if quiz.shuffle_questions:
        random.Random(str(attempt.id)).shuffle(questions)
    return questions


# ── Start / resume ────────────────────────────────────────────────────────────


def _insert_in_progress(db: Session, values: dict) -> bool:
    """Insert a new in-progress row; False when a uniqueness rule rejected it."""
    dialect = db.get_bind().dialect.name
    make_insert = _UPSERT_INSERTS.get(dialect)
    if make_insert is not None:
        stmt = make_insert(QuizAttempt).values(**values).on_conflict_do_nothing()
        return db.execute(stmt).rowcount == 1
    try:
        with db.begin_nested():
            db.execute(insert(QuizAttempt).values(**values))
        return True
    except IntegrityError:
        return False


def start_or_resume_attempt(
    db: Session, user: User, quiz_id: uuid.UUID, *, now: datetime | None = None
) -> StartResult:
    quiz = _load_quiz(db, quiz_id)
    ensure_quiz_access(db, user, quiz)

    for _ in range(_START_RETRIES):
        existing = _in_progress(db, quiz.id, user.id)
        if existing is not None:
            logger.info(
                "Resuming attempt %s (#%d) on quiz %s for user %s",
                existing.id,
                existing.attempt_number,
                quiz.id,
                user.id,
            )
            return StartResult(existing, quiz, True, shuffled_questions(quiz, existing))

        completed = count_completed(db, quiz.id, user.id)
        if completed >= quiz.max_attempts:
            raise AttemptLimitExceeded(quiz.max_attempts)

        attempt_id = uuid.uuid4()
        inserted = _insert_in_progress(
            db,
            {
                "id": attempt_id,
                "quiz_id": quiz.id,
                "user_id": user.id,
                "attempt_number": _count_all(db, quiz.id, user.id) + 1,
                "status": AttemptStatusEnum.IN_PROGRESS,
                "max_points": quiz.max_points,
                "total_points": 0,
                "passed": False,
                "time_spent_minutes": 0,
                "section_scores": [],
                "started_at": now or _utcnow(),
            },
        )

        attempt = _in_progress(db, quiz.id, user.id)
        if attempt is None:
            # Lost to a request that also finished its attempt; recount and retry.
            db.rollback()
            continue

        if not inserted or attempt.id != attempt_id:
            db.commit()
            logger.info(
                "Concurrent start on quiz %s for user %s resolved to attempt %s",
                quiz.id,
                user.id,
                attempt.id,
            )
            return StartResult(attempt, quiz, True, shuffled_questions(quiz, attempt))

        for position, question in enumerate(quiz.questions):
            db.add(
                AttemptAnswer(
                    attempt_id=attempt.id,
                    question_id=question.id,
                    position=position,
                    section=question.section,
                )
            )
        db.commit()
        db.refresh(attempt)
        logger.info(
            "Started attempt %s (#%d) on quiz %s for user %s",
            attempt.id,
            attempt.attempt_number,
            quiz.id,
            user.id,
        )
        return StartResult(attempt, quiz, False, shuffled_questions(quiz, attempt))

    raise Conflict("Could not start the quiz attempt, please retry")


# ── Submit ────────────────────────────────────────────────────────────────────


def _locked_in_progress(
    db: Session, user: User, attempt_id: uuid.UUID, quiz_id: uuid.UUID | None
) -> QuizAttempt:
    q = db.query(QuizAttempt).filter(
        QuizAttempt.id == attempt_id,
        QuizAttempt.user_id == user.id,
        QuizAttempt.status == AttemptStatusEnum.IN_PROGRESS,
    )
    if quiz_id is not None:
        q = q.filter(QuizAttempt.quiz_id == quiz_id)
    attempt = q.with_for_update().first()
    if attempt is None:
        raise AttemptNotFound()
    return attempt


def _index_submission(
    quiz: Quiz, answers: Sequence[SubmittedAnswer]
) -> dict[uuid.UUID, SubmittedAnswer]:
    """Map submitted answers to question ids, rejecting the whole set on any bad reference."""
    question_ids = {q.id for q in quiz.questions}
    by_question: dict[uuid.UUID, SubmittedAnswer] = {}
    for answer in answers:
        try:
            qid = uuid.UUID(str(answer.question_id))
        except ValueError:
            raise QuestionReferenceInvalid(str(answer.question_id)) from None
        if qid not in question_ids:
            raise QuestionReferenceInvalid(str(answer.question_id))
        if qid in by_question:
            raise ValidationFailed(
                f"Question {answer.question_id} answered more than once",
                details={"question_id": str(answer.question_id)},
            )
        by_question[qid] = answer
    return by_question


def submit_attempt(
    db: Session,
    user: User,
    attempt_id: uuid.UUID,
    answers: Sequence[SubmittedAnswer],
    *,
    client_time_spent: int | None = None,
    quiz_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> SubmissionResult:
    attempt = _locked_in_progress(db, user, attempt_id, quiz_id)

    quiz = db.query(Quiz).filter(Quiz.id == attempt.quiz_id).first()
    if quiz is None or not quiz.is_active:
        # Attempt stays in progress; the caller may retry later or abandon it.
        db.rollback()
        raise QuizNotFound()

    by_question = _index_submission(quiz, answers)
    questions = {q.id: q for q in quiz.questions}
    rows = {a.question_id: a for a in attempt.answers}

    graded: list[GradedAnswer] = []
    total_points = 0
    for position, question in enumerate(quiz.questions):
        submitted = by_question.get(question.id)
        user_answer = submitted.user_answer if submitted else None
        is_correct, points = grade_answer(question, user_answer)
        total_points += points

        row = rows.get(question.id)
        if row is None:
            row = AttemptAnswer(question_id=question.id, position=position)
            attempt.answers.append(row)
        row.section = question.section
        row.user_answer = user_answer
        row.is_correct = is_correct
        row.points_earned = points
        row.time_spent_seconds = max(0, submitted.time_spent_seconds) if submitted else 0
        graded.append(GradedAnswer(str(question.id), question.section, is_correct, points))

    completed_at = now or _utcnow()
    correct = sum(1 for g in graded if g.is_correct)
    max_points = sum(q.points for q in questions.values())

    attempt.total_points = total_points
    attempt.max_points = max_points
    if quiz.is_community:
        attempt.score = correct
        attempt.percentage = percentage(correct, len(graded))
    else:
        attempt.score = percentage(total_points, max_points)
        attempt.percentage = attempt.score
    attempt.passed = attempt.percentage >= quiz.passing_score
    attempt.section_scores = section_breakdown(graded)
    attempt.status = AttemptStatusEnum.COMPLETED
    attempt.completed_at = completed_at
    elapsed = completed_at - as_utc(attempt.started_at)
    attempt.time_spent_minutes = max(0, int(elapsed.total_seconds() / 60 + 0.5))
    attempt.total_time_taken = (
        client_time_spent
        if client_time_spent is not None
        else sum(max(0, a.time_spent_seconds) for a in by_question.values())
    )
    db.commit()
    logger.info(
        "Attempt %s submitted: score=%s percentage=%s passed=%s (%d/%d correct)",
        attempt.id,
        attempt.score,
        attempt.percentage,
        attempt.passed,
        correct,
        len(graded),
    )

    _apply_post_submission(db, user, quiz, attempt)
    _update_streak(db, user, completed_at)

    completed = count_completed(db, quiz.id, user.id)
    can_retake = bool(quiz.allow_retakes) and completed < quiz.max_attempts
    return SubmissionResult(attempt, quiz, can_retake)


def _apply_post_submission(
    db: Session, user: User, quiz: Quiz, attempt: QuizAttempt
) -> None:
    """Analytics, content history, activity log and member counters.

    Runs after the score is committed; a failure leaves these caches stale
    until the next submission rebuilds them.
    """
    try:
        analytics.recompute_quiz_analytics(db, quiz)
        if quiz.content_id is not None and not quiz.is_community:
            content = db.query(Content).filter(Content.id == quiz.content_id).first()
            if content is not None and content.owner_id == user.id:
                analytics.update_content_quiz_history(db, content, quiz, user.id)
        analytics.record_activity(
            db,
            user.id,
            ActivityTypeEnum.QUIZ,
            attempt.time_spent_minutes,
            content_id=quiz.content_id,
            quiz_id=quiz.id,
            occurred_at=attempt.completed_at,
        )
        if quiz.is_community:
            membership = active_membership(db, user.id, quiz.community_id)
            if membership is not None:
                membership.quizzes_taken += 1
                membership.last_active_at = attempt.completed_at
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Post-submission analytics failed for attempt %s", attempt.id)


def _update_streak(db: Session, user: User, now: datetime) -> None:
    try:
        analytics.update_study_streak(user, now)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Failed to update study streak for user %s: %s", user.id, exc)


# ── Abandon / expire ──────────────────────────────────────────────────────────


def abandon_attempt(db: Session, user: User, attempt_id: uuid.UUID) -> QuizAttempt:
    attempt = _locked_in_progress(db, user, attempt_id, None)
    attempt.status = AttemptStatusEnum.ABANDONED
    db.commit()
    logger.info("Attempt %s abandoned by user %s", attempt.id, user.id)
    return attempt


def expire_overdue_attempts(db: Session, now: datetime | None = None) -> int:
    """Mark in-progress attempts past their quiz's time limit as timed-out."""
    now = now or _utcnow()
    candidates: Iterable[tuple[QuizAttempt, int]] = (
        db.query(QuizAttempt, Quiz.time_limit_minutes)
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .filter(
            QuizAttempt.status == AttemptStatusEnum.IN_PROGRESS,
            Quiz.time_limit_minutes > 0,
        )
        .all()
    )
    expired = 0
    for attempt, limit in candidates:
        if as_utc(attempt.started_at) + timedelta(minutes=limit) < now:
            attempt.status = AttemptStatusEnum.TIMED_OUT
            attempt.completed_at = now
            expired += 1
    if expired:
        db.commit()
        logger.info("Timed out %d overdue attempt(s)", expired)
    return expired


# ── AI performance summary ────────────────────────────────────────────────────


def summarise_attempt(
    client: TextGenerationClient, quiz: Quiz, attempt: QuizAttempt
) -> dict:
    """Ask the generator for feedback on a completed attempt (raises on failure)."""
    questions = {q.id: q for q in quiz.questions}
    missed = [
        (a.section, questions[a.question_id].text)
        for a in attempt.answers
        if not a.is_correct and a.question_id in questions
    ]
    prompt = build_performance_summary_prompt(
        quiz.title,
        attempt.percentage or 0,
        attempt.correct_answers,
        attempt.total_questions,
        attempt.time_spent_minutes,
        attempt.section_scores or [],
        missed,
    )
    summary = client.generate_json(prompt, GeneratedPerformanceSummary)
    return summary.model_dump(by_alias=True)


def regenerate_attempt_summary(
    db: Session, user: User, attempt_id: uuid.UUID, client: TextGenerationClient
) -> QuizAttempt:
    """Replace the AI summary of a completed attempt; scoring fields are untouched."""
    attempt = (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.id == attempt_id,
            QuizAttempt.user_id == user.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .first()
    )
    if attempt is None:
        raise AttemptNotFound("Completed quiz attempt not found")
    quiz = db.query(Quiz).filter(Quiz.id == attempt.quiz_id).first()
    if quiz is None:
        raise QuizNotFound()
    attempt.ai_summary = summarise_attempt(client, quiz, attempt)
    db.commit()
    return attempt
