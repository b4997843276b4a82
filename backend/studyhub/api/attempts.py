"""Attempt routes: submit, abandon, history and AI feedback."""

import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from studyhub.api.deps import (
    dispatch_task,
    get_current_user,
    require_generation_rate_limit,
)
from studyhub.api.serializers import attempt_to_detail, attempt_to_read, submission_to_response
from studyhub.db.models import AttemptStatusEnum, QuizAttempt, User
from studyhub.db.session import get_db
from studyhub.exceptions import AttemptNotFound, ValidationFailed
from studyhub.schemas.attempt import (
    AttemptDetail,
    AttemptRead,
    AttemptSubmit,
    SubmissionResponse,
)
from studyhub.services import attempt_engine
from studyhub.services.text_generation import get_text_generation_client
from studyhub.tasks import generate_attempt_summary

logger = logging.getLogger(__name__)
router = APIRouter()


def to_submitted(body: AttemptSubmit) -> list[attempt_engine.SubmittedAnswer]:
    return [
        attempt_engine.SubmittedAnswer(
            question_id=a.question_id,
            user_answer=a.user_answer,
            time_spent_seconds=a.time_spent_seconds,
        )
        for a in body.answers
    ]


@router.post("/{attempt_id}/submit", response_model=SubmissionResponse)
def submit(
    attempt_id: uuid.UUID,
    body: AttemptSubmit,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Grade and complete an in-progress attempt.

    The AI performance summary is produced afterwards; it is ``null`` in this
    response and shows up on ``GET /api/attempts/{id}`` once generated.
    """
    result = attempt_engine.submit_attempt(
        db,
        current_user,
        attempt_id,
        to_submitted(body),
        client_time_spent=body.time_spent_seconds,
    )
    dispatch_task(background_tasks, generate_attempt_summary, str(result.attempt.id))
    return submission_to_response(result.attempt, result.can_retake)


@router.post("/{attempt_id}/abandon", response_model=AttemptRead)
def abandon(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    attempt = attempt_engine.abandon_attempt(db, current_user, attempt_id)
    return attempt_to_read(attempt)


@router.get("", response_model=list[AttemptRead])
def my_attempts(
    status: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Own attempt history, newest first."""
    query = db.query(QuizAttempt).filter(QuizAttempt.user_id == current_user.id)
    if status:
        try:
            query = query.filter(QuizAttempt.status == AttemptStatusEnum(status))
        except ValueError:
            raise ValidationFailed(f"Unknown attempt status: {status}") from None
    attempts = query.order_by(QuizAttempt.started_at.desc()).limit(limit).all()
    return [attempt_to_read(a) for a in attempts]


@router.get("/{attempt_id}", response_model=AttemptDetail)
def get_attempt(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    attempt = (
        db.query(QuizAttempt)
        .filter(QuizAttempt.id == attempt_id, QuizAttempt.user_id == current_user.id)
        .first()
    )
    if attempt is None:
        raise AttemptNotFound()
    return attempt_to_detail(attempt)


@router.post("/{attempt_id}/summary", response_model=AttemptDetail)
def regenerate_summary(
    attempt_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_generation_rate_limit),
):
    """Regenerate AI feedback for a completed attempt (502 if the generator fails)."""
    attempt = attempt_engine.regenerate_attempt_summary(
        db, current_user, attempt_id, get_text_generation_client()
    )
    logger.info("Regenerated AI summary for attempt %s", attempt.id)
    return attempt_to_detail(attempt)
