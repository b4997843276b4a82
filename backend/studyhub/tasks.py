"""Background tasks executed by Celery workers."""

import logging
import uuid
from datetime import datetime, timezone

from studyhub.celery_app import celery_app
from studyhub.db.session import get_session_factory
from studyhub.db.models import Content, ContentStatusEnum, Quiz, QuizAttempt
from studyhub.exceptions import TextGenerationError
from studyhub.services import attempt_engine
from studyhub.services.text_generation import (
    GeneratedContentSummary,
    build_content_summary_prompt,
    get_text_generation_client,
)

logger = logging.getLogger(__name__)


def summarise_content(content: Content) -> dict:
    """Generate the AI summary for *content* (raises TextGenerationError)."""
    client = get_text_generation_client()
    summary = client.generate_json(
        build_content_summary_prompt(content.title, content.original_text),
        GeneratedContentSummary,
    )
    return summary.model_dump(by_alias=True)


@celery_app.task(name="generate_content_summary")
def generate_content_summary(content_id: str) -> dict:
    """Summarise freshly created content.

    Steps:
        1. Call the text generation service with the content text
        2. Mark content status → PROCESSED with the summary (or FAILED on error)
    """
    factory = get_session_factory()
    db = factory()
    try:
        content = db.query(Content).filter(Content.id == uuid.UUID(content_id)).first()
        if content is None:
            logger.error("Content %s not found, skipping summary", content_id)
            return {"success": False, "error": "content_not_found"}

        try:
            content.ai_summary = summarise_content(content)
        except TextGenerationError as exc:
            logger.warning("Summary generation failed for content %s: %s", content_id, exc)
            content.status = ContentStatusEnum.FAILED
            content.processing_error = exc.message
            db.commit()
            return {"success": False, "error": exc.error_code}

        content.status = ContentStatusEnum.PROCESSED
        content.processing_error = None
        db.commit()
        logger.info("Content %s processed", content_id)
        return {"success": True, "content_id": content_id}
    finally:
        db.close()


@celery_app.task(name="generate_attempt_summary")
def generate_attempt_summary(attempt_id: str) -> dict:
    """Best-effort AI feedback for a completed attempt.

    A failure only means the attempt keeps a null summary; scoring is never
    touched here.
    """
    factory = get_session_factory()
    db = factory()
    try:
        attempt = db.query(QuizAttempt).filter(QuizAttempt.id == uuid.UUID(attempt_id)).first()
        if attempt is None or attempt.completed_at is None:
            logger.error("Completed attempt %s not found, skipping summary", attempt_id)
            return {"success": False, "error": "attempt_not_found"}
        quiz = db.query(Quiz).filter(Quiz.id == attempt.quiz_id).first()
        if quiz is None:
            return {"success": False, "error": "quiz_not_found"}

        try:
            summary = attempt_engine.summarise_attempt(
                get_text_generation_client(), quiz, attempt
            )
        except TextGenerationError as exc:
            logger.warning("AI summary unavailable for attempt %s: %s", attempt_id, exc)
            return {"success": False, "error": exc.error_code}

        attempt.ai_summary = summary
        db.commit()
        return {"success": True, "attempt_id": attempt_id}
    finally:
        db.close()


@celery_app.task(name="expire_overdue_attempts")
def expire_overdue_attempts() -> dict:
    """Periodic sweep: in-progress attempts past their time limit → timed-out."""
    factory = get_session_factory()
    db = factory()
    try:
        expired = attempt_engine.expire_overdue_attempts(db, datetime.now(timezone.utc))
        return {"success": True, "expired": expired}
    finally:
        db.close()
