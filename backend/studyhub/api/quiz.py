"""Personal quiz routes: generation, listing, attempts and leaderboard."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from studyhub.api.content import get_owned_content
from studyhub.api.deps import get_current_user, require_generation_rate_limit
from studyhub.api.serializers import (
    attempt_to_read,
    question_to_read,
    quiz_summary_fields,
    quiz_to_detail,
)
from studyhub.config import settings
from studyhub.db.models import (
    AttemptStatusEnum,
    ContentStatusEnum,
    DifficultyEnum,
    Quiz,
    QuizAttempt,
    QuizStatusEnum,
    QuizVisibilityEnum,
    User,
)
from studyhub.db.session import get_db
from studyhub.exceptions import ContentNotProcessed, QuizNotFound
from studyhub.schemas.attempt import AttemptRead, AttemptStartResponse, LeaderboardEntryRead
from studyhub.schemas.common import SuccessResponse
from studyhub.schemas.quiz import (
    QuizDetail,
    QuizGenerateRequest,
    QuizGenerateResponse,
    QuizListItem,
    TopicQuizRequest,
)
from studyhub.services import attempt_engine, leaderboard
from studyhub.services.quiz_generation import (
    build_content_quiz_prompt,
    build_questions,
    build_topic_quiz_prompt,
    generate_quiz,
    normalise_difficulty,
    parse_minutes,
)
from studyhub.services.text_generation import get_text_generation_client

logger = logging.getLogger(__name__)
router = APIRouter()


def get_active_quiz(db: Session, user: User, quiz_id: uuid.UUID) -> Quiz:
    """Active quiz the caller may see (raises QuizNotFound / AccessDenied)."""
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.is_active.is_(True)).first()
    if quiz is None:
        raise QuizNotFound()
    attempt_engine.ensure_quiz_access(db, user, quiz)
    return quiz


def _own_quiz(db: Session, user: User, quiz_id: uuid.UUID) -> Quiz:
    quiz = (
        db.query(Quiz)
        .filter(Quiz.id == quiz_id, Quiz.owner_id == user.id, Quiz.is_active.is_(True))
        .first()
    )
    if quiz is None:
        raise QuizNotFound()
    return quiz


def _completed_attempts(db: Session, user: User, quiz_id: uuid.UUID) -> list[QuizAttempt]:
    return (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .order_by(QuizAttempt.completed_at.desc())
        .all()
    )


# ── Generation ────────────────────────────────────────────────────────────────


@router.post("/generate", response_model=QuizGenerateResponse)
def generate_from_content(
    body: QuizGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_generation_rate_limit),
):
    """Generate (or return the existing) quiz for processed content.

    One active quiz per content; a second call returns the first quiz with
    ``is_existing=True`` instead of calling the generator again.
    """
    content = get_owned_content(db, current_user, body.content_id)
    if content.status != ContentStatusEnum.PROCESSED or not content.ai_summary:
        raise ContentNotProcessed()

    existing = (
        db.query(Quiz)
        .filter(
            Quiz.content_id == content.id,
            Quiz.owner_id == current_user.id,
            Quiz.community_id.is_(None),
            Quiz.is_active.is_(True),
        )
        .first()
    )
    if existing is not None:
        return QuizGenerateResponse(quiz=quiz_to_detail(existing), is_existing=True)

    generated = generate_quiz(
        get_text_generation_client(),
        build_content_quiz_prompt(content, body.questions_per_section),
    )
    questions = build_questions(generated)

    quiz = Quiz(
        owner_id=current_user.id,
        content_id=content.id,
        title=generated.title or f"{content.title} - Quiz",
        description=generated.description
        or f"Quiz generated from {content.title}",
        difficulty=normalise_difficulty((content.ai_summary or {}).get("difficulty")),
        category=content.category,
        visibility=QuizVisibilityEnum.PRIVATE,
        status=QuizStatusEnum.PUBLISHED,
        time_limit_minutes=parse_minutes(generated.estimated_time, 30),
        max_attempts=settings.DEFAULT_MAX_ATTEMPTS,
        passing_score=settings.DEFAULT_PASSING_SCORE,
        questions=questions,
    )
    db.add(quiz)
    db.flush()
    content.has_quiz = True
    content.quiz_id = quiz.id
    db.commit()
    db.refresh(quiz)
    logger.info(
        "Generated quiz %s (%d questions) for content %s",
        quiz.id,
        len(questions),
        content.id,
    )
    return QuizGenerateResponse(quiz=quiz_to_detail(quiz), is_existing=False)


@router.post(
    "/generate-from-topic",
    response_model=QuizGenerateResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_from_topic(
    body: TopicQuizRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_generation_rate_limit),
):
    topic = body.topic.strip()
    difficulty = DifficultyEnum(body.difficulty.value)
    generated = generate_quiz(
        get_text_generation_client(),
        build_topic_quiz_prompt(topic, body.description, difficulty, body.num_questions),
    )
    questions = build_questions(
        generated, default_section=topic, default_difficulty=difficulty
    )

    quiz = Quiz(
        owner_id=current_user.id,
        title=generated.title or f"{topic} - Custom Quiz",
        description=generated.description or body.description or f"Custom quiz on {topic}",
        difficulty=difficulty,
        category="custom",
        is_custom=True,
        custom_topic=topic,
        visibility=QuizVisibilityEnum.PRIVATE,
        status=QuizStatusEnum.PUBLISHED,
        time_limit_minutes=parse_minutes(generated.estimated_time, 20),
        max_attempts=settings.TOPIC_QUIZ_MAX_ATTEMPTS,
        passing_score=settings.DEFAULT_PASSING_SCORE,
        questions=questions,
    )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Generated topic quiz %s on %r for user %s", quiz.id, topic, current_user.id)
    return QuizGenerateResponse(quiz=quiz_to_detail(quiz), is_existing=False)


# ── Reads ─────────────────────────────────────────────────────────────────────


@router.get("", response_model=list[QuizListItem])
def list_quizzes(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Own personal quizzes, newest first, with the caller's best/latest score."""
    quizzes = (
        db.query(Quiz)
        .filter(
            Quiz.owner_id == current_user.id,
            Quiz.community_id.is_(None),
            Quiz.is_active.is_(True),
        )
        .order_by(Quiz.created_at.desc())
        .all()
    )
    items = []
    for quiz in quizzes:
        attempts = _completed_attempts(db, current_user, quiz.id)
        scores = [a.score or 0 for a in attempts]
        items.append(
            QuizListItem(
                **quiz_summary_fields(quiz),
                my_attempts=len(attempts),
                best_score=max(scores) if scores else None,
                latest_score=scores[0] if scores else None,
                latest_attempt_at=attempts[0].completed_at if attempts else None,
                is_passed=any(a.passed for a in attempts),
            )
        )
    return items


@router.get("/content/{content_id}", response_model=QuizDetail)
def get_quiz_for_content(
    content_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    quiz = (
        db.query(Quiz)
        .filter(
            Quiz.content_id == content_id,
            Quiz.owner_id == current_user.id,
            Quiz.community_id.is_(None),
            Quiz.is_active.is_(True),
        )
        .first()
    )
    if quiz is None:
        raise QuizNotFound("No quiz found for this content")
    return quiz_to_detail(quiz)


@router.get("/{quiz_id}", response_model=QuizDetail)
def get_quiz(
    quiz_id: uuid.UUID,
    include_answers: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Quiz with its questions.

    Correct answers are only revealed to the owner, when the quiz allows it,
    after at least one completed attempt.
    """
    quiz = get_active_quiz(db, current_user, quiz_id)
    reveal = (
        include_answers
        and quiz.owner_id == current_user.id
        and quiz.show_correct_answers
        and attempt_engine.count_completed(db, quiz.id, current_user.id) > 0
    )
    return quiz_to_detail(quiz, reveal=reveal)


@router.get("/{quiz_id}/attempts", response_model=list[AttemptRead])
def list_quiz_attempts(
    quiz_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_active_quiz(db, current_user, quiz_id)
    return [attempt_to_read(a) for a in _completed_attempts(db, current_user, quiz_id)]


@router.delete("/{quiz_id}", response_model=SuccessResponse)
def delete_quiz(
    quiz_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    quiz = _own_quiz(db, current_user, quiz_id)
    quiz.is_active = False
    quiz.status = QuizStatusEnum.ARCHIVED
    if quiz.content is not None and quiz.content.quiz_id == quiz.id:
        quiz.content.has_quiz = False
        quiz.content.quiz_id = None
    db.commit()
    logger.info("Quiz %s deactivated by user %s", quiz.id, current_user.id)
    return SuccessResponse(message="Quiz deleted")


# ── Attempts / leaderboard ────────────────────────────────────────────────────


def start_response(result: attempt_engine.StartResult) -> AttemptStartResponse:
    attempt, quiz = result.attempt, result.quiz
    return AttemptStartResponse(
        attempt_id=attempt.id,
        quiz_id=quiz.id,
        attempt_number=attempt.attempt_number,
        max_attempts=quiz.max_attempts,
        time_limit_minutes=quiz.time_limit_minutes,
        started_at=attempt.started_at,
        resumed=result.resumed,
        questions=[question_to_read(q) for q in result.question_order],
    )


@router.post("/{quiz_id}/attempt", response_model=AttemptStartResponse)
def start_attempt(
    quiz_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start a new attempt or resume the one already in progress."""
    result = attempt_engine.start_or_resume_attempt(db, current_user, quiz_id)
    return start_response(result)


@router.get("/{quiz_id}/leaderboard", response_model=list[LeaderboardEntryRead])
def quiz_leaderboard(
    quiz_id: uuid.UUID,
    limit: int = Query(settings.LEADERBOARD_DEFAULT_LIMIT, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    quiz = get_active_quiz(db, current_user, quiz_id)
    if leaderboard.refresh_attempt_ranks(db, quiz.id):
        db.commit()
    return leaderboard.compute_leaderboard(db, quiz.id, limit)


@router.get("/{quiz_id}/stats")
def quiz_stats(
    quiz_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Aggregate analytics plus the caller's own completed-attempt count."""
    quiz = get_active_quiz(db, current_user, quiz_id)
    mine = attempt_engine.count_completed(db, quiz.id, current_user.id)
    fields = quiz_summary_fields(quiz)
    return {
        "quiz_id": str(quiz.id),
        "analytics": fields["analytics"].model_dump(mode="json"),
        "my_completed_attempts": mine,
        "attempts_remaining": max(0, quiz.max_attempts - mine),
    }
