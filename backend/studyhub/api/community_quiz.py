"""Community quizzes: creation, private access codes, attempts and leaderboards.

Attempts run through the same engine as personal quizzes; only the scoring
variant differs (``score`` counts correct answers).
"""

import logging
import secrets
import string
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from studyhub.api.attempts import to_submitted
from studyhub.api.communities import get_community, require_member, touch
from studyhub.api.community_content import get_shared_content
from studyhub.api.deps import (
    dispatch_task,
    get_current_user,
    require_generation_rate_limit,
    require_username,
)
from studyhub.api.quiz import start_response
from studyhub.api.serializers import (
    attempt_fields,
    attempt_to_read,
    quiz_to_detail,
    quiz_to_summary,
    submission_to_response,
)
from studyhub.config import settings
from studyhub.db.models import (
    AttemptStatusEnum,
    Community,
    CommunityMember,
    DifficultyEnum,
    Quiz,
    QuizAccess,
    QuizAttempt,
    QuizStatusEnum,
    QuizVisibilityEnum,
    User,
)
from studyhub.db.session import get_db
from studyhub.exceptions import AccessDenied, QuizNotFound, ValidationFailed
from studyhub.schemas.attempt import (
    AttemptStartResponse,
    AttemptSubmit,
    LeaderboardEntryRead,
    SubmissionResponse,
)
from studyhub.schemas.community import (
    CommunityAttemptRead,
    CommunityQuizCreate,
    CommunityQuizCreated,
    CommunityQuizDetail,
    JoinPrivateRequest,
    JoinPrivateResponse,
)
from studyhub.schemas.quiz import QuizSummary
from studyhub.services import attempt_engine, leaderboard
from studyhub.services.quiz_generation import (
    build_community_quiz_prompt,
    build_questions,
    generate_quiz,
)
from studyhub.services.text_generation import get_text_generation_client
from studyhub.tasks import generate_attempt_summary

logger = logging.getLogger(__name__)
router = APIRouter()

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 6


def new_access_code(db: Session) -> str:
    """Random 6-character upper-case code not used by another active quiz."""
    while True:
        code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))
        taken = (
            db.query(Quiz.id)
            .filter(Quiz.access_code == code, Quiz.is_active.is_(True))
            .first()
        )
        if taken is None:
            return code


def _community_quiz(db: Session, community_id: uuid.UUID, quiz_id: uuid.UUID) -> Quiz:
    quiz = (
        db.query(Quiz)
        .filter(
            Quiz.id == quiz_id,
            Quiz.community_id == community_id,
            Quiz.status == QuizStatusEnum.PUBLISHED,
            Quiz.is_active.is_(True),
        )
        .first()
    )
    if quiz is None:
        raise QuizNotFound()
    return quiz


def _create(
    db: Session,
    user: User,
    membership: CommunityMember,
    community: Community,
    body: CommunityQuizCreate,
    *,
    source_text: str | None,
    topic: str | None,
    category: str,
    community_content_id: uuid.UUID | None = None,
) -> CommunityQuizCreated:
    difficulty = DifficultyEnum(body.difficulty.value)
    generated = generate_quiz(
        get_text_generation_client(),
        build_community_quiz_prompt(source_text, topic, difficulty, body.question_count),
    )
    quiz = Quiz(
        owner_id=user.id,
        community_id=community.id,
        community_content_id=community_content_id,
        title=body.title.strip(),
        description=body.description,
        difficulty=difficulty,
        category=category,
        is_custom=topic is not None,
        custom_topic=topic,
        visibility=QuizVisibilityEnum(body.visibility.value),
        status=QuizStatusEnum.PUBLISHED,
        time_limit_minutes=body.time_limit_minutes,
        max_attempts=settings.COMMUNITY_DEFAULT_MAX_ATTEMPTS,
        passing_score=settings.COMMUNITY_DEFAULT_PASSING_SCORE,
        questions=build_questions(generated, default_difficulty=difficulty),
    )
    if quiz.visibility == QuizVisibilityEnum.PRIVATE:
        quiz.access_code = new_access_code(db)
        member_ids = [
            user_id
            for (user_id,) in db.query(CommunityMember.user_id).filter(
                CommunityMember.community_id == community.id,
                CommunityMember.is_active.is_(True),
            )
        ]
        quiz.allowed_users = [QuizAccess(user_id=uid) for uid in member_ids]
    db.add(quiz)
    membership.quizzes_created += 1
    community.quiz_count += 1
    touch(community, membership)
    db.commit()
    db.refresh(quiz)
    logger.info(
        "Community quiz %s (%s, %d questions) created in %s by %s",
        quiz.id,
        quiz.visibility.value,
        len(quiz.questions),
        community.id,
        user.id,
    )
    return CommunityQuizCreated(quiz=quiz_to_summary(quiz), access_code=quiz.access_code)


# ── Creation ──────────────────────────────────────────────────────────────────


@router.post(
    "/{community_id}/create-from-content/{item_id}",
    response_model=CommunityQuizCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_from_content(
    community_id: uuid.UUID,
    item_id: uuid.UUID,
    body: CommunityQuizCreate,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_generation_rate_limit),
):
    membership = require_member(db, current_user, community_id)
    item = get_shared_content(db, community_id, item_id)
    original = item.original_content
    source_text = original.original_text if original else ""
    if not source_text:
        raise ValidationFailed("Shared content has no text to build a quiz from")
    created = _create(
        db,
        current_user,
        membership,
        get_community(db, community_id),
        body,
        source_text=source_text,
        topic=None,
        category=item.category,
        community_content_id=item.id,
    )
    item.quizzes_generated += 1
    db.commit()
    return created


@router.post(
    "/{community_id}/create-custom",
    response_model=CommunityQuizCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_custom(
    community_id: uuid.UUID,
    body: CommunityQuizCreate,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_generation_rate_limit),
):
    membership = require_member(db, current_user, community_id)
    topic = (body.custom_topic or "").strip()
    if not topic:
        raise ValidationFailed("custom_topic is required for a custom quiz")
    return _create(
        db,
        current_user,
        membership,
        get_community(db, community_id),
        body,
        source_text=None,
        topic=topic,
        category="custom",
    )


# ── Discovery / access ────────────────────────────────────────────────────────


@router.post("/join-private", response_model=JoinPrivateResponse)
def join_private(
    body: JoinPrivateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Redeem an access code; wrong codes and non-members get the same answer."""
    quiz = (
        db.query(Quiz)
        .filter(
            Quiz.access_code == body.access_code.strip().upper(),
            Quiz.visibility == QuizVisibilityEnum.PRIVATE,
            Quiz.status == QuizStatusEnum.PUBLISHED,
            Quiz.is_active.is_(True),
            Quiz.community_id.is_not(None),
        )
        .first()
    )
    if (
        quiz is None
        or attempt_engine.active_membership(db, current_user.id, quiz.community_id) is None
    ):
        raise AccessDenied("Invalid access code")

    granted = (
        db.query(QuizAccess.id)
        .filter(QuizAccess.quiz_id == quiz.id, QuizAccess.user_id == current_user.id)
        .first()
    )
    if granted is None:
        db.add(QuizAccess(quiz_id=quiz.id, user_id=current_user.id))
        db.commit()
        logger.info("User %s joined private quiz %s", current_user.id, quiz.id)
    return JoinPrivateResponse(
        quiz_id=quiz.id,
        community_id=quiz.community_id,
        title=quiz.title,
        description=quiz.description,
    )


@router.get("/user/attempts", response_model=list[CommunityAttemptRead])
def my_community_attempts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(QuizAttempt, Community.id, Community.name)
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .join(Community, Community.id == Quiz.community_id)
        .filter(
            QuizAttempt.user_id == current_user.id,
            QuizAttempt.status == AttemptStatusEnum.COMPLETED,
        )
        .order_by(QuizAttempt.completed_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [
        CommunityAttemptRead(
            **attempt_fields(attempt), community_id=cid, community_name=name
        )
        for attempt, cid, name in rows
    ]


@router.get("/{community_id}", response_model=list[QuizSummary])
def list_community_quizzes(
    community_id: uuid.UUID,
    type: str = "public",
    difficulty: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Public quizzes, or (``type=private``) the private ones the caller can open."""
    require_member(db, current_user, community_id)
    query = db.query(Quiz).filter(
        Quiz.community_id == community_id,
        Quiz.status == QuizStatusEnum.PUBLISHED,
        Quiz.is_active.is_(True),
    )
    if type == "private":
        allowed = db.query(QuizAccess.quiz_id).filter(QuizAccess.user_id == current_user.id)
        query = query.filter(
            Quiz.visibility == QuizVisibilityEnum.PRIVATE,
            (Quiz.owner_id == current_user.id) | Quiz.id.in_(allowed),
        )
    else:
        query = query.filter(Quiz.visibility == QuizVisibilityEnum.PUBLIC)
    if difficulty:
        query = query.filter(Quiz.difficulty == DifficultyEnum(difficulty))
    quizzes = (
        query.order_by(Quiz.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [quiz_to_summary(q) for q in quizzes]


@router.get("/{community_id}/quiz/{quiz_id}", response_model=CommunityQuizDetail)
def get_community_quiz(
    community_id: uuid.UUID,
    quiz_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    quiz = _community_quiz(db, community_id, quiz_id)
    attempt_engine.ensure_quiz_access(db, current_user, quiz)
    attempts = (
        db.query(QuizAttempt)
        .filter(QuizAttempt.quiz_id == quiz.id, QuizAttempt.user_id == current_user.id)
        .order_by(QuizAttempt.attempt_number.asc())
        .all()
    )
    completed = sum(1 for a in attempts if a.status == AttemptStatusEnum.COMPLETED)
    return CommunityQuizDetail(
        quiz=quiz_to_detail(quiz),
        my_attempts=[attempt_to_read(a) for a in attempts],
        can_attempt=completed < quiz.max_attempts,
    )


@router.get(
    "/{community_id}/quiz/{quiz_id}/leaderboard",
    response_model=list[LeaderboardEntryRead],
)
def community_leaderboard(
    community_id: uuid.UUID,
    quiz_id: uuid.UUID,
    limit: int = Query(settings.LEADERBOARD_DEFAULT_LIMIT, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    quiz = _community_quiz(db, community_id, quiz_id)
    attempt_engine.ensure_quiz_access(db, current_user, quiz)
    if leaderboard.refresh_attempt_ranks(db, quiz.id):
        db.commit()
    return leaderboard.compute_leaderboard(db, quiz.id, limit)


# ── Attempts ──────────────────────────────────────────────────────────────────


@router.post("/{community_id}/quiz/{quiz_id}/attempt", response_model=AttemptStartResponse)
def start_community_attempt(
    community_id: uuid.UUID,
    quiz_id: uuid.UUID,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    quiz = _community_quiz(db, community_id, quiz_id)
    result = attempt_engine.start_or_resume_attempt(db, current_user, quiz.id)
    return start_response(result)


@router.post(
    "/{community_id}/quiz/{quiz_id}/attempt/{attempt_id}/submit",
    response_model=SubmissionResponse,
)
def submit_community_attempt(
    community_id: uuid.UUID,
    quiz_id: uuid.UUID,
    attempt_id: uuid.UUID,
    body: AttemptSubmit,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    quiz = _community_quiz(db, community_id, quiz_id)
    result = attempt_engine.submit_attempt(
        db,
        current_user,
        attempt_id,
        to_submitted(body),
        client_time_spent=body.time_spent_seconds,
        quiz_id=quiz.id,
    )
    dispatch_task(background_tasks, generate_attempt_summary, str(result.attempt.id))
    return submission_to_response(result.attempt, result.can_retake)
