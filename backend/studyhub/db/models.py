"""SQLAlchemy ORM models for the learning platform.

Tables
------
- users                 – identity-provider subjects with local profile + streak
- contents              – personal learning material and its AI summary
- study_activities      – reading / quiz sessions feeding the dashboard
- quizzes               – quiz definitions (personal or community) + analytics
- questions             – ordered questions owned by a quiz
- quiz_access           – allow-list for private community quizzes
- quiz_attempts         – one user's pass through a quiz
- attempt_answers       – per-question answers in an attempt
- communities           – topic communities
- community_members     – user ↔ community membership with counters
- community_contents    – content shared into a community
- community_messages    – community chat and quiz discussion
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyhub.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    # Persist the enum *values* so raw SQL (partial index predicates) can match them.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class ContentStatusEnum(str, enum.Enum):
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class ActivityTypeEnum(str, enum.Enum):
    READING = "reading"
    QUIZ = "quiz"


class QuizStatusEnum(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class QuizVisibilityEnum(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class DifficultyEnum(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionTypeEnum(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"


class AttemptStatusEnum(str, enum.Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    TIMED_OUT = "timed-out"


TERMINAL_ATTEMPT_STATUSES = frozenset(
    {
        AttemptStatusEnum.COMPLETED,
        AttemptStatusEnum.ABANDONED,
        AttemptStatusEnum.TIMED_OUT,
    }
)


class MemberRoleEnum(str, enum.Enum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"


class MessageTypeEnum(str, enum.Enum):
    GENERAL = "general"
    QUIZ_DISCUSSION = "quiz-discussion"
    ANNOUNCEMENT = "announcement"


# ── Users ─────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    external_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    username: Mapped[str | None] = mapped_column(
        String(20), unique=True, nullable=True, index=True
    )
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    contents: Mapped[list["Content"]] = relationship(back_populates="owner")
    attempts: Mapped[list["QuizAttempt"]] = relationship(back_populates="user")
    memberships: Mapped[list["CommunityMember"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or "Anonymous"


# ── Content ───────────────────────────────────────────────────────────────────


class Content(Base):
    __tablename__ = "contents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(200))
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_type: Mapped[str] = mapped_column(String(20), default="text")
    original_text: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(100), default="General")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    reading_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[ContentStatusEnum] = mapped_column(
        _enum(ContentStatusEnum, "content_status_enum"),
        default=ContentStatusEnum.PROCESSING,
    )
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # reading progress
    progress_percent: Mapped[int] = mapped_column(Integer, default=0)
    time_spent_minutes: Mapped[int] = mapped_column(Integer, default=0)
    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # denormalized quiz history, rebuilt by the attempt engine
    has_quiz: Mapped[bool] = mapped_column(Boolean, default=False)
    quiz_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    quiz_total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    quiz_best_score: Mapped[int] = mapped_column(Integer, default=0)
    quiz_passed: Mapped[bool] = mapped_column(Boolean, default=False)
    quiz_last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    quiz_attempt_history: Mapped[list] = mapped_column(JSON, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    owner: Mapped["User"] = relationship(back_populates="contents")


class StudyActivity(Base):
    """A single reading or quiz session, used for the dashboard time series."""

    __tablename__ = "study_activities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    content_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contents.id"), nullable=True
    )
    quiz_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quizzes.id"), nullable=True
    )
    activity_type: Mapped[ActivityTypeEnum] = mapped_column(
        _enum(ActivityTypeEnum, "activity_type_enum")
    )
    minutes: Mapped[int] = mapped_column(Integer, default=0)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )


# ── Quizzes ───────────────────────────────────────────────────────────────────


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    content_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contents.id"), nullable=True, index=True
    )
    community_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("communities.id"), nullable=True, index=True
    )
    community_content_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("community_contents.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    difficulty: Mapped[DifficultyEnum] = mapped_column(
        _enum(DifficultyEnum, "difficulty_enum"), default=DifficultyEnum.MEDIUM
    )
    category: Mapped[str] = mapped_column(String(100), default="General")
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False)
    custom_topic: Mapped[str | None] = mapped_column(String(500), nullable=True)
    visibility: Mapped[QuizVisibilityEnum] = mapped_column(
        _enum(QuizVisibilityEnum, "quiz_visibility_enum"),
        default=QuizVisibilityEnum.PRIVATE,
    )
    access_code: Mapped[str | None] = mapped_column(
        String(6), nullable=True, index=True
    )
    status: Mapped[QuizStatusEnum] = mapped_column(
        _enum(QuizStatusEnum, "quiz_status_enum"), default=QuizStatusEnum.DRAFT
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # settings
    time_limit_minutes: Mapped[int] = mapped_column(Integer, default=30)  # 0 = unlimited
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    passing_score: Mapped[int] = mapped_column(Integer, default=70)
    allow_retakes: Mapped[bool] = mapped_column(Boolean, default=True)
    shuffle_questions: Mapped[bool] = mapped_column(Boolean, default=False)
    show_correct_answers: Mapped[bool] = mapped_column(Boolean, default=True)

    # analytics (recomputed from completed attempts after every submission)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[float] = mapped_column(Float, default=0.0)
    best_score: Mapped[int] = mapped_column(Integer, default=0)
    pass_rate: Mapped[float] = mapped_column(Float, default=0.0)
    average_time_spent: Mapped[float] = mapped_column(Float, default=0.0)
    last_taken_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    owner: Mapped["User"] = relationship("User")
    content: Mapped["Content | None"] = relationship("Content")
    community: Mapped["Community | None"] = relationship(back_populates="quizzes")
    questions: Mapped[list["Question"]] = relationship(
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    allowed_users: Mapped[list["QuizAccess"]] = relationship(
        back_populates="quiz", cascade="all, delete-orphan"
    )

    @property
    def is_community(self) -> bool:
        return self.community_id is not None

    @property
    def max_points(self) -> int:
        return sum(q.points for q in self.questions)


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quizzes.id"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[QuestionTypeEnum] = mapped_column(
        _enum(QuestionTypeEnum, "question_type_enum"),
        default=QuestionTypeEnum.MULTIPLE_CHOICE,
    )
    options: Mapped[list] = mapped_column(JSON, default=list)  # [{"text", "is_correct"}]
    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=1)
    difficulty: Mapped[DifficultyEnum] = mapped_column(
        _enum(DifficultyEnum, "difficulty_enum"), default=DifficultyEnum.MEDIUM
    )
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    section: Mapped[str | None] = mapped_column(String(100), nullable=True)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions")

    @property
    def correct_option_text(self) -> str | None:
        for option in self.options or []:
            if option.get("is_correct"):
                return option.get("text")
        return None


class QuizAccess(Base):
    """Allow-list entry for a private community quiz."""

    __tablename__ = "quiz_access"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quizzes.id"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    quiz: Mapped["Quiz"] = relationship(back_populates="allowed_users")

    __table_args__ = (UniqueConstraint("quiz_id", "user_id", name="uq_quiz_access"),)


# ── Attempts ──────────────────────────────────────────────────────────────────


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quizzes.id"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    attempt_number: Mapped[int] = mapped_column(Integer)
    status: Mapped[AttemptStatusEnum] = mapped_column(
        _enum(AttemptStatusEnum, "attempt_status_enum"),
        default=AttemptStatusEnum.IN_PROGRESS,
    )
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    max_points: Mapped[int] = mapped_column(Integer, default=0)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    time_spent_minutes: Mapped[int] = mapped_column(Integer, default=0)
    total_time_taken: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )  # seconds
    section_scores: Mapped[list] = mapped_column(JSON, default=list)
    ai_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    quiz: Mapped["Quiz"] = relationship("Quiz")
    user: Mapped["User"] = relationship(back_populates="attempts")
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.position",
    )

    __table_args__ = (
        UniqueConstraint(
            "quiz_id", "user_id", "attempt_number", name="uq_attempt_number"
        ),
        # At most one in-progress attempt per (quiz, user).
        Index(
            "uq_attempt_in_progress",
            "quiz_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'in-progress'"),
            postgresql_where=text("status = 'in-progress'"),
        ),
    )

    @property
    def correct_answers(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)

    @property
    def total_questions(self) -> int:
        return len(self.answers)

    @property
    def percentage_score(self) -> int:
        from studyhub.services.grading import percentage

        return percentage(self.total_points, self.max_points)

    @property
    def accuracy(self) -> int:
        from studyhub.services.grading import percentage

        return percentage(self.correct_answers, self.total_questions)

    @property
    def completion_time_minutes(self) -> int | None:
        if self.completed_at is None:
            return None
        delta = as_utc(self.completed_at) - as_utc(self.started_at)
        return round(delta.total_seconds() / 60)


class AttemptAnswer(Base):
    """Individual answer within an attempt; a placeholder until submission."""

    __tablename__ = "attempt_answers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    attempt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quiz_attempts.id"), index=True
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("questions.id")
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    section: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    points_earned: Mapped[int] = mapped_column(Integer, default=0)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)

    attempt: Mapped["QuizAttempt"] = relationship(back_populates="answers")
    question: Mapped["Question"] = relationship("Question")


# ── Communities ───────────────────────────────────────────────────────────────


class Community(Base):
    __tablename__ = "communities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    name: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(100), default="General")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    member_count: Mapped[int] = mapped_column(Integer, default=0)
    content_count: Mapped[int] = mapped_column(Integer, default=0)
    quiz_count: Mapped[int] = mapped_column(Integer, default=0)
    message_count: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    creator: Mapped["User"] = relationship("User")
    members: Mapped[list["CommunityMember"]] = relationship(
        back_populates="community", cascade="all, delete-orphan"
    )
    quizzes: Mapped[list["Quiz"]] = relationship(back_populates="community")


class CommunityMember(Base):
    __tablename__ = "community_members"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    community_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("communities.id"), index=True
    )
    role: Mapped[MemberRoleEnum] = mapped_column(
        _enum(MemberRoleEnum, "member_role_enum"), default=MemberRoleEnum.MEMBER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    messages_count: Mapped[int] = mapped_column(Integer, default=0)
    content_shared: Mapped[int] = mapped_column(Integer, default=0)
    quizzes_created: Mapped[int] = mapped_column(Integer, default=0)
    quizzes_taken: Mapped[int] = mapped_column(Integer, default=0)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    user: Mapped["User"] = relationship(back_populates="memberships")
    community: Mapped["Community"] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "community_id", name="uq_community_member"),
    )

    @property
    def can_moderate(self) -> bool:
        return self.role in (MemberRoleEnum.ADMIN, MemberRoleEnum.MODERATOR)


class CommunityContent(Base):
    __tablename__ = "community_contents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    community_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("communities.id"), index=True
    )
    original_content_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contents.id")
    )
    shared_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(100), default="General")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    views: Mapped[int] = mapped_column(Integer, default=0)
    quizzes_generated: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    original_content: Mapped["Content"] = relationship("Content")
    sharer: Mapped["User"] = relationship("User")

    __table_args__ = (
        UniqueConstraint(
            "community_id",
            "original_content_id",
            name="uq_community_content",
        ),
    )


class CommunityMessage(Base):
    __tablename__ = "community_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    community_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("communities.id"), index=True
    )
    quiz_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quizzes.id"), nullable=True, index=True
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    body: Mapped[str] = mapped_column(Text)
    message_type: Mapped[MessageTypeEnum] = mapped_column(
        _enum(MessageTypeEnum, "message_type_enum"), default=MessageTypeEnum.GENERAL
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("community_messages.id"), nullable=True
    )
    reply_count: Mapped[int] = mapped_column(Integer, default=0)
    reactions: Mapped[list] = mapped_column(JSON, default=list)  # [{"emoji", "user_ids"}]
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False)
    edited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    author: Mapped["User"] = relationship("User")
