"""Community, shared content, chat and community quiz schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from studyhub.schemas.attempt import AttemptRead
from studyhub.schemas.quiz import Difficulty, QuizDetail, QuizSummary, Visibility


# ── Communities ───────────────────────────────────────────────────────────────


class CommunityCreate(BaseModel):
    """POST /api/communities"""

    name: str = Field(min_length=3, max_length=100)
    description: str = Field(default="", max_length=1000)
    category: str = Field(default="General", max_length=100)
    tags: list[str] = []
    is_private: bool = False


class CommunityRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    category: str
    tags: list[str] = []
    is_private: bool
    created_by: uuid.UUID
    member_count: int
    content_count: int
    quiz_count: int
    message_count: int
    last_activity_at: datetime
    created_at: datetime
    my_role: str | None = None

    model_config = {"from_attributes": True}


class MemberRead(BaseModel):
    user_id: uuid.UUID
    display_name: str
    role: str
    messages_count: int
    content_shared: int
    quizzes_created: int
    quizzes_taken: int
    joined_at: datetime


# ── Shared content ────────────────────────────────────────────────────────────


class ShareContentRequest(BaseModel):
    description: str = Field(default="", max_length=1000)


class CommunityContentRead(BaseModel):
    id: uuid.UUID
    community_id: uuid.UUID
    original_content_id: uuid.UUID
    shared_by: uuid.UUID
    shared_by_name: str | None = None
    title: str
    description: str
    category: str
    tags: list[str] = []
    views: int
    quizzes_generated: int
    created_at: datetime


class CommunityContentDetail(CommunityContentRead):
    original_text: str
    ai_summary: dict | None = None


# ── Chat ──────────────────────────────────────────────────────────────────────


class MessageCreate(BaseModel):
    body: str = Field(min_length=1, max_length=2000)
    parent_id: uuid.UUID | None = None


class MessageUpdate(BaseModel):
    body: str = Field(min_length=1, max_length=2000)


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1, max_length=16)


class Reaction(BaseModel):
    emoji: str
    user_ids: list[str] = []
    count: int = 0


class MessageRead(BaseModel):
    id: uuid.UUID
    community_id: uuid.UUID
    quiz_id: uuid.UUID | None = None
    author_id: uuid.UUID
    author_name: str
    body: str
    message_type: str
    parent_id: uuid.UUID | None = None
    reply_count: int
    reactions: list[Reaction] = []
    is_edited: bool
    edited_at: datetime | None = None
    created_at: datetime


# ── Community quizzes ─────────────────────────────────────────────────────────


class CommunityQuizCreate(BaseModel):
    """create-from-content / create-custom"""

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    difficulty: Difficulty = Difficulty.MEDIUM
    question_count: int = Field(default=10, ge=1, le=50)
    visibility: Visibility = Visibility.PUBLIC
    time_limit_minutes: int = Field(default=30, ge=0, le=600)
    custom_topic: str | None = Field(default=None, max_length=500)


class CommunityQuizCreated(BaseModel):
    quiz: QuizSummary
    access_code: str | None = None


class JoinPrivateRequest(BaseModel):
    access_code: str = Field(min_length=1, max_length=12)


class JoinPrivateResponse(BaseModel):
    quiz_id: uuid.UUID
    community_id: uuid.UUID
    title: str
    description: str | None = None


class CommunityQuizDetail(BaseModel):
    quiz: QuizDetail
    my_attempts: list[AttemptRead] = []
    can_attempt: bool


class CommunityAttemptRead(AttemptRead):
    community_id: uuid.UUID | None = None
    community_name: str | None = None
