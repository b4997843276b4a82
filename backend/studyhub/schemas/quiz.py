"""Quiz definition schemas."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class QuizGenerateRequest(BaseModel):
    """POST /api/quiz/generate: quiz from processed content."""

    content_id: uuid.UUID
    questions_per_section: int = Field(default=3, ge=1, le=10)


class TopicQuizRequest(BaseModel):
    """POST /api/quiz/generate-from-topic"""

    topic: str = Field(min_length=1, max_length=500)
    description: str | None = None
    difficulty: Difficulty = Difficulty.MEDIUM
    num_questions: int = Field(default=5, ge=1, le=50)


class OptionRead(BaseModel):
    text: str
    is_correct: bool | None = None


class QuestionRead(BaseModel):
    """Question as shown to a quiz taker; answers only when revealed."""

    id: uuid.UUID
    position: int
    text: str
    question_type: str
    options: list[OptionRead] = []
    points: int
    difficulty: str
    section: str | None = None
    correct_answer: str | None = None
    explanation: str | None = None


class QuizSettings(BaseModel):
    time_limit_minutes: int
    max_attempts: int
    passing_score: int
    allow_retakes: bool
    shuffle_questions: bool
    show_correct_answers: bool


class QuizAnalytics(BaseModel):
    total_attempts: int
    average_score: float
    best_score: int
    pass_rate: float
    average_time_spent: float
    last_taken_at: datetime | None = None


class QuizSummary(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None = None
    difficulty: str
    category: str
    content_id: uuid.UUID | None = None
    community_id: uuid.UUID | None = None
    is_custom: bool
    custom_topic: str | None = None
    visibility: str
    status: str
    question_count: int
    settings: QuizSettings
    analytics: QuizAnalytics
    created_at: datetime


class QuizDetail(QuizSummary):
    questions: list[QuestionRead] = []


class QuizGenerateResponse(BaseModel):
    quiz: QuizDetail
    is_existing: bool = False


class QuizListItem(QuizSummary):
    """Own quiz with the caller's attempt summary."""

    my_attempts: int = 0
    best_score: int | None = None
    latest_score: int | None = None
    latest_attempt_at: datetime | None = None
    is_passed: bool = False
