"""Attempt schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from studyhub.schemas.quiz import QuestionRead


class AnswerIn(BaseModel):
    question_id: str
    user_answer: str | None = None
    time_spent_seconds: int = Field(default=0, ge=0)


class AttemptSubmit(BaseModel):
    """POST /api/attempts/{id}/submit"""

    answers: list[AnswerIn] = []
    time_spent_seconds: int | None = Field(default=None, ge=0)


class AttemptStartResponse(BaseModel):
    attempt_id: uuid.UUID
    quiz_id: uuid.UUID
    attempt_number: int
    max_attempts: int
    time_limit_minutes: int
    started_at: datetime
    resumed: bool
    questions: list[QuestionRead] = []


class SectionScore(BaseModel):
    section: str
    correct: int
    total: int
    percentage: int


class SubmissionResponse(BaseModel):
    attempt_id: uuid.UUID
    attempt_number: int
    passed: bool
    score: int
    percentage: int
    total_points: int
    max_points: int
    correct_answers: int
    total_questions: int
    time_spent_minutes: int
    total_time_taken: int | None = None
    section_scores: list[SectionScore] = []
    can_retake: bool
    ai_summary: dict[str, Any] | None = None


class AttemptAnswerRead(BaseModel):
    question_id: uuid.UUID
    position: int
    section: str | None = None
    user_answer: str | None = None
    is_correct: bool | None = None
    points_earned: int
    time_spent_seconds: int

    model_config = {"from_attributes": True}


class AttemptRead(BaseModel):
    id: uuid.UUID
    quiz_id: uuid.UUID
    quiz_title: str | None = None
    attempt_number: int
    status: str
    score: int | None = None
    percentage: int | None = None
    passed: bool
    total_points: int
    max_points: int
    correct_answers: int
    total_questions: int
    time_spent_minutes: int
    total_time_taken: int | None = None
    completion_time_minutes: int | None = None
    rank: int | None = None
    started_at: datetime
    completed_at: datetime | None = None


class AttemptDetail(AttemptRead):
    section_scores: list[SectionScore] = []
    answers: list[AttemptAnswerRead] = []
    ai_summary: dict[str, Any] | None = None


class LeaderboardEntryRead(BaseModel):
    rank: int
    user_id: uuid.UUID
    display_name: str
    score: int
    time_taken: int | None = None
    attempts: int
    last_attempt: datetime | None = None

    model_config = {"from_attributes": True}
