"""Content (learning material) schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from studyhub.schemas.common import Pagination


class ContentTextCreate(BaseModel):
    """POST /api/content/text: create content from already-extracted text."""

    title: str | None = Field(default=None, max_length=200)
    text: str
    file_name: str | None = Field(default=None, max_length=255)
    file_type: str = Field(default="text", max_length=20)
    page_count: int | None = Field(default=None, ge=0)
    category: str = Field(default="general", max_length=100)
    tags: list[str] = []


class ContentUpdate(BaseModel):
    """PATCH /api/content/{id}"""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] | None = None


class QuizHistoryEntry(BaseModel):
    attempt_id: str
    score: int | None = None
    passed: bool
    completed_at: str


class ContentRead(BaseModel):
    """Content metadata; the full text is only returned by the detail view."""

    id: uuid.UUID
    title: str
    file_name: str | None = None
    file_type: str
    category: str
    tags: list[str] = []
    word_count: int
    reading_time_minutes: int
    status: str
    processing_error: str | None = None
    progress_percent: int
    time_spent_minutes: int
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    has_quiz: bool
    quiz_id: uuid.UUID | None = None
    quiz_total_attempts: int
    quiz_best_score: int
    quiz_passed: bool
    quiz_last_attempt_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContentDetail(ContentRead):
    original_text: str
    ai_summary: dict[str, Any] | None = None
    quiz_attempt_history: list[QuizHistoryEntry] = []


class ContentList(BaseModel):
    items: list[ContentRead]
    pagination: Pagination


class ProgressUpdate(BaseModel):
    """PUT /api/content/{id}/progress"""

    progress_percent: int = Field(ge=0, le=100)
    time_spent_minutes: int = Field(default=0, ge=0)


class ProgressRead(BaseModel):
    content_id: uuid.UUID
    progress_percent: int
    time_spent_minutes: int
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    is_completed: bool
