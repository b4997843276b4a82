"""Personal learning material: create, list, summarise and track reading progress."""

import logging
import math
import re
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from studyhub.api.deps import (
    dispatch_task,
    get_current_user,
    require_generation_rate_limit,
)
from studyhub.config import settings
from studyhub.db.models import ActivityTypeEnum, Content, ContentStatusEnum, User
from studyhub.db.session import get_db
from studyhub.exceptions import ContentNotFound, ValidationFailed
from studyhub.schemas.common import Pagination, SuccessResponse
from studyhub.schemas.content import (
    ContentDetail,
    ContentList,
    ContentRead,
    ContentTextCreate,
    ContentUpdate,
    ProgressRead,
    ProgressUpdate,
)
from studyhub.services.analytics import record_activity
from studyhub.tasks import generate_content_summary, summarise_content

logger = logging.getLogger(__name__)
router = APIRouter()

_EXTENSION = re.compile(r"\.[^/.]+$")


def get_owned_content(db: Session, user: User, content_id: uuid.UUID) -> Content:
    content = (
        db.query(Content)
        .filter(
            Content.id == content_id,
            Content.owner_id == user.id,
            Content.is_active.is_(True),
        )
        .first()
    )
    if content is None:
        raise ContentNotFound()
    return content


def _progress_read(content: Content) -> ProgressRead:
    return ProgressRead(
        content_id=content.id,
        progress_percent=content.progress_percent,
        time_spent_minutes=content.time_spent_minutes,
        last_accessed_at=content.last_accessed_at,
        completed_at=content.completed_at,
        is_completed=content.progress_percent >= 100,
    )


@router.post("/text", response_model=ContentRead, status_code=status.HTTP_201_CREATED)
def create_from_text(
    body: ContentTextCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Store extracted text and queue its AI summary.

    The content starts as ``processing``; the background summary moves it to
    ``processed`` (or ``failed``).
    """
    text = body.text.strip()
    if len(text) < settings.MIN_CONTENT_LENGTH:
        raise ValidationFailed(
            f"Extracted text is too short. Minimum {settings.MIN_CONTENT_LENGTH} characters required.",
            error_code="CONTENT_TOO_SHORT",
        )

    word_count = len(text.split())
    title = (body.title or "").strip()
    if not title and body.file_name:
        title = _EXTENSION.sub("", body.file_name)
    content = Content(
        owner_id=current_user.id,
        title=title or "Untitled Document",
        file_name=body.file_name,
        file_type=body.file_type,
        original_text=text,
        category=body.category.strip().lower() or "general",
        tags=[t.strip().lower() for t in body.tags if t.strip()],
        word_count=word_count,
        reading_time_minutes=math.ceil(word_count / 200),
        page_count=body.page_count,
        status=ContentStatusEnum.PROCESSING,
    )
    db.add(content)
    db.commit()
    db.refresh(content)
    logger.info("Content %s created (%d words) by user %s", content.id, word_count, current_user.id)

    if not dispatch_task(background_tasks, generate_content_summary, str(content.id)):
        content.status = ContentStatusEnum.FAILED
        content.processing_error = "Summary generation could not be queued"
        db.commit()
        db.refresh(content)
    return content


@router.get("", response_model=ContentList)
def list_content(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    category: str | None = None,
    search: str | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List own content, newest first, with optional category / title search."""
    query = db.query(Content).filter(
        Content.owner_id == current_user.id, Content.is_active.is_(True)
    )
    if category:
        query = query.filter(Content.category == category.lower())
    if search:
        query = query.filter(Content.title.ilike(f"%{search.strip()}%"))

    total = query.count()
    items = (
        query.order_by(Content.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return ContentList(
        items=[ContentRead.model_validate(c) for c in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{content_id}", response_model=ContentDetail)
def get_content(
    content_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = get_owned_content(db, current_user, content_id)
    content.last_accessed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(content)
    return content


@router.patch("/{content_id}", response_model=ContentRead)
def update_content(
    content_id: uuid.UUID,
    body: ContentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = get_owned_content(db, current_user, content_id)
    if body.title is not None:
        content.title = body.title.strip()
    if body.category is not None:
        content.category = body.category.strip().lower()
    if body.tags is not None:
        content.tags = [t.strip().lower() for t in body.tags if t.strip()]
    db.commit()
    db.refresh(content)
    return content


@router.delete("/{content_id}", response_model=SuccessResponse)
def delete_content(
    content_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Soft delete: the row stays for quiz history but disappears from listings."""
    content = get_owned_content(db, current_user, content_id)
    content.is_active = False
    db.commit()
    return SuccessResponse(message="Content deleted")


@router.post("/{content_id}/summary", response_model=ContentDetail)
def regenerate_summary(
    content_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _rl: None = Depends(require_generation_rate_limit),
):
    """Regenerate the AI summary synchronously (502 if the generator fails)."""
    content = get_owned_content(db, current_user, content_id)
    content.ai_summary = summarise_content(content)
    content.status = ContentStatusEnum.PROCESSED
    content.processing_error = None
    db.commit()
    db.refresh(content)
    return content


@router.put("/{content_id}/progress", response_model=ProgressRead)
def update_progress(
    content_id: uuid.UUID,
    body: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = get_owned_content(db, current_user, content_id)
    now = datetime.now(timezone.utc)
    content.progress_percent = body.progress_percent
    content.last_accessed_at = now
    if body.time_spent_minutes:
        content.time_spent_minutes += body.time_spent_minutes
        record_activity(
            db,
            current_user.id,
            ActivityTypeEnum.READING,
            body.time_spent_minutes,
            content_id=content.id,
            occurred_at=now,
        )
    if body.progress_percent == 100 and content.completed_at is None:
        content.completed_at = now
    db.commit()
    db.refresh(content)
    return _progress_read(content)


@router.get("/{content_id}/progress", response_model=ProgressRead)
def get_progress(
    content_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _progress_read(get_owned_content(db, current_user, content_id))
