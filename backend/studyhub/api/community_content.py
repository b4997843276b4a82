"""Learning material shared into communities."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studyhub.api.communities import get_community, require_member, touch
from studyhub.api.deps import get_current_user
from studyhub.db.models import CommunityContent, Content, User
from studyhub.db.session import get_db
from studyhub.exceptions import Conflict, ContentNotFound, PermissionDenied
from studyhub.schemas.common import SuccessResponse
from studyhub.schemas.community import (
    CommunityContentDetail,
    CommunityContentRead,
    ShareContentRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _fields(item: CommunityContent) -> dict:
    return dict(
        id=item.id,
        community_id=item.community_id,
        original_content_id=item.original_content_id,
        shared_by=item.shared_by,
        shared_by_name=item.sharer.display_name if item.sharer else None,
        title=item.title,
        description=item.description,
        category=item.category,
        tags=item.tags or [],
        views=item.views,
        quizzes_generated=item.quizzes_generated,
        created_at=item.created_at,
    )


def get_shared_content(
    db: Session, community_id: uuid.UUID, item_id: uuid.UUID
) -> CommunityContent:
    item = (
        db.query(CommunityContent)
        .filter(
            CommunityContent.id == item_id,
            CommunityContent.community_id == community_id,
            CommunityContent.is_active.is_(True),
        )
        .first()
    )
    if item is None:
        raise ContentNotFound()
    return item


@router.post(
    "/{community_id}/share/{content_id}",
    response_model=CommunityContentRead,
    status_code=status.HTTP_201_CREATED,
)
def share_content(
    community_id: uuid.UUID,
    content_id: uuid.UUID,
    body: ShareContentRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Share one of the caller's own documents; each document at most once per community."""
    membership = require_member(db, current_user, community_id)
    content = (
        db.query(Content)
        .filter(
            Content.id == content_id,
            Content.owner_id == current_user.id,
            Content.is_active.is_(True),
        )
        .first()
    )
    if content is None:
        raise ContentNotFound("Content not found or you do not have permission")

    already = (
        db.query(CommunityContent.id)
        .filter(
            CommunityContent.community_id == community_id,
            CommunityContent.original_content_id == content.id,
        )
        .first()
    )
    if already is not None:
        raise Conflict("Content already shared to this community")

    community = get_community(db, community_id)
    description = body.description.strip() if body else ""
    item = CommunityContent(
        community_id=community_id,
        original_content_id=content.id,
        shared_by=current_user.id,
        title=content.title,
        description=description or ((content.ai_summary or {}).get("summary") or "")[:1000],
        category=content.category,
        tags=list(content.tags or []),
    )
    db.add(item)
    membership.content_shared += 1
    community.content_count += 1
    touch(community, membership)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Content already shared to this community")
    db.refresh(item)
    logger.info("Content %s shared to community %s by %s", content.id, community_id, current_user.id)
    return CommunityContentRead(**_fields(item))


@router.get("/{community_id}", response_model=list[CommunityContentRead])
def list_shared_content(
    community_id: uuid.UUID,
    search: str | None = None,
    category: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    query = db.query(CommunityContent).filter(
        CommunityContent.community_id == community_id,
        CommunityContent.is_active.is_(True),
    )
    if search:
        query = query.filter(CommunityContent.title.ilike(f"%{search.strip()}%"))
    if category:
        query = query.filter(CommunityContent.category == category)
    items = (
        query.order_by(CommunityContent.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [CommunityContentRead(**_fields(i)) for i in items]


@router.get("/{community_id}/content/{item_id}", response_model=CommunityContentDetail)
def get_shared_item(
    community_id: uuid.UUID,
    item_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    item = get_shared_content(db, community_id, item_id)
    item.views += 1
    db.commit()
    db.refresh(item)
    original = item.original_content
    return CommunityContentDetail(
        **_fields(item),
        original_text=original.original_text if original else "",
        ai_summary=original.ai_summary if original else None,
    )


@router.delete("/{community_id}/content/{item_id}", response_model=SuccessResponse)
def delete_shared_item(
    community_id: uuid.UUID,
    item_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Soft delete by the sharer or a community admin / moderator."""
    membership = require_member(db, current_user, community_id)
    item = get_shared_content(db, community_id, item_id)
    if item.shared_by != current_user.id and not membership.can_moderate:
        raise PermissionDenied("You do not have permission to delete this content")
    item.is_active = False
    community = get_community(db, community_id)
    community.content_count = max(0, community.content_count - 1)
    db.commit()
    logger.info("Shared content %s removed from community %s", item.id, community_id)
    return SuccessResponse(message="Content deleted successfully")
