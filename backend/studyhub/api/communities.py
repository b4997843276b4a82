"""Community routes: discovery, creation and membership."""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from studyhub.api.deps import get_current_user, require_username
from studyhub.db.models import Community, CommunityMember, MemberRoleEnum, User
from studyhub.db.session import get_db
from studyhub.exceptions import CommunityNotFound, Conflict, NotCommunityMember
from studyhub.schemas.common import SuccessResponse
from studyhub.schemas.community import CommunityCreate, CommunityRead, MemberRead
from studyhub.services.attempt_engine import active_membership

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Helpers shared by the community routers ───────────────────────────────────


def get_community(db: Session, community_id: uuid.UUID) -> Community:
    community = (
        db.query(Community)
        .filter(Community.id == community_id, Community.is_active.is_(True))
        .first()
    )
    if community is None:
        raise CommunityNotFound()
    return community


def require_member(db: Session, user: User, community_id: uuid.UUID) -> CommunityMember:
    """Active membership of *user* in an active community, else 404 / 403."""
    get_community(db, community_id)
    membership = active_membership(db, user.id, community_id)
    if membership is None:
        raise NotCommunityMember()
    return membership


def touch(community: Community, member: CommunityMember | None = None) -> None:
    now = datetime.now(timezone.utc)
    community.last_activity_at = now
    if member is not None:
        member.last_active_at = now


def _to_read(community: Community, role: MemberRoleEnum | None = None) -> CommunityRead:
    read = CommunityRead.model_validate(community)
    read.my_role = role.value if role else None
    return read


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("", response_model=list[CommunityRead])
def list_communities(
    search: str | None = None,
    category: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active public communities, most active first."""
    query = db.query(Community).filter(
        Community.is_active.is_(True), Community.is_private.is_(False)
    )
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(Community.name.ilike(term) | Community.description.ilike(term))
    if category:
        query = query.filter(Community.category == category)
    communities = (
        query.order_by(Community.last_activity_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    roles = dict(
        db.query(CommunityMember.community_id, CommunityMember.role)
        .filter(
            CommunityMember.user_id == current_user.id,
            CommunityMember.is_active.is_(True),
        )
        .all()
    )
    return [_to_read(c, roles.get(c.id)) for c in communities]


@router.get("/mine", response_model=list[CommunityRead])
def my_communities(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(Community, CommunityMember.role)
        .join(CommunityMember, CommunityMember.community_id == Community.id)
        .filter(
            CommunityMember.user_id == current_user.id,
            CommunityMember.is_active.is_(True),
            Community.is_active.is_(True),
        )
        .order_by(Community.last_activity_at.desc())
        .all()
    )
    return [_to_read(community, role) for community, role in rows]


@router.post("", response_model=CommunityRead, status_code=status.HTTP_201_CREATED)
def create_community(
    body: CommunityCreate,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    """Create a community; the creator becomes its first admin."""
    name = body.name.strip()
    taken = (
        db.query(Community.id)
        .filter(func.lower(Community.name) == name.lower(), Community.is_active.is_(True))
        .first()
    )
    if taken is not None:
        raise Conflict("A community with this name already exists")

    community = Community(
        name=name,
        description=body.description.strip(),
        category=body.category,
        tags=[t.strip().lower() for t in body.tags if t.strip()],
        is_private=body.is_private,
        created_by=current_user.id,
        member_count=1,
    )
    db.add(community)
    db.flush()
    db.add(
        CommunityMember(
            user_id=current_user.id,
            community_id=community.id,
            role=MemberRoleEnum.ADMIN,
        )
    )
    db.commit()
    db.refresh(community)
    logger.info("Community %s (%s) created by user %s", community.id, name, current_user.id)
    return _to_read(community, MemberRoleEnum.ADMIN)


@router.post("/{community_id}/join", response_model=CommunityRead)
def join_community(
    community_id: uuid.UUID,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    community = get_community(db, community_id)
    membership = (
        db.query(CommunityMember)
        .filter(
            CommunityMember.user_id == current_user.id,
            CommunityMember.community_id == community.id,
        )
        .first()
    )
    if membership is not None and membership.is_active:
        raise Conflict("You are already a member of this community")

    if membership is None:
        membership = CommunityMember(
            user_id=current_user.id,
            community_id=community.id,
            role=MemberRoleEnum.MEMBER,
        )
        db.add(membership)
    else:
        membership.is_active = True
        membership.joined_at = datetime.now(timezone.utc)
    community.member_count += 1
    touch(community, membership)
    db.commit()
    db.refresh(community)
    logger.info("User %s joined community %s", current_user.id, community.id)
    return _to_read(community, membership.role)


@router.post("/{community_id}/leave", response_model=SuccessResponse)
def leave_community(
    community_id: uuid.UUID,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    community = get_community(db, community_id)
    membership = active_membership(db, current_user.id, community.id)
    if membership is None:
        raise NotCommunityMember("You are not a member of this community")
    membership.is_active = False
    community.member_count = max(0, community.member_count - 1)
    db.commit()
    logger.info("User %s left community %s", current_user.id, community.id)
    return SuccessResponse(message="Successfully left the community")


@router.get("/{community_id}/members", response_model=list[MemberRead])
def list_members(
    community_id: uuid.UUID,
    role: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_community(db, community_id)
    query = db.query(CommunityMember).filter(
        CommunityMember.community_id == community_id,
        CommunityMember.is_active.is_(True),
    )
    if role:
        query = query.filter(CommunityMember.role == MemberRoleEnum(role))
    members = (
        query.order_by(CommunityMember.joined_at.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [
        MemberRead(
            user_id=m.user_id,
            display_name=m.user.display_name,
            role=m.role.value,
            messages_count=m.messages_count,
            content_shared=m.content_shared,
            quizzes_created=m.quizzes_created,
            quizzes_taken=m.quizzes_taken,
            joined_at=m.joined_at,
        )
        for m in members
    ]
