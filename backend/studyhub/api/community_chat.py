"""Community chat and quiz discussion threads (polling, no push)."""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from studyhub.api.communities import get_community, require_member, touch
from studyhub.api.deps import get_current_user, require_username
from studyhub.db.models import (
    CommunityMember,
    CommunityMessage,
    MessageTypeEnum,
    Quiz,
    QuizAttempt,
    User,
)
from studyhub.db.session import get_db
from studyhub.exceptions import AccessDenied, NotFound, PermissionDenied, QuizNotFound, ValidationFailed
from studyhub.schemas.common import SuccessResponse
from studyhub.schemas.community import (
    MessageCreate,
    MessageRead,
    MessageUpdate,
    Reaction,
    ReactionRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()

ALLOWED_EMOJIS = ("👍", "👎", "❤️", "😂", "😮", "😢", "😡")


def message_to_read(message: CommunityMessage) -> MessageRead:
    return MessageRead(
        id=message.id,
        community_id=message.community_id,
        quiz_id=message.quiz_id,
        author_id=message.author_id,
        author_name=message.author.display_name if message.author else "Anonymous",
        body=message.body,
        message_type=message.message_type.value,
        parent_id=message.parent_id,
        reply_count=message.reply_count,
        reactions=[
            Reaction(emoji=r["emoji"], user_ids=r["user_ids"], count=len(r["user_ids"]))
            for r in message.reactions or []
        ],
        is_edited=message.is_edited,
        edited_at=message.edited_at,
        created_at=message.created_at,
    )


def toggle_reaction(reactions: list[dict], user_id: str, emoji: str) -> list[dict]:
    """One reaction per user: same emoji removes it, another emoji replaces it."""
    had_emoji = any(r["emoji"] == emoji and user_id in r["user_ids"] for r in reactions)
    updated = []
    for r in reactions:
        user_ids = [u for u in r["user_ids"] if u != user_id]
        if r["emoji"] == emoji and not had_emoji:
            user_ids.append(user_id)
        if user_ids:
            updated.append({"emoji": r["emoji"], "user_ids": user_ids})
    if not had_emoji and not any(r["emoji"] == emoji for r in updated):
        updated.append({"emoji": emoji, "user_ids": [user_id]})
    return updated


def _thread(
    db: Session,
    community_id: uuid.UUID,
    message_type: MessageTypeEnum,
    quiz_id: uuid.UUID | None,
    page: int,
    limit: int,
) -> list[CommunityMessage]:
    query = db.query(CommunityMessage).filter(
        CommunityMessage.community_id == community_id,
        CommunityMessage.message_type == message_type,
        CommunityMessage.is_deleted.is_(False),
        CommunityMessage.parent_id.is_(None),
    )
    if quiz_id is not None:
        query = query.filter(CommunityMessage.quiz_id == quiz_id)
    newest = (
        query.order_by(CommunityMessage.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return list(reversed(newest))


def _post(
    db: Session,
    user: User,
    membership: CommunityMember,
    community_id: uuid.UUID,
    body: MessageCreate,
    message_type: MessageTypeEnum,
    quiz_id: uuid.UUID | None = None,
) -> CommunityMessage:
    text = body.body.strip()
    if not text:
        raise ValidationFailed("Message content is required")
    parent = None
    if body.parent_id is not None:
        parent = (
            db.query(CommunityMessage)
            .filter(
                CommunityMessage.id == body.parent_id,
                CommunityMessage.community_id == community_id,
                CommunityMessage.is_deleted.is_(False),
            )
            .first()
        )
        if parent is None:
            raise NotFound("Parent message not found")

    message = CommunityMessage(
        community_id=community_id,
        quiz_id=quiz_id,
        author_id=user.id,
        body=text,
        message_type=message_type,
        parent_id=parent.id if parent else None,
        reactions=[],
    )
    db.add(message)
    if parent is not None:
        parent.reply_count += 1
    membership.messages_count += 1
    community = get_community(db, community_id)
    community.message_count += 1
    touch(community, membership)
    db.commit()
    db.refresh(message)
    return message


def _own_message(
    db: Session, community_id: uuid.UUID, message_id: uuid.UUID
) -> CommunityMessage:
    message = (
        db.query(CommunityMessage)
        .filter(
            CommunityMessage.id == message_id,
            CommunityMessage.community_id == community_id,
            CommunityMessage.is_deleted.is_(False),
        )
        .first()
    )
    if message is None:
        raise NotFound("Message not found")
    return message


# ── General chat ──────────────────────────────────────────────────────────────


@router.get("/{community_id}/messages", response_model=list[MessageRead])
def list_messages(
    community_id: uuid.UUID,
    type: MessageTypeEnum = MessageTypeEnum.GENERAL,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Top-level messages, oldest first within the requested page."""
    require_member(db, current_user, community_id)
    return [message_to_read(m) for m in _thread(db, community_id, type, None, page, limit)]


@router.post(
    "/{community_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
def post_message(
    community_id: uuid.UUID,
    body: MessageCreate,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    membership = require_member(db, current_user, community_id)
    message = _post(db, current_user, membership, community_id, body, MessageTypeEnum.GENERAL)
    return message_to_read(message)


@router.put("/{community_id}/messages/{message_id}", response_model=MessageRead)
def edit_message(
    community_id: uuid.UUID,
    message_id: uuid.UUID,
    body: MessageUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    message = _own_message(db, community_id, message_id)
    if message.author_id != current_user.id:
        raise PermissionDenied("You can only edit your own messages")
    text = body.body.strip()
    if not text:
        raise ValidationFailed("Message content is required")
    message.body = text
    message.is_edited = True
    message.edited_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(message)
    return message_to_read(message)


@router.delete("/{community_id}/messages/{message_id}", response_model=SuccessResponse)
def delete_message(
    community_id: uuid.UUID,
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Soft delete by the author or a community admin / moderator."""
    membership = require_member(db, current_user, community_id)
    message = _own_message(db, community_id, message_id)
    if message.author_id != current_user.id and not membership.can_moderate:
        raise PermissionDenied("You do not have permission to delete this message")
    message.is_deleted = True
    db.commit()
    logger.info("Message %s deleted by %s", message.id, current_user.id)
    return SuccessResponse(message="Message deleted successfully")


@router.post("/{community_id}/messages/{message_id}/react", response_model=MessageRead)
def react(
    community_id: uuid.UUID,
    message_id: uuid.UUID,
    body: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    if body.emoji not in ALLOWED_EMOJIS:
        raise ValidationFailed("Invalid emoji")
    message = _own_message(db, community_id, message_id)
    message.reactions = toggle_reaction(
        list(message.reactions or []), str(current_user.id), body.emoji
    )
    db.commit()
    db.refresh(message)
    return message_to_read(message)


# ── Quiz discussion ───────────────────────────────────────────────────────────


def _community_quiz(db: Session, community_id: uuid.UUID, quiz_id: uuid.UUID) -> Quiz:
    quiz = (
        db.query(Quiz)
        .filter(
            Quiz.id == quiz_id,
            Quiz.community_id == community_id,
            Quiz.is_active.is_(True),
        )
        .first()
    )
    if quiz is None:
        raise QuizNotFound()
    return quiz


@router.get("/{community_id}/quiz/{quiz_id}/discussion", response_model=list[MessageRead])
def list_discussion(
    community_id: uuid.UUID,
    quiz_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_member(db, current_user, community_id)
    quiz = _community_quiz(db, community_id, quiz_id)
    messages = _thread(db, community_id, MessageTypeEnum.QUIZ_DISCUSSION, quiz.id, page, limit)
    return [message_to_read(m) for m in messages]


@router.post(
    "/{community_id}/quiz/{quiz_id}/discussion",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
def post_discussion(
    community_id: uuid.UUID,
    quiz_id: uuid.UUID,
    body: MessageCreate,
    current_user: User = Depends(require_username),
    db: Session = Depends(get_db),
):
    """Discussion is open to members who have attempted the quiz."""
    membership = require_member(db, current_user, community_id)
    quiz = _community_quiz(db, community_id, quiz_id)
    attempted = (
        db.query(QuizAttempt.id)
        .filter(QuizAttempt.quiz_id == quiz.id, QuizAttempt.user_id == current_user.id)
        .first()
    )
    if attempted is None:
        raise AccessDenied("You must attempt the quiz to participate in discussions")
    message = _post(
        db,
        current_user,
        membership,
        community_id,
        body,
        MessageTypeEnum.QUIZ_DISCUSSION,
        quiz_id=quiz.id,
    )
    return message_to_read(message)
