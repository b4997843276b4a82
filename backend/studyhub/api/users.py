"""Profile and username routes.

Sign-up and login happen at the identity provider; the local user row is
created on the first authenticated request (see ``deps.get_current_user``).
"""

import logging
import re

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studyhub.api.deps import get_current_user
from studyhub.db.models import User
from studyhub.db.session import get_db
from studyhub.exceptions import Conflict, ValidationFailed
from studyhub.schemas.user import UsernameAvailability, UsernameSet, UserRead, UserUpdate

logger = logging.getLogger(__name__)
router = APIRouter()

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")


def _clean_username(raw: str) -> str:
    username = (raw or "").strip()
    if not 3 <= len(username) <= 20:
        raise ValidationFailed("Username must be between 3 and 20 characters")
    if not _USERNAME_RE.match(username):
        raise ValidationFailed(
            "Username can only contain letters, numbers, and underscores"
        )
    return username.lower()


def _username_taken(db: Session, username: str, user: User) -> bool:
    return (
        db.query(User.id)
        .filter(User.username == username, User.id != user.id)
        .first()
        is not None
    )


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return current_user


@router.patch("/me", response_model=UserRead)
def update_profile(
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update the authenticated user's first/last name."""
    if body.first_name is not None:
        current_user.first_name = body.first_name.strip()
    if body.last_name is not None:
        current_user.last_name = body.last_name.strip()
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/check-username/{username}", response_model=UsernameAvailability)
def check_username(
    username: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    clean = _clean_username(username)
    available = not _username_taken(db, clean, current_user)
    return UsernameAvailability(
        username=clean,
        available=available,
        message="Username is available" if available else "Username is already taken",
    )


@router.post("/set-username", response_model=UserRead)
def set_username(
    body: UsernameSet,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    clean = _clean_username(body.username)
    if _username_taken(db, clean, current_user):
        raise Conflict("Username is already taken")
    current_user.username = clean
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Username is already taken")
    db.refresh(current_user)
    logger.info("User %s set username %s", current_user.id, clean)
    return current_user
