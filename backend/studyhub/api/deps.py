"""FastAPI dependencies shared across routes."""

import logging

from celery.exceptions import CeleryError
from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from kombu.exceptions import OperationalError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studyhub.config import settings
from studyhub.core.security import decode_identity_token
from studyhub.db.models import User
from studyhub.db.session import get_db
from studyhub.exceptions import PermissionDenied, RateLimited
from studyhub.services.rate_limiter import take_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Verify the identity-provider token and return the local user, creating it on first sight."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    payload = decode_identity_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")
    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Invalid token payload")

    user = db.query(User).filter(User.external_id == subject).first()
    if user is None:
        user = User(
            external_id=subject,
            email=payload.get("email"),
            first_name=payload.get("given_name") or payload.get("first_name"),
            last_name=payload.get("family_name") or payload.get("last_name"),
            profile_image=payload.get("picture"),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Another request created the same subject first.
            db.rollback()
            user = db.query(User).filter(User.external_id == subject).first()
            if user is None:
                raise
        else:
            db.refresh(user)
            logger.info("Created local user %s for subject %s", user.id, subject)

    if not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


def dispatch_task(background_tasks: BackgroundTasks, task, *args) -> bool:
    """Queue a Celery task without holding up the HTTP response.

    - With a real broker the task is sent to a worker.
    - With CELERY_TASK_ALWAYS_EAGER the task would run inline, so it is
      deferred until after the response has been sent.

    Returns False when the broker refused the task; callers decide whether
    that matters.
    """
    if settings.CELERY_TASK_ALWAYS_EAGER:
        background_tasks.add_task(task.delay, *args)
        return True
    try:
        task.delay(*args)
    except (OperationalError, CeleryError) as exc:
        logger.warning("Could not queue %s%s: %s", task.name, args, exc)
        return False
    return True


def require_username(current_user: User = Depends(get_current_user)) -> User:
    """Community write operations need a chosen username."""
    if not current_user.username:
        raise PermissionDenied(
            "Please set a username before participating in communities",
            error_code="USERNAME_REQUIRED",
        )
    return current_user


def require_generation_rate_limit(current_user: User = Depends(get_current_user)) -> None:
    """Endpoints that call the text generation service spend one token per request."""
    retry_after = take_token(f"studyhub:gen:{current_user.id}")
    if retry_after:
        logger.info("User %s rate-limited for %ss", current_user.id, retry_after)
        raise RateLimited(retry_after)
