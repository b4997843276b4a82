"""Application exceptions.

Every error raised by the routes and services derives from ``AppError`` and
is rendered by ``main.py`` as the shared ``ErrorResponse`` envelope.
"""


class AppError(Exception):
    """Base application error carrying an HTTP status and a machine-readable code."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        details: dict | None = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details
        super().__init__(self.message)


# ── Quiz engine ───────────────────────────────────────────────────────────────


class QuizNotFound(AppError):
    status_code = 404
    error_code = "QUIZ_NOT_FOUND"

    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message)


class AttemptNotFound(AppError):
    """Missing, someone else's, or no longer in the expected state."""

    status_code = 404
    error_code = "ATTEMPT_NOT_FOUND"

    def __init__(self, message: str = "Quiz attempt not found or already completed"):
        super().__init__(message)


class AccessDenied(AppError):
    status_code = 403
    error_code = "ACCESS_DENIED"

    def __init__(self, message: str = "You do not have access to this quiz"):
        super().__init__(message)


class AttemptLimitExceeded(AppError):
    status_code = 400
    error_code = "MAX_ATTEMPTS_REACHED"

    def __init__(self, max_attempts: int):
        super().__init__(
            f"Maximum attempts ({max_attempts}) reached for this quiz",
            details={"max_attempts": max_attempts},
        )


class QuestionReferenceInvalid(AppError):
    status_code = 422
    error_code = "QUESTION_REFERENCE_INVALID"

    def __init__(self, question_id: str):
        super().__init__(
            f"Answer references a question that is not part of this quiz: {question_id}",
            details={"question_id": question_id},
        )


# ── Content / communities ─────────────────────────────────────────────────────


class ContentNotFound(AppError):
    status_code = 404
    error_code = "CONTENT_NOT_FOUND"

    def __init__(self, message: str = "Content not found"):
        super().__init__(message)


class ContentNotProcessed(AppError):
    status_code = 400
    error_code = "CONTENT_NOT_PROCESSED"

    def __init__(self, message: str = "Content is not yet processed"):
        super().__init__(message)


class CommunityNotFound(AppError):
    status_code = 404
    error_code = "COMMUNITY_NOT_FOUND"

    def __init__(self, message: str = "Community not found"):
        super().__init__(message)


class NotCommunityMember(AppError):
    status_code = 403
    error_code = "NOT_A_MEMBER"

    def __init__(self, message: str = "You must be a member of this community"):
        super().__init__(message)


# ── Generic ───────────────────────────────────────────────────────────────────


class ValidationFailed(AppError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFound(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class PermissionDenied(AppError):
    status_code = 403
    error_code = "FORBIDDEN"


class Conflict(AppError):
    status_code = 409
    error_code = "CONFLICT"


class RateLimited(AppError):
    status_code = 429
    error_code = "RATE_LIMITED"

    def __init__(self, retry_after: int):
        super().__init__(
            "Too many generation requests, please slow down.",
            details={"retry_after_seconds": retry_after},
        )


class TextGenerationError(AppError):
    """The text generation service failed or returned output we cannot use."""

    status_code = 502
    error_code = "TEXT_GENERATION_FAILED"
