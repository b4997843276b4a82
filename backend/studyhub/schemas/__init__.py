"""Pydantic schemas: re-exported for convenience."""

from studyhub.schemas.common import ErrorResponse, Pagination, SuccessResponse  # noqa: F401
from studyhub.schemas.user import UserRead, UserUpdate, UsernameSet  # noqa: F401
from studyhub.schemas.content import (  # noqa: F401
    ContentDetail,
    ContentRead,
    ContentTextCreate,
    ProgressUpdate,
)
from studyhub.schemas.quiz import (  # noqa: F401
    QuestionRead,
    QuizDetail,
    QuizGenerateRequest,
    QuizSummary,
    TopicQuizRequest,
)
from studyhub.schemas.attempt import (  # noqa: F401
    AttemptDetail,
    AttemptRead,
    AttemptStartResponse,
    AttemptSubmit,
    LeaderboardEntryRead,
    SubmissionResponse,
)
from studyhub.schemas.community import (  # noqa: F401
    CommunityCreate,
    CommunityQuizCreate,
    CommunityRead,
    MessageCreate,
    MessageRead,
)
from studyhub.schemas.analytics import CategoryPerformance, DashboardRead  # noqa: F401
