"""API route package: imports all routers for main.py."""

from studyhub.api.health import router as health_router  # noqa: F401
from studyhub.api.users import router as users_router  # noqa: F401
from studyhub.api.content import router as content_router  # noqa: F401
from studyhub.api.quiz import router as quiz_router  # noqa: F401
from studyhub.api.attempts import router as attempts_router  # noqa: F401
from studyhub.api.communities import router as communities_router  # noqa: F401
from studyhub.api.community_content import router as community_content_router  # noqa: F401
from studyhub.api.community_chat import router as community_chat_router  # noqa: F401
from studyhub.api.community_quiz import router as community_quiz_router  # noqa: F401
from studyhub.api.analytics import router as analytics_router  # noqa: F401
