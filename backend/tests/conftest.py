"""Shared pytest fixtures for backend tests."""

import json
import uuid

import httpx
import pytest
from fastapi.testclient import TestClient
from kombu.exceptions import OperationalError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Import the app first so every router is registered.
from studyhub.main import app
from studyhub.api import attempts as attempts_api
from studyhub.api import community_quiz as community_quiz_api
from studyhub.api import content as content_api
from studyhub.api.deps import require_generation_rate_limit
from studyhub.config import settings
from studyhub.core.security import create_access_token
from studyhub.db.models import (
    Community,
    CommunityMember,
    Content,
    ContentStatusEnum,
    MemberRoleEnum,
    Question,
    QuestionTypeEnum,
    Quiz,
    QuizStatusEnum,
    QuizVisibilityEnum,
    User,
)
from studyhub.db.session import Base, get_db, set_session_factory
from studyhub.services import text_generation


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Background tasks run eagerly and open their own sessions.
set_session_factory(TestSession)


# ── Canned generator output ───────────────────────────────────────────────────

CONTENT_SUMMARY = {
    "summary": "Photosynthesis turns light energy into chemical energy.",
    "keyTopics": ["light reactions", "calvin cycle"],
    "difficulty": "intermediate",
    "estimatedReadTime": "5 minutes",
    "sections": [
        {
            "title": "Light reactions",
            "summary": "Happen in the thylakoid membrane.",
            "keyPoints": ["ATP", "NADPH"],
        },
        {
            "title": "Calvin cycle",
            "summary": "Fixes carbon dioxide in the stroma.",
            "keyPoints": ["RuBisCO"],
        },
    ],
}

GENERATED_QUIZ = {
    "title": "Photosynthesis - Quiz",
    "description": "Check your understanding of photosynthesis.",
    "estimatedTime": "12 minutes",
    "questions": [
        {
            "sectionTitle": "Light reactions",
            "question": "Where do the light reactions take place?",
            "type": "multiple-choice",
            "options": ["Thylakoid membrane", "Stroma", "Nucleus", "Cell wall"],
            "correctAnswer": "Thylakoid membrane",
            "explanation": "Photosystems sit in the thylakoid membrane.",
            "difficulty": "easy",
            "points": 1,
        },
        {
            "sectionTitle": "Light reactions",
            "question": "Oxygen is released during the light reactions.",
            "type": "true-false",
            "options": ["True", "False"],
            "correctAnswer": "True",
            "explanation": "Water is split and oxygen released.",
            "difficulty": "easy",
            "points": 1,
        },
        {
            "sectionTitle": "Calvin cycle",
            "question": "Which enzyme fixes carbon dioxide?",
            "type": "multiple-choice",
            "options": ["RuBisCO", "Amylase", "Lipase", "Catalase"],
            "correctAnswer": "RuBisCO",
            "explanation": "RuBisCO catalyses carbon fixation.",
            "difficulty": "medium",
            "points": 2,
        },
    ],
}

PERFORMANCE_SUMMARY = {
    "overallPerformance": "good",
    "summary": "Solid grasp of the light reactions.",
    "strengths": ["Light reactions"],
    "weaknesses": ["Calvin cycle"],
    "recommendations": ["Review carbon fixation"],
    "topicsMastered": ["Light reactions"],
    "topicsToReview": ["Calvin cycle"],
    "nextSteps": "Retake the quiz after reviewing.",
    "motivationalMessage": "Keep going!",
}


class FakeGenerator:
    """Stands in for the text generation service behind an httpx MockTransport.

    Answers by prompt kind; ``quiz`` / ``raw`` / ``status_code`` can be changed
    per test to simulate odd output or an outage.
    """

    def __init__(self):
        self.prompts: list[str] = []
        self.quiz: dict = GENERATED_QUIZ
        self.raw: str | None = None
        self.status_code = 200

    def quiz_prompts(self) -> list[str]:
        return [
            p
            for p in self.prompts
            if not p.startswith("Analyze the following")
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        prompt = json.loads(request.content)["prompt"]
        self.prompts.append(prompt)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"detail": "down"})
        if self.raw is not None:
            text = self.raw
        elif prompt.startswith("Analyze the following learning material"):
            text = json.dumps(CONTENT_SUMMARY)
        elif prompt.startswith("Analyze the following quiz performance"):
            text = json.dumps(PERFORMANCE_SUMMARY)
        else:
            text = "```json\n" + json.dumps(self.quiz) + "\n```"
        return httpx.Response(200, json={"text": text})


# ── Database / app fixtures ───────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def fresh_schema():
    """Every test starts from empty tables."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def generator(monkeypatch):
    """Route the text generation singleton to the in-process fake service."""
    fake = FakeGenerator()
    client = text_generation.TextGenerationClient(
        base_url="http://textgen.test", transport=httpx.MockTransport(fake)
    )
    monkeypatch.setattr(text_generation, "_client", client)
    yield fake
    client.close()


@pytest.fixture
def broker_down(monkeypatch):
    """Run Celery against a broker that refuses every task; returns the refused calls."""
    refused = []

    class _Unqueueable:
        def __init__(self, name):
            self.name = name

        def delay(self, *args):
            refused.append((self.name, args))
            raise OperationalError("broker down")

    monkeypatch.setattr(settings, "CELERY_TASK_ALWAYS_EAGER", False)
    for module, attr in (
        (attempts_api, "generate_attempt_summary"),
        (community_quiz_api, "generate_attempt_summary"),
        (content_api, "generate_content_summary"),
    ):
        monkeypatch.setattr(module, attr, _Unqueueable(attr))
    return refused


@pytest.fixture(scope="function")
def db():
    """Get a fresh DB session for each test."""
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client():
    """FastAPI test client: one session per request, no rate limiting."""

    def override_get_db():
        session = TestSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[require_generation_rate_limit] = lambda: None

    # Remove TrustedHostMiddleware for tests to allow 'testserver' host
    app.user_middleware = [m for m in app.user_middleware if "TrustedHost" not in str(m)]

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── Factories ─────────────────────────────────────────────────────────────────


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.external_id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db: Session):
    def _make(username: str | None = None, **fields) -> User:
        uid = uuid.uuid4().hex[:8]
        user = User(
            external_id=f"idp|{uid}",
            email=f"{username or uid}@example.com",
            username=username,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def make_content(db: Session):
    def _make(owner: User, *, processed: bool = True, **fields) -> Content:
        text = fields.pop(
            "original_text",
            "Photosynthesis is the process plants use to turn light into sugar. " * 5,
        )
        content = Content(
            owner_id=owner.id,
            title=fields.pop("title", "Photosynthesis"),
            original_text=text,
            category=fields.pop("category", "biology"),
            word_count=len(text.split()),
            reading_time_minutes=1,
            status=ContentStatusEnum.PROCESSED if processed else ContentStatusEnum.PROCESSING,
            ai_summary=CONTENT_SUMMARY if processed else None,
            **fields,
        )
        db.add(content)
        db.commit()
        db.refresh(content)
        return content

    return _make


def default_questions() -> list[Question]:
    """Three questions worth 1 + 1 + 2 points; the last has no section."""
    return [
        Question(
            position=0,
            text="2 + 2 = ?",
            question_type=QuestionTypeEnum.MULTIPLE_CHOICE,
            options=[
                {"text": "3", "is_correct": False},
                {"text": "4", "is_correct": True},
                {"text": "5", "is_correct": False},
            ],
            points=1,
            section="Arithmetic",
        ),
        Question(
            position=1,
            text="The sun is a star.",
            question_type=QuestionTypeEnum.TRUE_FALSE,
            options=[],
            correct_answer="true",
            points=1,
            section="Science",
        ),
        Question(
            position=2,
            text="What is the capital of France?",
            question_type=QuestionTypeEnum.MULTIPLE_CHOICE,
            options=[
                {"text": "Paris", "is_correct": True},
                {"text": "Rome", "is_correct": False},
            ],
            points=2,
        ),
    ]


@pytest.fixture
def make_quiz(db: Session):
    def _make(owner: User, **fields) -> Quiz:
        quiz = Quiz(
            owner_id=owner.id,
            title=fields.pop("title", "General knowledge"),
            category=fields.pop("category", "general"),
            status=fields.pop("status", QuizStatusEnum.PUBLISHED),
            visibility=fields.pop("visibility", QuizVisibilityEnum.PRIVATE),
            questions=fields.pop("questions") if "questions" in fields else default_questions(),
            **fields,
        )
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture
def make_community(db: Session):
    def _make(admin: User, *members: User, name: str | None = None, **fields) -> Community:
        community = Community(
            name=name or f"Community {uuid.uuid4().hex[:6]}",
            description="Study group",
            created_by=admin.id,
            member_count=1 + len(members),
            **fields,
        )
        db.add(community)
        db.flush()
        db.add(
            CommunityMember(
                user_id=admin.id, community_id=community.id, role=MemberRoleEnum.ADMIN
            )
        )
        for member in members:
            db.add(CommunityMember(user_id=member.id, community_id=community.id))
        db.commit()
        db.refresh(community)
        return community

    return _make


def answers_for(quiz: Quiz, *values: str | None) -> list[dict]:
    """Request payload answering the quiz's questions in order (None = skip)."""
    return [
        {"question_id": str(q.id), "user_answer": value}
        for q, value in zip(quiz.questions, values)
        if value is not None
    ]


@pytest.fixture
def answers():
    return answers_for
