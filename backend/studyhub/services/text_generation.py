"""HTTP client for the text generation micro-service (singleton).

The service is a black box: ``POST /generate`` with a prompt returns
``{"text": ...}``.  Structured output is requested as JSON and validated with
pydantic; anything that does not match the expected model is a failure, the
raw text is never patched up.
"""

import json
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from studyhub.config import settings
from studyhub.exceptions import TextGenerationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# ── Expected output shapes ────────────────────────────────────────────────────


class _GeneratedModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeneratedQuestion(_GeneratedModel):
    question: str = Field(min_length=1)
    type: str = "multiple-choice"
    options: list[str] = Field(default_factory=list)
    correct_answer: str = Field(min_length=1)
    explanation: str = ""
    difficulty: str = "medium"
    points: int = Field(default=1, ge=1)
    section_title: str | None = None


class GeneratedQuiz(_GeneratedModel):
    title: str | None = None
    description: str | None = None
    estimated_time: str | None = None
    questions: list[GeneratedQuestion] = Field(min_length=1)


class GeneratedSection(_GeneratedModel):
    title: str
    summary: str = ""
    key_points: list[str] = Field(default_factory=list)


class GeneratedContentSummary(_GeneratedModel):
    summary: str = Field(min_length=1)
    key_topics: list[str] = Field(default_factory=list)
    difficulty: str = "intermediate"
    estimated_read_time: str | None = None
    sections: list[GeneratedSection] = Field(default_factory=list)


class GeneratedPerformanceSummary(_GeneratedModel):
    overall_performance: str
    summary: str
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    topics_mastered: list[str] = Field(default_factory=list)
    topics_to_review: list[str] = Field(default_factory=list)
    next_steps: str = ""
    motivational_message: str = ""


# ── Client ────────────────────────────────────────────────────────────────────


class TextGenerationClient:
    """Thin wrapper around the text generation service HTTP API."""

    def __init__(
        self,
        base_url: str = settings.TEXT_GEN_SERVICE_URL,
        timeout: float = settings.TEXT_GEN_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self._base, timeout=timeout, transport=transport)

    # ── health ────────────────────────────────────────────────────────────

    def healthy(self) -> bool:
        try:
            return self._http.get("/health").status_code == 200
        except httpx.HTTPError:
            return False

    # ── raw generation ────────────────────────────────────────────────────

    def generate(self, prompt: str, *, system_prompt: str | None = None) -> str:
        payload: dict[str, Any] = {"prompt": prompt}
        if system_prompt:
            payload["system_prompt"] = system_prompt
        try:
            r = self._http.post("/generate", json=payload)
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Text generation request failed: %s", exc)
            raise TextGenerationError("Text generation service unavailable") from exc
        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise TextGenerationError("Text generation service returned no text")
        return text

    # ── structured generation ─────────────────────────────────────────────

    def generate_json(
        self,
        prompt: str,
        model: type[ModelT],
        *,
        system_prompt: str | None = None,
    ) -> ModelT:
        raw = self.generate(prompt, system_prompt=system_prompt)
        return parse_generated(raw, model)

    def close(self) -> None:
        self._http.close()


def _strip_fences(raw: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```)."""
    text = raw.strip()
    if text.startswith("```"):
        text = text[3:]
        if text.lower().startswith("json"):
            text = text[4:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_generated(raw: str, model: type[ModelT]) -> ModelT:
    """Decode generator output into *model*; any mismatch is a TextGenerationError."""
    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as exc:
        logger.warning("Generator returned invalid JSON: %s", raw[:200])
        raise TextGenerationError("Text generation returned malformed output") from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "Generator output does not match %s: %d error(s)",
            model.__name__,
            exc.error_count(),
        )
        raise TextGenerationError(
            "Text generation returned output in an unexpected shape"
        ) from exc


# ── singleton ─────────────────────────────────────────────────────────────────

_client: TextGenerationClient | None = None


def get_text_generation_client() -> TextGenerationClient:
    global _client
    if _client is None:
        _client = TextGenerationClient()
    return _client


# ── Prompts shared by the background tasks ────────────────────────────────────


def build_content_summary_prompt(title: str, text: str) -> str:
    return (
        "Analyze the following learning material and summarize it.\n\n"
        f"Title: {title}\n\nContent:\n{text[:12000]}\n\n"
        "Respond with only a JSON object of the form:\n"
        '{"summary": "4-6 detailed paragraphs", "keyTopics": ["..."], '
        '"difficulty": "beginner|intermediate|advanced", '
        '"estimatedReadTime": "X minutes", '
        '"sections": [{"title": "...", "summary": "...", "keyPoints": ["..."]}]}'
    )


def build_performance_summary_prompt(
    quiz_title: str,
    score: int,
    correct: int,
    total: int,
    time_spent_minutes: int,
    section_scores: list[dict],
    missed_questions: list[tuple[str | None, str]],
) -> str:
    sections = "\n".join(
        f"- {s['section']}: {s['percentage']}% ({s['correct']}/{s['total']})"
        for s in section_scores
    ) or "- (no sections)"
    missed = "\n".join(
        f"- {section or 'General'}: {question}" for section, question in missed_questions
    ) or "- (none)"
    return (
        "Analyze the following quiz performance and write a constructive summary.\n\n"
        f"Quiz Title: {quiz_title}\nScore: {score}%\n"
        f"Questions Answered Correctly: {correct}/{total}\n"
        f"Time Spent: {time_spent_minutes} minutes\n\n"
        f"Section Performance:\n{sections}\n\n"
        f"Questions missed:\n{missed}\n\n"
        "Respond with only a JSON object of the form:\n"
        '{"overallPerformance": "excellent|good|average|needs-improvement", '
        '"summary": "2-3 sentences", "strengths": ["..."], "weaknesses": ["..."], '
        '"recommendations": ["..."], "topicsMastered": ["..."], '
        '"topicsToReview": ["..."], "nextSteps": "...", "motivationalMessage": "..."}'
    )
