"""Quiz generation: prompt the text generation service and turn its output
into ``Question`` rows.

A generated multiple-choice question is only accepted when one of its options
is textually equal to the generator's ``correctAnswer``; otherwise the whole
quiz is rejected, since a published quiz must be gradable.
"""

from __future__ import annotations

import logging
import re

from studyhub.db.models import (
    Content,
    DifficultyEnum,
    Question,
    QuestionTypeEnum,
)
from studyhub.exceptions import TextGenerationError
from studyhub.services.text_generation import (
    GeneratedQuestion,
    GeneratedQuiz,
    TextGenerationClient,
)

logger = logging.getLogger(__name__)

_DIFFICULTY_ALIASES = {
    "easy": DifficultyEnum.EASY,
    "beginner": DifficultyEnum.EASY,
    "medium": DifficultyEnum.MEDIUM,
    "intermediate": DifficultyEnum.MEDIUM,
    "hard": DifficultyEnum.HARD,
    "advanced": DifficultyEnum.HARD,
}

_DIFFICULTY_PROMPT = {
    DifficultyEnum.EASY: "beginner level with basic concepts",
    DifficultyEnum.MEDIUM: "intermediate level with moderate complexity",
    DifficultyEnum.HARD: "advanced level with complex concepts",
}

_QUESTION_SHAPE = (
    '{"sectionTitle": "Section name", "question": "Question text", '
    '"type": "multiple-choice|true-false", '
    '"options": ["option1", "option2", "option3", "option4"], '
    '"correctAnswer": "the exact text of the correct option, or true/false", '
    '"explanation": "Why this is the correct answer", '
    '"difficulty": "easy|medium|hard", "points": 1}'
)


def normalise_difficulty(value: str | None) -> DifficultyEnum:
    return _DIFFICULTY_ALIASES.get((value or "").strip().lower(), DifficultyEnum.MEDIUM)


def parse_minutes(value: str | None, default: int) -> int:
    """'12 minutes' → 12; anything without a positive number → *default*."""
    match = re.search(r"\d+", value or "")
    if match is None:
        return default
    minutes = int(match.group())
    return minutes if minutes > 0 else default


# ── Prompts ───────────────────────────────────────────────────────────────────


def build_content_quiz_prompt(content: Content, questions_per_section: int) -> str:
    summary = content.ai_summary or {}
    sections = summary.get("sections") or []
    sections_text = "\n\n".join(
        f"Section {i}: {s.get('title', '')}\nSummary: {s.get('summary', '')}\n"
        f"Key Points: {', '.join(s.get('keyPoints') or s.get('key_points') or [])}"
        for i, s in enumerate(sections, start=1)
    )
    return (
        f"Based on the following content, generate a comprehensive quiz with "
        f"{questions_per_section} questions per section.\n\n"
        f"Content Title: {content.title}\n"
        f"Overall Summary: {summary.get('summary', 'N/A')}\n\n"
        f"Sections:\n{sections_text}\n\n"
        "Mix multiple-choice and true/false questions, cover the key concepts of "
        "each section and include clear explanations.\n\n"
        "Respond with only a JSON object of the form:\n"
        f'{{"title": "{content.title} - Quiz", "description": "...", '
        f'"estimatedTime": "X minutes", "questions": [{_QUESTION_SHAPE}]}}'
    )


def build_topic_quiz_prompt(
    topic: str,
    description: str | None,
    difficulty: DifficultyEnum,
    num_questions: int,
) -> str:
    context = f"Additional context: {description}\n" if description else ""
    return (
        f'Generate a quiz on the topic: "{topic}"\n{context}\n'
        f"Generate exactly {num_questions} questions, "
        f"{_DIFFICULTY_PROMPT[difficulty]}; about 70% multiple-choice and 30% "
        "true/false, testing understanding, application and knowledge.\n\n"
        "Respond with only a JSON object of the form:\n"
        f'{{"title": "{topic} - Custom Quiz", "description": "...", '
        f'"estimatedTime": "X minutes", "questions": [{_QUESTION_SHAPE}]}}'
    )


def build_community_quiz_prompt(
    source_text: str | None,
    topic: str | None,
    difficulty: DifficultyEnum,
    question_count: int,
) -> str:
    if source_text:
        subject = f"based on the following content.\n\nContent:\n{source_text[:12000]}"
    else:
        subject = f"about: {topic}"
    return (
        f"Generate {question_count} multiple choice questions {subject}\n\n"
        f"Make them {difficulty.value} level difficulty.\n\n"
        "Respond with only a JSON object of the form:\n"
        f'{{"questions": [{_QUESTION_SHAPE}]}}'
    )


# ── Output → rows ─────────────────────────────────────────────────────────────


def _question_type(raw: str) -> QuestionTypeEnum:
    value = raw.strip().lower().replace("_", "-")
    if value in ("true-false", "truefalse", "boolean"):
        return QuestionTypeEnum.TRUE_FALSE
    if value in ("short-answer", "short"):
        return QuestionTypeEnum.SHORT_ANSWER
    return QuestionTypeEnum.MULTIPLE_CHOICE


def build_question(
    generated: GeneratedQuestion,
    position: int,
    *,
    default_section: str | None = None,
    default_difficulty: DifficultyEnum = DifficultyEnum.MEDIUM,
) -> Question:
    qtype = _question_type(generated.type)
    options: list[dict] = []
    correct_answer: str | None = None

    if qtype is QuestionTypeEnum.MULTIPLE_CHOICE:
        wanted = generated.correct_answer.strip()
        options = [
            {"text": opt, "is_correct": opt.strip() == wanted}
            for opt in generated.options
        ]
        if not any(o["is_correct"] for o in options):
            raise TextGenerationError(
                f"Generated question {position + 1} has no option matching its correct answer"
            )
    else:
        correct_answer = generated.correct_answer.strip()
        if qtype is QuestionTypeEnum.TRUE_FALSE:
            correct_answer = correct_answer.lower()
            if correct_answer not in ("true", "false"):
                raise TextGenerationError(
                    f"Generated true/false question {position + 1} has answer {correct_answer!r}"
                )

    difficulty = (
        normalise_difficulty(generated.difficulty)
        if generated.difficulty
        else default_difficulty
    )
    return Question(
        position=position,
        text=generated.question.strip(),
        question_type=qtype,
        options=options,
        correct_answer=correct_answer,
        points=generated.points,
        difficulty=difficulty,
        explanation=generated.explanation or None,
        section=generated.section_title or default_section,
    )


def build_questions(
    generated: GeneratedQuiz,
    *,
    default_section: str | None = None,
    default_difficulty: DifficultyEnum = DifficultyEnum.MEDIUM,
) -> list[Question]:
    return [
        build_question(
            q,
            i,
            default_section=default_section,
            default_difficulty=default_difficulty,
        )
        for i, q in enumerate(generated.questions)
    ]


def generate_quiz(client: TextGenerationClient, prompt: str) -> GeneratedQuiz:
    generated = client.generate_json(prompt, GeneratedQuiz)
    logger.info("Generated quiz with %d question(s)", len(generated.questions))
    return generated
