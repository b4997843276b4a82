"""Grading strategies for quiz answers.

One pure function per question type, looked up through ``GRADERS``:
  - multiple-choice: submitted text equals the option flagged correct
  - true-false / short-answer: case-insensitive exact match on ``correct_answer``

Scoring helpers (percentage, section breakdown) live here too so the personal
and community submission paths share a single implementation.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable

from studyhub.db.models import Question, QuestionTypeEnum

logger = logging.getLogger(__name__)


# ── Per-type strategies ───────────────────────────────────────────────────────


def _clean(value: str | None) -> str:
    return (value or "").strip()


def grade_multiple_choice(question: Question, user_answer: str | None) -> bool:
    correct = question.correct_option_text
    if correct is None or not _clean(user_answer):
        return False
    return _clean(user_answer) == _clean(correct)


def grade_exact_text(question: Question, user_answer: str | None) -> bool:
    if question.correct_answer is None or not _clean(user_answer):
        return False
    return _clean(user_answer).lower() == _clean(question.correct_answer).lower()


GRADERS: dict[QuestionTypeEnum, Callable[[Question, str | None], bool]] = {
    QuestionTypeEnum.MULTIPLE_CHOICE: grade_multiple_choice,
    QuestionTypeEnum.TRUE_FALSE: grade_exact_text,
    QuestionTypeEnum.SHORT_ANSWER: grade_exact_text,
}


def grade_answer(question: Question, user_answer: str | None) -> tuple[bool, int]:
    """Return ``(is_correct, points_earned)`` for one answer."""
    grader = GRADERS.get(question.question_type)
    if grader is None:
        logger.warning(
            "No grader for question type %s (question %s)",
            question.question_type,
            question.id,
        )
        return False, 0
    is_correct = grader(question, user_answer)
    return is_correct, (question.points if is_correct else 0)


# ── Scoring helpers ───────────────────────────────────────────────────────────


def percentage(earned: int, possible: int) -> int:
    """round(100 × earned / possible), halves rounded up; 0 when nothing is possible."""
    if possible <= 0:
        return 0
    return (200 * earned + possible) // (2 * possible)


@dataclass
class GradedAnswer:
    question_id: str
    section: str | None
    is_correct: bool
    points_earned: int


def section_breakdown(graded: Iterable[GradedAnswer]) -> list[dict]:
    """Group answers by section label; unlabelled answers are left out."""
    sections: "OrderedDict[str, dict]" = OrderedDict()
    for answer in graded:
        if not answer.section:
            continue
        entry = sections.setdefault(
            answer.section, {"section": answer.section, "correct": 0, "total": 0}
        )
        entry["total"] += 1
        if answer.is_correct:
            entry["correct"] += 1
    for entry in sections.values():
        entry["percentage"] = percentage(entry["correct"], entry["total"])
    return list(sections.values())
