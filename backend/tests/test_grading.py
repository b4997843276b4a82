"""Unit tests for the per-type graders and scoring helpers."""

import pytest

from studyhub.db.models import Question, QuestionTypeEnum
from studyhub.services.grading import (
    GradedAnswer,
    grade_answer,
    percentage,
    section_breakdown,
)


def _mc(points: int = 1) -> Question:
    return Question(
        text="Pick the noble gas",
        question_type=QuestionTypeEnum.MULTIPLE_CHOICE,
        options=[
            {"text": "Oxygen", "is_correct": False},
            {"text": "Neon", "is_correct": True},
        ],
        points=points,
    )


def _text(qtype: QuestionTypeEnum, answer: str) -> Question:
    return Question(
        text="?", question_type=qtype, options=[], correct_answer=answer, points=1
    )


class TestPercentage:
    @pytest.mark.parametrize(
        "earned,possible,expected",
        [(1, 8, 13), (2, 3, 67), (1, 3, 33), (1, 2, 50), (4, 4, 100), (0, 5, 0)],
    )
    def test_rounds_half_up(self, earned, possible, expected):
        assert percentage(earned, possible) == expected

    def test_nothing_possible_is_zero(self):
        assert percentage(0, 0) == 0


class TestMultipleChoice:
    def test_exact_option_text_is_correct(self):
        assert grade_answer(_mc(points=3), "Neon") == (True, 3)

    def test_surrounding_whitespace_ignored(self):
        assert grade_answer(_mc(), "  Neon ")[0] is True

    def test_case_must_match(self):
        assert grade_answer(_mc(), "neon") == (False, 0)

    def test_blank_or_missing_answer_is_incorrect(self):
        assert grade_answer(_mc(), None) == (False, 0)
        assert grade_answer(_mc(), "   ") == (False, 0)

    def test_no_flagged_option_never_correct(self):
        q = _mc()
        q.options = [{"text": "Neon", "is_correct": False}]
        assert grade_answer(q, "Neon") == (False, 0)


class TestExactText:
    def test_true_false_case_insensitive(self):
        q = _text(QuestionTypeEnum.TRUE_FALSE, "true")
        assert grade_answer(q, "TRUE") == (True, 1)
        assert grade_answer(q, "false") == (False, 0)

    def test_short_answer_trimmed(self):
        q = _text(QuestionTypeEnum.SHORT_ANSWER, "Mitochondria")
        assert grade_answer(q, " mitochondria ")[0] is True


def test_section_breakdown_groups_in_first_seen_order():
    """Unlabelled answers are left out; each section gets its own percentage."""
    graded = [
        GradedAnswer("1", "Algebra", True, 1),
        GradedAnswer("2", "Geometry", False, 0),
        GradedAnswer("3", "Algebra", False, 0),
        GradedAnswer("4", None, True, 1),
        GradedAnswer("5", "Algebra", True, 1),
    ]
    assert section_breakdown(graded) == [
        {"section": "Algebra", "correct": 2, "total": 3, "percentage": 67},
        {"section": "Geometry", "correct": 0, "total": 1, "percentage": 0},
    ]
