"""ORM → response schema helpers shared by the quiz, attempt and community routes."""

from studyhub.db.models import Question, Quiz, QuizAttempt
from studyhub.schemas.attempt import (
    AttemptAnswerRead,
    AttemptDetail,
    AttemptRead,
    SectionScore,
    SubmissionResponse,
)
from studyhub.schemas.quiz import (
    OptionRead,
    QuestionRead,
    QuizAnalytics,
    QuizDetail,
    QuizSettings,
    QuizSummary,
)


def question_to_read(question: Question, *, reveal: bool = False) -> QuestionRead:
    return QuestionRead(
        id=question.id,
        position=question.position,
        text=question.text,
        question_type=question.question_type.value,
        options=[
            OptionRead(
                text=o.get("text", ""),
                is_correct=bool(o.get("is_correct")) if reveal else None,
            )
            for o in (question.options or [])
        ],
        points=question.points,
        difficulty=question.difficulty.value,
        section=question.section,
        correct_answer=question.correct_answer if reveal else None,
        explanation=question.explanation if reveal else None,
    )


def quiz_summary_fields(quiz: Quiz) -> dict:
    return dict(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        difficulty=quiz.difficulty.value,
        category=quiz.category,
        content_id=quiz.content_id,
        community_id=quiz.community_id,
        is_custom=quiz.is_custom,
        custom_topic=quiz.custom_topic,
        visibility=quiz.visibility.value,
        status=quiz.status.value,
        question_count=len(quiz.questions),
        settings=QuizSettings(
            time_limit_minutes=quiz.time_limit_minutes,
            max_attempts=quiz.max_attempts,
            passing_score=quiz.passing_score,
            allow_retakes=quiz.allow_retakes,
            shuffle_questions=quiz.shuffle_questions,
            show_correct_answers=quiz.show_correct_answers,
        ),
        analytics=QuizAnalytics(
            total_attempts=quiz.total_attempts,
            average_score=quiz.average_score,
            best_score=quiz.best_score,
            pass_rate=quiz.pass_rate,
            average_time_spent=quiz.average_time_spent,
            last_taken_at=quiz.last_taken_at,
        ),
        created_at=quiz.created_at,
    )


def quiz_to_summary(quiz: Quiz) -> QuizSummary:
    return QuizSummary(**quiz_summary_fields(quiz))


def quiz_to_detail(quiz: Quiz, *, reveal: bool = False) -> QuizDetail:
    return QuizDetail(
        **quiz_summary_fields(quiz),
        questions=[question_to_read(q, reveal=reveal) for q in quiz.questions],
    )


def attempt_fields(attempt: QuizAttempt) -> dict:
    return dict(
        id=attempt.id,
        quiz_id=attempt.quiz_id,
        quiz_title=attempt.quiz.title if attempt.quiz else None,
        attempt_number=attempt.attempt_number,
        status=attempt.status.value,
        score=attempt.score,
        percentage=attempt.percentage,
        passed=attempt.passed,
        total_points=attempt.total_points,
        max_points=attempt.max_points,
        correct_answers=attempt.correct_answers,
        total_questions=attempt.total_questions,
        time_spent_minutes=attempt.time_spent_minutes,
        total_time_taken=attempt.total_time_taken,
        completion_time_minutes=attempt.completion_time_minutes,
        rank=attempt.rank,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
    )


def attempt_to_read(attempt: QuizAttempt) -> AttemptRead:
    return AttemptRead(**attempt_fields(attempt))


def attempt_to_detail(attempt: QuizAttempt) -> AttemptDetail:
    return AttemptDetail(
        **attempt_fields(attempt),
        section_scores=[SectionScore(**s) for s in attempt.section_scores or []],
        answers=[AttemptAnswerRead.model_validate(a) for a in attempt.answers],
        ai_summary=attempt.ai_summary,
    )


def submission_to_response(attempt: QuizAttempt, can_retake: bool) -> SubmissionResponse:
    return SubmissionResponse(
        attempt_id=attempt.id,
        attempt_number=attempt.attempt_number,
        passed=attempt.passed,
        score=attempt.score or 0,
        percentage=attempt.percentage or 0,
        total_points=attempt.total_points,
        max_points=attempt.max_points,
        correct_answers=attempt.correct_answers,
        total_questions=attempt.total_questions,
        time_spent_minutes=attempt.time_spent_minutes,
        total_time_taken=attempt.total_time_taken,
        section_scores=[SectionScore(**s) for s in attempt.section_scores or []],
        can_retake=can_retake,
        ai_summary=attempt.ai_summary,
    )
