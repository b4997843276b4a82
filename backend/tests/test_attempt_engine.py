"""Tests for the attempt lifecycle service.

Covers:
  start / resume, attempt limits and access rules
  grading on submit (personal and community scoring)
  abandon and time-out
  analytics, content history and streak updates after submission
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studyhub.config import settings
from studyhub.db.models import (
    ActivityTypeEnum,
    AttemptStatusEnum,
    CommunityMember,
    Question,
    QuestionTypeEnum,
    QuizAccess,
    QuizAttempt,
    QuizStatusEnum,
    QuizVisibilityEnum,
    StudyActivity,
)
from studyhub.exceptions import (
    AccessDenied,
    AttemptLimitExceeded,
    AttemptNotFound,
    QuestionReferenceInvalid,
    QuizNotFound,
    ValidationFailed,
)
from studyhub.services import attempt_engine
from studyhub.services.attempt_engine import SubmittedAnswer


def _submit(db: Session, user, attempt, quiz, *values, **kwargs):
    answers = [
        SubmittedAnswer(question_id=str(q.id), user_answer=v)
        for q, v in zip(quiz.questions, values)
        if v is not None
    ]
    return attempt_engine.submit_attempt(db, user, attempt.id, answers, **kwargs)


def _take(db: Session, user, quiz, *values, **kwargs):
    started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
    return _submit(db, user, started.attempt, quiz, *values, **kwargs)


# ── Start / resume ────────────────────────────────────────────────────────────


class TestStart:
    def test_creates_attempt_with_placeholder_answers(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)

        result = attempt_engine.start_or_resume_attempt(db, user, quiz.id)

        assert result.resumed is False
        assert result.attempt.attempt_number == 1
        assert result.attempt.status == AttemptStatusEnum.IN_PROGRESS
        assert result.attempt.max_points == 4
        assert len(result.attempt.answers) == 3
        assert all(a.is_correct is None for a in result.attempt.answers)
        assert [q.id for q in result.question_order] == [q.id for q in quiz.questions]

    def test_second_start_resumes_same_attempt(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)

        first = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        second = attempt_engine.start_or_resume_attempt(db, user, quiz.id)

        assert second.resumed is True
        assert second.attempt.id == first.attempt.id
        assert db.query(QuizAttempt).count() == 1

    def test_database_rejects_second_in_progress_row(self, db, make_user, make_quiz):
        """The partial unique index backs the one-in-progress rule."""
        user = make_user("alice")
        quiz = make_quiz(user)
        attempt_engine.start_or_resume_attempt(db, user, quiz.id)

        db.add(QuizAttempt(quiz_id=quiz.id, user_id=user.id, attempt_number=2))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_shuffled_order_is_stable_for_the_attempt(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, shuffle_questions=True)

        first = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        again = attempt_engine.start_or_resume_attempt(db, user, quiz.id)

        assert [q.id for q in first.question_order] == [q.id for q in again.question_order]
        assert sorted(q.position for q in first.question_order) == [0, 1, 2]

    def test_max_attempts_counts_completed_only(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, max_attempts=1)

        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        attempt_engine.abandon_attempt(db, user, started.attempt.id)
        _take(db, user, quiz, "4")

        with pytest.raises(AttemptLimitExceeded) as exc:
            attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        assert exc.value.details == {"max_attempts": 1}

    def test_attempt_numbers_keep_increasing(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, max_attempts=5)

        numbers = []
        for _ in range(2):
            started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
            assert started.resumed is False
            numbers.append(started.attempt.attempt_number)
            attempt_engine.abandon_attempt(db, user, started.attempt.id)
        result = _take(db, user, quiz, "4")
        numbers.append(result.attempt.attempt_number)

        assert numbers == [1, 2, 3]
        assert result.attempt.status == AttemptStatusEnum.COMPLETED
        rows = db.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz.id)
        assert sorted(a.attempt_number for a in rows) == [1, 2, 3]

    def test_unpublished_quiz_not_found(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, status=QuizStatusEnum.DRAFT)
        with pytest.raises(QuizNotFound):
            attempt_engine.start_or_resume_attempt(db, user, quiz.id)


class TestAccess:
    def test_private_personal_quiz_hidden_from_others(self, db, make_user, make_quiz):
        owner, other = make_user("owner"), make_user("other")
        quiz = make_quiz(owner)
        with pytest.raises(QuizNotFound):
            attempt_engine.start_or_resume_attempt(db, other, quiz.id)

    def test_public_personal_quiz_open_to_others(self, db, make_user, make_quiz):
        owner, other = make_user("owner"), make_user("other")
        quiz = make_quiz(owner, visibility=QuizVisibilityEnum.PUBLIC)
        assert attempt_engine.start_or_resume_attempt(db, other, quiz.id).resumed is False

    def test_community_quiz_requires_membership(
        self, db, make_user, make_quiz, make_community
    ):
        admin, outsider = make_user("admin"), make_user("outsider")
        community = make_community(admin)
        quiz = make_quiz(
            admin, community_id=community.id, visibility=QuizVisibilityEnum.PUBLIC
        )
        with pytest.raises(AccessDenied):
            attempt_engine.start_or_resume_attempt(db, outsider, quiz.id)

    def test_private_community_quiz_requires_allow_list(
        self, db, make_user, make_quiz, make_community
    ):
        admin, member = make_user("admin"), make_user("member")
        community = make_community(admin, member)
        quiz = make_quiz(
            admin, community_id=community.id, visibility=QuizVisibilityEnum.PRIVATE
        )
        with pytest.raises(AccessDenied):
            attempt_engine.start_or_resume_attempt(db, member, quiz.id)

        db.add(QuizAccess(quiz_id=quiz.id, user_id=member.id))
        db.commit()
        assert attempt_engine.start_or_resume_attempt(db, member, quiz.id).resumed is False


# ── Submit ────────────────────────────────────────────────────────────────────


class TestSubmit:
    def test_personal_score_is_points_percentage(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)

        result = _take(db, user, quiz, "4", "TRUE", "Rome")
        attempt = result.attempt

        assert attempt.status == AttemptStatusEnum.COMPLETED
        assert attempt.total_points == 2
        assert attempt.max_points == 4
        assert attempt.score == 50
        assert attempt.percentage == 50
        assert attempt.passed is False
        assert attempt.correct_answers == 2
        assert attempt.total_questions == 3
        assert attempt.section_scores == [
            {"section": "Arithmetic", "correct": 1, "total": 1, "percentage": 100},
            {"section": "Science", "correct": 1, "total": 1, "percentage": 100},
        ]

    def test_weighted_points_round_to_nearest(self, db, make_user, make_quiz):
        user = make_user("alice")
        mc = [
            Question(
                position=i,
                text=f"{i} + 1 = ?",
                question_type=QuestionTypeEnum.MULTIPLE_CHOICE,
                options=[
                    {"text": str(i + 1), "is_correct": True},
                    {"text": str(i + 2), "is_correct": False},
                ],
                points=1,
            )
            for i in range(4)
        ]
        tf = Question(
            position=4,
            text="Water boils at 100C at sea level.",
            question_type=QuestionTypeEnum.TRUE_FALSE,
            options=[],
            correct_answer="true",
            points=2,
        )
        quiz = make_quiz(user, questions=mc + [tf], passing_score=80)

        attempt = _take(db, user, quiz, "1", "2", "3", "0", "True").attempt

        assert attempt.max_points == 6
        assert attempt.total_points == 5
        assert attempt.score == 83
        assert attempt.passed is True

    def test_empty_quiz_scores_zero(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, questions=[])

        attempt = _take(db, user, quiz).attempt

        assert attempt.status == AttemptStatusEnum.COMPLETED
        assert attempt.max_points == 0
        assert attempt.score == 0
        assert attempt.total_questions == 0

    def test_passing_score_boundary(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, passing_score=75)
        result = _take(db, user, quiz, "3", "true", "Paris")
        assert result.attempt.percentage == 75
        assert result.attempt.passed is True

    def test_unanswered_questions_are_incorrect(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)

        attempt = _take(db, user, quiz, "4").attempt

        assert attempt.score == 25
        assert attempt.total_questions == 3
        unanswered = [a for a in attempt.answers if a.user_answer is None]
        assert len(unanswered) == 2
        assert all(a.is_correct is False and a.points_earned == 0 for a in unanswered)

    def test_community_score_counts_correct_answers(
        self, db, make_user, make_quiz, make_community
    ):
        admin, member = make_user("admin"), make_user("member")
        community = make_community(admin, member)
        quiz = make_quiz(
            admin,
            community_id=community.id,
            visibility=QuizVisibilityEnum.PUBLIC,
            passing_score=60,
        )

        attempt = _take(db, member, quiz, "4", "true", "Rome").attempt

        assert attempt.score == 2
        assert attempt.percentage == 67
        assert attempt.passed is True

    def test_unknown_question_rejects_whole_submission(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)
        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)

        with pytest.raises(QuestionReferenceInvalid) as exc:
            attempt_engine.submit_attempt(
                db,
                user,
                started.attempt.id,
                [
                    SubmittedAnswer(str(quiz.questions[0].id), "4"),
                    SubmittedAnswer(str(uuid.uuid4()), "x"),
                ],
            )
        assert exc.value.status_code == 422
        db.rollback()
        db.refresh(started.attempt)
        assert started.attempt.status == AttemptStatusEnum.IN_PROGRESS
        assert started.attempt.score is None

    def test_duplicate_answers_rejected(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)
        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        qid = str(quiz.questions[0].id)

        with pytest.raises(ValidationFailed):
            attempt_engine.submit_attempt(
                db, user, started.attempt.id, [SubmittedAnswer(qid, "4"), SubmittedAnswer(qid, "3")]
            )

    def test_cannot_submit_twice(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)
        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        _submit(db, user, started.attempt, quiz, "4")

        with pytest.raises(AttemptNotFound):
            _submit(db, user, started.attempt, quiz, "4", "true", "Paris")

    def test_cannot_submit_someone_elses_attempt(self, db, make_user, make_quiz):
        owner, other = make_user("owner"), make_user("other")
        quiz = make_quiz(owner, visibility=QuizVisibilityEnum.PUBLIC)
        started = attempt_engine.start_or_resume_attempt(db, owner, quiz.id)

        with pytest.raises(AttemptNotFound):
            _submit(db, other, started.attempt, quiz, "4")

    def test_can_retake_until_limit(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, max_attempts=2)

        assert _take(db, user, quiz, "4").can_retake is True
        assert _take(db, user, quiz, "4").can_retake is False

    def test_retakes_disabled(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, allow_retakes=False)
        assert _take(db, user, quiz, "4").can_retake is False

    def test_time_taken_sums_answer_times(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)
        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        answers = [
            SubmittedAnswer(str(q.id), None, time_spent_seconds=20) for q in quiz.questions
        ]

        attempt = attempt_engine.submit_attempt(db, user, started.attempt.id, answers).attempt
        assert attempt.total_time_taken == 60

    def test_elapsed_minutes_from_start(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, time_limit_minutes=0)
        start = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id, now=start)

        attempt = _submit(
            db,
            user,
            started.attempt,
            quiz,
            "4",
            client_time_spent=500,
            now=start + timedelta(minutes=7, seconds=40),
        ).attempt
        assert attempt.time_spent_minutes == 8
        assert attempt.total_time_taken == 500
        assert attempt.completion_time_minutes == 8


# ── After submission ──────────────────────────────────────────────────────────


class TestAfterSubmission:
    def test_quiz_analytics_rebuilt_from_completed(self, db, make_user, make_quiz):
        owner, other = make_user("owner"), make_user("other")
        quiz = make_quiz(owner, visibility=QuizVisibilityEnum.PUBLIC)

        _take(db, owner, quiz, "4", "true", "Paris")  # 100
        _take(db, other, quiz, "4")  # 25
        db.refresh(quiz)

        assert quiz.total_attempts == 2
        assert quiz.average_score == 63.0  # 62.5 rounded half up
        assert quiz.best_score == 100
        assert quiz.pass_rate == 50.0
        assert quiz.last_taken_at is not None

    def test_content_history_capped(self, db, make_user, make_quiz, make_content, monkeypatch):
        monkeypatch.setattr(settings, "QUIZ_HISTORY_LIMIT", 2)
        user = make_user("alice")
        content = make_content(user)
        quiz = make_quiz(user, content_id=content.id, max_attempts=5)

        for values in (("4",), ("4", "true", "Paris"), ("3",)):
            _take(db, user, quiz, *values)
        db.refresh(content)

        assert content.has_quiz is True
        assert content.quiz_id == quiz.id
        assert content.quiz_total_attempts == 3
        assert content.quiz_best_score == 100
        assert content.quiz_passed is True
        assert [h["score"] for h in content.quiz_attempt_history] == [100, 0]

    def test_streak_started_and_activity_logged(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)
        _take(db, user, quiz, "4")
        db.refresh(user)

        assert user.current_streak == 1
        assert user.longest_streak == 1
        activity = db.query(StudyActivity).one()
        assert activity.activity_type == ActivityTypeEnum.QUIZ
        assert activity.quiz_id == quiz.id

    def test_community_member_counter(self, db, make_user, make_quiz, make_community):
        admin, member = make_user("admin"), make_user("member")
        community = make_community(admin, member)
        quiz = make_quiz(
            admin, community_id=community.id, visibility=QuizVisibilityEnum.PUBLIC
        )
        _take(db, member, quiz, "4")

        row = (
            db.query(CommunityMember)
            .filter(CommunityMember.user_id == member.id)
            .one()
        )
        assert row.quizzes_taken == 1


# ── Abandon / expire ──────────────────────────────────────────────────────────


class TestTerminalStates:
    def test_abandon(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user)
        started = attempt_engine.start_or_resume_attempt(db, user, quiz.id)

        attempt = attempt_engine.abandon_attempt(db, user, started.attempt.id)
        assert attempt.status == AttemptStatusEnum.ABANDONED

        with pytest.raises(AttemptNotFound):
            attempt_engine.abandon_attempt(db, user, started.attempt.id)

    def test_expire_overdue_attempts(self, db, make_user, make_quiz):
        user = make_user("alice")
        timed = make_quiz(user, title="Timed", time_limit_minutes=30)
        untimed = make_quiz(user, title="Untimed", time_limit_minutes=0)
        long_ago = datetime.now(timezone.utc) - timedelta(hours=2)
        stale = attempt_engine.start_or_resume_attempt(db, user, timed.id, now=long_ago)
        open_ended = attempt_engine.start_or_resume_attempt(db, user, untimed.id, now=long_ago)

        assert attempt_engine.expire_overdue_attempts(db) == 1
        db.refresh(stale.attempt)
        db.refresh(open_ended.attempt)
        assert stale.attempt.status == AttemptStatusEnum.TIMED_OUT
        assert stale.attempt.completed_at is not None
        assert open_ended.attempt.status == AttemptStatusEnum.IN_PROGRESS

    def test_recent_attempt_not_expired(self, db, make_user, make_quiz):
        user = make_user("alice")
        quiz = make_quiz(user, time_limit_minutes=30)
        attempt_engine.start_or_resume_attempt(db, user, quiz.id)
        assert attempt_engine.expire_overdue_attempts(db) == 0
