"""Integration tests for the analytics endpoints.

Covers:
  GET /api/analytics/dashboard
  GET /api/analytics/quiz-performance
"""

from fastapi.testclient import TestClient


def _complete(client: TestClient, h: dict, quiz, *values) -> dict:
    start = client.post(f"/api/quiz/{quiz.id}/attempt", headers=h).json()
    answers = [
        {"question_id": str(q.id), "user_answer": v}
        for q, v in zip(quiz.questions, values)
        if v is not None
    ]
    resp = client.post(
        f"/api/attempts/{start['attempt_id']}/submit", json={"answers": answers}, headers=h
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_empty_dashboard(client: TestClient, make_user, headers):
    """A new user gets zeros and an empty day series for the window."""
    resp = client.get("/api/analytics/dashboard?timeframe=7d", headers=headers(make_user()))
    assert resp.status_code == 200
    data = resp.json()
    assert data["timeframe"] == "7d"
    assert data["overview"]["total_content"] == 0
    assert data["overview"]["quiz_pass_rate"] == 0
    assert data["performance"]["average_quiz_score"] == 0
    days = data["activity"]["study_time_by_day"]
    assert len(days) == 8
    assert all(d["minutes"] == 0 and d["sessions"] == 0 for d in days)


def test_dashboard_reflects_reading_and_quizzes(
    client: TestClient, make_user, make_content, make_quiz, headers
):
    """Reading progress and a passed quiz feed the overview, activity and performance."""
    user = make_user("alice")
    h = headers(user)
    content = make_content(user)
    quiz = make_quiz(user, category="biology")

    client.put(
        f"/api/content/{content.id}/progress",
        json={"progress_percent": 100, "time_spent_minutes": 20},
        headers=h,
    )
    _complete(client, h, quiz, "4", "true", "Paris")

    data = client.get("/api/analytics/dashboard", headers=h).json()
    overview = data["overview"]
    assert overview["total_content"] == 1
    assert overview["completed_content"] == 1
    assert overview["content_completion_rate"] == 100
    assert overview["total_quizzes"] == 1
    assert overview["passed_quizzes"] == 1
    assert overview["quiz_pass_rate"] == 100
    assert overview["total_study_minutes"] == 20
    assert overview["average_session_minutes"] == 10

    activity = data["activity"]
    assert activity["current_streak"] == 1
    assert {s["type"] for s in activity["recent_sessions"]} == {"reading", "quiz"}
    assert sum(d["sessions"] for d in activity["study_time_by_day"]) == 2
    assert len(activity["study_time_by_day"]) == 31

    performance = data["performance"]
    assert performance["average_quiz_score"] == 100
    assert performance["completed_attempts"] == 1
    assert performance["strongest_categories"] == [{"category": "biology", "count": 1}]


def test_unknown_timeframe(client: TestClient, make_user, headers):
    """Only 7d, 30d, 90d and 1y are accepted."""
    resp = client.get("/api/analytics/dashboard?timeframe=2w", headers=headers(make_user()))
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "VALIDATION_ERROR"


def test_quiz_performance_by_category(client: TestClient, make_user, make_quiz, headers):
    """Categories are sorted by average score, best first."""
    user = make_user("alice")
    h = headers(user)
    math = make_quiz(user, title="Sums", category="math")
    history = make_quiz(user, title="Dates", category="history")

    _complete(client, h, history, "4")
    _complete(client, h, math, "4", "true", "Paris")

    rows = client.get("/api/analytics/quiz-performance", headers=h).json()
    assert [r["category"] for r in rows] == ["math", "history"]
    assert rows[0]["average_score"] == 100.0
    assert rows[0]["best_score"] == 100
    assert rows[0]["pass_rate"] == 100.0
    assert rows[1]["average_score"] == 25.0
    assert rows[1]["pass_rate"] == 0.0
    assert rows[1]["total_attempts"] == 1
