"""Integration tests for the content endpoints.

Covers:
  POST   /api/content/text
  GET    /api/content
  GET    /api/content/{id}
  PATCH  /api/content/{id}
  DELETE /api/content/{id}
  POST   /api/content/{id}/summary
  PUT    /api/content/{id}/progress
  GET    /api/content/{id}/progress

The text generation service is an in-process fake (see conftest); summaries
run as eager background tasks.
"""

from fastapi.testclient import TestClient

from studyhub.db.models import StudyActivity

LONG_TEXT = " ".join(["Cells divide by mitosis and meiosis."] * 40)


def _create(client: TestClient, headers: dict, **fields) -> dict:
    payload = {"title": "Cell division", "text": LONG_TEXT, "category": "Biology"}
    payload.update(fields)
    resp = client.post("/api/content/text", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreate:
    def test_create_starts_processing_then_summarises(
        self, client: TestClient, make_user, headers, generator
    ):
        """The response reports processing; the background summary completes it."""
        h = headers(make_user("alice"))
        data = _create(client, h)

        assert data["status"] == "processing"
        assert data["word_count"] == 240
        assert data["reading_time_minutes"] == 2
        assert data["category"] == "biology"

        detail = client.get(f"/api/content/{data['id']}", headers=h).json()
        assert detail["status"] == "processed"
        assert detail["ai_summary"]["keyTopics"] == ["light reactions", "calvin cycle"]
        assert detail["original_text"] == LONG_TEXT
        assert generator.prompts[0].startswith("Analyze the following learning material")

    def test_short_text_rejected(self, client: TestClient, make_user, headers):
        resp = client.post(
            "/api/content/text",
            json={"title": "Tiny", "text": "Too short"},
            headers=headers(make_user("alice")),
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["error_code"] == "CONTENT_TOO_SHORT"
        assert body["success"] is False

    def test_title_falls_back_to_file_name(self, client: TestClient, make_user, headers):
        data = _create(
            client, headers(make_user("alice")), title=None, file_name="week3.notes.pdf"
        )
        assert data["title"] == "week3.notes"

    def test_generator_failure_marks_content_failed(
        self, client: TestClient, make_user, headers, generator
    ):
        generator.status_code = 503
        h = headers(make_user("alice"))
        data = _create(client, h)

        detail = client.get(f"/api/content/{data['id']}", headers=h).json()
        assert detail["status"] == "failed"
        assert detail["processing_error"]
        assert detail["ai_summary"] is None

    def test_unqueued_summary_marks_content_failed(
        self, client: TestClient, make_user, headers, broker_down
    ):
        data = _create(client, headers(make_user("alice")))

        assert data["status"] == "failed"
        assert data["processing_error"] == "Summary generation could not be queued"
        assert broker_down == [("generate_content_summary", (data["id"],))]

    def test_requires_authentication(self, client: TestClient):
        resp = client.post("/api/content/text", json={"text": LONG_TEXT})
        assert resp.status_code == 401

    def test_missing_text_is_validation_error(self, client: TestClient, make_user, headers):
        resp = client.post(
            "/api/content/text", json={"title": "x"}, headers=headers(make_user("alice"))
        )
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"


class TestListAndRead:
    def test_list_paginates_and_searches(self, client: TestClient, make_user, headers):
        h = headers(make_user("alice"))
        for title in ("Algebra basics", "Cell division", "Algebra drills"):
            _create(client, h, title=title)

        page = client.get("/api/content?limit=2", headers=h).json()
        assert len(page["items"]) == 2
        assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

        found = client.get("/api/content?search=algebra", headers=h).json()
        assert sorted(i["title"] for i in found["items"]) == ["Algebra basics", "Algebra drills"]

    def test_other_users_content_is_not_found(self, client: TestClient, make_user, headers):
        data = _create(client, headers(make_user("alice")))
        resp = client.get(f"/api/content/{data['id']}", headers=headers(make_user("bob")))
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "CONTENT_NOT_FOUND"

    def test_update_metadata(self, client: TestClient, make_user, headers):
        h = headers(make_user("alice"))
        data = _create(client, h)
        resp = client.patch(
            f"/api/content/{data['id']}",
            json={"title": "Mitosis", "tags": ["Exam ", ""]},
            headers=h,
        )
        assert resp.status_code == 200
        assert resp.json()["title"] == "Mitosis"
        assert resp.json()["tags"] == ["exam"]

    def test_delete_hides_content(self, client: TestClient, make_user, headers):
        h = headers(make_user("alice"))
        data = _create(client, h)

        assert client.delete(f"/api/content/{data['id']}", headers=h).status_code == 200
        assert client.get(f"/api/content/{data['id']}", headers=h).status_code == 404
        assert client.get("/api/content", headers=h).json()["pagination"]["total"] == 0


class TestSummaryAndProgress:
    def test_regenerate_summary(self, client: TestClient, make_user, make_content, headers):
        user = make_user("alice")
        content = make_content(user, processed=False)
        resp = client.post(f"/api/content/{content.id}/summary", headers=headers(user))
        assert resp.status_code == 200
        assert resp.json()["status"] == "processed"
        assert resp.json()["ai_summary"]["summary"]

    def test_regenerate_summary_generator_down(
        self, client: TestClient, make_user, make_content, headers, generator
    ):
        user = make_user("alice")
        content = make_content(user)
        generator.status_code = 500
        resp = client.post(f"/api/content/{content.id}/summary", headers=headers(user))
        assert resp.status_code == 502
        assert resp.json()["error_code"] == "TEXT_GENERATION_FAILED"

    def test_progress_completion_and_activity(
        self, client: TestClient, db, make_user, make_content, headers
    ):
        user = make_user("alice")
        content = make_content(user)
        h = headers(user)

        half = client.put(
            f"/api/content/{content.id}/progress",
            json={"progress_percent": 50, "time_spent_minutes": 10},
            headers=h,
        ).json()
        assert half["is_completed"] is False
        assert half["completed_at"] is None

        done = client.put(
            f"/api/content/{content.id}/progress",
            json={"progress_percent": 100, "time_spent_minutes": 5},
            headers=h,
        ).json()
        assert done["is_completed"] is True
        assert done["time_spent_minutes"] == 15
        assert done["completed_at"] is not None

        read = client.get(f"/api/content/{content.id}/progress", headers=h).json()
        assert read["progress_percent"] == 100
        assert db.query(StudyActivity).filter(StudyActivity.user_id == user.id).count() == 2

    def test_progress_out_of_range(self, client: TestClient, make_user, make_content, headers):
        user = make_user("alice")
        content = make_content(user)
        resp = client.put(
            f"/api/content/{content.id}/progress",
            json={"progress_percent": 120},
            headers=headers(user),
        )
        assert resp.status_code == 422
