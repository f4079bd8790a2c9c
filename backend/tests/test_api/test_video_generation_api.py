"""End-to-end tests for the /api/v1/video-generation endpoints."""
from fastapi.testclient import TestClient

from videogen.api.deps import get_generation_service
from videogen.exceptions import ProviderError
from videogen.main import app
from videogen.models import GenerationJob

BASE = "/api/v1/video-generation"


def fetch(db, job_id):
    db.expire_all()
    return db.get(GenerationJob, job_id)


class TestGenerate:
    def test_accepted(self, client, provider, db_session):
        resp = client.post(f"{BASE}/generate", json={"prompt": "A cat in the rain"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "processing"
        assert body["message"] == "Video generation started successfully"

        job = fetch(db_session, body["generation_id"])
        assert job.external_id == "pred-123"
        assert provider.count("create") == 1

    def test_invalid_body_lists_every_field(self, client, provider, db_session):
        resp = client.post(
            f"{BASE}/generate",
            json={"prompt": "", "duration": 7, "aspect_ratio": "2:1", "resolution": "4k"},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Validation failed"
        fields = {d["field"] for d in body["details"]}
        assert fields == {"prompt", "duration", "aspect_ratio", "resolution"}
        assert db_session.query(GenerationJob).count() == 0
        assert provider.calls == []

    def test_missing_prompt(self, client, db_session):
        resp = client.post(f"{BASE}/generate", json={})
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "prompt"
        assert db_session.query(GenerationJob).count() == 0

    def test_prompt_too_long(self, client):
        resp = client.post(f"{BASE}/generate", json={"prompt": "x" * 1001})
        assert resp.status_code == 400

    def test_provider_failure_records_failed_job(self, client, provider, db_session):
        provider.create_error = ProviderError("Replicate API error 401: Unauthenticated")
        resp = client.post(f"{BASE}/generate", json={"prompt": "A cat in the rain"})
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Failed to start video generation"
        assert body["detail"] == "Replicate API error 401: Unauthenticated"

        job = fetch(db_session, body["generation_id"])
        assert job.status == "failed"
        assert job.error_message == "Replicate API error 401: Unauthenticated"

    def test_caller_header_is_stored(self, client, db_session):
        resp = client.post(
            f"{BASE}/generate", json={"prompt": "hello"}, headers={"X-User-Id": "alice"},
        )
        assert fetch(db_session, resp.json()["generation_id"]).user_id == "alice"


class TestStatus:
    def test_unknown_id(self, client, provider, db_session):
        resp = client.get(f"{BASE}/status/does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Video generation not found"}
        assert db_session.query(GenerationJob).count() == 0
        assert provider.calls == []

    def test_submit_then_poll_to_completion(self, client, provider):
        created = client.post(f"{BASE}/generate", json={"prompt": "A cat in the rain"}).json()
        job_id = created["generation_id"]

        resp = client.get(f"{BASE}/status/{job_id}")
        assert resp.json()["status"] == "processing"

        provider.status = "succeeded"
        provider.output = "https://x/video.mp4"
        body = client.get(f"{BASE}/status/{job_id}").json()
        assert body["status"] == "completed"
        assert body["video_url"] == "https://x/video.mp4"
        assert body["error_message"] is None

    def test_provider_outage_returns_stored_state(self, client, provider, job_factory):
        job = job_factory()
        provider.get_error = ProviderError("Could not connect to Replicate")
        resp = client.get(f"{BASE}/status/{job.id}")
        assert resp.status_code == 200
        assert resp.json()["status"] == "processing"

    def test_other_callers_job_is_hidden(self, client, job_factory):
        job = job_factory(user_id="bob")
        resp = client.get(f"{BASE}/status/{job.id}", headers={"X-User-Id": "alice"})
        assert resp.status_code == 404


class TestCancel:
    def test_cancel_processing(self, client, job_factory, db_session):
        job = job_factory()
        resp = client.post(f"{BASE}/cancel/{job.id}")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert fetch(db_session, job.id).status == "cancelled"

    def test_cancel_completed_is_rejected(self, client, job_factory, db_session):
        job = job_factory(status="completed", video_url="https://x/video.mp4")
        resp = client.post(f"{BASE}/cancel/{job.id}")
        assert resp.status_code == 400
        assert resp.json() == {"error": "Can only cancel processing generations"}
        assert fetch(db_session, job.id).status == "completed"

    def test_cancel_unknown(self, client):
        assert client.post(f"{BASE}/cancel/nope").status_code == 404


class TestDelete:
    def test_delete(self, client, job_factory, db_session):
        job = job_factory(status="failed")
        resp = client.delete(f"{BASE}/{job.id}")
        assert resp.status_code == 200
        assert resp.json()["generation_id"] == job.id
        assert db_session.query(GenerationJob).count() == 0

    def test_delete_processing_does_not_cancel_upstream(self, client, provider, job_factory):
        job = job_factory()
        assert client.delete(f"{BASE}/{job.id}").status_code == 200
        assert provider.calls == []

    def test_delete_unknown(self, client):
        assert client.delete(f"{BASE}/nope").status_code == 404


class TestList:
    def test_pagination(self, client, job_factory):
        jobs = [job_factory(status="completed") for _ in range(3)]
        body = client.get(f"{BASE}/list", params={"page": 1, "limit": 2}).json()
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert [g["id"] for g in body["generations"]] == [jobs[2].id, jobs[1].id]

        body = client.get(f"{BASE}/list", params={"page": 2, "limit": 2}).json()
        assert [g["id"] for g in body["generations"]] == [jobs[0].id]

    def test_empty(self, client):
        body = client.get(f"{BASE}/list").json()
        assert body["generations"] == []
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 0, "pages": 0}

    def test_listing_does_not_poll_provider(self, client, provider, job_factory):
        job_factory()
        client.get(f"{BASE}/list")
        assert provider.calls == []

    def test_invalid_limit(self, client):
        resp = client.get(f"{BASE}/list", params={"limit": 0})
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "query.limit"

    def test_scoped_to_caller(self, client, job_factory):
        job_factory(user_id="alice")
        job_factory(user_id="bob")
        body = client.get(f"{BASE}/list", headers={"X-User-Id": "alice"}).json()
        assert body["pagination"]["total"] == 1
        assert body["generations"][0]["user_id"] == "alice"


class TestMisc:
    def test_credits(self, client):
        body = client.get(f"{BASE}/credits").json()
        assert body["success"] is True
        assert body["account"]["username"] == "tester"

    def test_credits_with_bad_token(self, client, provider):
        provider.account_error = ProviderError("Replicate API error 401: Unauthenticated")
        body = client.get(f"{BASE}/credits").json()
        assert body["success"] is False
        assert body["error"] == "Replicate API error 401: Unauthenticated"
        assert body["note"]

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"

    def test_unexpected_error_hides_detail(self, client):
        class Broken:
            async def get_status(self, *args, **kwargs):
                raise RuntimeError("database exploded")

        app.dependency_overrides[get_generation_service] = lambda: Broken()
        resp = TestClient(app, raise_server_exceptions=False).get(f"{BASE}/status/x")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}


class TestDeletedWhileInFlight:
    @staticmethod
    def _delete_all(session_factory):
        other = session_factory()
        try:
            other.query(GenerationJob).delete()
            other.commit()
        finally:
            other.close()

    def test_poll_returns_404(self, client, provider, job_factory, session_factory):
        job = job_factory()
        provider.status = "succeeded"
        provider.output = "https://x/video.mp4"
        provider.on_get = lambda _pid: self._delete_all(session_factory)

        resp = client.get(f"{BASE}/status/{job.id}")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Video generation not found"}

    def test_cancel_returns_404(self, client, provider, job_factory, session_factory):
        job = job_factory()
        provider.on_cancel = lambda _pid: self._delete_all(session_factory)

        assert client.post(f"{BASE}/cancel/{job.id}").status_code == 404
