"""Tests for the FastAPI routes (mocked summarization provider)."""

from __future__ import annotations

import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from config import settings
from main import VERSION, app
from services.llm_service import LLMSummaryProvider


@pytest.fixture
def summarize():
    with patch.object(LLMSummaryProvider, "summarize", new_callable=AsyncMock) as mock:
        mock.return_value = "greeting"
        yield mock


@pytest.fixture
def client(monkeypatch, summarize):
    monkeypatch.setattr(settings, "database_url", "sqlite://")
    monkeypatch.setattr(settings, "worker_poll_interval", 0.05)
    monkeypatch.setattr(settings, "worker_enabled", True)
    monkeypatch.setattr(settings, "internal_token", "")
    with TestClient(app) as c:
        yield c


def _wait_for(client: TestClient, job_id: str, timeout: float = 5.0) -> dict:
    """Poll /status until the job reaches a terminal state."""
    deadline = time.monotonic() + timeout
    while True:
        data = client.get(f"/status/{job_id}").json()
        if data["status"] in ("completed", "failed") or time.monotonic() > deadline:
            return data
        time.sleep(0.02)


class TestHealthEndpoint:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["version"] == VERSION
        assert data["worker_running"] is True


class TestUserEndpoints:
    def test_create_user(self, client):
        resp = client.post("/users", json={"user_id": "u1", "name": "Ada"})
        assert resp.status_code == 201
        assert resp.json() == {"message": "User created successfully", "user_id": "u1"}

        user = client.get("/users/u1").json()
        assert user["user_type"] == "client"
        assert user["job_ids"] == []

    def test_admin_type_case_insensitive(self, client):
        client.post("/users", json={"user_id": "boss", "name": "Grace", "user_type": "ADMIN"})
        assert client.get("/users/boss").json()["user_type"] == "admin"

    def test_duplicate_user_conflicts(self, client):
        client.post("/users", json={"user_id": "u1", "name": "Ada"})
        resp = client.post("/users", json={"user_id": "u1", "name": "Ada"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "ConflictError"

    def test_invalid_user_type(self, client):
        resp = client.post("/users", json={"user_id": "u1", "name": "Ada", "user_type": "root"})
        assert resp.status_code == 400
        assert "CLIENT or ADMIN" in resp.json()["detail"]

    def test_unknown_user(self, client):
        assert client.get("/users/ghost").status_code == 404
        assert client.get("/users/ghost/jobs").status_code == 404

    def test_user_jobs_listed_in_order(self, client):
        client.post("/users", json={"user_id": "u1", "name": "Ada"})
        first = client.post("/submit", json={"user_id": "u1", "content": "one"}).json()["job_id"]
        second = client.post("/submit", json={"user_id": "u1", "content": "two"}).json()["job_id"]

        jobs = client.get("/users/u1/jobs").json()
        assert [j["job_id"] for j in jobs] == [first, second]


class TestSubmitFlow:
    def test_submit_then_poll_for_result(self, client, summarize):
        resp = client.post("/submit", json={"user_id": "u1", "content": "hello world", "is_url": False})
        assert resp.status_code == 200
        job_id = resp.json()["job_id"]

        assert _wait_for(client, job_id)["status"] == "completed"
        result = client.get(f"/result/{job_id}").json()
        assert result["job_id"] == job_id
        assert result["original_input"] == "hello world"
        assert result["summary"] == "greeting"
        assert result["processing_time_ms"] >= 0
        summarize.assert_awaited_once_with("hello world")

    def test_resubmission_served_from_cache(self, client, summarize):
        first = client.post("/submit", json={"user_id": "u1", "content": "hello world"}).json()["job_id"]
        _wait_for(client, first)

        second = client.post("/submit", json={"user_id": "u1", "content": "hello world"}).json()["job_id"]
        assert second != first
        assert client.get(f"/status/{second}").json()["status"] == "completed"

        result = client.get(f"/result/{second}").json()
        assert result["cached"] is True
        assert result["summary"] == "greeting"
        assert summarize.await_count == 1

    def test_status_view_shape(self, client):
        job_id = client.post("/submit", json={"user_id": "u1", "content": "text"}).json()["job_id"]
        data = client.get(f"/status/{job_id}").json()
        assert set(data) == {"job_id", "status", "created_at"}
        assert data["status"] in ("queued", "processing", "completed")
        assert data["created_at"].endswith("Z")

    def test_bad_url_job_fails(self, client, summarize):
        job_id = client.post(
            "/submit", json={"user_id": "u1", "content": "ftp://bad", "is_url": "true"}
        ).json()["job_id"]

        assert _wait_for(client, job_id)["status"] == "failed"
        resp = client.get(f"/result/{job_id}")
        assert resp.status_code == 400
        assert resp.json()["error"] == "NotReadyError"
        assert "failed" in resp.json()["detail"]
        summarize.assert_not_awaited()

    def test_provider_failure_marks_job_failed(self, client, summarize):
        from engine.errors import ProviderError

        summarize.side_effect = ProviderError("All models failed. Last error: down")
        job_id = client.post("/submit", json={"user_id": "u1", "content": "text"}).json()["job_id"]
        assert _wait_for(client, job_id)["status"] == "failed"

    def test_empty_content_rejected(self, client):
        resp = client.post("/submit", json={"user_id": "u1", "content": ""})
        assert resp.status_code == 422

    def test_blank_content_rejected(self, client):
        resp = client.post("/submit", json={"user_id": "u1", "content": "   "})
        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_unknown_job(self, client):
        assert client.get("/status/nope").status_code == 404
        resp = client.get("/result/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "NotFoundError", "detail": "Job not found"}


class TestQueuedWithoutWorker:
    def test_result_not_ready_while_queued(self, monkeypatch, summarize):
        monkeypatch.setattr(settings, "database_url", "sqlite://")
        monkeypatch.setattr(settings, "worker_enabled", False)
        monkeypatch.setattr(settings, "internal_token", "")
        with TestClient(app) as client:
            job_id = client.post("/submit", json={"user_id": "u1", "content": "text"}).json()["job_id"]
            assert client.get(f"/status/{job_id}").json()["status"] == "queued"

            resp = client.get(f"/result/{job_id}")
            assert resp.status_code == 400
            assert "queued" in resp.json()["detail"]
            assert client.get("/health").json()["queue_depth"] == 1


class TestInternalAuth:
    def test_no_auth_when_token_not_configured(self, client):
        resp = client.post("/submit", json={"user_id": "u1", "content": "Test content."})
        assert resp.status_code == 200

    def test_auth_rejects_bad_token_when_configured(self, client):
        settings.internal_token = "super-secret-token"
        resp = client.post(
            "/submit",
            json={"user_id": "u1", "content": "Test content."},
            headers={"X-Internal-Token": "wrong-token"},
        )
        assert resp.status_code == 401

    def test_auth_accepts_correct_token_when_configured(self, client):
        settings.internal_token = "super-secret-token"
        resp = client.post(
            "/submit",
            json={"user_id": "u1", "content": "Test content."},
            headers={"X-Internal-Token": "super-secret-token"},
        )
        assert resp.status_code == 200

    def test_auth_rejects_missing_token_when_configured(self, client):
        settings.internal_token = "super-secret-token"
        assert client.get("/status/anything").status_code == 401

    def test_health_is_open(self, client):
        settings.internal_token = "super-secret-token"
        assert client.get("/health").status_code == 200
