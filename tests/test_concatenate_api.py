"""
Tests for the concatenation endpoints.

The service is swapped in through FastAPI dependency overrides; upstream
clip storage is an httpx.MockTransport.
Run with: pytest tests/test_concatenate_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from ugc_stitch.main import app
from ugc_stitch.services.clip_fetcher import ClipFetcher
from ugc_stitch.services.concat_service import get_concat_service

ENDPOINT = "/api/concatenate-videos"


@pytest.fixture
def client_for(make_service):
    """Return a TestClient whose concatenation service serves the given clips."""

    def _client(clips: dict[str, bytes], failures: dict[str, int] | None = None):
        service = make_service(clips, failures)
        app.dependency_overrides[get_concat_service] = lambda: service
        return TestClient(app), service

    yield _client
    app.dependency_overrides.clear()


def payload(urls: list[str], session_id: str = "session-1") -> dict:
    return {"clipUris": urls, "sessionId": session_id}


class TestConcatenate:
    def test_accepts_job_and_serves_video_once(self, client_for, three_clips):
        client, _ = client_for(three_clips)

        response = client.post(ENDPOINT, json=payload(list(three_clips)))

        assert response.status_code == 202
        body = response.json()
        assert body["success"] is True
        assert body["sessionId"] == "session-1"
        assert body["status"] == "pending"

        # TestClient runs background tasks before returning
        download = client.get(ENDPOINT, params={"sessionId": "session-1"})

        assert download.status_code == 200
        assert download.headers["content-type"] == "video/mp4"
        assert download.headers["content-disposition"] == 'attachment; filename="concatenated-video.mp4"'
        assert download.headers["cache-control"] == "no-cache"
        assert int(download.headers["content-length"]) == len(download.content)
        assert download.content[4:8] == b"ftyp"

        again = client.get(ENDPOINT, params={"sessionId": "session-1"})
        assert again.status_code == 404
        assert again.json()["code"] == "SESSION_NOT_FOUND"

    def test_wait_returns_summary(self, client_for, three_clips):
        client, _ = client_for(three_clips)

        response = client.post(ENDPOINT, params={"wait": "true"}, json=payload(list(three_clips)))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "succeeded"
        assert body["outputSize"] > 0
        assert body["totalDurationS"] == pytest.approx(6.5, abs=0.15)

    def test_wait_reports_pipeline_failure(self, client_for, three_clips, clip_urls):
        client, service = client_for(three_clips, failures={clip_urls[2]: 403})

        response = client.post(ENDPOINT, params={"wait": "true"}, json=payload(clip_urls))

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "FETCH_FAILED"
        assert body["retryable"] is True
        assert "video 3" in body["error"]
        assert len(service.store) == 0

    @pytest.mark.parametrize("count", [2, 4])
    def test_wrong_clip_count_rejected_before_any_work(self, client_for, count):
        client, service = client_for({})
        urls = [f"https://clips.example.com/{i}.mp4" for i in range(count)]

        response = client.post(ENDPOINT, json=payload(urls))

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "INVALID_CLIP_COUNT"
        assert "Exactly 3 video URIs are required" in body["error"]
        assert client.get(f"{ENDPOINT}/session-1/status").status_code == 404

    def test_missing_session_id_rejected(self, client_for, clip_urls):
        client, _ = client_for({})

        response = client.post(ENDPOINT, json={"clipUris": clip_urls})

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_SESSION_ID"

    def test_malformed_body_is_validation_error(self, client_for):
        client, _ = client_for({})

        response = client.post(ENDPOINT, json={"clipUris": "not-a-list", "sessionId": "s"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_segment_numbered_clips_accepted(self, client_for, three_clips, clip_urls):
        client, _ = client_for(three_clips)
        clips = [
            {"videoUri": clip_urls[1], "segmentNumber": 2},
            {"videoUri": clip_urls[2], "segmentNumber": 3},
            {"videoUri": clip_urls[0], "segmentNumber": 1},
        ]

        response = client.post(ENDPOINT, params={"wait": "true"}, json={"clips": clips, "sessionId": "s"})

        assert response.status_code == 200
        assert response.json()["totalDurationS"] == pytest.approx(6.5, abs=0.15)

    def test_missing_credential_rejected_before_job_starts(self, client_for, three_clips):
        client, service = client_for(three_clips)
        service.fetcher = ClipFetcher(api_key="")

        response = client.post(ENDPOINT, json=payload(list(three_clips)))

        assert response.status_code == 500
        assert response.json()["code"] == "CONFIGURATION_ERROR"
        assert client.get(f"{ENDPOINT}/session-1/status").status_code == 404

    def test_duplicate_session_conflicts_while_result_waits(self, client_for, three_clips):
        client, _ = client_for(three_clips)
        assert client.post(ENDPOINT, json=payload(list(three_clips))).status_code == 202

        response = client.post(ENDPOINT, json=payload(list(three_clips)))

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_SESSION"


class TestDownload:
    def test_missing_session_id(self, client_for):
        client, _ = client_for({})

        response = client.get(ENDPOINT)

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "MISSING_SESSION_ID"
        assert body["error"] == "Session ID is required"

    def test_unknown_session(self, client_for):
        client, _ = client_for({})

        response = client.get(ENDPOINT, params={"sessionId": "nope"})

        assert response.status_code == 404
        assert response.json()["error"] == "Concatenated video not found or expired"


class TestStatus:
    def test_succeeded_job_reports_ready_until_downloaded(self, client_for, three_clips):
        client, _ = client_for(three_clips)
        client.post(ENDPOINT, json=payload(list(three_clips)))

        status = client.get(f"{ENDPOINT}/session-1/status").json()

        assert status["status"] == "succeeded"
        assert status["ready"] is True
        assert status["clipCount"] == 3
        assert status["sampleCount"] == 156
        assert status["totalDurationS"] == pytest.approx(6.5, abs=0.15)

        client.get(ENDPOINT, params={"sessionId": "session-1"})
        assert client.get(f"{ENDPOINT}/session-1/status").json()["ready"] is False

    def test_failed_job_reports_error(self, client_for, three_clips, clip_urls):
        client, _ = client_for(three_clips, failures={clip_urls[0]: 500})
        assert client.post(ENDPOINT, json=payload(clip_urls)).status_code == 202

        status = client.get(f"{ENDPOINT}/session-1/status").json()

        assert status["status"] == "failed"
        assert status["ready"] is False
        assert status["errorCode"] == "FETCH_FAILED"
        assert "video 1" in status["error"]

    def test_unknown_job(self, client_for):
        client, _ = client_for({})

        response = client.get(f"{ENDPOINT}/missing/status")

        assert response.status_code == 404
        assert response.json()["code"] == "JOB_NOT_FOUND"


class TestHealth:
    def test_health(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_version(self):
        body = TestClient(app).get("/api/version").json()

        assert set(body) == {"version", "git_hash"}
