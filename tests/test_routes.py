"""
Tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeTranscoder, url_to_path
from vedit_engine import __version__
from vedit_engine.auth import API_KEY_HEADER
from vedit_engine.config import Settings
from vedit_engine.main import app
from vedit_engine.routers import edits
from vedit_engine.services.concat_pipeline import ConcatenationPipeline
from vedit_engine.services.enhance_planner import EnhancePlanner
from vedit_engine.services.transcoder import MediaInfo


@pytest.fixture
def client(make_pipeline, settings, scratch, store, monkeypatch):
    """Client with pipelines built around a fake transcoder (no lifespan)."""
    transcoder = FakeTranscoder(media_info=MediaInfo(45.0, 640, 360, 1_000_000, True, "mp4"))
    pipeline = make_pipeline(transcoder)
    concat = ConcatenationPipeline(store=store, scratch=scratch, transcoder=transcoder, settings=settings)
    planner = EnhancePlanner(settings=settings)

    monkeypatch.setattr("vedit_engine.auth.get_settings", lambda: settings)
    monkeypatch.setattr("vedit_engine.routers.edits.get_settings", lambda: settings)

    app.dependency_overrides[edits.get_transformation_pipeline] = lambda: pipeline
    app.dependency_overrides[edits.get_concat_pipeline] = lambda: concat
    app.dependency_overrides[edits.get_enhance_planner] = lambda: planner
    app.dependency_overrides[edits.get_transcoder] = lambda: transcoder
    app.dependency_overrides[edits.get_edit_semaphore] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    """Tests for health endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}

    def test_root(self, client):
        assert client.get("/").json()["service"] == "vedit-engine"


class TestEdits:
    """Tests for POST /edits."""

    def test_success(self, client, video_file):
        response = client.post(
            "/edits",
            json={"mediaUrl": video_file, "instruction": {"operation": "colorGrade", "params": {"preset": "noir"}}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["operation"] == "colorGrade"
        assert data["fallback"] is False
        assert "processingTimeSeconds" in data
        with open(url_to_path(data["url"]), "rb") as f:
            assert f.read() == b"edited-output"

    def test_unknown_operation(self, client, video_file):
        response = client.post(
            "/edits", json={"mediaUrl": video_file, "instruction": {"operation": "teleport"}}
        )
        data = response.json()
        assert data["success"] is True
        assert data["passthrough"] is True
        assert data["warnings"]

    def test_invalid_instruction_is_400(self, client, video_file):
        response = client.post(
            "/edits", json={"mediaUrl": video_file, "instruction": {"operation": "addCaptions", "params": {}}}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "INVALID_INSTRUCTION"
        assert body["retryable"] is False

    def test_failure_serves_original(self, client, tmp_path):
        missing = str(tmp_path / "missing.mp4")
        response = client.post(
            "/edits", json={"mediaUrl": missing, "instruction": {"operation": "rotate", "params": {"rotation": 90}}}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["fallback"] is True
        assert data["url"] == missing
        assert data["error"]["code"] == "DOWNLOAD_FAILED"

    def test_failure_without_fallback(self, client, settings, tmp_path, monkeypatch):
        strict = settings.model_copy(update={"serve_original_on_failure": False})
        monkeypatch.setattr("vedit_engine.routers.edits.get_settings", lambda: strict)

        response = client.post(
            "/edits",
            json={"mediaUrl": str(tmp_path / "missing.mp4"), "instruction": {"operation": "rotate"}},
        )
        assert response.status_code == 502
        assert response.json()["code"] == "DOWNLOAD_FAILED"

    def test_server_files_are_not_published(self, client, store, settings, tmp_path):
        store.settings = settings.model_copy(update={"local_source_root": None})
        secret = tmp_path / "server_secrets.env"
        secret.write_text("AWS_SECRET_ACCESS_KEY=hunter2\n")

        for media_url in (str(secret), secret.as_uri()):
            response = client.post(
                "/edits", json={"mediaUrl": media_url, "instruction": {"operation": "noSuchOp"}}
            )
            data = response.json()
            assert data["success"] is False
            assert data["error"]["code"] == "DOWNLOAD_FAILED"
            assert data["url"] == media_url

        output_dir = tmp_path / "output"
        assert not output_dir.exists() or not any(p.is_file() for p in output_dir.rglob("*"))

    def test_request_validation(self, client):
        response = client.post("/edits", json={"instruction": {"operation": "trim"}})
        assert response.status_code == 422


class TestMerge:
    """Tests for POST /merge."""

    def test_merge(self, client, make_clips):
        response = client.post("/merge", json={"clipUrls": make_clips(3)})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "/vedit/merged/" in url_to_path(data["mergedUrl"])
        assert data["message"] == "Successfully merged 3 clips"

    def test_single_clip_is_400(self, client, make_clips):
        response = client.post("/merge", json={"clipUrls": make_clips(1)})
        assert response.status_code == 400
        assert response.json()["code"] == "INSUFFICIENT_INPUTS"


class TestEnhanceAndPresets:
    """Tests for auto-enhance suggestions and preset listing."""

    def test_quick_suggestions(self, client):
        response = client.post("/enhance/suggestions", json={"mediaUrl": "https://cdn.example.com/v.mp4"})
        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "quick"
        assert data["operations"][0] == {"operation": "colorGrade", "params": {"preset": "natural tone"}}
        assert data["videoMetadata"]["resolution"] == "640x360"
        assert data["message"] == f"Suggested {len(data['operations'])} enhancements"

    def test_deep_without_analyzer_fails(self, client):
        response = client.post(
            "/enhance/suggestions", json={"mediaUrl": "https://cdn.example.com/v.mp4", "mode": "deep"}
        )
        assert response.status_code == 502
        assert response.json()["code"] == "ANALYSIS_FAILED"

    def test_presets(self, client):
        data = client.get("/presets").json()
        assert "noir" in data["colorGrades"]
        assert "mirror" in data["effects"]
        assert "slide" in data["transitions"]
        assert "news banner" in data["textStyles"]
        assert data["subtitlePresets"] == ["classic", "glow", "bold_boxed", "minimal"]


class TestAuth:
    """Tests for API key enforcement."""

    @pytest.fixture
    def secured(self, client, settings, monkeypatch):
        secured_settings = settings.model_copy(update={"vedit_api_key": "s3cret"})
        monkeypatch.setattr("vedit_engine.auth.get_settings", lambda: secured_settings)
        return client

    def test_missing_key(self, secured):
        assert secured.get("/presets").status_code == 200
        response = secured.post("/merge", json={"clipUrls": ["a", "b"]})
        assert response.status_code == 401

    def test_wrong_key(self, secured):
        response = secured.post("/merge", json={"clipUrls": ["a", "b"]}, headers={API_KEY_HEADER: "nope"})
        assert response.status_code == 401

    def test_valid_key(self, secured, make_clips):
        response = secured.post("/merge", json={"clipUrls": make_clips(2)}, headers={API_KEY_HEADER: "s3cret"})
        assert response.status_code == 200
