"""HTTP routes via TestClient with the captioner/history dependencies overridden."""

import httpx
import pytest

from captionator.api.auth import get_auth
from captionator.auth.firebase_auth import FirebaseAuth
from captionator.core.errors import GenerationError
from captionator.core.settings import settings
from captionator.main import app
from captionator.vlm.gemini_captioner import GeminiCaptioner, GeminiConfig, get_captioner


class TestCaptionRoutes:

    def test_caption_from_data_url(self, client, png_data_url, captioner):
        res = client.post("/api/v1/caption", json={"photoDataUri": png_data_url, "includeHashtags": True})
        assert res.status_code == 200
        assert res.json() == {"caption": "A cat on a windowsill.", "hashtags": ["#cat", "#windowsill"]}
        assert captioner.requests[0].include_hashtags is True

    def test_caption_omits_hashtags_unless_asked(self, client, png_data_url):
        res = client.post("/api/v1/caption", json={"photoDataUri": png_data_url, "style": "poetic"})
        assert res.json() == {"caption": "A cat on a windowsill."}

    def test_caption_rejects_non_data_url(self, client):
        res = client.post("/api/v1/caption", json={"photoDataUri": "https://example.com/cat.png"})
        assert res.status_code == 422

    def test_generation_failure_is_502(self, client, png_data_url, captioner):
        captioner.error = GenerationError("Caption generation failed: No output received from AI model.")
        res = client.post("/api/v1/caption", json={"photoDataUri": png_data_url})
        assert res.status_code == 502
        assert res.json() == {
            "ok": False,
            "error": "GenerationError",
            "message": "Caption generation failed: No output received from AI model.",
        }

    def test_loose_json_from_model_still_yields_caption(self, client, png_data_url):
        broken = '{"caption": "A cat\non a sill."}'

        def handler(request):
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": broken}]}}]})

        gemini = GeminiCaptioner(
            GeminiConfig(api_key="k", model="m", endpoint="https://gemini.test/v1beta",
                         timeout_s=5.0, temperature=0.2, max_output_tokens=64),
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        app.dependency_overrides[get_captioner] = lambda: gemini
        res = client.post("/api/v1/caption", json={"photoDataUri": png_data_url})
        assert res.status_code == 200
        assert res.json() == {"caption": "A cat\non a sill."}


class TestUploadRoute:

    def test_upload_runs_workflow_and_saves(self, client, png_bytes):
        res = client.post(
            "/api/v1/caption/upload",
            files={"image": ("cat.png", png_bytes, "image/png")},
            data={"style": "funny", "context": "lazy sunday", "includeHashtags": "true", "save": "true"},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["phase"] == "succeeded"
        assert body["caption"] == "A cat on a windowsill."
        assert body["hashtags"] == ["#cat", "#windowsill"]
        assert body["imageData"].startswith("data:image/png;base64,")
        assert body["id"]
        assert [n["title"] for n in body["notifications"]] == ["Caption ready", "Saved"]

        history = client.get("/api/images").json()
        assert len(history) == 1
        assert history[0]["id"] == body["id"]
        assert history[0]["style"] == "funny"
        assert history[0]["context"] == "lazy sunday"

    def test_upload_without_save_leaves_history_empty(self, client, png_bytes):
        res = client.post("/api/v1/caption/upload", files={"image": ("cat.png", png_bytes, "image/png")})
        assert res.status_code == 200
        assert res.json()["id"] is None
        assert client.get("/api/images").json() == []

    def test_unsupported_type_is_415(self, client, captioner):
        res = client.post("/api/v1/caption/upload", files={"image": ("notes.txt", b"hello", "text/plain")})
        assert res.status_code == 415
        assert res.json()["error"] == "UnsupportedType"
        assert captioner.requests == []

    def test_too_large_is_413(self, client, png_bytes, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 16)
        res = client.post("/api/v1/caption/upload", files={"image": ("cat.png", png_bytes, "image/png")})
        assert res.status_code == 413
        assert res.json()["error"] == "TooLarge"

    def test_generation_failure_is_502(self, client, png_bytes, captioner):
        captioner.error = GenerationError("Caption generation failed: No output received from AI model.")
        res = client.post("/api/v1/caption/upload", files={"image": ("cat.png", png_bytes, "image/png")})
        assert res.status_code == 502
        assert res.json()["message"] == "Caption generation failed: No output received from AI model."

    def test_overlong_language_is_422(self, client, png_bytes, captioner):
        res = client.post(
            "/api/v1/caption/upload",
            files={"image": ("cat.png", png_bytes, "image/png")},
            data={"language": "x" * 40},
        )
        assert res.status_code == 422
        assert res.json()["error"] == "InvalidOptions"
        assert captioner.requests == []


class TestImagesRoutes:

    def test_save_and_list(self, client):
        res = client.post("/api/images", json={"imageData": "data:image/png;base64,AAAA", "caption": "hello"})
        assert res.status_code == 200
        assert res.json()["message"] == "Image saved"

        (record,) = client.get("/api/images").json()
        assert record["id"] == res.json()["id"]
        assert record["imageData"] == "data:image/png;base64,AAAA"
        assert record["caption"] == "hello"
        assert record["style"] == "default"
        assert record["context"] is None
        assert "createdAt" in record

    def test_image_data_required(self, client):
        res = client.post("/api/images", json={"caption": "no image"})
        assert res.status_code == 400
        assert res.json() == {"error": "Image data is required"}

    def test_list_is_capped_at_twenty(self, client):
        for i in range(22):
            client.post("/api/images", json={"imageData": "data:image/png;base64,AAAA", "caption": f"c{i}"})
        listed = client.get("/api/images").json()
        assert len(listed) == 20
        assert listed[0]["caption"] == "c21"


class TestAuthRoutes:

    @pytest.fixture
    def provider_auth(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith(":signInWithPassword"):
                return httpx.Response(200, json={"localId": "uid-1", "email": "ada@example.com", "idToken": "tok"})
            return httpx.Response(400, json={"error": {"message": "EMAIL_EXISTS"}})

        auth = FirebaseAuth(api_key="fb-key", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        app.dependency_overrides[get_auth] = lambda: auth
        yield auth
        app.dependency_overrides.pop(get_auth, None)

    def test_login(self, client, provider_auth):
        res = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "hunter22"})
        assert res.status_code == 200
        assert res.json()["uid"] == "uid-1"
        assert res.json()["idToken"] == "tok"

    def test_register_conflict_is_401_with_message(self, client, provider_auth):
        res = client.post("/api/v1/auth/register", json={"email": "ada@example.com", "password": "hunter22"})
        assert res.status_code == 401
        assert res.json()["message"] == "An account with this email already exists."


def test_healthz(client):
    res = client.get("/healthz")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["captioner"]["name"] == "scripted"
    assert body["history"] == {"backend": "memory", "ok": True, "count": 0}
