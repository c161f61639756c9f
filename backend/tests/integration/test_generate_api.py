"""API tests for POST /api/v1/leonardo/generate."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from photobooth.api.deps import get_orchestrator
from photobooth.core.errors import AuthenticationError
from photobooth.main import create_app
from photobooth.services.leonardo_service import ImageGenerationError
from conftest import make_image

URL = "/api/v1/leonardo/generate"
AUTH = {"Authorization": "Bearer token"}


@pytest.fixture
def app(orchestrator, user):
    app = create_app()
    auth = Mock()

    async def require_auth(header):
        if header != AUTH["Authorization"]:
            raise AuthenticationError("Missing or invalid authorization header")
        return user

    auth.require_auth = AsyncMock(side_effect=require_auth)
    app.state.auth = auth
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return app


@pytest.fixture
def client(app) -> TestClient:
    # No context manager: the lifespan (real provider clients) is not started.
    return TestClient(app)


def _form(event_id="event-1", session_id="session-1"):
    data = {}
    if event_id is not None:
        data["eventId"] = event_id
    if session_id is not None:
        data["sessionId"] = session_id
    return data


def _files(filename="photo.jpg", content=None):
    return {"image": (filename, content or make_image(1280, 720), "image/jpeg")}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_generates_four_styles(client, fake_generator):
    resp = client.post(URL, headers=AUTH, data=_form(), files=_files())

    assert resp.status_code == 200
    body = resp.json()
    assert body["imageId"] == "init-image-1"
    assert body["sessionId"] == "session-1"
    assert body["eventId"] == "event-1"
    assert body["failures"] == []
    assert [item["style"] for item in body["images"]] == ["Anime", "Watercolor", "Oil", "Disney"]
    first = body["images"][0]
    assert first == {
        "aiPhotoId": "ai-anime",
        "style": "Anime",
        "storageUrl": "user-123/event-1/Photos/session-1/GenPhotos/anime/anime.jpg",
        "publicUrl": "https://cdn.leonardo.ai/gen-anime.jpg",
        "generationId": "gen-anime",
        "hasLogo": False,
    }
    fake_generator.upload_source.assert_awaited_once()


def test_missing_auth(client, fake_generator):
    resp = client.post(URL, data=_form(), files=_files())

    assert resp.status_code == 401
    assert resp.json() == {
        "statusCode": 401,
        "message": "Missing or invalid authorization header",
        "code": "UNAUTHORIZED",
    }
    fake_generator.upload_source.assert_not_awaited()


def test_missing_image(client):
    resp = client.post(URL, headers=AUTH, data=_form())

    assert resp.status_code == 400
    assert resp.json()["message"] == "Image is required"


def test_missing_ids(client):
    resp = client.post(URL, headers=AUTH, data=_form(session_id=None), files=_files())

    assert resp.status_code == 400
    assert resp.json()["message"] == "Event ID and Session ID are required"


def test_unknown_event(client, fake_records, fake_generator):
    fake_records.get_event_by_id.return_value = None

    resp = client.post(URL, headers=AUTH, data=_form(), files=_files())

    assert resp.status_code == 404
    assert resp.json() == {"statusCode": 404, "message": "Event not found", "code": "EVENT_NOT_FOUND"}
    fake_generator.submit_generation.assert_not_awaited()


def test_unknown_session(client, fake_records):
    fake_records.get_photo_session_by_id.return_value = None

    resp = client.post(URL, headers=AUTH, data=_form(), files=_files())

    assert resp.status_code == 404
    assert resp.json()["message"] == "Photo session not found"


def test_generation_failure(client, fake_generator):
    fake_generator.wait_for_generation.side_effect = ImageGenerationError("Generation failed")

    resp = client.post(URL, headers=AUTH, data=_form(), files=_files())

    assert resp.status_code == 500
    assert resp.json() == {"statusCode": 500, "message": "Generation failed", "code": "GENERATION_FAILED"}


def test_unexpected_error_is_opaque(app, fake_records):
    fake_records.get_event_by_id.side_effect = RuntimeError("db password in here")
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.post(URL, headers=AUTH, data=_form(), files=_files())

    assert resp.status_code == 500
    assert resp.json()["message"] == "Internal server error"
    assert "password" not in resp.text
