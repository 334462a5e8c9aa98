"""
Tests for the HTTP API, driven through TestClient with a scripted detector.
"""

import io
import zipfile

import pytest
from fastapi.testclient import TestClient

import api.app as app_module
from api.app import create_app
from config.settings import Settings

from conftest import ScriptedDetector, regions_json

QUESTION_1 = ("Question 1", (100, 50, 250, 950))
QUESTION_2 = ("Question 2", (260, 50, 400, 950))


def make_client(responses, **overrides) -> TestClient:
    settings = Settings(_env_file=None, **overrides)
    app = create_app(detector_factory=lambda: ScriptedDetector(list(responses)), settings=settings)
    return TestClient(app)


@pytest.fixture
def png(image_bytes):
    return image_bytes("PNG", size=(1000, 1000), color=(255, 255, 255))


def new_session(client: TestClient) -> str:
    response = client.post("/api/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


def upload(client: TestClient, session_id: str, data: bytes, name="exam.png", mime="image/png"):
    return client.post(f"/api/sessions/{session_id}/upload", files={"file": (name, data, mime)})


def test_root_and_health():
    client = make_client([])

    assert client.get("/").json()["name"] == "Exam Cropper"
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["detector"] == "missing_api_key"


def test_full_flow(png):
    client = make_client([regions_json(QUESTION_1, QUESTION_2)])
    session_id = new_session(client)

    uploaded = upload(client, session_id, png)
    assert uploaded.status_code == 200
    assert uploaded.json()["status"] == "idle"
    assert uploaded.json()["page_count"] == 1

    processed = client.post(f"/api/sessions/{session_id}/process", json={"instruction": "every question"})
    assert processed.status_code == 200
    body = processed.json()
    assert body["status"] == "success"
    assert body["progress"] == 100
    assert [c["label"] for c in body["crops"]] == ["Question 1", "Question 2"]
    assert body["crops"][0]["width"] == 930

    crop = client.get(body["crops"][0]["url"])
    assert crop.status_code == 200
    assert crop.headers["content-type"] == "image/jpeg"
    assert crop.content.startswith(b"\xff\xd8")
    assert 'filename="Question 1.jpg"' in crop.headers["content-disposition"]

    archive = client.get(f"/api/sessions/{session_id}/archive")
    assert archive.status_code == 200
    assert archive.headers["content-type"] == "application/zip"
    assert "exam_extracted_" in archive.headers["content-disposition"]
    with zipfile.ZipFile(io.BytesIO(archive.content)) as zf:
        assert zf.namelist() == ["question_1_1.jpg", "question_2_2.jpg"]
        assert zf.read("question_1_1.jpg") == crop.content

    state = client.get(f"/api/sessions/{session_id}").json()
    assert state["status"] == "success"


def test_empty_result_is_reported_in_run(png):
    client = make_client(["[]"])
    session_id = new_session(client)
    upload(client, session_id, png)

    body = client.post(f"/api/sessions/{session_id}/process", json={"instruction": "every question"}).json()

    assert body["status"] == "error"
    assert body["error_kind"] == "EmptyResultError"
    assert body["crops"] == []


def test_unknown_session():
    client = make_client([])

    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/process", json={"instruction": "x"}).status_code == 404


def test_unknown_crop():
    client = make_client([])
    session_id = new_session(client)

    assert client.get(f"/api/sessions/{session_id}/crops/nope").status_code == 404


def test_unsupported_upload():
    client = make_client([])
    session_id = new_session(client)

    response = upload(client, session_id, b"just some text", name="notes.txt", mime="text/plain")

    assert response.status_code == 415
    assert response.json()["error_kind"] == "UnsupportedFormatError"


def test_corrupt_pdf_upload():
    client = make_client([])
    session_id = new_session(client)

    response = upload(client, session_id, b"not a pdf", name="exam.pdf", mime="application/pdf")

    assert response.status_code == 422
    assert response.json()["status"] == "error"


def test_upload_too_large(png):
    client = make_client([], max_upload_size=100)
    session_id = new_session(client)

    assert upload(client, session_id, png).status_code == 413


def test_process_without_document_is_conflict():
    client = make_client([])
    session_id = new_session(client)

    response = client.post(f"/api/sessions/{session_id}/process", json={"instruction": "every question"})

    assert response.status_code == 409
    assert response.json()["kind"] == "RunStateError"


def test_blank_instruction_is_rejected(png):
    client = make_client([])
    session_id = new_session(client)
    upload(client, session_id, png)

    response = client.post(f"/api/sessions/{session_id}/process", json={"instruction": "   "})

    assert response.status_code == 422


def test_archive_before_success_is_conflict(png):
    client = make_client([])
    session_id = new_session(client)
    upload(client, session_id, png)

    assert client.get(f"/api/sessions/{session_id}/archive").status_code == 409


def test_process_is_rate_limited(png):
    client = make_client([regions_json(QUESTION_1)] * 2, process_rate_limit="1/minute")
    session_id = new_session(client)
    upload(client, session_id, png)
    url = f"/api/sessions/{session_id}/process"

    assert client.post(url, json={"instruction": "every question"}).status_code == 200
    assert client.post(url, json={"instruction": "every question"}).status_code == 429


def test_delete_session(png):
    client = make_client([])
    session_id = new_session(client)
    upload(client, session_id, png)

    assert client.delete(f"/api/sessions/{session_id}").status_code == 204
    assert client.get(f"/api/sessions/{session_id}").status_code == 404


def test_logging_configured_on_startup(monkeypatch):
    calls = []
    monkeypatch.setattr(app_module, "setup_structured_logging", lambda **kwargs: calls.append(kwargs))
    app = create_app(detector_factory=lambda: ScriptedDetector([]), settings=Settings(_env_file=None, log_level="debug"))

    assert calls == []
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200

    assert calls == [{"level": "DEBUG", "log_file": None, "serialize": True}]
