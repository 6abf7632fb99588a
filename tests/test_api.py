from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from notemirror.api.app import create_app
from notemirror.api.dependencies import get_store
from notemirror.api.scheduler import BackupScheduler
from notemirror.core.config import AppConfig
from notemirror.core.exceptions import RemoteStoreError
from notemirror.utils.db import BackupLogsDB
from tests.conftest import ROOT_ID

API_KEY = "test-api-key"
HEADERS = {"x-api-key": API_KEY}


@pytest.fixture
def config(tmp_path, work_dir):
    return AppConfig(
        general={"data_dir": str(tmp_path / "data")},
        drive={"notes_folder_id": ROOT_ID},
        backup={"work_dir": str(work_dir)},
        api={"api_key": API_KEY, "rate_limit_requests": 100},
    )


@pytest.fixture
def scheduler(config, two_note_store, make_orchestrator):
    return BackupScheduler(
        config,
        orchestrator=make_orchestrator(two_note_store),
        logs_db=BackupLogsDB(config.backup_logs_db_path),
    )


@pytest.fixture
def app(config, scheduler, two_note_store):
    app = create_app(config, scheduler=scheduler)
    app.dependency_overrides[get_store] = lambda: two_note_store
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def save(client, headers=HEADERS, **body):
    payload = {"category": "Ideas", "filename": "idea.md", "content": "# Idea"}
    payload.update(body)
    return client.post("/api/save-note", json=payload, headers=headers)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["timestamp"].endswith("Z")


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}])
def test_save_note_requires_api_key(client, headers):
    response = save(client, headers=headers)

    assert response.status_code == 403
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.parametrize(
    "body, error",
    [
        ({"category": None}, "Missing required fields: category, filename, content"),
        ({"content": ""}, "Missing required fields: category, filename, content"),
        ({"filename": "idea.txt"}, "Filename must end with .md"),
        ({"filename": "../idea.md"}, "Filename cannot contain path separators"),
        ({"category": "Work//Ideas"}, "Category cannot contain empty segments"),
        ({"category": "Work/<Ideas>"}, "Category contains invalid characters"),
        ({"content": "x" * (2 * 1024 * 1024 + 1)}, "Content exceeds 2MB limit"),
    ],
)
def test_save_note_validation_errors(client, body, error):
    response = save(client, **body)

    assert response.status_code == 400
    assert response.json() == {"error": error}


def test_malformed_body_is_400(client):
    response = client.post(
        "/api/save-note",
        content=b"not json",
        headers={**HEADERS, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_save_note_creates_nested_category(client, two_note_store):
    response = save(client, category="Journal/2024/January", filename="day-one.md", content="Hello")

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Note saved successfully"
    assert data["link"].startswith("https://drive.example/")

    names = {name: parent for name, parent in two_note_store.folders.values()}
    journal = next(fid for fid, (name, _) in two_note_store.folders.items() if name == "Journal")
    assert names["Journal"] == ROOT_ID
    assert names["2024"] == journal
    saved = [n for n in two_note_store.notes.values() if n["name"] == "day-one.md"]
    assert len(saved) == 1
    assert saved[0]["text"] == "Hello"


def test_save_note_reuses_existing_folder_and_overwrites(client, two_note_store):
    folders_before = len(two_note_store.folders)

    save(client, category="Work", filename="plan.md", content="v1")
    response = save(client, category="Work", filename="plan.md", content="v2")

    assert response.status_code == 200
    assert len(two_note_store.folders) == folders_before
    saved = [n for n in two_note_store.notes.values() if n["name"] == "plan.md"]
    assert [n["text"] for n in saved] == ["v2"]


def test_store_failure_is_500(client, two_note_store):
    two_note_store.create_or_update_note = AsyncMock(side_effect=RemoteStoreError("quota exceeded", 403))

    response = save(client)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


def test_rate_limit(config, scheduler, two_note_store):
    config.api.rate_limit_requests = 2
    app = create_app(config, scheduler=scheduler)
    app.dependency_overrides[get_store] = lambda: two_note_store
    client = TestClient(app)

    assert save(client).status_code == 200
    assert save(client).status_code == 200
    response = save(client)

    assert response.status_code == 429
    assert "Retry-After" in response.headers


def test_backup_run_and_history(client):
    first = client.post("/api/backup/run", headers=HEADERS)
    second = client.post("/api/backup/run", headers=HEADERS)

    assert first.status_code == 200
    assert first.json()["status"] == "success"
    assert first.json()["notes_written"] == 2
    assert second.json()["status"] == "no_changes"

    history = client.get("/api/backup/history", headers=HEADERS).json()
    assert [entry["status"] for entry in history] == ["no_changes", "success"]
    assert all(entry["trigger"] == "manual" for entry in history)
    assert history[1]["stats"]["categories"] == 2


def test_backup_endpoints_require_api_key(client):
    assert client.post("/api/backup/run").status_code == 403
    assert client.get("/api/backup/history").status_code == 403


def test_backup_status_before_start(client):
    response = client.get("/api/backup/status", headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["running"] is False
    assert data["scheduler_running"] is False
    assert data["cron"] == "0 3 * * *"


def test_lifespan_starts_and_stops_scheduler(app, scheduler, restore_root_logger):
    with TestClient(app) as client:
        assert scheduler.is_running
        data = client.get("/api/backup/status", headers=HEADERS).json()
        assert data["scheduler_running"] is True
        assert data["next_run"] is not None

    assert not scheduler.is_running
