from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.core.deps import get_blob_store, get_current_user, get_db
from app.main import app
from app.worker import tasks
from conftest import people_csv


@pytest.fixture
def client(db, user, store):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_blob_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def queued(monkeypatch):
    calls = []

    def delay(import_id):
        calls.append(import_id)
        return SimpleNamespace(id=f"task-{import_id}")

    monkeypatch.setattr(tasks.analyze_import_task, "delay", delay)
    return calls


def _upload(client, content=None, filename="people.csv", analyze="false"):
    return client.post(
        "/imports/upload",
        params={"analyze": analyze},
        files={"file": (filename, content or people_csv(10), "text/csv")},
    )


def test_upload_analyze_browse_and_edit(client):
    r = _upload(client)
    assert r.status_code == 200, r.text
    run = r.json()
    assert run["status"] == "processing"
    assert run["table_name"] == "people"

    r = client.post(f"/imports/{run['id']}/analyze", params={"sync": "true"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "editing"
    assert body["totalRows"] == 10
    assert len(body["previewData"]) == 5
    assert body["columns"][0] == {
        "name": "id",
        "type": "integer",
        "sample": "1",
        "nullCount": 0,
        "uniqueCount": 5,
        "patterns": {"email": False, "url": False, "phone": False},
    }

    r = client.get(f"/imports/{run['id']}/columns")
    assert [c["name"] for c in r.json()] == ["id", "name", "joined"]

    r = client.get(f"/imports/{run['id']}/rows", params={"page": 2, "page_size": 4})
    page = r.json()
    assert page["totalRows"] == 10
    assert page["totalPages"] == 3
    assert page["start_index"] == 4
    assert [row["id"] for row in page["rows"]] == [5, 6, 7, 8]

    r = client.patch(f"/imports/{run['id']}/rows/4", json={"column": "name", "value": "Eve"})
    assert r.status_code == 200, r.text
    assert r.json()["old_value"] == "person5"
    assert r.json()["new_value"] == "Eve"

    changes = client.get(f"/imports/{run['id']}/changes").json()
    assert [(c["row_index"], c["column_name"]) for c in changes] == [(4, "name")]

    r = client.post(f"/imports/{run['id']}/complete")
    assert r.json()["status"] == "completed"

    r = client.patch(f"/imports/{run['id']}/rows/4", json={"column": "name", "value": "x"})
    assert r.status_code == 409
    assert r.json()["code"] == "state_conflict"


def test_upload_queues_analysis(client, queued):
    r = _upload(client, analyze="true")
    assert r.status_code == 200
    assert queued == [r.json()["id"]]


def test_async_analyze_returns_task_id(client, queued):
    run = _upload(client).json()
    r = client.post(f"/imports/{run['id']}/analyze")
    assert r.status_code == 200
    assert r.json()["task_id"] == f"task-{run['id']}"
    assert r.json()["status"] == "processing"
    assert queued == [run["id"]]


def test_unsupported_upload(client):
    r = _upload(client, b"hello", "notes.txt")
    assert r.status_code == 415
    assert r.json() == {"detail": "Unsupported file type: .txt", "code": "unsupported_format"}
    assert client.get("/imports").json() == []


def test_failed_analysis_is_reported_and_recorded(client):
    run = _upload(client, b"id,id\n1,2\n", "dupes.csv").json()
    r = client.post(f"/imports/{run['id']}/analyze", params={"sync": "true"})
    assert r.status_code == 422
    assert r.json()["code"] == "schema_error"

    run = client.get(f"/imports/{run['id']}").json()
    assert run["status"] == "error"
    assert run["error_message"].startswith("Duplicate column name")


def test_unknown_import(client):
    r = client.get("/imports/12345")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_page_size_is_bounded(client):
    run = _upload(client).json()
    assert client.get(f"/imports/{run['id']}/rows", params={"page_size": 0}).status_code == 422
    assert client.get(f"/imports/{run['id']}/rows", params={"page_size": 10_000}).status_code == 422


def test_viewer_cannot_upload(client, user, db):
    user.role = "viewer"
    db.commit()
    assert _upload(client).status_code == 403


def test_delete_import(client):
    run = _upload(client).json()
    assert client.delete(f"/imports/{run['id']}").json() == {"status": "ok"}
    assert client.get(f"/imports/{run['id']}").status_code == 404
