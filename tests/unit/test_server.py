from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from protocol_engine.engine.protocols.engine import ProtocolEngine
from protocol_engine.server.app import create_app
from protocol_engine.server.config import ServerSettings


@pytest.fixture
def client(engine: ProtocolEngine) -> TestClient:
    return TestClient(create_app(engine=engine, settings=ServerSettings(_env_file=None)))


def test_health(client: TestClient) -> None:
    health = client.get("/api/health").json()

    assert health["status"] == "ok"
    assert "version" in health


def test_detect_and_list(client: TestClient) -> None:
    detected = client.post("/api/detect", json={"input": "Please RUN ABC"}).json()
    assert [p["id"] for p in detected] == ["abc"]

    assert client.post("/api/detect", json={"input": "nothing"}).json() == []

    listed = client.get("/api/protocols", params={"category": "test"}).json()
    assert [p["id"] for p in listed] == ["abc"]
    assert client.get("/api/protocols", params={"category": "other"}).json() == []


def test_full_flow(client: TestClient) -> None:
    started = client.post(
        "/api/protocols/abc/start", json={"context": {"greeting": "yo", "flag": False}}
    )
    assert started.status_code == 200
    active_id = started.json()["id"]

    action = client.get(f"/api/active/{active_id}/next").json()
    assert action["type"] == "execute"
    assert action["step"]["id"] == "a"
    assert action["command"] == 'echo "yo"'

    done = client.post(f"/api/active/{active_id}/steps/a/complete", json={"result": {"exit": 0}})
    assert done.status_code == 200
    assert done.json()["active"]["stepResults"] == {"a": {"exit": 0}}

    action = client.get(f"/api/active/{active_id}/next").json()
    assert action["step"]["id"] == "c"

    client.post(f"/api/active/{active_id}/steps/c/complete")
    action = client.get(f"/api/active/{active_id}/next").json()
    assert action["type"] == "complete"
    assert "ABC Protocol" in action["message"]

    status = client.get(f"/api/active/{active_id}/status")
    assert status.headers["content-type"].startswith("text/plain")
    assert "Progress: 3/3 steps" in status.text

    archived = client.post(f"/api/active/{active_id}/archive", json={"success": True}).json()
    assert archived == {"id": active_id, "archived": True, "success": True}
    assert client.get("/api/active").json() == []

    stats = client.get("/api/stats").json()
    assert stats["totalExecutions"] == 1
    assert stats["successRate"] == 100.0


def test_unknown_ids_map_to_404(client: TestClient) -> None:
    missing = client.post("/api/protocols/nope/start")
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Protocol nope not found"}

    assert client.get("/api/active/nope/next").status_code == 404
    assert client.get("/api/active/nope/status").status_code == 404
    assert client.post("/api/active/nope/archive").status_code == 404


def test_unknown_step_maps_to_400(client: TestClient) -> None:
    active_id = client.post("/api/protocols/abc/start").json()["id"]

    response = client.post(f"/api/active/{active_id}/steps/zzz/complete")

    assert response.status_code == 400
    assert "zzz" in response.json()["detail"]


def test_cleanup_and_help(client: TestClient) -> None:
    client.post("/api/protocols/abc/start")

    removed = client.post("/api/maintenance/cleanup", json={"max_age_hours": 1}).json()
    assert removed == {"removed": []}
    assert client.post("/api/maintenance/cleanup", json={"max_age_hours": 0}).status_code == 422

    text = client.get("/api/help", params={"topic": "commands"}).text
    assert text.startswith("#")


def test_app_builds_engine_from_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PROTOCOL_ENGINE_DATA_DIR", str(tmp_path / "state"))
    monkeypatch.delenv("PROTOCOL_ENGINE_CATALOG_PATH", raising=False)
    monkeypatch.delenv("PROTOCOL_ENGINE_INCLUDE_BUILTINS", raising=False)

    client = TestClient(create_app())

    ids = [p["id"] for p in client.get("/api/protocols").json()]
    assert "repo-update" in ids
    assert (tmp_path / "state" / "active-protocols.json").exists()
