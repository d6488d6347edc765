"""Tests for the session REST surface."""

from __future__ import annotations

import sqlite3

import pytest
from fastapi.testclient import TestClient

from triage.app import create_app
from triage.config import Settings
from triage.domain.types import MailboxOp
from triage.state.store import SessionStore

ACCOUNT = "me@example.com"


@pytest.fixture
def client(dispatcher, store: SessionStore, conn: sqlite3.Connection, mailbox) -> TestClient:
    services = {
        "_settings": Settings(_env_file=None),  # type: ignore[call-arg]
        "db_conn": conn,
        "session_store": store,
        "mailbox": mailbox,
        "dispatcher": dispatcher,
    }
    return TestClient(create_app(services))


def _start(client: TestClient) -> str:
    response = client.post("/sessions", json={"accountEmail": ACCOUNT})
    assert response.status_code == 201
    return response.json()["sessionId"]


class TestStartSession:
    def test_returns_first_item(self, client: TestClient) -> None:
        response = client.post("/sessions", json={"accountEmail": ACCOUNT})

        assert response.status_code == 201
        body = response.json()
        assert body["queueLength"] == 3
        assert body["firstItem"]["canonicalId"] == "t1"
        assert body["mappingStats"] is None

    def test_rejects_short_account(self, client: TestClient) -> None:
        response = client.post("/sessions", json={"accountEmail": "x"})
        assert response.status_code == 422

    def test_inbox_failure_is_bad_gateway(self, client: TestClient, mailbox) -> None:
        mailbox.fail_list = True

        response = client.post("/sessions", json={"accountEmail": ACCOUNT})

        assert response.status_code == 502


class TestCommands:
    def test_archive_advances_session(self, client: TestClient, mailbox) -> None:
        session_id = _start(client)

        response = client.post(f"/sessions/{session_id}/commands", json={"command": "archive"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["success"] is True
        assert body["data"]["canonicalId"] == "t1"
        assert body["spokenMessage"].startswith("Archived.")
        assert mailbox.calls == [(MailboxOp.ARCHIVE, "t1")]

        status = client.get(f"/sessions/{session_id}").json()
        assert status["cursor"] == 1
        assert status["processed"] == 1
        assert status["remaining"] == 2
        assert status["currentItem"]["canonicalId"] == "t2"

    def test_undo_after_archive(self, client: TestClient, mailbox) -> None:
        session_id = _start(client)
        client.post(f"/sessions/{session_id}/commands", json={"command": "archive"})

        body = client.post(f"/sessions/{session_id}/commands", json={"command": "undo"}).json()

        assert body["success"] is True
        assert body["data"]["undoneAction"] == "archive"
        assert mailbox.calls[-1] == (MailboxOp.UNARCHIVE, "t1")
        assert client.get(f"/sessions/{session_id}").json()["cursor"] == 0

    def test_nothing_to_undo_is_a_declined_result(self, client: TestClient) -> None:
        session_id = _start(client)

        response = client.post(f"/sessions/{session_id}/commands", json={"command": "undo"})

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_unknown_command_is_422(self, client: TestClient) -> None:
        session_id = _start(client)

        response = client.post(f"/sessions/{session_id}/commands", json={"command": "snooze"})

        assert response.status_code == 422
        assert response.json()["command"] == "snooze"

    def test_unknown_session_is_404(self, client: TestClient) -> None:
        response = client.post("/sessions/nope/commands", json={"command": "archive"})
        assert response.status_code == 404

    def test_busy_session_is_409(self, client: TestClient, store: SessionStore, clock) -> None:
        session_id = _start(client)
        assert store.acquire_lease(session_id, "other-worker", clock(), 30)

        response = client.post(f"/sessions/{session_id}/commands", json={"command": "skip"})

        assert response.status_code == 409


class TestSessionLifecycle:
    def test_stop_pauses(self, client: TestClient) -> None:
        session_id = _start(client)

        response = client.post(f"/sessions/{session_id}/stop")

        assert response.status_code == 200
        assert response.json()["status"] == "paused"

    def test_list_sessions_for_account(self, client: TestClient) -> None:
        session_id = _start(client)

        sessions = client.get("/sessions", params={"account": ACCOUNT}).json()["sessions"]

        assert [s["id"] for s in sessions] == [session_id]
        assert sessions[0]["status"] == "active"

    def test_list_sessions_filters_by_status(self, client: TestClient) -> None:
        _start(client)

        response = client.get("/sessions", params={"account": ACCOUNT, "status": "completed"})

        assert response.json() == {"sessions": []}

    def test_delete(self, client: TestClient) -> None:
        session_id = _start(client)

        assert client.delete(f"/sessions/{session_id}").status_code == 204
        assert client.get(f"/sessions/{session_id}").status_code == 404
        assert client.delete(f"/sessions/{session_id}").status_code == 404
