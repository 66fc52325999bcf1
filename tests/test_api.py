"""Tests for the HTTP API."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import pytest

pytest.importorskip("fastapi")

SERVER_ROOT = Path(__file__).resolve().parents[1] / "app" / "server"
if str(SERVER_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVER_ROOT))

from fastapi.testclient import TestClient  # noqa: E402

from jobwatch.api import deps, sse  # noqa: E402
from jobwatch.api.routes import codex as codex_routes  # noqa: E402
from jobwatch.api.server import app  # noqa: E402
from src.core.agent_status import AgentStatus, LimitStatus  # noqa: E402
from src.core.processes import ProcessSnapshot  # noqa: E402


@pytest.fixture
def client(runtime_paths, make_snapshot):
    snapshot = make_snapshot(
        (812, "03:10", "codex exec --json '[message_id: 42] refactor'"),
        (813, "03:09", "/usr/lib/codex/codex exec --json"),
    )
    app.dependency_overrides[deps.get_paths] = lambda: runtime_paths
    app.dependency_overrides[deps.get_process_lister] = lambda: (lambda: snapshot)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _sse_events(body: str) -> list[tuple[str, str]]:
    events = []
    for frame in body.strip().split("\n\n"):
        fields = dict(line.split(": ", 1) for line in frame.split("\n") if ": " in line)
        events.append((fields.get("event"), fields.get("data")))
    return events


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_unknown_api_route(client):
    response = client.get("/api/nope/at/all")

    assert response.status_code == 404
    assert response.json() == {"error": "API route not found"}


def test_active_jobs(client, runtime_paths, write_ndjson, sample_audit_events):
    write_ndjson(runtime_paths.actions_log, sample_audit_events)

    body = client.get("/api/jobs/active").json()

    assert body == {
        "jobs": [
            {
                "messageId": "42",
                "pids": [812],
                "startedAt": "2026-02-07T12:00:00Z",
                "etime": "03:10",
                "cmd": "codex exec --json '[message_id: 42] refactor'",
            }
        ]
    }


def test_active_jobs_with_listing_failure(client):
    failed = ProcessSnapshot(ok=False, error="Process listing tool 'ps' is not available.")
    app.dependency_overrides[deps.get_process_lister] = lambda: (lambda: failed)

    response = client.get("/api/jobs/active")

    assert response.status_code == 200
    assert response.json() == {"jobs": [], "warning": "Process listing tool 'ps' is not available."}


def test_recent_jobs(client, runtime_paths, write_ndjson, sample_audit_events):
    write_ndjson(runtime_paths.actions_log, sample_audit_events)

    jobs = client.get("/api/jobs/recent", params={"limit": 2}).json()["jobs"]

    assert [(j["messageId"], j["status"]) for j in jobs] == [("42", "running"), ("41", "error")]


def test_recent_jobs_without_audit_log(client):
    assert client.get("/api/jobs/recent").json() == {"jobs": []}


def test_job_actions_and_recent_actions(client, runtime_paths, write_ndjson, sample_audit_events):
    write_ndjson(runtime_paths.actions_log, sample_audit_events)

    job_events = client.get("/api/jobs/41/actions").json()["events"]
    recent = client.get("/api/actions/recent", params={"limit": 2}).json()["events"]

    assert [e["event"] for e in job_events] == ["start", "end"]
    assert [e["ts"] for e in recent] == ["2026-02-07T11:02:00Z", "2026-02-07T12:00:00Z"]


def test_non_numeric_limits_fall_back_to_defaults(client, runtime_paths, write_ndjson, sample_audit_events):
    write_ndjson(runtime_paths.actions_log, sample_audit_events)
    log = runtime_paths.codex_logs_dir / "msg42-20260207T120000Z.jsonl"
    log.write_text('{"type":"turn.started"}\n')

    for url in ("/api/jobs/recent", "/api/actions/recent", "/api/jobs/42/output/recent", "/api/jobs/42/timeline"):
        default = client.get(url)
        junk = client.get(url, params={"limit": "abc", "tail": "abc"})

        assert junk.status_code == 200, url
        assert junk.json() == default.json(), url

    fractional = client.get("/api/actions/recent", params={"limit": "2.9"}).json()["events"]
    assert len(fractional) == 2


def test_active_sessions(client):
    body = client.get("/api/sessions/active").json()

    assert body["processes"]["ok"] is True
    assert [p["pid"] for p in body["processes"]["processes"]] == [812, 813]


def test_output_recent_and_not_found(client, runtime_paths):
    log = runtime_paths.codex_logs_dir / "msg42-20260207T120000Z.jsonl"
    log.write_text('{"type":"turn.started"}\n{"type":"turn.completed"}\n')

    found = client.get("/api/jobs/42/output/recent")
    missing = client.get("/api/jobs/43/output/recent")

    assert found.status_code == 200
    assert found.json() == {
        "path": str(log),
        "lines": ['{"type":"turn.started"}', '{"type":"turn.completed"}'],
    }
    assert missing.status_code == 404
    assert missing.json() == {"error": "No Codex output log found for message_id 43."}


def test_timeline(client, runtime_paths):
    log = runtime_paths.codex_logs_dir / "msg42-20260207T120000Z.jsonl"
    records = [
        {"type": "turn.started"},
        {"type": "item.completed", "item": {"id": "r", "type": "reasoning", "text": "hmm"}},
        {"type": "item.started", "item": {"id": "c", "type": "command_execution", "command": "ls"}},
        {"type": "item.completed", "item": {"id": "c", "type": "command_execution", "exit_code": 1}},
        {"type": "turn.completed", "usage": {"output_tokens": 9}},
    ]
    log.write_text("\n".join(json.dumps(r) for r in records) + "\n")

    body = client.get("/api/jobs/42/timeline").json()
    with_reasoning = client.get("/api/jobs/42/timeline", params={"includeReasoning": "true"}).json()

    assert [item["id"] for item in body["items"]] == ["c"]
    assert [item["id"] for item in with_reasoning["items"]] == ["r", "c"]
    assert body["items"][0]["command"] == "ls"
    assert body["turn"] == {"status": "completed", "outputTokens": 9}
    assert body["summary"]["status"] == "completed (errors)"
    assert body["summary"]["latestError"]["id"] == "c"


def test_gateway_recent_without_log(client):
    body = client.get("/api/jobs/gateway-log/recent").json()

    assert body["lines"] == []
    assert "Gateway log file not found" in body["warning"]


def test_gateway_stream_without_log(client):
    response = client.get("/api/jobs/gateway-log/stream")

    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["x-accel-buffering"] == "no"
    events = _sse_events(response.text)
    assert [name for name, _ in events] == ["ready", "error"]
    assert "Gateway log file not found" in json.loads(events[1][1])["message"]


def test_output_stream_reports_not_found(client, monkeypatch):
    monkeypatch.setattr(sse, "PATH_WAIT_ATTEMPTS", 2)
    monkeypatch.setattr(sse, "PATH_WAIT_INTERVAL_SECONDS", 0.01)

    response = client.get("/api/jobs/99/output/stream")

    events = _sse_events(response.text)
    assert [name for name, _ in events] == ["ready", "server_error"]
    assert "Output log not found yet" in json.loads(events[1][1])["message"]


def test_usage(client, runtime_paths):
    body = client.get("/api/usage/codex").json()

    assert body["scannedFiles"] == 0
    assert body["last5h"]["runs"] == 0
    assert "newestLogAt" not in body
    assert "warning" not in body


def test_logs_documents(client, runtime_paths):
    (runtime_paths.workspace_root / "RUNBOOK.md").write_text("# Runbook\n")
    (runtime_paths.workspace_root / "TASKS.md").write_text("- [ ] ship\n")
    os.utime(runtime_paths.workspace_root / "TASKS.md", (0, 0))

    body = client.get("/api/logs").json()

    assert body["runbook"]["name"] == "RUNBOOK"
    assert body["runbook"]["content"] == "# Runbook\n"
    assert body["tasks"]["updatedAt"] == "1970-01-01T00:00:00.000Z"


def test_logs_documents_missing(client):
    response = client.get("/api/logs")

    assert response.status_code == 500
    assert "RUNBOOK.md" in response.json()["error"]


class _FakeProbe:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def run(self, timeout):
        if self.error:
            raise self.error
        return self.result


def test_codex_status(client):
    status = AgentStatus(
        model="gpt-5-codex",
        account="ops@example.com",
        five_hour=LimitStatus(62, "14:05"),
        weekly=LimitStatus(18, "9 Feb"),
    )
    app.dependency_overrides[codex_routes.get_status_probe] = lambda: _FakeProbe(result=status)

    body = client.get("/api/codex/status").json()

    assert body == {
        "model": "gpt-5-codex",
        "account": "ops@example.com",
        "fiveHour": {"leftPercent": 62, "resets": "14:05"},
        "weekly": {"leftPercent": 18, "resets": "9 Feb"},
    }


def test_codex_status_timeout(client):
    probe = _FakeProbe(error=TimeoutError("Timed out running codex /status"))
    app.dependency_overrides[codex_routes.get_status_probe] = lambda: probe

    response = client.get("/api/codex/status")

    assert response.status_code == 500
    assert response.json() == {"error": "Timed out running codex /status"}
