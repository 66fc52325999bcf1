"""Pytest configuration and shared fixtures."""

import json
import shutil
import tempfile
from pathlib import Path

import pytest

from src.core.processes import Process, ProcessSnapshot
from src.core.runtime import RuntimePaths


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    path = Path(tempfile.mkdtemp())
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def runtime_paths(temp_dir):
    """Workspace layout under a temp dir, with the logs directories created."""
    workspace = temp_dir / "workspace"
    (workspace / "logs" / "codex").mkdir(parents=True)
    return RuntimePaths(
        workspace_root=workspace,
        actions_log=workspace / "logs" / "actions.ndjson",
        codex_logs_dir=workspace / "logs" / "codex",
        gateway_log_glob=str(temp_dir / "gateway" / "openclaw-*.log"),
        status_command=("codex", "--no-alt-screen"),
    )


def _write_ndjson(path: Path, records: list) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n")
    return path


def _snapshot_of(*rows: tuple[int, str, str]) -> ProcessSnapshot:
    return ProcessSnapshot(
        ok=True,
        processes=[Process(pid=pid, elapsed=etime, command=cmd) for pid, etime, cmd in rows],
    )


@pytest.fixture
def write_ndjson():
    """Write records one per line; strings are written verbatim."""
    return _write_ndjson


@pytest.fixture
def make_snapshot():
    """Build a ProcessSnapshot from (pid, etime, cmd) rows."""
    return _snapshot_of


@pytest.fixture
def sample_audit_events():
    """A small audit history with two finished jobs and one still-running one."""
    return [
        {"ts": "2026-02-07T10:00:00Z", "event": "start", "source": "telegram", "actor": "ops",
         "args": "codex exec '[message_id: 40] fix tests'", "run_log": "/logs/msg40.log"},
        {"ts": "2026-02-07T10:03:00Z", "event": "end", "message_id": "40", "exit_code": 0,
         "duration_sec": 180},
        {"ts": "2026-02-07T11:00:00Z", "event": "start", "source": "telegram", "actor": "ops",
         "args": ["codex", "exec", "[message_id: 41] deploy"]},
        {"ts": "2026-02-07T11:02:00Z", "event": "end", "message_id": "41", "exit_code": 2,
         "duration_sec": 120},
        {"ts": "2026-02-07T12:00:00Z", "event": "start", "source": "telegram", "actor": "ops",
         "args": "codex exec '[message_id: 42] refactor'"},
    ]
