"""Tests for runtime path configuration."""

from pathlib import Path

import pytest

from src.core.runtime import RuntimePaths, clamp


def test_defaults_hang_off_the_workspace():
    paths = RuntimePaths.from_env({"WORKSPACE_ROOT": "/srv/agent"})

    assert paths.actions_log == Path("/srv/agent/logs/actions.ndjson")
    assert paths.codex_logs_dir == Path("/srv/agent/logs/codex")
    assert paths.runbook_path == Path("/srv/agent/RUNBOOK.md")
    assert paths.tasks_path == Path("/srv/agent/TASKS.md")
    assert paths.gateway_log_glob == "/tmp/openclaw/openclaw-*.log"
    assert paths.status_command == ("codex", "--no-alt-screen")


def test_empty_environment_uses_default_workspace():
    paths = RuntimePaths.from_env({})
    assert paths.workspace_root == Path("/root/.openclaw/workspace")


def test_overrides():
    paths = RuntimePaths.from_env(
        {
            "WORKSPACE_ROOT": "/srv/agent",
            "JOBWATCH_ACTIONS_LOG": "/var/log/actions.ndjson",
            "JOBWATCH_CODEX_LOGS_DIR": "/var/log/codex",
            "JOBWATCH_GATEWAY_LOG_GLOB": "/var/log/gw-*.log",
            "JOBWATCH_STATUS_COMMAND": "/opt/codex/bin/codex --no-alt-screen --profile 'ops team'",
        }
    )

    assert paths.actions_log == Path("/var/log/actions.ndjson")
    assert paths.codex_logs_dir == Path("/var/log/codex")
    assert paths.gateway_log_glob == "/var/log/gw-*.log"
    assert paths.status_command == ("/opt/codex/bin/codex", "--no-alt-screen", "--profile", "ops team")


@pytest.mark.parametrize(
    "value,expected",
    [(None, 50), ("abc", 50), ("nan", 50), ("inf", 50), (0, 1), (500, 200), ("20", 20), ("12.7", 12), (75, 75)],
)
def test_clamp(value, expected):
    assert clamp(value, 1, 200, 50) == expected
