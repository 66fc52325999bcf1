"""Runtime locations of the logs and tools the console observes."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path

DEFAULT_WORKSPACE_ROOT = "/root/.openclaw/workspace"
DEFAULT_GATEWAY_LOG_GLOB = "/tmp/openclaw/openclaw-*.log"
DEFAULT_STATUS_COMMAND = "codex --no-alt-screen"


@dataclass(frozen=True)
class RuntimePaths:
    """Resolved filesystem locations for one console instance.

    Everything is read-only from the console's point of view: the audit log
    and output logs are written by the job runner, the gateway log by the
    gateway.
    """

    workspace_root: Path
    actions_log: Path
    codex_logs_dir: Path
    gateway_log_glob: str
    status_command: tuple[str, ...]

    @property
    def runbook_path(self) -> Path:
        return self.workspace_root / "RUNBOOK.md"

    @property
    def tasks_path(self) -> Path:
        return self.workspace_root / "TASKS.md"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "RuntimePaths":
        """Build paths from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ

        workspace = Path(env.get("WORKSPACE_ROOT") or DEFAULT_WORKSPACE_ROOT).expanduser()
        actions_log = env.get("JOBWATCH_ACTIONS_LOG")
        codex_logs = env.get("JOBWATCH_CODEX_LOGS_DIR")
        status_command = shlex.split(env.get("JOBWATCH_STATUS_COMMAND") or DEFAULT_STATUS_COMMAND)

        return cls(
            workspace_root=workspace,
            actions_log=(
                Path(actions_log).expanduser()
                if actions_log
                else workspace / "logs" / "actions.ndjson"
            ),
            codex_logs_dir=(
                Path(codex_logs).expanduser() if codex_logs else workspace / "logs" / "codex"
            ),
            gateway_log_glob=env.get("JOBWATCH_GATEWAY_LOG_GLOB") or DEFAULT_GATEWAY_LOG_GLOB,
            status_command=tuple(status_command),
        )


def clamp(value: int | str | None, low: int, high: int, default: int) -> int:
    """Bound a caller-supplied count; None or a non-numeric value falls back to the default."""
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        try:
            number = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default
    return max(low, min(high, number))
