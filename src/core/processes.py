"""Process table snapshots for detecting running agent jobs."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PS_COMMAND = ("ps", "-eo", "pid=,etime=,cmd=")
PS_TIMEOUT_SECONDS = 5

_PS_LINE = re.compile(r"^(\d+)\s+(\S+)\s+(.*)$")
_CODEX_WORD = re.compile(r"\bcodex\b")
_EXEC_WORD = re.compile(r"\bexec\b")


@dataclass
class Process:
    """A single row of the process table."""

    pid: int
    elapsed: str
    command: str

    def to_dict(self) -> dict:
        return {"pid": self.pid, "etime": self.elapsed, "cmd": self.command}


@dataclass
class ProcessSnapshot:
    """Result of one process listing.

    ``ok`` is False when the listing could not be produced; ``error`` then
    says why and ``processes`` is empty. Callers treat that as "nothing
    visible", not as a failure of their own.
    """

    ok: bool
    processes: list[Process] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {
            "ok": self.ok,
            "processes": [p.to_dict() for p in self.processes],
        }
        if self.error:
            payload["error"] = self.error
        return payload


def parse_ps_output(text: str) -> list[Process]:
    """Parse ``ps -eo pid=,etime=,cmd=`` output, skipping unrecognised rows."""
    processes: list[Process] = []
    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        match = _PS_LINE.match(line)
        if not match:
            continue
        processes.append(
            Process(pid=int(match.group(1)), elapsed=match.group(2), command=match.group(3))
        )
    return processes


def is_agent_job(command: str) -> bool:
    """Return True for the ``codex ... exec ...`` invocations that run jobs."""
    return bool(_CODEX_WORD.search(command) and _EXEC_WORD.search(command))


def list_processes() -> ProcessSnapshot:
    """List every process on the host."""
    try:
        result = subprocess.run(
            list(PS_COMMAND),
            capture_output=True,
            text=True,
            timeout=PS_TIMEOUT_SECONDS,
        )
    except FileNotFoundError:
        return ProcessSnapshot(ok=False, error="Process listing tool 'ps' is not available.")
    except subprocess.TimeoutExpired:
        return ProcessSnapshot(
            ok=False, error=f"Process listing timed out after {PS_TIMEOUT_SECONDS}s."
        )
    except OSError as exc:
        logger.warning("Failed to run ps: %s", exc)
        return ProcessSnapshot(ok=False, error=str(exc))

    if result.returncode != 0:
        message = (result.stderr or "").strip() or f"ps exited with code {result.returncode}"
        return ProcessSnapshot(ok=False, error=message)

    return ProcessSnapshot(ok=True, processes=parse_ps_output(result.stdout))


def list_agent_processes() -> ProcessSnapshot:
    """List only the processes that belong to agent jobs."""
    snapshot = list_processes()
    if not snapshot.ok:
        logger.warning("Process snapshot unavailable: %s", snapshot.error)
        return snapshot
    return ProcessSnapshot(
        ok=True,
        processes=[p for p in snapshot.processes if is_agent_job(p.command)],
    )
