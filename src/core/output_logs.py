"""Locate per-job output logs and the gateway log."""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path

from ..utils import read_tail_lines
from .runtime import clamp

logger = logging.getLogger(__name__)

DEFAULT_TAIL_LINES = 300
MAX_OUTPUT_TAIL_LINES = 20000
MAX_GATEWAY_TAIL_LINES = 2000
MIN_TAIL_LINES = 50


def latest_shortcut_name(job_id: str) -> str:
    return f"msg{job_id}.latest.jsonl"


def _is_within(path: Path, directory: Path) -> bool:
    try:
        path.relative_to(directory)
    except ValueError:
        return False
    return True


class OutputLogResolver:
    """Map a job id to the newest structured output log of that job.

    Output logs are named ``msg<id>-<YYYYMMDD>T<HHMMSS><offset>.jsonl``. The
    job runner may also keep a ``msg<id>.latest.jsonl`` shortcut. Older
    installs left shortcuts that are symlinks into directories that no
    longer apply, so a symlinked shortcut is only honoured when its target
    resolves inside the logs directory.
    """

    def __init__(self, logs_dir: Path):
        self.logs_dir = logs_dir

    def resolve(self, job_id: str) -> Path:
        """Return the output log path for ``job_id``.

        Raises FileNotFoundError when no log exists yet.
        """
        shortcut = self._safe_shortcut(job_id)
        if shortcut is not None:
            return shortcut

        if not self.logs_dir.is_dir():
            raise FileNotFoundError(
                "Codex output directory not found yet; no jobs have written output logs."
            )

        prefix = f"msg{job_id}-"
        try:
            candidates = [
                name
                for name in os.listdir(self.logs_dir)
                if name.startswith(prefix) and name.endswith(".jsonl")
            ]
        except OSError as exc:
            raise FileNotFoundError(f"Codex output directory not readable: {exc}") from exc

        if not candidates:
            raise FileNotFoundError(f"No Codex output log found for message_id {job_id}.")

        # Timestamped names sort chronologically.
        return self.logs_dir / max(candidates)

    def read_recent(self, job_id: str, tail: int | str | None = DEFAULT_TAIL_LINES) -> tuple[Path, list[str]]:
        """Resolve the job's log and return its last ``tail`` non-empty lines."""
        path = self.resolve(job_id)
        safe_tail = clamp(tail, MIN_TAIL_LINES, MAX_OUTPUT_TAIL_LINES, DEFAULT_TAIL_LINES)
        return path, read_tail_lines(path, safe_tail)

    def _safe_shortcut(self, job_id: str) -> Path | None:
        shortcut = self.logs_dir / latest_shortcut_name(job_id)
        if not shortcut.is_symlink():
            return shortcut if shortcut.is_file() else None

        try:
            target = shortcut.resolve(strict=True)
            logs_root = self.logs_dir.resolve(strict=True)
        except (OSError, RuntimeError):
            logger.warning("Ignoring dangling output shortcut %s", shortcut)
            return None

        if not _is_within(target, logs_root) or not target.is_file():
            logger.warning("Ignoring output shortcut %s pointing outside %s", shortcut, logs_root)
            return None
        return shortcut


class GatewayLogResolver:
    """Find the gateway's current log file (the most recently modified match)."""

    def __init__(self, log_glob: str):
        self.log_glob = log_glob

    def resolve(self) -> Path:
        newest: tuple[float, str] | None = None
        for candidate in glob.glob(self.log_glob):
            try:
                mtime = os.stat(candidate).st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest[0]:
                newest = (mtime, candidate)

        if newest is None:
            raise FileNotFoundError(f"Gateway log file not found (looked for {self.log_glob}).")
        return Path(newest[1])

    def read_recent(self, tail: int | str | None = DEFAULT_TAIL_LINES) -> list[str]:
        path = self.resolve()
        safe_tail = clamp(tail, MIN_TAIL_LINES, MAX_GATEWAY_TAIL_LINES, DEFAULT_TAIL_LINES)
        return read_tail_lines(path, safe_tail)
