"""Read the agent CLI's account limits from its interactive ``/status`` screen.

The CLI only renders ``/status`` in an interactive terminal, so it is run
under a pseudo-terminal and driven with a few timed keystrokes.
"""

from __future__ import annotations

import logging
import os
import pty
import re
import select
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_ANSI = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
_MODEL = re.compile(r"\bModel:\s*(.+)$", re.MULTILINE)
_ACCOUNT = re.compile(r"\bAccount:\s*(.+)$", re.MULTILINE)
_FIVE_HOUR = re.compile(r"\b5h\s+limit:\s*.*?(\d+)%\s+left\s*\(resets\s*([^)]+)\)", re.IGNORECASE)
_WEEKLY = re.compile(r"\bWeekly\s+limit:\s*.*?(\d+)%\s+left\s*\(resets\s*([^)]+)\)", re.IGNORECASE)

CURSOR_QUERIES = ("\x1b[6n", "\x1b[?6n")
CURSOR_REPLY = b"\x1b[1;1R"
FIRST_STATUS_DELAY = 1.2
RETRY_STATUS_DELAY = 4.2
QUIT_DELAY = 0.25
MAX_BUFFER_CHARS = 300_000
KEEP_BUFFER_CHARS = 200_000


@dataclass
class LimitStatus:
    left_percent: int
    resets: str

    def to_dict(self) -> dict:
        return {"leftPercent": self.left_percent, "resets": self.resets}


@dataclass
class AgentStatus:
    model: str | None = None
    account: str | None = None
    five_hour: LimitStatus | None = None
    weekly: LimitStatus | None = None

    @property
    def has_limits(self) -> bool:
        return self.five_hour is not None and self.weekly is not None

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "account": self.account,
            "fiveHour": self.five_hour.to_dict() if self.five_hour else None,
            "weekly": self.weekly.to_dict() if self.weekly else None,
        }


def strip_ansi(text: str) -> str:
    return _ANSI.sub("", text)


def parse_agent_status(text: str) -> AgentStatus:
    """Extract model, account and limit lines from raw terminal output."""
    clean = strip_ansi(text)
    status = AgentStatus()

    if match := _MODEL.search(clean):
        status.model = match.group(1).strip() or None
    if match := _ACCOUNT.search(clean):
        status.account = match.group(1).strip() or None
    if match := _FIVE_HOUR.search(clean):
        status.five_hour = LimitStatus(int(match.group(1)), match.group(2).strip())
    if match := _WEEKLY.search(clean):
        status.weekly = LimitStatus(int(match.group(1)), match.group(2).strip())
    return status


class AgentStatusProbe:
    """Run the agent CLI in a pseudo-terminal and scrape ``/status``."""

    def __init__(self, command: tuple[str, ...], cwd: Path | None = None):
        self.command = command
        self.cwd = cwd

    def run(self, timeout: float = 20.0) -> AgentStatus:
        """Return the parsed status.

        Raises TimeoutError if the limits never render and RuntimeError if
        the CLI exits without printing them.
        """
        master, slave = pty.openpty()
        try:
            proc = subprocess.Popen(
                list(self.command),
                stdin=slave,
                stdout=slave,
                stderr=slave,
                cwd=self.cwd,
                env={**os.environ, "TERM": "xterm-256color", "COLUMNS": "120", "LINES": "40"},
                start_new_session=True,
            )
        except OSError as exc:
            os.close(master)
            os.close(slave)
            raise RuntimeError(f"Failed to start {self.command[0]}: {exc}") from exc
        os.close(slave)

        try:
            buffer = self._converse(master, proc, timeout)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            os.close(master)

        status = parse_agent_status(buffer)
        if not status.has_limits:
            raise RuntimeError("Could not parse /status output")
        return status

    def _converse(self, master: int, proc: subprocess.Popen, timeout: float) -> str:
        started = time.monotonic()
        buffer = ""
        sent_first = sent_retry = False
        quit_at: float | None = None

        while True:
            elapsed = time.monotonic() - started
            if elapsed > timeout:
                _write(master, b"/quit\r")
                raise TimeoutError("Timed out running codex /status")

            if not sent_first and elapsed >= FIRST_STATUS_DELAY:
                _write(master, b"/status\r")
                sent_first = True
            if not sent_retry and elapsed >= RETRY_STATUS_DELAY:
                if "Weekly limit" not in strip_ansi(buffer):
                    _write(master, b"/status\r")
                sent_retry = True
            if quit_at is not None and elapsed >= quit_at:
                _write(master, b"/quit\r")
                quit_at = float("inf")

            ready, _, _ = select.select([master], [], [], 0.1)
            if ready:
                try:
                    chunk = os.read(master, 65536)
                except OSError:
                    # EIO once the child closes its side of the terminal.
                    return buffer
                if not chunk:
                    return buffer
                text = chunk.decode("utf-8", errors="replace")
                buffer += text
                if len(buffer) > MAX_BUFFER_CHARS:
                    buffer = buffer[-KEEP_BUFFER_CHARS:]
                if any(query in text for query in CURSOR_QUERIES):
                    _write(master, CURSOR_REPLY)
                clean = strip_ansi(buffer)
                if quit_at is None and "5h limit" in clean and "Weekly limit" in clean:
                    quit_at = elapsed + QUIT_DELAY
            elif proc.poll() is not None:
                return buffer


def _write(fd: int, data: bytes) -> None:
    try:
        os.write(fd, data)
    except OSError as exc:
        logger.debug("Write to status terminal failed: %s", exc)
