"""Token usage aggregation over rolling windows of agent output logs."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..utils import iter_lines_reversed, parse_json_object, to_iso_z, utc_now

logger = logging.getLogger(__name__)

SHORT_WINDOW = timedelta(hours=5)
LONG_WINDOW = timedelta(days=7)
MAX_SCANNED_FILES = 2000
USAGE_TAIL_LINES = 120

# msg49-20260207T065846-0800.jsonl, msg20-20260207T050015Z.jsonl
_LOG_NAME = re.compile(r"^msg\d+-(\d{8})T(\d{6})(Z|[+-]\d{4})\.jsonl$")


@dataclass
class UsageWindow:
    """Additive token totals for one time window."""

    since: datetime
    until: datetime
    runs: int = 0
    input_tokens: int = 0
    cached_input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def add(self, usage: dict) -> None:
        input_tokens = _count(usage.get("input_tokens"))
        output_tokens = _count(usage.get("output_tokens"))
        self.runs += 1
        self.input_tokens += input_tokens
        self.cached_input_tokens += _count(usage.get("cached_input_tokens"))
        self.output_tokens += output_tokens
        self.total_tokens += input_tokens + output_tokens

    def contains(self, ts: datetime) -> bool:
        return ts >= self.since

    def to_dict(self) -> dict:
        return {
            "runs": self.runs,
            "inputTokens": self.input_tokens,
            "cachedInputTokens": self.cached_input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "since": to_iso_z(self.since),
            "until": to_iso_z(self.until),
        }


@dataclass
class UsageSummary:
    last5h: UsageWindow
    last7d: UsageWindow
    scanned_files: int = 0
    newest_log_at: datetime | None = None
    warning: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {
            "last5h": self.last5h.to_dict(),
            "last7d": self.last7d.to_dict(),
            "scannedFiles": self.scanned_files,
        }
        if self.newest_log_at is not None:
            payload["newestLogAt"] = to_iso_z(self.newest_log_at)
        if self.warning:
            payload["warning"] = self.warning
        return payload


@dataclass(order=True)
class _Candidate:
    timestamp: datetime
    path: Path = field(compare=False)


def _count(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def parse_log_timestamp(name: str) -> datetime | None:
    """Timestamp embedded in an output log file name, or None."""
    match = _LOG_NAME.match(name)
    if not match:
        return None
    date_part, time_part, zone = match.groups()
    suffix = "+0000" if zone == "Z" else zone
    try:
        return datetime.strptime(f"{date_part}T{time_part}{suffix}", "%Y%m%dT%H%M%S%z")
    except ValueError:
        return None


def read_last_usage(path: Path, tail_lines: int = USAGE_TAIL_LINES) -> dict | None:
    """Return the usage payload of the last ``turn.completed`` record in the tail.

    Raises OSError if the file cannot be read.
    """
    seen = 0
    for line in iter_lines_reversed(path):
        if not line.strip():
            continue
        seen += 1
        if seen > tail_lines:
            break
        if "turn.completed" not in line or "usage" not in line:
            continue
        record = parse_json_object(line)
        if record is None or record.get("type") != "turn.completed":
            continue
        usage = record.get("usage")
        if isinstance(usage, dict):
            return usage
    return None


class UsageAggregator:
    """Sum token usage from recent output logs into 5h and 7d windows.

    Only the tail of each log is read; the last ``turn.completed`` record of
    a run carries its usage. A file counts once per window it falls in.
    """

    def __init__(
        self,
        logs_dir: Path,
        max_files: int = MAX_SCANNED_FILES,
        tail_lines: int = USAGE_TAIL_LINES,
    ):
        self.logs_dir = logs_dir
        self.max_files = max_files
        self.tail_lines = tail_lines

    def summarize(self, now: datetime | None = None) -> UsageSummary:
        until = now or utc_now()
        if until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        summary = UsageSummary(
            last5h=UsageWindow(since=until - SHORT_WINDOW, until=until),
            last7d=UsageWindow(since=until - LONG_WINDOW, until=until),
        )

        try:
            names = os.listdir(self.logs_dir)
        except OSError as exc:
            summary.warning = f"Codex logs directory not readable: {exc}"
            return summary

        candidates = self._candidates(names, summary.last7d.since)
        if len(candidates) > self.max_files:
            summary.warning = (
                f"Only scanned newest {self.max_files} Codex logs (found {len(candidates)})."
            )

        for candidate in candidates[: self.max_files]:
            summary.scanned_files += 1
            if summary.newest_log_at is None or candidate.timestamp > summary.newest_log_at:
                summary.newest_log_at = candidate.timestamp

            try:
                usage = read_last_usage(candidate.path, self.tail_lines)
            except OSError as exc:
                logger.debug("Skipping unreadable log %s: %s", candidate.path, exc)
                continue
            if usage is None:
                continue

            if summary.last7d.contains(candidate.timestamp):
                summary.last7d.add(usage)
            if summary.last5h.contains(candidate.timestamp):
                summary.last5h.add(usage)

        return summary

    def _candidates(self, names: list[str], oldest: datetime) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        for name in names:
            if not name.endswith(".jsonl") or name.endswith(".latest.jsonl"):
                continue
            path = self.logs_dir / name
            timestamp = parse_log_timestamp(name)
            if timestamp is None:
                try:
                    timestamp = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                except OSError:
                    continue
            # Old files are dropped before any content is read.
            if timestamp < oldest:
                continue
            candidates.append(_Candidate(timestamp=timestamp, path=path))

        candidates.sort(reverse=True)
        return candidates
