"""Reader for the append-only action audit log (``actions.ndjson``)."""

from __future__ import annotations

import logging
from pathlib import Path

from ..utils import iter_lines_reversed, parse_json_object
from .job_ids import job_id_from_event
from .runtime import clamp

logger = logging.getLogger(__name__)

MAX_RECENT_EVENTS = 2000
DEFAULT_RECENT_EVENTS = 200
MAX_JOB_EVENTS = 5000
DEFAULT_JOB_EVENTS = 500


class AuditLogReader:
    """Read the most recent well-formed events of the audit log.

    One JSON object per line, in append (and therefore causal) order. Lines
    that are blank, truncated, corrupt, or not JSON objects are skipped. The
    file is read from the end, so only the requested tail is decoded.
    """

    def __init__(self, path: Path):
        self.path = path

    def recent(self, limit: int | str | None = DEFAULT_RECENT_EVENTS) -> list[dict]:
        """Return up to ``limit`` most recent events, oldest first."""
        safe_limit = clamp(limit, 1, MAX_RECENT_EVENTS, DEFAULT_RECENT_EVENTS)
        return self._read_tail(safe_limit)

    def events_for_job(self, job_id: str, limit: int | str | None = DEFAULT_JOB_EVENTS) -> list[dict]:
        """Return recent events that refer to ``job_id``, oldest first.

        ``limit`` bounds how far back the log is scanned, not the number of
        matches.
        """
        safe_limit = clamp(limit, 1, MAX_JOB_EVENTS, DEFAULT_JOB_EVENTS)
        return [e for e in self._read_tail(safe_limit) if job_id_from_event(e) == job_id]

    def _read_tail(self, limit: int) -> list[dict]:
        events: list[dict] = []
        skipped = 0
        try:
            for line in iter_lines_reversed(self.path):
                if not line.strip():
                    continue
                event = parse_json_object(line)
                if event is None:
                    skipped += 1
                    continue
                events.append(event)
                if len(events) >= limit:
                    break
        except FileNotFoundError:
            logger.debug("Audit log %s does not exist yet", self.path)
            return []
        except OSError as exc:
            logger.warning("Failed to read audit log %s: %s", self.path, exc)
            return []

        if skipped:
            logger.debug("Skipped %d malformed audit lines in %s", skipped, self.path)

        events.reverse()
        return events
