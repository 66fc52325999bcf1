"""Job correlation across the process table and the audit log.

Active jobs come from live processes grouped by their embedded job id.
Recent jobs come from folding ``start``/``end`` audit events by job id, with
liveness taken from the same process snapshot. Nothing is cached: every
call recomputes from the sources.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from ..utils import parse_iso
from .audit import AuditLogReader
from .job_ids import JOB_ID_PATTERN, extract_job_id, job_id_from_event, job_id_sort_key
from .processes import Process, ProcessSnapshot, list_agent_processes
from .runtime import clamp

logger = logging.getLogger(__name__)

ACTIVE_EVENT_SCAN = 1000
RECENT_EVENT_SCAN = 2000
MAX_RECENT_JOBS = 200
DEFAULT_RECENT_JOBS = 50

_EXEC_INVOCATION = re.compile(r"\bcodex\b.*\bexec\b")

JobStatus = Literal["running", "ok", "error", "unknown"]


@dataclass
class ActiveJob:
    """A job with at least one live process."""

    job_id: str
    pids: list[int] = field(default_factory=list)
    started_at: str | None = None
    elapsed: str | None = None
    command: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {"messageId": self.job_id, "pids": list(self.pids)}
        if self.started_at is not None:
            payload["startedAt"] = self.started_at
        if self.elapsed is not None:
            payload["etime"] = self.elapsed
        if self.command is not None:
            payload["cmd"] = self.command
        return payload


@dataclass
class ActiveJobsResult:
    jobs: list[ActiveJob]
    warning: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {"jobs": [job.to_dict() for job in self.jobs]}
        if self.warning:
            payload["warning"] = self.warning
        return payload


@dataclass
class RecentJob:
    """A job reconstructed from its audit events."""

    job_id: str
    status: JobStatus = "unknown"
    started_at: str | None = None
    ended_at: str | None = None
    exit_code: int | None = None
    duration_seconds: float | None = None
    actor: str | None = None
    source: str | None = None
    run_log: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {"messageId": self.job_id}
        optional = {
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "exitCode": self.exit_code,
            "durationSec": self.duration_seconds,
            "actor": self.actor,
            "source": self.source,
            "runLog": self.run_log,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        payload["status"] = self.status
        return payload


def group_processes_by_job(processes: list[Process]) -> dict[str, list[Process]]:
    """Group processes by embedded job id, dropping unrelated ones and duplicate pids."""
    grouped: dict[str, list[Process]] = {}
    for process in processes:
        job_id = extract_job_id(process.command)
        if job_id is None:
            continue
        members = grouped.setdefault(job_id, [])
        # ps can list the same pid twice when a process execs mid-listing.
        if not any(existing.pid == process.pid for existing in members):
            members.append(process)
    return grouped


def pick_primary_process(processes: list[Process]) -> Process:
    """Choose the process that represents a job in summaries.

    Preference: the user-facing invocation carrying the job-id token, then
    the ``codex ... exec`` runner, then whatever came first.
    """
    for process in processes:
        if JOB_ID_PATTERN.search(process.command):
            return process
    for process in processes:
        if _EXEC_INVOCATION.search(process.command):
            return process
    return processes[0]


def find_started_at(events: list[dict], job_id: str) -> str | None:
    """Timestamp of the most recent ``start`` event for ``job_id``."""
    for event in reversed(events):
        if event.get("event") != "start":
            continue
        if extract_job_id(event.get("args")) == job_id:
            ts = event.get("ts")
            return ts if isinstance(ts, str) else None
    return None


def _optional_str(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _conflicts(job: RecentJob, event: dict) -> bool:
    """True when an end event names a different source or actor than the job."""
    for attr in ("source", "actor"):
        theirs = _optional_str(event.get(attr))
        ours = getattr(job, attr)
        if theirs and ours and theirs != ours:
            return True
    return False


def fold_recent_jobs(events: list[dict]) -> dict[str, RecentJob]:
    """Fold audit events into one RecentJob per job id, in first-seen order.

    ``start`` events set the start fields and ``end`` events the end fields.
    An ``end`` event that carries no job id closes the most recent job that
    is still open and whose source/actor do not contradict it; end events
    are written by the same runner right after the job exits, so the nearest
    open start is the job that ended.
    """
    jobs: dict[str, RecentJob] = {}
    open_jobs: list[str] = []

    for event in events:
        kind = event.get("event")
        job_id = job_id_from_event(event)

        if job_id is None and kind == "end":
            job_id = next(
                (jid for jid in reversed(open_jobs) if not _conflicts(jobs[jid], event)),
                None,
            )
        if job_id is None:
            continue

        job = jobs.setdefault(job_id, RecentJob(job_id=job_id))

        if kind == "start":
            ts = event.get("ts")
            if isinstance(ts, str) and ts:
                job.started_at = ts
            job.actor = _optional_str(event.get("actor")) or job.actor
            job.source = _optional_str(event.get("source")) or job.source
            run_log = event.get("run_log")
            if isinstance(run_log, str) and run_log:
                job.run_log = run_log
            if job_id in open_jobs:
                open_jobs.remove(job_id)
            open_jobs.append(job_id)

        elif kind == "end":
            ts = event.get("ts")
            if isinstance(ts, str) and ts:
                job.ended_at = ts
            exit_code = event.get("exit_code")
            if isinstance(exit_code, int) and not isinstance(exit_code, bool):
                job.exit_code = exit_code
            duration = event.get("duration_sec")
            if isinstance(duration, (int, float)) and not isinstance(duration, bool):
                job.duration_seconds = duration
            if job_id in open_jobs:
                open_jobs.remove(job_id)

    return jobs


def derive_status(job: RecentJob, live_job_ids: set[str]) -> JobStatus:
    if job.job_id in live_job_ids:
        return "running"
    if job.exit_code is not None:
        return "ok" if job.exit_code == 0 else "error"
    # No end event and no live process: crashed or log truncated, indistinguishable here.
    return "unknown"


def _recent_sort_key(job: RecentJob):
    started = parse_iso(job.started_at)
    has_start = started is not None
    return (
        has_start,
        started.timestamp() if started else 0.0,
        job_id_sort_key(job.job_id),
    )


class JobCorrelator:
    """Join live processes and audit events on the embedded job id."""

    def __init__(
        self,
        audit_reader: AuditLogReader,
        process_lister: Callable[[], ProcessSnapshot] = list_agent_processes,
    ):
        self.audit_reader = audit_reader
        self.process_lister = process_lister

    def list_active_jobs(self) -> ActiveJobsResult:
        """Jobs backed by at least one live process, newest job id first."""
        events = self.audit_reader.recent(ACTIVE_EVENT_SCAN)
        snapshot = self.process_lister()
        if not snapshot.ok:
            return ActiveJobsResult(jobs=[], warning=snapshot.error or "Process listing failed.")

        jobs: list[ActiveJob] = []
        for job_id, processes in group_processes_by_job(snapshot.processes).items():
            primary = pick_primary_process(processes)
            jobs.append(
                ActiveJob(
                    job_id=job_id,
                    pids=[p.pid for p in processes],
                    started_at=find_started_at(events, job_id),
                    elapsed=primary.elapsed,
                    command=primary.command,
                )
            )

        jobs.sort(key=lambda job: job_id_sort_key(job.job_id), reverse=True)
        return ActiveJobsResult(jobs=jobs)

    def list_recent_jobs(self, limit: int | str | None = DEFAULT_RECENT_JOBS) -> list[RecentJob]:
        """Recent jobs from the audit log, newest start first."""
        safe_limit = clamp(limit, 1, MAX_RECENT_JOBS, DEFAULT_RECENT_JOBS)
        events = self.audit_reader.recent(RECENT_EVENT_SCAN)

        snapshot = self.process_lister()
        live_job_ids: set[str] = set()
        if snapshot.ok:
            live_job_ids = set(group_processes_by_job(snapshot.processes))
        else:
            logger.warning("Recent jobs computed without liveness: %s", snapshot.error)

        jobs = list(fold_recent_jobs(events).values())
        for job in jobs:
            job.status = derive_status(job, live_job_ids)

        jobs.sort(key=_recent_sort_key, reverse=True)
        return jobs[:safe_limit]
