"""Core observability logic for jobwatch."""

from .agent_status import AgentStatus, AgentStatusProbe, LimitStatus, parse_agent_status
from .audit import AuditLogReader
from .job_ids import extract_job_id, job_id_from_event
from .jobs import ActiveJob, ActiveJobsResult, JobCorrelator, RecentJob
from .log_tail import LogFollower, TailEvent, wait_for_path
from .output_logs import GatewayLogResolver, OutputLogResolver
from .processes import Process, ProcessSnapshot, list_agent_processes, list_processes
from .runtime import RuntimePaths
from .timeline import (
    CommandItem,
    FileChangeEntry,
    FileChangeItem,
    RawItem,
    TextItem,
    Timeline,
    TimelineBuilder,
    TimelineSummary,
    TurnState,
    reconstruct,
    summarize,
    visible_items,
)
from .usage import UsageAggregator, UsageSummary, UsageWindow
from .workspace_docs import WorkspaceDocument, read_workspace_documents

__all__ = [
    "ActiveJob",
    "ActiveJobsResult",
    "AgentStatus",
    "AgentStatusProbe",
    "AuditLogReader",
    "CommandItem",
    "FileChangeEntry",
    "FileChangeItem",
    "GatewayLogResolver",
    "JobCorrelator",
    "LimitStatus",
    "LogFollower",
    "OutputLogResolver",
    "Process",
    "ProcessSnapshot",
    "RawItem",
    "RecentJob",
    "RuntimePaths",
    "TailEvent",
    "TextItem",
    "Timeline",
    "TimelineBuilder",
    "TimelineSummary",
    "TurnState",
    "UsageAggregator",
    "UsageSummary",
    "UsageWindow",
    "WorkspaceDocument",
    "extract_job_id",
    "job_id_from_event",
    "list_agent_processes",
    "list_processes",
    "parse_agent_status",
    "read_workspace_documents",
    "reconstruct",
    "summarize",
    "visible_items",
    "wait_for_path",
]
