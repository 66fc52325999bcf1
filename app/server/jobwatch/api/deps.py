"""Request dependencies shared by the route modules.

Routes receive their collaborators through FastAPI dependencies so tests
can swap paths or the process lister via ``app.dependency_overrides``.
"""

from collections.abc import Callable

from fastapi import Depends

from src.core.audit import AuditLogReader
from src.core.jobs import JobCorrelator
from src.core.output_logs import GatewayLogResolver, OutputLogResolver
from src.core.processes import ProcessSnapshot, list_agent_processes
from src.core.runtime import RuntimePaths
from src.core.usage import UsageAggregator


def get_paths() -> RuntimePaths:
    """Resolve paths per request; environment changes apply without restart."""
    return RuntimePaths.from_env()


def get_process_lister() -> Callable[[], ProcessSnapshot]:
    return list_agent_processes


def get_audit_reader(paths: RuntimePaths = Depends(get_paths)) -> AuditLogReader:
    return AuditLogReader(paths.actions_log)


def get_correlator(
    audit_reader: AuditLogReader = Depends(get_audit_reader),
    process_lister: Callable[[], ProcessSnapshot] = Depends(get_process_lister),
) -> JobCorrelator:
    return JobCorrelator(audit_reader, process_lister)


def get_output_resolver(paths: RuntimePaths = Depends(get_paths)) -> OutputLogResolver:
    return OutputLogResolver(paths.codex_logs_dir)


def get_gateway_resolver(paths: RuntimePaths = Depends(get_paths)) -> GatewayLogResolver:
    return GatewayLogResolver(paths.gateway_log_glob)


def get_usage_aggregator(paths: RuntimePaths = Depends(get_paths)) -> UsageAggregator:
    return UsageAggregator(paths.codex_logs_dir)
