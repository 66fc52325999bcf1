"""Operator documents kept in the agent workspace."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from ..utils import to_iso_z
from .runtime import RuntimePaths


@dataclass
class WorkspaceDocument:
    name: Literal["RUNBOOK", "TASKS"]
    path: Path
    content: str
    updated_at: datetime

    @classmethod
    def read(cls, name: Literal["RUNBOOK", "TASKS"], path: Path) -> "WorkspaceDocument":
        """Read a document; raises OSError if it is missing or unreadable."""
        stat = path.stat()
        return cls(
            name=name,
            path=path,
            content=path.read_text(encoding="utf-8"),
            updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": str(self.path),
            "content": self.content,
            "updatedAt": to_iso_z(self.updated_at),
        }


def read_workspace_documents(paths: RuntimePaths) -> dict[str, WorkspaceDocument]:
    return {
        "runbook": WorkspaceDocument.read("RUNBOOK", paths.runbook_path),
        "tasks": WorkspaceDocument.read("TASKS", paths.tasks_path),
    }
