"""
Logs API route - the operator's RUNBOOK and TASKS documents.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.core.runtime import RuntimePaths
from src.core.workspace_docs import WorkspaceDocument, read_workspace_documents

from ..deps import get_paths

logger = logging.getLogger(__name__)

router = APIRouter()


class DocumentResponse(BaseModel):
    """One workspace markdown document with its modification time."""

    name: str
    path: str
    content: str
    updatedAt: str


class LogsResponse(BaseModel):
    runbook: DocumentResponse
    tasks: DocumentResponse


def _document(doc: WorkspaceDocument) -> DocumentResponse:
    return DocumentResponse(**doc.to_dict())


@router.get("/logs")
def get_logs(paths: RuntimePaths = Depends(get_paths)) -> LogsResponse:
    try:
        documents = read_workspace_documents(paths)
    except OSError as e:
        logger.warning("Failed to read workspace documents: %s", e)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return LogsResponse(
        runbook=_document(documents["runbook"]),
        tasks=_document(documents["tasks"]),
    )
