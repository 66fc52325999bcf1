"""Job identifier extraction.

Jobs are never referenced by a foreign key. The job runner embeds a
``[message_id: <digits>]`` token in the prompt it passes to the agent, and
that token shows up in process command lines and in audit event arguments.
Every correlation in the console goes through the two functions below.
"""

from __future__ import annotations

import json
import re
from typing import Any

JOB_ID_PATTERN = re.compile(r"\[message_id:\s*(\d+)\]")


def extract_job_id(value: Any) -> str | None:
    """Return the first embedded job id in ``value``, or None.

    Strings are searched as-is, lists are joined with spaces, anything else
    is searched in its JSON encoding.
    """
    if value is None:
        return None
    if isinstance(value, str):
        haystack = value
    elif isinstance(value, (list, tuple)):
        haystack = " ".join(str(part) for part in value)
    else:
        try:
            haystack = json.dumps(value)
        except (TypeError, ValueError):
            haystack = str(value)

    match = JOB_ID_PATTERN.search(haystack)
    return match.group(1) if match else None


def job_id_from_event(event: dict) -> str | None:
    """Return the job id an audit event refers to, if any.

    An explicit ``message_id`` string field wins over the arguments.
    """
    direct = event.get("message_id")
    if isinstance(direct, str) and direct:
        return direct
    return extract_job_id(event.get("args"))


def job_id_sort_key(job_id: str) -> tuple[int, int, str]:
    """Sort key ordering numeric ids numerically and others lexicographically.

    Use with ``reverse=True`` for newest-id-first ordering. Numeric ids sort
    after non-numeric ones in ascending order, i.e. before them when
    reversed.
    """
    try:
        return (1, int(job_id), "")
    except ValueError:
        return (0, 0, job_id)
