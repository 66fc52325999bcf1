"""Tolerant JSON-lines helpers for append-only logs.

Logs handled here are written by external agents while we read them, so the
last line may be partial and any line may be corrupt. Nothing in this module
raises on bad content; callers decide what a skipped line means.
"""

import json
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

DEFAULT_BLOCK_SIZE = 64 * 1024


def parse_json_line(line: str) -> Any | None:
    """Decode one line, returning None when it is blank or not valid JSON."""
    text = line.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def parse_json_object(line: str) -> dict | None:
    """Decode one line that must hold a JSON object."""
    value = parse_json_line(line)
    return value if isinstance(value, dict) else None


def clean_line(line: str) -> str:
    """Strip the trailing newline and carriage return of a physical line."""
    return line.rstrip("\n").rstrip("\r")


def iter_lines_reversed(path: Path, block_size: int = DEFAULT_BLOCK_SIZE) -> Iterator[str]:
    """Yield the lines of a file from last to first.

    Reads fixed-size blocks backwards from the end, so consuming only the
    tail of a large log costs roughly the size of that tail. Lines are
    decoded as UTF-8 with replacement and returned without line endings.
    Raises OSError if the file cannot be opened.
    """
    with open(path, "rb") as handle:
        handle.seek(0, os.SEEK_END)
        position = handle.tell()
        remainder = b""

        while position > 0:
            read_size = min(block_size, position)
            position -= read_size
            handle.seek(position)
            block = handle.read(read_size) + remainder
            parts = block.split(b"\n")
            # The first part may continue in the previous block.
            remainder = parts[0]
            for raw in reversed(parts[1:]):
                yield clean_line(raw.decode("utf-8", errors="replace"))

        yield clean_line(remainder.decode("utf-8", errors="replace"))


def read_tail_lines(path: Path, max_lines: int, keep_empty: bool = False) -> list[str]:
    """Return the last ``max_lines`` lines of a file in file order.

    Empty lines (after stripping the carriage return) are dropped and not
    counted unless ``keep_empty`` is set. Raises OSError if the file cannot
    be read.
    """
    if max_lines <= 0:
        return []

    collected: list[str] = []
    for line in iter_lines_reversed(path):
        if not keep_empty and not line.strip():
            continue
        collected.append(line)
        if len(collected) >= max_lines:
            break

    collected.reverse()
    return collected
