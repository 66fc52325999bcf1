"""Reconstruct a job's execution timeline from its JSON-lines output log.

The agent writes one JSON record per line. Two families matter:

- ``turn.started`` / ``turn.completed`` bracket a turn and are tracked as
  scalar state, not as timeline items.
- ``item.started`` / ``item.completed`` wrap an ``item`` payload with its
  own ``id`` and ``type``. Later records for the same id replace the stored
  item in place; command executions merge field by field instead.

Anything else is ignored. Lines that are not JSON objects are kept as raw
items so the operator still sees them in order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal, Union

from ..utils import parse_json_line

TERMINAL_COMMAND_STATUSES = frozenset({"completed", "failed", "declined"})


@dataclass
class RawItem:
    id: str
    text: str
    kind: Literal["raw"] = "raw"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.id, "text": self.text}


@dataclass
class TextItem:
    id: str
    role: Literal["agent", "reasoning"]
    text: str
    kind: Literal["text"] = "text"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.id, "role": self.role, "text": self.text}


@dataclass
class CommandItem:
    id: str
    command: str | None = None
    output: str | None = None
    exit_code: int | None = None
    status: str | None = None
    kind: Literal["command"] = "command"

    @property
    def is_finished(self) -> bool:
        return self.exit_code is not None or (self.status or "") in TERMINAL_COMMAND_STATUSES

    @property
    def failed(self) -> bool:
        return self.exit_code is not None and self.exit_code != 0

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "id": self.id,
            "command": self.command,
            "output": self.output,
            "exitCode": self.exit_code,
            "status": self.status,
        }


@dataclass
class FileChangeEntry:
    path: str
    kind: str | None = None


@dataclass
class FileChangeItem:
    id: str
    status: str | None = None
    changes: list[FileChangeEntry] = field(default_factory=list)
    kind: Literal["file_change"] = "file_change"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "id": self.id,
            "status": self.status,
            "changes": [{"path": c.path, "kind": c.kind} for c in self.changes],
        }


TimelineItem = Union[RawItem, TextItem, CommandItem, FileChangeItem]


@dataclass
class TurnState:
    status: Literal["idle", "started", "completed"] = "idle"
    output_tokens: int | None = None

    def to_dict(self) -> dict:
        return {"status": self.status, "outputTokens": self.output_tokens}


@dataclass
class Timeline:
    items: list[TimelineItem]
    turn: TurnState


@dataclass
class TimelineSummary:
    status_label: str
    current_step: CommandItem | None = None
    latest_error: CommandItem | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status_label,
            "currentStep": self.current_step.to_dict() if self.current_step else None,
            "latestError": self.latest_error.to_dict() if self.latest_error else None,
        }


def _str_or_none(value) -> str | None:
    return value if isinstance(value, str) else None


def _int_or_none(value) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class TimelineBuilder:
    """Incrementally fold output-log lines into a timeline.

    Items live in an insertion-ordered dict keyed by item id, so an update
    replaces the value without moving the item.
    """

    def __init__(self) -> None:
        self._items: dict[str, TimelineItem] = {}
        self._raw_seq = 0
        self.turn = TurnState()

    def feed(self, line: str) -> None:
        record = parse_json_line(line)
        if not isinstance(record, dict):
            self._raw_seq += 1
            item_id = f"raw_{self._raw_seq}"
            self._items[item_id] = RawItem(id=item_id, text=line)
            return

        record_type = record.get("type")
        if record_type == "turn.started":
            self.turn.status = "started"
        elif record_type == "turn.completed":
            self.turn.status = "completed"
            usage = record.get("usage")
            if isinstance(usage, dict):
                tokens = _int_or_none(usage.get("output_tokens"))
                if tokens is not None:
                    self.turn.output_tokens = tokens
        elif record_type in ("item.started", "item.completed"):
            payload = record.get("item")
            if isinstance(payload, dict):
                self._apply_item(payload)

    def _apply_item(self, payload: dict) -> None:
        item_id = _str_or_none(payload.get("id"))
        item_type = _str_or_none(payload.get("type"))
        if not item_id or not item_type:
            return

        if item_type in ("agent_message", "reasoning"):
            self._items[item_id] = TextItem(
                id=item_id,
                role="agent" if item_type == "agent_message" else "reasoning",
                text=_str_or_none(payload.get("text")) or "",
            )
        elif item_type == "file_change":
            changes = []
            raw_changes = payload.get("changes")
            for change in raw_changes if isinstance(raw_changes, list) else []:
                if not isinstance(change, dict):
                    continue
                path = _str_or_none(change.get("path"))
                if path:
                    changes.append(FileChangeEntry(path=path, kind=_str_or_none(change.get("kind"))))
            self._items[item_id] = FileChangeItem(
                id=item_id,
                status=_str_or_none(payload.get("status")),
                changes=changes,
            )
        elif item_type == "command_execution":
            previous = self._items.get(item_id)
            prev = previous if isinstance(previous, CommandItem) else CommandItem(id=item_id)
            command = _str_or_none(payload.get("command"))
            output = _str_or_none(payload.get("aggregated_output"))
            status = _str_or_none(payload.get("status"))
            exit_code = _int_or_none(payload.get("exit_code"))
            self._items[item_id] = CommandItem(
                id=item_id,
                command=command if command is not None else prev.command,
                output=output if output is not None else prev.output,
                status=status if status is not None else prev.status,
                exit_code=exit_code if exit_code is not None else prev.exit_code,
            )

    def build(self) -> Timeline:
        return Timeline(items=list(self._items.values()), turn=TurnState(**vars(self.turn)))


def reconstruct(lines: Iterable[str]) -> Timeline:
    """Fold a sequence of raw output-log lines into a timeline."""
    builder = TimelineBuilder()
    for line in lines:
        builder.feed(line)
    return builder.build()


def visible_items(items: list[TimelineItem], include_reasoning: bool = False) -> list[TimelineItem]:
    if include_reasoning:
        return list(items)
    return [i for i in items if not (isinstance(i, TextItem) and i.role == "reasoning")]


def summarize(timeline: Timeline, include_reasoning: bool = False) -> TimelineSummary:
    """Derive the overall status label, current step and latest error."""
    commands = [i for i in timeline.items if isinstance(i, CommandItem)]
    any_running = any(not c.is_finished for c in commands)
    any_failed = any(c.failed for c in commands)
    turn_done = timeline.turn.status == "completed"

    if any_running:
        label = "running"
    elif turn_done and any_failed:
        label = "completed (errors)"
    elif turn_done:
        label = "completed"
    elif any_failed:
        label = "stopped (errors)"
    else:
        label = "idle"

    current_step = next((c for c in reversed(commands) if c.exit_code is None), None)

    latest_error = None
    for item in reversed(visible_items(timeline.items, include_reasoning)):
        if isinstance(item, CommandItem) and item.failed:
            latest_error = item
            break

    return TimelineSummary(status_label=label, current_step=current_step, latest_error=latest_error)
