"""Shared utilities for jobwatch."""

from .datetime_utils import epoch_ms, parse_iso, to_iso_z, utc_now
from .jsonl_parser import (
    clean_line,
    iter_lines_reversed,
    parse_json_line,
    parse_json_object,
    read_tail_lines,
)

__all__ = [
    "clean_line",
    "epoch_ms",
    "iter_lines_reversed",
    "parse_iso",
    "parse_json_line",
    "parse_json_object",
    "read_tail_lines",
    "to_iso_z",
    "utc_now",
]
