"""Tests for output log and gateway log resolution."""

import os

import pytest

from src.core.output_logs import GatewayLogResolver, OutputLogResolver


@pytest.fixture
def logs_dir(temp_dir):
    path = temp_dir / "codex"
    path.mkdir()
    (path / "msg7-20260207T050015Z.jsonl").write_text('{"type":"turn.started"}\n')
    (path / "msg7-20260207T065846-0800.jsonl").write_text('{"type":"turn.completed"}\n')
    (path / "msg70-20260301T000000Z.jsonl").write_text("{}\n")
    return path


class TestOutputLogResolver:
    def test_missing_directory(self, temp_dir):
        with pytest.raises(FileNotFoundError, match="directory not found"):
            OutputLogResolver(temp_dir / "nope").resolve("7")

    def test_no_log_for_job(self, logs_dir):
        with pytest.raises(FileNotFoundError, match="message_id 8"):
            OutputLogResolver(logs_dir).resolve("8")

    def test_newest_timestamped_file_wins(self, logs_dir):
        resolved = OutputLogResolver(logs_dir).resolve("7")
        assert resolved.name == "msg7-20260207T065846-0800.jsonl"

    def test_regular_shortcut_file_is_used(self, logs_dir):
        shortcut = logs_dir / "msg7.latest.jsonl"
        shortcut.write_text("{}\n")

        assert OutputLogResolver(logs_dir).resolve("7") == shortcut

    def test_shortcut_inside_directory_is_used(self, logs_dir):
        shortcut = logs_dir / "msg7.latest.jsonl"
        os.symlink(logs_dir / "msg7-20260207T050015Z.jsonl", shortcut)

        assert OutputLogResolver(logs_dir).resolve("7") == shortcut

    def test_shortcut_outside_directory_is_ignored(self, logs_dir, temp_dir):
        outside = temp_dir / "elsewhere.jsonl"
        outside.write_text("{}\n")
        os.symlink(outside, logs_dir / "msg7.latest.jsonl")

        resolved = OutputLogResolver(logs_dir).resolve("7")

        assert resolved.name == "msg7-20260207T065846-0800.jsonl"

    def test_dangling_shortcut_is_ignored(self, logs_dir):
        os.symlink(logs_dir / "gone.jsonl", logs_dir / "msg7.latest.jsonl")

        resolved = OutputLogResolver(logs_dir).resolve("7")

        assert resolved.name == "msg7-20260207T065846-0800.jsonl"

    def test_read_recent_clamps_tail(self, temp_dir):
        logs_dir = temp_dir / "codex"
        logs_dir.mkdir()
        log = logs_dir / "msg3-20260101T000000Z.jsonl"
        log.write_text("".join(f"line {n}\r\n" for n in range(100)) + "\n\n")

        path, lines = OutputLogResolver(logs_dir).read_recent("3", tail=1)

        assert path == log
        assert len(lines) == 50
        assert lines[0] == "line 50"
        assert lines[-1] == "line 99"


class TestGatewayLogResolver:
    def test_not_found(self, temp_dir):
        resolver = GatewayLogResolver(str(temp_dir / "openclaw-*.log"))
        with pytest.raises(FileNotFoundError, match="Gateway log file not found"):
            resolver.resolve()

    def test_newest_by_mtime(self, temp_dir):
        older = temp_dir / "openclaw-2026-02-06.log"
        newer = temp_dir / "openclaw-2026-02-05.log"
        older.write_text("old\n")
        newer.write_text("new\n")
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))

        resolver = GatewayLogResolver(str(temp_dir / "openclaw-*.log"))

        assert resolver.resolve() == newer
        assert resolver.read_recent() == ["new"]
