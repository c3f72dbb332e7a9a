"""Tests for stream-json parsing and activity summaries."""
import json

import pytest

from nitpix.core.stream_parser import StreamJsonParser, extract_activities, summarize_tool
from nitpix.models.task import ActivityType


class TestStreamJsonParser:
    """Test cases for StreamJsonParser."""

    def test_records_split_across_chunks(self):
        parser = StreamJsonParser()
        line = json.dumps({"type": "assistant", "n": 1}) + "\n"

        assert parser.feed(line[:10].encode()) == []
        assert parser.feed(line[10:].encode()) == [{"type": "assistant", "n": 1}]

    def test_multiple_records_in_one_chunk(self):
        parser = StreamJsonParser()
        records = parser.feed('{"a": 1}\n{"b": 2}\n{"c":')

        assert records == [{"a": 1}, {"b": 2}]
        assert parser.feed(" 3}\n") == [{"c": 3}]

    def test_flush_returns_trailing_record(self):
        parser = StreamJsonParser()
        assert parser.feed('{"type": "result"}') == []
        assert parser.flush() == [{"type": "result"}]
        assert parser.flush() == []

    def test_invalid_lines_are_logged(self, caplog):
        parser = StreamJsonParser()
        caplog.set_level("INFO")

        assert parser.feed("Warming up...\n\n[1, 2]\n") == []

        assert parser.invalid_lines == ["Warming up..."]
        assert "[agent] Warming up..." in caplog.text

    def test_multibyte_characters(self):
        parser = StreamJsonParser()
        data = (json.dumps({"text": "héllo"}, ensure_ascii=False) + "\n").encode("utf-8")

        assert parser.feed(data) == [{"text": "héllo"}]


@pytest.mark.parametrize("name,tool_input,expected", [
    ("Read", {"file_path": "src/App.tsx"}, "Reading src/App.tsx"),
    ("Edit", {"file_path": "src/App.tsx"}, "Editing src/App.tsx"),
    ("Write", {"file_path": "src/new.css"}, "Writing src/new.css"),
    ("Glob", {"pattern": "**/*.tsx"}, "Searching for **/*.tsx"),
    ("Grep", {"pattern": "Button"}, 'Searching for "Button"'),
    ("Bash", {"command": "npm test"}, "Running npm test"),
    ("WebFetch", {"url": "https://example.com"}, "Using WebFetch"),
])
def test_summarize_tool(name, tool_input, expected):
    assert summarize_tool(name, tool_input) == expected


def test_summarize_long_command_is_truncated():
    summary = summarize_tool("Bash", {"command": "x" * 100})
    assert summary == "Running " + "x" * 60


class TestExtractActivities:
    """Test cases for extract_activities."""

    def test_assistant_tool_use_and_text(self):
        record = {
            "type": "assistant",
            "message": {"content": [
                {"type": "text", "text": "Let me look at the header component."},
                {"type": "tool_use", "name": "Read", "input": {"file_path": "src/Header.tsx"}},
            ]},
        }

        assert extract_activities(record) == [
            (ActivityType.TEXT, "Let me look at the header component."),
            (ActivityType.TOOL_START, "Reading src/Header.tsx"),
        ]

    def test_long_text_is_truncated(self):
        record = {"type": "assistant", "message": {"content": [{"type": "text", "text": "a" * 120}]}}

        [(kind, summary)] = extract_activities(record)
        assert kind == ActivityType.TEXT
        assert summary == "a" * 80 + "..."

    def test_result_with_cost_and_turns(self):
        record = {"type": "result", "subtype": "success", "total_cost_usd": 0.1234, "num_turns": 4}
        assert extract_activities(record) == [(ActivityType.RESULT, "Complete ($0.123, 4 turns)")]

    def test_result_without_details(self):
        assert extract_activities({"type": "result"}) == [(ActivityType.RESULT, "Complete")]

    def test_error_result(self):
        record = {"type": "result", "subtype": "error_max_turns", "num_turns": 25}

        [(kind, summary)] = extract_activities(record)
        assert kind == ActivityType.ERROR
        assert "error max turns" in summary

    def test_tool_error(self):
        record = {
            "type": "user",
            "message": {"content": [
                {"type": "tool_result", "is_error": True, "content": "File not found"},
                {"type": "tool_result", "content": "ok"},
            ]},
        }
        assert extract_activities(record) == [(ActivityType.ERROR, "Tool error: File not found")]

    def test_other_records_are_ignored(self):
        assert extract_activities({"type": "system", "subtype": "init"}) == []
        assert extract_activities({"type": "assistant"}) == []
