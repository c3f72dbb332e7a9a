"""Helpers for parsing the agent's stream-json output format."""

import json
import logging
from typing import Any, Dict, List, Tuple, Union

from nitpix.core.constants import COMMAND_SUMMARY_LENGTH, TEXT_SUMMARY_LENGTH
from nitpix.models.task import ActivityType

logger = logging.getLogger(__name__)

Activity = Tuple[ActivityType, str]


class StreamJsonParser:
    """Incremental decoder for newline-delimited JSON.

    Chunks may split a record anywhere; the trailing partial line is kept
    until the next chunk (or ``flush``) completes it.
    """

    def __init__(self):
        self._buffer = ""
        self.invalid_lines: List[str] = []

    def feed(self, chunk: Union[bytes, str]) -> List[Dict[str, Any]]:
        """Add a chunk and return every record completed by it."""
        if isinstance(chunk, bytes):
            chunk = chunk.decode('utf-8', errors='replace')
        self._buffer += chunk
        lines = self._buffer.split('\n')
        self._buffer = lines.pop()
        return self._decode(lines)

    def flush(self) -> List[Dict[str, Any]]:
        """Decode whatever is left in the buffer at end of stream."""
        remaining, self._buffer = self._buffer, ""
        return self._decode([remaining])

    def _decode(self, lines: List[str]) -> List[Dict[str, Any]]:
        records = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                self.invalid_lines.append(line)
                logger.info(f"[agent] {line}")
                continue
            if isinstance(record, dict):
                records.append(record)
        return records


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def summarize_tool(name: str, tool_input: Dict[str, Any]) -> str:
    """One-line description of a tool invocation."""
    if name == "Read":
        return f"Reading {tool_input.get('file_path') or 'file'}"
    if name == "Edit" or name == "MultiEdit":
        return f"Editing {tool_input.get('file_path') or 'file'}"
    if name == "Write":
        return f"Writing {tool_input.get('file_path') or 'file'}"
    if name == "Glob":
        return f"Searching for {tool_input.get('pattern') or 'files'}"
    if name == "Grep":
        return f"Searching for \"{tool_input.get('pattern') or '...'}\""
    if name == "Bash":
        command = tool_input.get('command')
        return f"Running {command[:COMMAND_SUMMARY_LENGTH]}" if command else "Running command"
    return f"Using {name}"


def _result_summary(record: Dict[str, Any]) -> Activity:
    parts = []
    cost = record.get("total_cost_usd", record.get("cost_usd"))
    if cost is not None:
        parts.append(f"${cost:.3f}")
    if record.get("num_turns") is not None:
        parts.append(f"{record['num_turns']} turns")

    subtype = record.get("subtype") or ""
    if record.get("is_error") or subtype.startswith("error"):
        label = subtype.replace("_", " ") if subtype else "error"
        return ActivityType.ERROR, f"Failed: {label}" + (f" ({', '.join(parts)})" if parts else "")
    return ActivityType.RESULT, f"Complete ({', '.join(parts)})" if parts else "Complete"


def extract_activities(record: Dict[str, Any]) -> List[Activity]:
    """Turn one stream-json record into zero or more activity entries."""
    activities: List[Activity] = []
    record_type = record.get("type")

    if record_type == "assistant":
        content = (record.get("message") or {}).get("content") or []
        for block in content:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "tool_use" and block.get("name"):
                activities.append(
                    (ActivityType.TOOL_START, summarize_tool(block["name"], block.get("input") or {}))
                )
            elif block.get("type") == "text" and block.get("text"):
                text = block["text"].strip()
                if text:
                    activities.append((ActivityType.TEXT, _truncate(text, TEXT_SUMMARY_LENGTH)))

    elif record_type == "user":
        # Tool results; only failures are worth reporting
        content = (record.get("message") or {}).get("content") or []
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_result" and block.get("is_error"):
                detail = block.get("content")
                if isinstance(detail, list):
                    detail = " ".join(
                        part.get("text", "") for part in detail if isinstance(part, dict)
                    )
                detail = str(detail or "").strip()
                summary = f"Tool error: {_truncate(detail, TEXT_SUMMARY_LENGTH)}" if detail else "Tool error"
                activities.append((ActivityType.ERROR, summary))

    elif record_type == "result":
        activities.append(_result_summary(record))

    return activities
