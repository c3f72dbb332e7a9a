from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from nitpix.core.constants import QUEUE_VERSION
from nitpix.models.task import (
    CreateTaskInput,
    QueueDocument,
    Task,
    TaskAttempt,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
)


def test_task_wire_names():
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    task = Task(
        id="abcdef12-0000-0000-0000-000000000000",
        created_at=now,
        updated_at=now,
        screenshot_path=".review/screenshots/x.png",
        page={"sourceFile": "src/App.tsx"},
        attempts=[TaskAttempt(retry_reason="nope", timestamp=now)],
    )

    data = task.to_json_dict()

    assert data["createdAt"] == "2024-03-01T12:00:00Z"
    assert data["screenshotPath"] == ".review/screenshots/x.png"
    assert data["page"] == {"component": "", "sourceFile": "src/App.tsx", "sourceLine": None}
    assert data["attempts"][0]["retryReason"] == "nope"
    assert data["status"] == "pending"
    assert task.short_id == "abcdef12"


def test_queue_document_parses_wire_json():
    raw = """{
        "version": 1,
        "lastUpdated": "2024-03-01T12:00:00.000Z",
        "items": [{
            "id": "t1", "createdAt": "2024-03-01T12:00:00.000Z",
            "updatedAt": "2024-03-01T12:00:00.000Z", "url": "http://localhost:3000/",
            "type": "element", "note": "bigger", "category": "bug", "priority": "high",
            "status": "review", "screenshotPath": ".review/screenshots/t1.png",
            "element": {"component": "Btn", "sourceFile": "src/Btn.tsx", "sourceLine": 3,
                        "selector": "button", "computedStyles": {"color": "red"}},
            "page": {"component": "Home", "sourceFile": "src/Home.tsx"},
            "agentNotes": "ok", "filesModified": ["src/Btn.tsx"], "attempts": []
        }]
    }"""

    document = QueueDocument.model_validate_json(raw)

    [task] = document.items
    assert task.priority == TaskPriority.HIGH
    assert task.status == TaskStatus.REVIEW
    assert task.element.computed_styles == {"color": "red"}
    assert task.files_modified == ["src/Btn.tsx"]


def test_new_queue_document_has_current_version():
    assert QueueDocument().version == QUEUE_VERSION


def test_task_update_keeps_only_supplied_fields():
    update = TaskUpdate.model_validate({"status": "review", "agentNotes": "x", "id": "evil", "createdAt": "y"})
    assert update.changes() == {"status": "review", "agent_notes": "x"}


def test_task_update_allows_clearing_fields():
    assert TaskUpdate(after_screenshot=None).changes() == {"after_screenshot": None}


def test_create_task_input_requires_note_and_page():
    with pytest.raises(ValidationError):
        CreateTaskInput.model_validate({"screenshot": "abc"})
