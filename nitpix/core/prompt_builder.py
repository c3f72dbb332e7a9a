"""Prompt construction for the coding agent."""

import json
import shlex
from pathlib import Path
from typing import Union

from nitpix.models.task import Task, TaskType


def default_update_command(project_root: Union[str, Path]) -> str:
    """Shell prefix the agent runs to update a task."""
    return f"nitpix --project {shlex.quote(str(project_root))} queue update"


def _source_reference(task: Task) -> str:
    if task.type == TaskType.ELEMENT and task.element and task.element.source_file:
        line = f" around line {task.element.source_line}" if task.element.source_line else ""
        return f'Read "{task.element.source_file}"{line}'
    if task.type == TaskType.REGION and task.region:
        rect = json.dumps(task.region.rect.to_json_dict())
        return f"Use the screenshot and region.rect bounds ({rect}) to understand the area"
    if task.page.source_file:
        return f'Read "{task.page.source_file}"'
    return f"Find the source for the page at {task.url or 'the annotated URL'}"


def _attempts_section(task: Task, project_root: str) -> str:
    if not task.attempts:
        return ""
    lines = ["", "## Previous Attempts (FAILED: do NOT repeat the same approach)"]
    for number, attempt in enumerate(task.attempts, start=1):
        lines.append(f"Attempt {number}: {attempt.agent_notes or '(no notes)'}")
        if attempt.files_modified:
            lines.append(f"  Files modified: {', '.join(attempt.files_modified)}")
        lines.append(f"  Rejected: {attempt.retry_reason or '(no reason given)'}")
        if attempt.after_screenshot:
            lines.append(f"  After screenshot: {project_root}/{attempt.after_screenshot}")
    return "\n".join(lines)


def build_prompt(task: Task, project_root: Union[str, Path], update_command: str = None) -> str:
    """Build the instructions handed to the agent for one task.

    Args:
        task: The task to work on
        project_root: Root of the project the agent edits
        update_command: Shell command prefix for updating the task; it is
            followed by the task ID and a JSON payload

    Returns:
        The prompt text
    """
    project_root = str(project_root)
    update_command = update_command or default_update_command(project_root)

    context = []
    if task.element and task.element.selector:
        context.append(f'   CSS selector: "{task.element.selector}"')
    if task.element and task.element.computed_styles:
        context.append(f"   Current computed styles: {json.dumps(task.element.computed_styles)}")
    context_block = "\n".join(context)

    payload = json.dumps({
        "status": "review",
        "agentNotes": "<brief description of what you changed>",
        "filesModified": ["<file1>", "<file2>"],
    })

    return f"""You are an AI agent working on a UI review task in the project at: {project_root}

## Task
{json.dumps(task.to_json_dict(), indent=2)}

## Instructions

1. Read the screenshot at "{project_root}/{task.screenshot_path}" to see what the developer sees.

2. {_source_reference(task)}
{context_block}

3. Understand the developer's note: "{task.note}"
   Make sense of it in the context of the screenshot and source code.
{_attempts_section(task, project_root)}

4. Make the code change. Keep it minimal and focused on exactly what the note describes.

5. After making changes, update the task status by running:
   {update_command} {task.id} '{payload}'

IMPORTANT: Set status to "review" (not "done"). The developer will accept or retry the change."""
