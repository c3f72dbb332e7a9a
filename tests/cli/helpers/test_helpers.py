"""Unit tests for CLI helper functions."""

from pathlib import Path

import click
import pytest

from nitpix.cli.helpers import format_task_table, get_project_context, resolve_task


def in_context(project, func, *args):
    """Run ``func`` inside a click context carrying the --project value."""
    with click.Context(click.Command("nitpix"), obj={"project": project}):
        return func(*args)


class TestGetProjectContext:
    """Test get_project_context function."""

    def test_uses_project_option(self, tmp_path):
        project_root, review_dir = in_context(str(tmp_path), get_project_context)

        assert project_root == tmp_path.resolve()
        assert review_dir == tmp_path.resolve() / ".review"

    def test_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        project_root, _ = in_context(None, get_project_context)
        assert project_root == Path.cwd()


class TestResolveTask:
    """Test resolve_task function."""

    def test_full_id(self, service, make_task):
        task = make_task()
        assert resolve_task(service, task.id).id == task.id

    def test_unique_prefix(self, service, make_task):
        task = make_task()
        assert resolve_task(service, task.id[:6]).id == task.id

    def test_ambiguous_prefix_exits(self, service, make_task):
        make_task()
        make_task()
        with pytest.raises(SystemExit) as exc_info:
            resolve_task(service, "")
        assert exc_info.value.code == 1

    def test_unknown_exits(self, service, make_task):
        make_task()
        with pytest.raises(SystemExit):
            resolve_task(service, "nothing-like-this")


class TestFormatTaskTable:
    """Test format_task_table function."""

    def test_table_contents(self, make_task):
        task = make_task(note="A very long note " * 10, priority="high")
        table = click.unstyle(format_task_table([task]))

        assert "ID" in table and "STATUS" in table
        assert task.short_id in table
        assert "PENDING" in table
        assert "high" in table
        assert "..." in table

    def test_empty(self):
        assert "ID" in format_task_table([])
