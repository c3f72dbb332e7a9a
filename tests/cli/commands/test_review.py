"""Tests for the review and cancel commands."""
from unittest.mock import Mock, patch

import pytest

from nitpix.cli.main import cli
from nitpix.models.task import TaskStatus


@pytest.fixture
def run(cli_runner, tmp_path):
    def _run(*args):
        return cli_runner.invoke(cli, ["--project", str(tmp_path), *args])
    return _run


@pytest.fixture
def reviewed_task(service, make_task):
    task = make_task()
    return service.update_task(task.id, {"status": "review", "agentNotes": "Made it blue"})


class TestReviewCommand:
    """Test cases for nitpix review."""

    def test_accept(self, run, service, reviewed_task):
        result = run("review", reviewed_task.short_id, "--accept")

        assert result.exit_code == 0
        assert "accepted" in result.output
        assert service.get_task(reviewed_task.id).status == TaskStatus.DONE

    def test_retry(self, run, service, reviewed_task):
        result = run("review", reviewed_task.id, "--retry", "Should be green")

        assert result.exit_code == 0
        task = service.get_task(reviewed_task.id)
        assert task.status == TaskStatus.PENDING
        assert task.agent_notes == ""
        assert [a.retry_reason for a in task.attempts] == ["Should be green"]
        assert [a.agent_notes for a in task.attempts] == ["Made it blue"]

    def test_requires_review_status(self, run, make_task):
        task = make_task()
        result = run("review", task.id, "--accept")

        assert result.exit_code == 1
        assert "not review" in result.output

    def test_accept_and_retry_conflict(self, run, reviewed_task):
        result = run("review", reviewed_task.id, "--accept", "--retry", "x")
        assert result.exit_code == 1

    @patch('nitpix.cli.commands.review.questionary')
    def test_interactive_accept(self, mock_questionary, run, service, reviewed_task):
        mock_questionary.select.return_value = Mock(ask=Mock(return_value="Accept"))

        result = run("review", reviewed_task.id)

        assert result.exit_code == 0
        assert service.get_task(reviewed_task.id).status == TaskStatus.DONE

    @patch('nitpix.cli.commands.review.questionary')
    def test_interactive_retry(self, mock_questionary, run, service, reviewed_task):
        mock_questionary.select.return_value = Mock(ask=Mock(return_value="Retry"))
        mock_questionary.text.return_value = Mock(ask=Mock(return_value="Too dark"))

        result = run("review", reviewed_task.id)

        assert result.exit_code == 0
        assert service.get_task(reviewed_task.id).attempts[0].retry_reason == "Too dark"

    @patch('nitpix.cli.commands.review.questionary')
    def test_interactive_skip(self, mock_questionary, run, service, reviewed_task):
        mock_questionary.select.return_value = Mock(ask=Mock(return_value=None))

        result = run("review", reviewed_task.id)

        assert result.exit_code == 0
        assert "No changes made" in result.output
        assert service.get_task(reviewed_task.id).status == TaskStatus.REVIEW


class TestCancelCommand:
    """Test cases for nitpix cancel."""

    def test_cancel(self, run, service, make_task):
        task = make_task()
        service.update_task(task.id, {"status": "in_progress"})

        result = run("cancel", task.short_id)

        assert result.exit_code == 0
        assert service.get_task(task.id).status == TaskStatus.DONE

    def test_cancel_unknown(self, run, make_task):
        make_task()
        result = run("cancel", "nope")

        assert result.exit_code == 1
        assert "Task not found: nope" in result.output
