import pytest
from pydantic import ValidationError

from nitpix.models.config import ReviewConfig, WatcherOptions


class TestReviewConfig:
    def test_defaults(self):
        config = ReviewConfig()
        assert config.server_port == 4173
        assert config.project_root is None

    def test_accepts_either_spelling(self):
        assert ReviewConfig(serverPort=1).server_port == 1
        assert ReviewConfig(server_port=2).server_port == 2


class TestWatcherOptions:
    def test_defaults(self):
        options = WatcherOptions()

        assert options.max_turns == 25
        assert options.allowed_tools == "Edit,Write,Read,Bash(nitpix:*),Glob,Grep"
        assert options.agent_timeout == 600
        assert options.max_retries == 2
        assert options.max_crashes == 3
        assert options.agent_command == "claude"
        assert options.kill_grace == 5
        assert options.reconnect_base == 1
        assert options.reconnect_max == 30
        assert options.poll_interval == 5

    @pytest.mark.parametrize("field,value", [
        ("max_retries", -1),
        ("agent_timeout", -5),
        ("reconnect_base", 0),
    ])
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            WatcherOptions(**{field: value})
