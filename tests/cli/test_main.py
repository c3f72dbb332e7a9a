from nitpix import __version__
from nitpix.cli.main import cli


class TestMainCLI:
    """Smoke tests for main CLI functionality."""

    def test_cli_help(self, cli_runner):
        """Test that CLI shows help."""
        result = cli_runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        assert 'Nitpix' in result.output
        assert 'Commands:' in result.output
        assert '--project' in result.output

    def test_cli_invalid_command(self, cli_runner):
        """Test CLI with invalid command."""
        result = cli_runner.invoke(cli, ['invalid-command'])
        assert result.exit_code != 0
        assert 'No such command' in result.output

    def test_cli_command_groups(self, cli_runner):
        """Test that main command groups are available."""
        result = cli_runner.invoke(cli, ['--help'])

        for cmd in ['watch', 'queue', 'review', 'cancel']:
            assert cmd in result.output

    def test_queue_subcommands(self, cli_runner):
        result = cli_runner.invoke(cli, ['queue', '--help'])

        assert result.exit_code == 0
        for cmd in ['next', 'update', 'list', 'show', 'status', 'add', 'delete']:
            assert cmd in result.output

    def test_project_from_environment(self, cli_runner, tmp_path, review_dir):
        review_dir.mkdir()
        result = cli_runner.invoke(cli, ['queue', 'next'], env={'NITPIX_PROJECT': str(tmp_path)})

        assert result.exit_code == 0
        assert result.output.strip() == 'null'


def test_version():
    assert __version__ == "0.1.0"
