"""Test CLI functionality."""

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from oasforge.cli import app
from oasforge.codegen.codegen import BuildResult
from oasforge.config import BuildConfig, InputConfig, OutputConfig, PluginEntry
from oasforge.exceptions import HookError, OperationGenerationError, PluginError
from oasforge.hooks import HookResult


@pytest.fixture
def runner():
    """Fixture providing CLI test runner."""
    return CliRunner()


@pytest.fixture
def sample_config():
    """Fixture providing sample configuration."""
    return BuildConfig(
        input=InputConfig(path='openapi.yaml'),
        output=OutputConfig(path='generated'),
        plugins=[PluginEntry(name='models')],
    )


@pytest.fixture
def build_result():
    return BuildResult(
        files={'/project/generated/models.py': '', '/project/generated/__init__.py': ''},
        manifest=[],
    )


class TestGenerateCommand:
    """Test the generate command."""

    @patch('oasforge.cli.get_config')
    @patch('oasforge.cli.Codegen')
    def test_generate_without_config_file(
        self, mock_codegen_class, mock_get_config, runner, sample_config, build_result
    ):
        """Test generate command without specifying config file."""
        mock_get_config.return_value = sample_config
        mock_codegen_instance = MagicMock()
        mock_codegen_instance.generate.return_value = build_result
        mock_codegen_class.return_value = mock_codegen_instance

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with(None)
        mock_codegen_class.assert_called_once_with(sample_config)
        mock_codegen_instance.generate.assert_called_once()
        assert 'Generated files:' in result.stdout
        assert '/project/generated/models.py' in result.stdout

    @patch('oasforge.cli.get_config')
    @patch('oasforge.cli.Codegen')
    def test_generate_with_config_file(
        self, mock_codegen_class, mock_get_config, runner, sample_config, build_result
    ):
        """Test generate command with config file specified."""
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.return_value = build_result

        result = runner.invoke(app, ['generate', '--config', 'custom-config.yaml'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with('custom-config.yaml')

    @patch('oasforge.cli.get_config')
    @patch('oasforge.cli.Codegen')
    def test_generate_with_short_config_option(
        self, mock_codegen_class, mock_get_config, runner, sample_config, build_result
    ):
        """Test generate command with short config option."""
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.return_value = build_result

        result = runner.invoke(app, ['generate', '-c', 'config.json'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with('config.json')

    @patch('oasforge.cli.get_config')
    def test_generate_without_any_config(self, mock_get_config, runner):
        """Test generate command when no configuration can be found."""
        mock_get_config.side_effect = FileNotFoundError('config not found')

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'no configuration file found' in result.stdout

    @patch('oasforge.cli.get_config')
    @patch('oasforge.cli.Codegen')
    def test_generate_with_build_error(
        self, mock_codegen_class, mock_get_config, runner, sample_config
    ):
        """Test generate command when the build fails."""
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.side_effect = PluginError(
            'client', cause=RuntimeError('boom')
        )

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'Error:' in result.stdout
        assert "Plugin 'client' failed" in result.stdout

    @patch('oasforge.cli.get_config')
    @patch('oasforge.cli.Codegen')
    def test_generate_reports_skipped_operations_and_hooks(
        self, mock_codegen_class, mock_get_config, runner, sample_config, build_result
    ):
        """Test that dropped operations and failed hooks are reported."""
        build_result.operation_errors = [
            OperationGenerationError('postBroken', 'post', '/broken')
        ]
        build_result.hook_results = [
            HookResult('ruff format .', 2, '', HookError('ruff format .', 2))
        ]
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.return_value = build_result

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 0
        assert 'Skipped:' in result.stdout
        assert 'postBroken' in result.stdout
        assert 'Hook failed:' in result.stdout


class TestVersionCommand:
    """Test the version command."""

    def test_version(self, runner):
        """Test version command output."""
        result = runner.invoke(app, ['version'])

        assert result.exit_code == 0
        assert 'oasforge version:' in result.stdout


class TestApp:
    """Test the typer application."""

    def test_no_arguments_shows_help(self, runner):
        """Test that invoking without a command prints usage."""
        result = runner.invoke(app, [])

        assert 'generate' in result.output
