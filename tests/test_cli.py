"""Tests for the command-line entry point."""

import logging
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import NoCredentialsError, ProfileNotFound
from typer.testing import CliRunner

from hardener import __version__
from hardener.cli import app, select_confirmer
from hardener.models import (
    HostnameResult,
    HostnameStatus,
    TaggingResult,
    WorkflowResult,
)
from hardener.provisioning.confirmation import (
    AutomatedConfirmation,
    InteractiveConfirmation,
)
from hardener.provisioning.errors import ProvisioningError

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, ssh_key_file):
    for var in ("HARDENER_ROLE_NAME", "HARDENER_PROFILE_NAME", "AWS_REGION", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """configure_logging binds a handler to the runner's stdout; drop it afterwards."""
    root = logging.getLogger()
    saved = list(root.handlers)
    yield
    root.handlers[:] = saved


@pytest.fixture
def mock_build_engine():
    engine = MagicMock()
    engine.run.return_value = WorkflowResult(instance_id="i-abc", tagging=TaggingResult())
    with patch("hardener.cli.build_engine", return_value=engine) as build:
        yield build


class TestMain:
    """Tests for the hardener command."""

    def test_success_exit_zero(self, mock_build_engine):
        result = runner.invoke(app, ["dev", "i-abc", "ansible-runner-role"])

        assert result.exit_code == 0, result.output
        assert "AWS EC2 Instance Hardener" in result.output
        assert "Hardening completed successfully!" in result.output
        engine = mock_build_engine.return_value
        engine.run.assert_called_once_with(
            "i-abc", role_name="ansible-runner-role", profile_name="ansible-runner-role"
        )

    def test_profile_name_option(self, mock_build_engine):
        result = runner.invoke(
            app, ["dev", "i-abc", "runner", "--profile-name", "runner-profile"]
        )

        assert result.exit_code == 0, result.output
        mock_build_engine.return_value.run.assert_called_once_with(
            "i-abc", role_name="runner", profile_name="runner-profile"
        )

    def test_no_role_skips_attachment(self, mock_build_engine):
        result = runner.invoke(app, ["dev", "i-abc"])

        assert result.exit_code == 0, result.output
        mock_build_engine.return_value.run.assert_called_once_with(
            "i-abc", role_name=None, profile_name=None
        )

    def test_warnings_still_exit_zero(self, mock_build_engine):
        mock_build_engine.return_value.run.return_value = WorkflowResult(
            instance_id="i-abc",
            tagging=TaggingResult(),
            hostname=HostnameResult(
                status=HostnameStatus.UNREACHABLE,
                warnings=["Could not connect via SSH to update hostname"],
            ),
        )

        result = runner.invoke(app, ["dev", "i-abc"])

        assert result.exit_code == 0
        assert "Hardening completed with warnings" in result.output

    def test_non_interactive_run_denies(self, mock_build_engine):
        runner.invoke(app, ["dev", "i-abc"])

        confirmer = mock_build_engine.call_args.args[2]
        assert isinstance(confirmer, AutomatedConfirmation)
        assert confirmer.allow is False

    def test_yes_flag_allows(self, mock_build_engine):
        runner.invoke(app, ["dev", "i-abc", "--yes"])

        confirmer = mock_build_engine.call_args.args[2]
        assert confirmer.allow is True

    def test_fatal_error_exit_one(self, mock_build_engine):
        mock_build_engine.return_value.run.side_effect = ProvisioningError(
            "describe", "Instance i-abc not found or access denied"
        )

        result = runner.invoke(app, ["dev", "i-abc"])

        assert result.exit_code == 1
        assert "Instance i-abc not found or access denied" in result.output
        assert "Aborted" in result.output

    def test_unknown_profile_exit_one(self, mock_build_engine):
        mock_build_engine.side_effect = ProfileNotFound(profile="dev")

        result = runner.invoke(app, ["dev", "i-abc"])

        assert result.exit_code == 1
        assert "ProfileNotFound" in result.output

    def test_missing_credentials_exit_one(self, mock_build_engine):
        mock_build_engine.return_value.run.side_effect = NoCredentialsError()

        result = runner.invoke(app, ["dev", "i-abc"])

        assert result.exit_code == 1

    def test_missing_ssh_key_exit_one(self, mock_build_engine, tmp_path):
        result = runner.invoke(
            app, ["dev", "i-abc", "--ssh-key", str(tmp_path / "missing.pem")]
        )

        assert result.exit_code == 1
        assert "SSH key file not found" in result.output
        mock_build_engine.assert_not_called()

    def test_invalid_timing_exit_one(self, mock_build_engine, monkeypatch):
        monkeypatch.setenv("HARDENER_SSH_CONNECT_TIMEOUT", "0")

        result = runner.invoke(app, ["dev", "vol-123"])

        assert result.exit_code == 1
        assert "ssh_connect_timeout must be positive" in result.output
        assert "does not look like an EC2 instance ID" in result.output
        mock_build_engine.assert_not_called()

    def test_log_level_option(self, mock_build_engine):
        result = runner.invoke(app, ["dev", "i-abc", "--log-level", "debug"])

        assert result.exit_code == 0, result.output
        assert logging.getLogger("hardener").level == logging.DEBUG

    def test_invalid_instance_id_exit_one(self, mock_build_engine):
        result = runner.invoke(app, ["dev", "vol-123"])

        assert result.exit_code == 1
        mock_build_engine.assert_not_called()

    def test_missing_arguments_exit_two(self, mock_build_engine):
        result = runner.invoke(app, ["dev"])

        assert result.exit_code == 2
        mock_build_engine.assert_not_called()

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestSelectConfirmer:
    """Tests for select_confirmer."""

    def test_yes_wins(self):
        assert select_confirmer(True, True).allow is True

    def test_no_input(self):
        assert select_confirmer(False, True).allow is False

    def test_tty_is_interactive(self):
        with patch("hardener.cli.sys.stdin") as stdin:
            stdin.isatty.return_value = True
            assert isinstance(select_confirmer(False, False), InteractiveConfirmation)

    def test_no_tty_denies(self):
        with patch("hardener.cli.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            confirmer = select_confirmer(False, False)
        assert isinstance(confirmer, AutomatedConfirmation)
        assert confirmer.allow is False
