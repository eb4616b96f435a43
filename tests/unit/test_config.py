"""Unit tests for configuration and the command line."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from iflux_client import config
from iflux_client.cli import main, parse_param
from iflux_client.exceptions import ConfigurationError
from iflux_client.manager import STAGES
from iflux_client.runner import RunReport


class TestConfig:
    """Test environment configuration."""

    def test_defaults_are_valid(self) -> None:
        """Test the default configuration validates."""
        with patch.object(config, "CREATE_FAILURE_POLICY", "halt"), patch.object(config, "API_TIMEOUT", 30):
            config.validate_config()

    @pytest.mark.parametrize(
        "name, value",
        [
            ("IFLUX_URL", ""),
            ("API_TIMEOUT", 0),
            ("MAX_RETRIES", -1),
            ("CREATE_FAILURE_POLICY", "ignore"),
        ],
    )
    def test_invalid_values(self, name: str, value) -> None:
        """Test invalid values are rejected."""
        with patch.object(config, name, value), pytest.raises(ValueError):
            config.validate_config()

    def test_default_params_skip_empty_credentials(self) -> None:
        """Test empty credentials are not turned into parameters."""
        with patch.object(config, "IFLUX_USER", ""), patch.object(config, "IFLUX_PASSWORD", "pw"):
            params = config.default_params()

        assert config.USER_PARAM not in params
        assert params[config.PASSWORD_PARAM] == "pw"
        assert config.BASE_URL_PARAM in params


class TestParseParam:
    """Test command line parameters."""

    def test_boolean_values(self) -> None:
        """Test true/false become booleans."""
        assert parse_param("slack_active=TRUE") == ("slack_active", True)
        assert parse_param("slack_active=false") == ("slack_active", False)

    def test_values_keep_equal_signs(self) -> None:
        """Test only the first equal sign splits."""
        assert parse_param("token=a=b") == ("token", "a=b")

    def test_invalid(self) -> None:
        """Test parameters need a name and a value."""
        with pytest.raises(ConfigurationError):
            parse_param("slack_active")


class TestMain:
    """Test the iflux-provision command."""

    @patch("iflux_client.cli.Runner")
    def test_success(self, mock_runner: Mock, tmp_path: Path) -> None:
        """Test a complete run exits with 0."""
        data_file = tmp_path / "data.yml"
        data_file.write_text("eventTypes:\n  issue:\n    data:\n      name: Issue\n")
        runner = mock_runner.return_value
        runner.run.return_value = RunReport(organization_id=5, stages_run=[stage.collection for stage in STAGES])

        exit_code = main(["--data", str(data_file), "--organization", "Demo", "--param", "slack_active=true"])

        assert exit_code == 0
        assert runner.add_collection.call_args.args[0] == "EventTypes"
        assert runner.add_params.call_args.args[0]["slack_active"] is True
        assert runner.run.call_args.kwargs["orga_name"] == "Demo"

    @patch("iflux_client.cli.Runner")
    def test_partial_run_fails(self, mock_runner: Mock, tmp_path: Path) -> None:
        """Test a run with unprovisioned items exits with 1."""
        data_file = tmp_path / "data.yml"
        data_file.write_text("rules: {}\n")
        mock_runner.return_value.run.return_value = RunReport(stages_run=["EventSourceTemplates"])

        assert main(["--data", str(data_file), "--organization", "Demo"]) == 1

    def test_missing_data_file(self, tmp_path: Path) -> None:
        """Test a missing provisioning file exits with 1."""
        assert main(["--data", str(tmp_path / "missing.yml"), "--organization", "Demo"]) == 1
