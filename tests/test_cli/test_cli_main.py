"""Tests for CLI main module."""

from unittest.mock import AsyncMock, patch

import pytest
import typer
from typer.testing import CliRunner

from configiso.cli.main import _run_async, app
from configiso.errors import ConfigError, InsertFailed
from configiso.models.media import VirtualMediaResource
from configiso.utils.iso import read_volume_label


runner = CliRunner()


@patch("configiso.cli.main.console")
def test_run_async_error(mock_console):
    """configiso errors print a message and exit with status 1."""
    async def fail():
        raise ConfigError("bad config")

    with pytest.raises(typer.Exit) as exc_info:
        _run_async(fail())

    mock_console.print.assert_called_once_with("[red]Error:[/red] bad config")
    assert exc_info.value.exit_code == 1


def test_build(tmp_path):
    """build packages a directory into an image."""
    source = tmp_path / "src"
    source.mkdir()
    (source / "config").write_text("config-data")
    output = tmp_path / "out.iso"

    result = runner.invoke(app, ["build", str(output), "--from", str(source), "--label", "cidata"])

    assert result.exit_code == 0, result.output
    assert "Image created" in result.output
    assert read_volume_label(output) == "cidata"


def test_build_missing_source(tmp_path):
    result = runner.invoke(app, ["build", str(tmp_path / "out.iso"), "--from", str(tmp_path / "nope")])

    assert result.exit_code == 1
    assert "Error" in result.output
    assert not (tmp_path / "out.iso").exists()


@patch("configiso.cli.main.BootOrchestrator")
def test_boot(mock_orchestrator_cls):
    """boot builds the target from options and runs the sequence once."""
    orchestrator = mock_orchestrator_cls.return_value
    orchestrator.orchestrate = AsyncMock(return_value=VirtualMediaResource(
        id="Cd", uri="/redfish/v1/Managers/BMC/VirtualMedia/Cd", media_types=["CD"],
    ))

    result = runner.invoke(app, [
        "boot",
        "--bmc", "https://bmc.example.com/redfish/v1/Systems/1",
        "--image-url", "http://10.0.0.5:8080/images/test-config.iso",
        "--user", "admin",
        "--password", "secret",
        "--dwell", "60",
        "--insecure",
    ])

    assert result.exit_code == 0, result.output
    mock_orchestrator_cls.assert_called_once_with(dwell=60.0)
    target = orchestrator.orchestrate.await_args.args[0]
    assert target.endpoint == "https://bmc.example.com"
    assert target.resource_path == "/redfish/v1/Systems/1"
    assert target.credentials.password == "secret"
    assert target.verify_tls is False


@patch("configiso.cli.main.BootOrchestrator")
def test_boot_failure(mock_orchestrator_cls):
    orchestrator = mock_orchestrator_cls.return_value
    orchestrator.orchestrate = AsyncMock(side_effect=InsertFailed("rejected", "/redfish/v1/Managers/BMC/VirtualMedia/Cd"))

    result = runner.invoke(app, [
        "boot",
        "--bmc", "https://bmc.example.com/redfish/v1/Systems/1",
        "--image-url", "http://10.0.0.5:8080/images/test-config.iso",
    ], env={"BMC_USER": "", "BMC_PASSWORD": ""})

    assert result.exit_code == 1
    assert "insert_media" in result.output


@patch("configiso.cli.main.run_agent", new_callable=AsyncMock)
def test_serve(mock_run_agent, tmp_path):
    """serve hands the configuration file to the agent."""
    config_file = tmp_path / "config.yaml"

    result = runner.invoke(app, ["serve", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    mock_run_agent.assert_called_once_with(config_file)
