"""Tests for the agent lifecycle."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from configiso.agent.main import ConfigImageAgent
from configiso.errors import BuildError, NoCompatibleMedia
from configiso.models.config import ServiceConfig
from configiso.models.media import VirtualMediaResource
from configiso.utils.iso import read_volume_label


BMC_ADDRESS = "https://bmc.example.com/redfish/v1/Systems/1"


@pytest.fixture
def config(tmp_path):
    """Service configuration rooted in a temporary data directory."""
    return ServiceConfig(
        data_dir=str(tmp_path / "data"),
        server={"port": 8081, "base_url": "http://10.0.0.5:8081"},
        bmc={"address": BMC_ADDRESS, "username": "admin", "password": "secret", "dwell_seconds": 0},
    )


@pytest.fixture
def orchestrator():
    """Orchestrator double that reports a successful boot."""
    mock = MagicMock()
    mock.orchestrate = AsyncMock(return_value=VirtualMediaResource(
        id="Cd", uri="/redfish/v1/Managers/BMC/VirtualMedia/Cd", media_types=["CD"],
    ))
    return mock


@pytest.mark.asyncio
async def test_initialize_builds_image(config, orchestrator, tmp_path):
    """The image is built under the images directory before serving."""
    agent = ConfigImageAgent(config, orchestrator)

    await agent.initialize()

    expected = tmp_path / "data" / "isos" / "test-config.iso"
    assert agent.image_path == expected
    assert read_volume_label(expected) == "test-config"
    assert agent.image_url == "http://10.0.0.5:8081/images/test-config.iso"
    assert agent.server.images_dir == tmp_path / "data" / "isos"
    # Only the image remains, the staging directory is removed.
    assert sorted(p.name for p in (tmp_path / "data").iterdir()) == ["isos"]


@pytest.mark.asyncio
async def test_initialize_build_failure_is_fatal(config, orchestrator):
    """Build errors propagate out of initialize."""
    agent = ConfigImageAgent(config, orchestrator)

    with patch("configiso.providers.image.iso.create", side_effect=BuildError("out.iso", "boom")):
        with pytest.raises(BuildError):
            await agent.initialize()

    assert agent.server is None


def test_default_orchestrator_uses_dwell(tmp_path):
    """The orchestrator dwell comes from the endpoint configuration."""
    config = ServiceConfig(
        data_dir=str(tmp_path),
        bmc={"address": BMC_ADDRESS, "dwell_seconds": 120},
    )

    agent = ConfigImageAgent(config)

    assert agent.orchestrator.dwell == 120


@pytest.mark.asyncio
async def test_boot_success(config, orchestrator):
    """A successful boot passes the image URL and credentials through."""
    agent = ConfigImageAgent(config, orchestrator)
    agent.image_url = "http://10.0.0.5:8081/images/test-config.iso"

    assert await agent.boot() is True

    target = orchestrator.orchestrate.await_args.args[0]
    assert target.endpoint == "https://bmc.example.com"
    assert target.resource_path == "/redfish/v1/Systems/1"
    assert target.image_url == agent.image_url
    assert target.credentials.username == "admin"
    assert target.credentials.password == "secret"


@pytest.mark.asyncio
async def test_boot_failure_is_not_raised(config, orchestrator):
    """Orchestration errors are logged and reported as False."""
    orchestrator.orchestrate.side_effect = NoCompatibleMedia("no CD", "/redfish/v1/Systems/1")
    agent = ConfigImageAgent(config, orchestrator)
    agent.image_url = "http://10.0.0.5:8081/images/test-config.iso"

    assert await agent.boot() is False


@pytest.mark.asyncio
async def test_run_serves_boots_and_stops(config, orchestrator):
    """run starts the server, boots once and stops on shutdown."""
    agent = ConfigImageAgent(config, orchestrator)
    server = MagicMock()
    server.start = AsyncMock()
    server.stop = AsyncMock()

    async def boot_then_shutdown(target):
        agent.shutdown()
        return MagicMock(uri="/redfish/v1/Managers/BMC/VirtualMedia/Cd")

    orchestrator.orchestrate.side_effect = boot_then_shutdown

    with patch("configiso.agent.main.MediaServer.from_config", return_value=server):
        await agent.run()

    server.start.assert_awaited_once()
    orchestrator.orchestrate.assert_awaited_once()
    server.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_without_endpoint_only_serves(tmp_path, orchestrator):
    """Without an endpoint address nothing is booted."""
    config = ServiceConfig(data_dir=str(tmp_path))
    agent = ConfigImageAgent(config, orchestrator)
    server = MagicMock()
    server.start = AsyncMock(side_effect=lambda: agent.shutdown())
    server.stop = AsyncMock()

    with patch("configiso.agent.main.MediaServer.from_config", return_value=server):
        await agent.run()

    orchestrator.orchestrate.assert_not_called()
    server.stop.assert_awaited_once()
