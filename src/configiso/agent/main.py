"""Main agent implementation."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from configiso.agent.config import ConfigManager
from configiso.agent.orchestrator import BootOrchestrator
from configiso.agent.server import MediaServer, image_url
from configiso.errors import OrchestrationError
from configiso.models.config import ServiceConfig
from configiso.models.media import BootTarget
from configiso.providers import ImageProvider
from configiso.utils.logging import setup_logging


logger = logging.getLogger(__name__)


class ConfigImageAgent:
    """Builds the image, serves it, and optionally boots the target from it."""

    def __init__(self, config: ServiceConfig, orchestrator: Optional[BootOrchestrator] = None):
        """Initialize the agent."""
        self.config = config
        self.image_provider = ImageProvider()
        self.server: Optional[MediaServer] = None
        if orchestrator is None:
            dwell = config.bmc.dwell_seconds if config.bmc else 0
            orchestrator = BootOrchestrator(dwell=dwell)
        self.orchestrator = orchestrator
        self.image_path: Optional[Path] = None
        self.image_url: Optional[str] = None
        self.shutdown_event = asyncio.Event()

    async def initialize(self):
        """Build the image and prepare the server. Build errors are fatal."""
        await self.image_provider.initialize(self.config)
        self.image_path = await self.image_provider.build(self.config.image)

        self.image_url = image_url(self.config.server.effective_base_url, self.config.image.name)
        logger.info(f"Got ISO URL: {self.image_url}")

        self.server = MediaServer.from_config(self.config)

    async def run(self):
        """Run until a termination signal arrives."""
        await self.initialize()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            await self.server.start()

            if self.config.bmc:
                await self.boot()

            logger.info("Agent started, waiting for shutdown signal")
            await self.shutdown_event.wait()
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await self.server.stop()

    async def boot(self) -> bool:
        """Run the virtual media boot sequence once. Failures are logged, not raised."""
        bmc = self.config.bmc
        if not self.config.server.base_url:
            logger.warning(f"BASE_URL is not set, remote endpoint will be given {self.image_url}")

        target = BootTarget.from_address(
            bmc.address,
            image_url=self.image_url,
            username=bmc.username,
            password=bmc.password,
            verify_tls=bmc.verify_tls,
            timeout=bmc.timeout,
        )
        try:
            media = await self.orchestrator.orchestrate(target)
        except OrchestrationError as e:
            logger.error(f"Failed to boot from virtual media: {e}", exc_info=True)
            return False

        logger.info(f"Virtual media boot issued using {media.uri}")
        return True

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self.shutdown_event.set()


async def run_agent(config_file: Optional[Path] = None):
    """Load configuration and run the agent."""
    config = await ConfigManager(config_file).load()
    setup_logging(config.log_level)

    agent = ConfigImageAgent(config)
    await agent.run()
