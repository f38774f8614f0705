"""Virtual media boot orchestration."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from configiso.errors import (
    ConnectFailed,
    DiscoveryFailed,
    EjectFailed,
    InsertFailed,
    NoCompatibleMedia,
    PostDwellEjectFailed,
    RedfishError,
    ResetFailed,
    SystemNotFound,
)
from configiso.models.media import (
    OPTICAL_DISC,
    BootTarget,
    ManagedSystem,
    VirtualMediaResource,
)
from configiso.utils.redfish import ManagementClient, RedfishClient


logger = logging.getLogger(__name__)

ClientFactory = Callable[[BootTarget], ManagementClient]
Sleeper = Callable[[float], Awaitable[None]]


class BootState(str, Enum):
    """Progress through the boot sequence."""
    CONNECT = "Connect"
    SYSTEM_RESOLVED = "SystemResolved"
    MEDIA_DISCOVERED = "MediaDiscovered"
    MEDIA_SELECTED = "MediaSelected"
    MEDIA_READY = "MediaReady"
    MEDIA_INSERTED = "MediaInserted"
    BOOT_ISSUED = "BootIssued"
    DONE = "Done"


class BootOrchestrator:
    """Mounts an image as virtual CD on the target and boots it.

    The sequence is a single attempt: connect, resolve the system, pick the
    first CD-capable virtual media slot (managers in ``ManagedBy`` order,
    then media in collection order), eject if occupied, insert the image,
    power on, and optionally eject again after a dwell period.

    Any failure before the reset is issued raises the matching
    ``OrchestrationError`` subclass. A failure of the post-dwell eject is
    only logged.
    """

    def __init__(
        self,
        client_factory: Optional[ClientFactory] = None,
        dwell: float = 0,
        sleep: Optional[Sleeper] = None,
    ):
        """Initialize orchestrator; dwell of 0 skips the wait-then-eject tail."""
        self.client_factory = client_factory or RedfishClient.for_target
        self.dwell = dwell
        self.sleep = sleep or asyncio.sleep
        self.state = BootState.CONNECT

    async def orchestrate(self, target: BootTarget) -> VirtualMediaResource:
        """Run the boot sequence against target. Returns the media slot used."""
        self.state = BootState.CONNECT
        client = self.client_factory(target)

        logger.info(f"Connecting to management endpoint {target.endpoint}")
        try:
            await client.connect()
        except RedfishError as e:
            raise ConnectFailed(f"failed to connect: {e}", target.endpoint) from e

        try:
            return await self._run(client, target)
        finally:
            await client.close()

    async def _run(self, client: ManagementClient, target: BootTarget) -> VirtualMediaResource:
        try:
            system = await client.get_system(target.resource_path)
        except RedfishError as e:
            raise SystemNotFound(f"failed to get computer system: {e}", target.resource_path) from e
        self.state = BootState.SYSTEM_RESOLVED

        media, manager_ref = await self.find_media(client, system)
        self.state = BootState.MEDIA_SELECTED
        logger.info(f"Selected virtual media {media.uri} on manager {manager_ref}")

        if media.inserted:
            logger.info(f"Ejecting {media.image or 'current media'} from {media.id}")
            try:
                await client.eject_media(media)
            except RedfishError as e:
                raise EjectFailed(f"failed to eject media: {e}", media.uri) from e
        self.state = BootState.MEDIA_READY

        try:
            await client.insert_media(media, target.image_url, inserted=True, write_protected=True)
        except RedfishError as e:
            raise InsertFailed(f"failed to insert {target.image_url}: {e}", media.uri) from e
        self.state = BootState.MEDIA_INSERTED
        logger.info("Media inserted, booting host")

        try:
            await client.reset_system(system, "On")
        except RedfishError as e:
            raise ResetFailed(f"failed to boot system: {e}", system.resource_path) from e
        self.state = BootState.BOOT_ISSUED

        if self.dwell > 0:
            logger.info(f"Waiting {self.dwell:g}s before ejecting media")
            await self.sleep(self.dwell)
            try:
                await client.eject_media(media)
                logger.info("Media ejected")
            except RedfishError as e:
                error = PostDwellEjectFailed(f"failed to eject media: {e}", media.uri)
                logger.error(str(error))

        self.state = BootState.DONE
        return media

    async def find_media(
        self, client: ManagementClient, system: ManagedSystem
    ) -> Tuple[VirtualMediaResource, str]:
        """Return the first CD-capable media slot and the manager exposing it."""
        searched: List[str] = []
        for manager_ref in system.manager_refs:
            try:
                resources = await client.get_virtual_media(manager_ref)
            except RedfishError as e:
                raise DiscoveryFailed(f"failed to list virtual media: {e}", manager_ref) from e
            searched.append(manager_ref)

            for media in resources:
                if media.supports(OPTICAL_DISC):
                    self.state = BootState.MEDIA_DISCOVERED
                    return media, manager_ref

        raise NoCompatibleMedia(
            f"failed to find CD type virtual media across {len(searched)} manager(s)",
            system.resource_path,
        )
