"""Shared fixtures."""

from typing import Dict, List, Optional

import pytest

from configiso.errors import RedfishError
from configiso.models.media import ManagedSystem, VirtualMediaResource


SYSTEM_PATH = "/redfish/v1/Systems/1"


class FakeManagementClient:
    """In-memory management endpoint that records every call in order."""

    def __init__(
        self,
        managers: Dict[str, List[VirtualMediaResource]],
        fail: Optional[Dict[str, Exception]] = None,
        calls: Optional[list] = None,
    ):
        self.managers = managers
        self.fail = fail or {}
        self.calls = [] if calls is None else calls
        self.closed = False

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    async def connect(self):
        self._record("connect")

    async def close(self):
        self.closed = True
        self.calls.append(("close",))

    async def get_system(self, path):
        self._record("get_system", path)
        return ManagedSystem(
            endpoint="https://bmc.example.com",
            resource_path=path,
            manager_refs=list(self.managers),
        )

    async def get_virtual_media(self, manager_ref):
        self._record("get_virtual_media", manager_ref)
        return self.managers[manager_ref]

    async def eject_media(self, media):
        self._record("eject_media", media.id)

    async def insert_media(self, media, image_url, inserted=True, write_protected=True):
        self._record("insert_media", media.id, image_url, inserted, write_protected)

    async def reset_system(self, system, reset_type="On"):
        self._record("reset_system", system.resource_path, reset_type)


def make_media(id, media_types, inserted=False, image=None) -> VirtualMediaResource:
    """Build a virtual media snapshot under manager BMC."""
    return VirtualMediaResource(
        id=id,
        uri=f"/redfish/v1/Managers/BMC/VirtualMedia/{id}",
        media_types=media_types,
        inserted=inserted,
        image=image,
    )


@pytest.fixture
def redfish_error():
    """Factory for management errors."""
    def _make(message="boom", status_code=500):
        return RedfishError(message, status_code=status_code)
    return _make
