"""Redfish out-of-band management client.

Only the handful of resources the boot sequence touches are modelled:
the computer system, its managers, their virtual media collections and
the insert/eject/reset actions.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from configiso.errors import RedfishError
from configiso.models.media import (
    BootTarget,
    Credentials,
    ManagedSystem,
    VirtualMediaResource,
)


logger = logging.getLogger(__name__)

SERVICE_ROOT = "/redfish/v1/"
RESET_ACTION = "#ComputerSystem.Reset"
INSERT_ACTION = "#VirtualMedia.InsertMedia"
EJECT_ACTION = "#VirtualMedia.EjectMedia"


class ManagementClient(Protocol):
    """Capabilities the boot orchestrator needs from a management endpoint."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get_system(self, path: str) -> ManagedSystem: ...

    async def get_virtual_media(self, manager_ref: str) -> List[VirtualMediaResource]: ...

    async def eject_media(self, media: VirtualMediaResource) -> None: ...

    async def insert_media(
        self,
        media: VirtualMediaResource,
        image_url: str,
        inserted: bool = True,
        write_protected: bool = True,
    ) -> None: ...

    async def reset_system(self, system: ManagedSystem, reset_type: str = "On") -> None: ...


def _error_message(response: httpx.Response) -> str:
    """Pull the most useful message out of a Redfish error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase

    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return response.reason_phrase

    for info in error.get("@Message.ExtendedInfo") or []:
        if isinstance(info, dict) and info.get("Message"):
            return info["Message"]
    return error.get("message") or response.reason_phrase


def _link(data: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        data = data.get(key) if isinstance(data, dict) else None
    return data.get("@odata.id") if isinstance(data, dict) else None


def _action_target(data: Dict[str, Any], action: str) -> Optional[str]:
    actions = data.get("Actions")
    entry = actions.get(action) if isinstance(actions, dict) else None
    return entry.get("target") if isinstance(entry, dict) else None


class RedfishClient:
    """Basic-auth Redfish client over httpx."""

    def __init__(
        self,
        endpoint: str,
        credentials: Optional[Credentials] = None,
        verify_tls: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client; no connection is made until connect()."""
        self.endpoint = endpoint
        self.credentials = credentials or Credentials()
        self.verify_tls = verify_tls
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def for_target(cls, target: BootTarget) -> "RedfishClient":
        """Build a client for a boot target."""
        return cls(
            endpoint=target.endpoint,
            credentials=target.credentials,
            verify_tls=target.verify_tls,
            timeout=target.timeout,
        )

    async def connect(self):
        """Open the HTTP session and check the service root answers."""
        auth = None
        if self.credentials.username:
            auth = httpx.BasicAuth(self.credentials.username, self.credentials.password)

        try:
            self._client = httpx.AsyncClient(
                base_url=self.endpoint,
                auth=auth,
                verify=self.verify_tls,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        except httpx.InvalidURL as e:
            raise RedfishError(f"Invalid management endpoint {self.endpoint}: {e}") from e

        try:
            root = await self._request("GET", SERVICE_ROOT)
        except RedfishError:
            await self.close()
            raise
        logger.debug(f"Connected to {self.endpoint} (Redfish {root.get('RedfishVersion', 'unknown')})")

    async def close(self):
        """Close the HTTP session."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RedfishClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if self._client is None:
            raise RedfishError("Client is not connected")

        logger.debug(f"{method} {path} {payload if payload is not None else ''}")
        try:
            response = await self._client.request(method, path, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RedfishError(f"{method} {path} failed: {e}") from e
        logger.debug(f"{method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            raise RedfishError(
                f"{method} {path} failed: {_error_message(response)}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        if not isinstance(body, dict):
            raise RedfishError(f"{method} {path} returned a {type(body).__name__}, expected an object")
        return body

    async def get_system(self, path: str) -> ManagedSystem:
        """Fetch a computer system resource."""
        data = await self._request("GET", path)
        try:
            links = data.get("Links") or {}
            managers = links.get("ManagedBy") or []
            return ManagedSystem(
                endpoint=self.endpoint,
                resource_path=data.get("@odata.id", path),
                manager_refs=[m["@odata.id"] for m in managers if "@odata.id" in m],
                reset_target=_action_target(data, RESET_ACTION),
            )
        except (ValidationError, AttributeError, TypeError) as e:
            raise RedfishError(f"Malformed computer system {path}: {e}") from e

    async def get_virtual_media(self, manager_ref: str) -> List[VirtualMediaResource]:
        """List a manager's virtual media in collection order."""
        manager = await self._request("GET", manager_ref)
        collection_ref = _link(manager, "VirtualMedia")
        if not collection_ref:
            logger.debug(f"Manager {manager_ref} has no virtual media collection")
            return []

        collection = await self._request("GET", collection_ref)
        members = collection.get("Members") or []
        if not isinstance(members, list):
            raise RedfishError(f"Malformed virtual media collection {collection_ref}")

        resources = []
        for member in members:
            uri = member.get("@odata.id") if isinstance(member, dict) else None
            if not uri:
                continue
            data = await self._request("GET", uri)
            resources.append(self._parse_media(uri, data))
        return resources

    def _parse_media(self, uri: str, data: Dict[str, Any]) -> VirtualMediaResource:
        try:
            return VirtualMediaResource(
                id=data.get("Id") or uri.rstrip("/").rsplit("/", 1)[-1],
                uri=data.get("@odata.id", uri),
                media_types=data.get("MediaTypes") or [],
                inserted=bool(data.get("Inserted")),
                image=data.get("Image") or None,
                insert_target=_action_target(data, INSERT_ACTION),
                eject_target=_action_target(data, EJECT_ACTION),
            )
        except (ValidationError, AttributeError, TypeError) as e:
            raise RedfishError(f"Malformed virtual media {uri}: {e}") from e

    async def eject_media(self, media: VirtualMediaResource) -> None:
        """Eject whatever is in the slot."""
        if media.eject_target:
            await self._request("POST", media.eject_target, {})
        else:
            await self._request("PATCH", media.uri, {"Image": None, "Inserted": False})

    async def insert_media(
        self,
        media: VirtualMediaResource,
        image_url: str,
        inserted: bool = True,
        write_protected: bool = True,
    ) -> None:
        """Insert an image by URL."""
        payload = {
            "Image": image_url,
            "Inserted": inserted,
            "WriteProtected": write_protected,
        }
        if media.insert_target:
            await self._request("POST", media.insert_target, payload)
        else:
            await self._request("PATCH", media.uri, payload)

    async def reset_system(self, system: ManagedSystem, reset_type: str = "On") -> None:
        """Invoke ComputerSystem.Reset."""
        target = system.reset_target or (
            f"{system.resource_path.rstrip('/')}/Actions/ComputerSystem.Reset"
        )
        await self._request("POST", target, {"ResetType": reset_type})
