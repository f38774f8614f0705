"""Out-of-band management resource models.

These mirror the parts of the Redfish resource model the boot sequence reads.
Every instance is a snapshot of remote state taken when it was fetched.
"""

from enum import Enum
from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field


class MediaKind(str, Enum):
    """Virtual media types as reported in ``MediaTypes``."""
    CD = "CD"
    DVD = "DVD"
    FLOPPY = "Floppy"
    USB_STICK = "USBStick"


OPTICAL_DISC = MediaKind.CD


class ManagedSystem(BaseModel):
    """The remote machine as seen through the management endpoint."""
    model_config = ConfigDict(frozen=True)

    endpoint: str
    resource_path: str
    manager_refs: List[str] = Field(default_factory=list)
    reset_target: Optional[str] = None


class VirtualMediaResource(BaseModel):
    """One virtual media slot exposed by a manager."""
    model_config = ConfigDict(frozen=True)

    id: str
    uri: str
    media_types: List[str] = Field(default_factory=list)
    inserted: bool = False
    image: Optional[str] = None
    insert_target: Optional[str] = None
    eject_target: Optional[str] = None

    def supports(self, kind: MediaKind) -> bool:
        """Check whether this slot accepts the given media kind."""
        return kind.value in self.media_types


class Credentials(BaseModel):
    """Basic authentication credentials."""
    model_config = ConfigDict(frozen=True)

    username: str = ""
    password: str = Field(default="", repr=False)


class BootTarget(BaseModel):
    """Everything one orchestration run needs to know about its target."""
    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(..., description="scheme://host[:port] of the management endpoint")
    resource_path: str = Field(..., description="Managed system resource path")
    credentials: Credentials = Field(default_factory=Credentials)
    image_url: str
    verify_tls: bool = True
    timeout: float = 30.0

    @classmethod
    def from_address(
        cls,
        address: str,
        image_url: str,
        username: str = "",
        password: str = "",
        verify_tls: bool = True,
        timeout: float = 30.0,
    ) -> "BootTarget":
        """Split a BMC address URL into endpoint and system path."""
        parts = urlsplit(address)
        return cls(
            endpoint=urlunsplit((parts.scheme, parts.netloc, "", "", "")),
            resource_path=parts.path or "/",
            credentials=Credentials(username=username, password=password),
            image_url=image_url,
            verify_tls=verify_tls,
            timeout=timeout,
        )
