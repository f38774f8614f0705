"""
configiso - bootable configuration images over virtual media.

Builds a small ISO9660 configuration image, serves it over HTTP(S), and asks
a server's Redfish management controller to mount it as a virtual CD and
power the machine on.
"""

__version__ = "0.1.0"

# Re-export key components for easier access
from configiso.models.config import ServiceConfig
from configiso.models.image import ImageSpec
from configiso.models.media import BootTarget

__all__ = [
    "ServiceConfig",
    "ImageSpec",
    "BootTarget",
]
