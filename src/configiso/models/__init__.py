"""Pydantic models for configuration and remote resources."""

from configiso.models.config import ServiceConfig, ServerConfig, ImageConfig, BMCConfig
from configiso.models.image import ImageSpec
from configiso.models.media import (
    BootTarget,
    Credentials,
    ManagedSystem,
    MediaKind,
    VirtualMediaResource,
)

__all__ = [
    "ServiceConfig",
    "ServerConfig",
    "ImageConfig",
    "BMCConfig",
    "ImageSpec",
    "BootTarget",
    "Credentials",
    "ManagedSystem",
    "MediaKind",
    "VirtualMediaResource",
]
