"""Resource providers for configiso."""

from configiso.providers.base import BaseProvider, ProviderStatus
from configiso.providers.image import ImageProvider

__all__ = [
    "BaseProvider",
    "ProviderStatus",
    "ImageProvider",
]
