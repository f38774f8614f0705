"""Base provider interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from configiso.errors import BuildError


SpecT = TypeVar("SpecT", bound=BaseModel)


class ProviderStatus(Enum):
    """State of a managed local artifact."""
    PRESENT = "present"
    ABSENT = "absent"
    ERROR = "error"


class BaseProvider(ABC, Generic[SpecT]):
    """Manages one kind of local artifact described by a spec model."""

    @abstractmethod
    async def initialize(self, config: Any):
        """Prepare directories and settings from service configuration."""

    @abstractmethod
    async def status(self, spec: SpecT) -> ProviderStatus:
        """Inspect the artifact on disk."""

    @abstractmethod
    async def present(self, spec: SpecT) -> None:
        """Produce the artifact, replacing any previous one."""

    @abstractmethod
    async def absent(self, spec: SpecT) -> None:
        """Remove the artifact if it exists."""

    @abstractmethod
    async def validate_spec(self, spec: SpecT) -> bool:
        """Check that the inputs the spec points at are usable."""

    async def ensure(self, spec: SpecT) -> None:
        """Validate, produce and verify the artifact.

        Raises BuildError when the inputs are unusable or the produced
        artifact does not read back as present.
        """
        output = getattr(spec, "output_path", spec)
        if not await self.validate_spec(spec):
            raise BuildError(output, "Invalid build inputs")

        await self.present(spec)

        status = await self.status(spec)
        if status != ProviderStatus.PRESENT:
            raise BuildError(output, f"Artifact is {status.value} after build")
