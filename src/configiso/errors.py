"""Exception hierarchy for configiso."""

from typing import Optional


class ConfigImageError(Exception):
    """Base class for all configiso errors."""
    pass


class ConfigError(ConfigImageError):
    """Configuration could not be loaded or validated."""
    pass


class BuildError(ConfigImageError):
    """Image construction failed."""

    def __init__(self, output_path, message: str):
        self.output_path = str(output_path)
        super().__init__(f"{message} ({self.output_path})")


class AllocationFailed(BuildError):
    """The image container could not be created at the output path."""
    pass


class FormatFailed(BuildError):
    """The ISO9660 filesystem could not be laid out."""
    pass


class FinalizeFailed(BuildError):
    """Rock Ridge metadata or the volume descriptors could not be written."""
    pass


class OrchestrationError(ConfigImageError):
    """A step of the virtual media boot sequence failed.

    ``step`` names the state the sequence was in, ``resource`` identifies the
    remote resource involved (system path, manager or media URI).
    """

    step = "unknown"

    def __init__(self, message: str, resource: Optional[str] = None):
        self.resource = resource
        self.message = message
        detail = f"{self.step}: {message}"
        if resource:
            detail = f"{detail} [{resource}]"
        super().__init__(detail)


class ConnectFailed(OrchestrationError):
    step = "connect"


class SystemNotFound(OrchestrationError):
    step = "resolve_system"


class DiscoveryFailed(OrchestrationError):
    step = "discover_media"


class NoCompatibleMedia(OrchestrationError):
    step = "discover_media"


class EjectFailed(OrchestrationError):
    step = "eject_media"


class InsertFailed(OrchestrationError):
    step = "insert_media"


class ResetFailed(OrchestrationError):
    step = "reset_system"


class PostDwellEjectFailed(OrchestrationError):
    step = "post_dwell_eject"


class RedfishError(ConfigImageError):
    """A management endpoint request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)


class ServerError(ConfigImageError):
    """The media server could not bind or listen."""
    pass


class ShutdownError(ConfigImageError):
    """The media server could not be closed, even forcibly."""
    pass
