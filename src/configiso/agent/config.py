"""Configuration loading for the agent."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from configiso.errors import ConfigError
from configiso.models.config import ServiceConfig


logger = logging.getLogger(__name__)

ENV_PREFIX = "FILESERVER_"
CONFIG_FILE_ENV = "CONFIGISO_CONFIG"

# Environment variable -> location in the configuration tree
ENV_SETTINGS: Dict[str, Tuple[str, ...]] = {
    "DATA_DIR": ("data_dir",),
    "LOG_LEVEL": ("log_level",),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "BASE_URL": ("server", "base_url"),
    "HTTPS_KEY_FILE": ("server", "https_key_file"),
    "HTTPS_CERT_FILE": ("server", "https_cert_file"),
    "SHUTDOWN_TIMEOUT": ("server", "shutdown_timeout"),
    "IMAGE_NAME": ("image", "name"),
    "VOLUME_LABEL": ("image", "volume_label"),
    "BMC_ADDRESS": ("bmc", "address"),
    "BMC_USER": ("bmc", "username"),
    "BMC_PASSWORD": ("bmc", "password"),
    "BMC_VERIFY_TLS": ("bmc", "verify_tls"),
    "BMC_TIMEOUT": ("bmc", "timeout"),
    "BMC_DWELL_SECONDS": ("bmc", "dwell_seconds"),
}


class ConfigManager:
    """Builds the service configuration from a YAML file and the environment.

    Environment variables override file values. Each variable may carry the
    ``FILESERVER_`` prefix, which takes precedence over the bare name.
    """

    def __init__(self, config_file: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration manager."""
        self.environ = os.environ if environ is None else environ
        if config_file is None and self.environ.get(CONFIG_FILE_ENV):
            config_file = Path(self.environ[CONFIG_FILE_ENV])
        self.config_file = Path(config_file) if config_file else None
        self.yaml = YAML(typ="safe")
        self.config: Optional[ServiceConfig] = None

    async def load(self) -> ServiceConfig:
        """Load and validate configuration."""
        data: Dict[str, Any] = {}
        if self.config_file:
            logger.info(f"Loading configuration from {self.config_file}")
            data = await self._read_yaml(self.config_file)

        self._apply_environment(data)

        # No endpoint address means orchestration is disabled
        bmc = data.get("bmc")
        if isinstance(bmc, dict) and not bmc.get("address"):
            data["bmc"] = None

        try:
            self.config = ServiceConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        logger.debug(f"Loaded configuration: data_dir={self.config.data_dir}, port={self.config.server.port}")
        return self.config

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        try:
            content = await asyncio.to_thread(file_path.read_text)
        except OSError as e:
            raise ConfigError(f"Failed to read config file {file_path}: {e}") from e

        try:
            data = self.yaml.load(content)
        except YAMLError as e:
            raise ConfigError(f"Failed to parse config file {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {file_path} must contain a mapping")
        return data

    def _getenv(self, name: str) -> Optional[str]:
        for key in (f"{ENV_PREFIX}{name}", name):
            value = self.environ.get(key)
            if value:
                return value
        return None

    def _apply_environment(self, data: Dict[str, Any]):
        """Overlay environment variables onto the parsed file data."""
        for name, keys in ENV_SETTINGS.items():
            value = self._getenv(name)
            if value is None:
                continue
            section = data
            for key in keys[:-1]:
                if not isinstance(section.get(key), dict):
                    section[key] = {}
                section = section[key]
            section[keys[-1]] = value
