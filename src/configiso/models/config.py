"""Configuration models."""

import os
from pathlib import PurePosixPath
from typing import Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


VOLUME_LABEL_PATTERN = r"^[A-Za-z0-9_.-]{1,32}$"


class ServerConfig(BaseModel):
    """Media server configuration."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    base_url: Optional[str] = Field(None, description="Externally reachable URL of this server")
    https_key_file: Optional[str] = None
    https_cert_file: Optional[str] = None
    shutdown_timeout: float = Field(default=30.0, ge=0)

    @property
    def tls_enabled(self) -> bool:
        """TLS is used only when both the key and the certificate are set."""
        return bool(self.https_key_file and self.https_cert_file)

    @property
    def effective_base_url(self) -> str:
        """Base URL handed to remote parties."""
        if self.base_url:
            return self.base_url
        scheme = "https" if self.tls_enabled else "http"
        return f"{scheme}://localhost:{self.port}"


class ImageConfig(BaseModel):
    """Configuration image contents."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(default="test-config.iso", description="Image file name")
    volume_label: str = Field(default="test-config", pattern=VOLUME_LABEL_PATTERN)
    files: Dict[str, str] = Field(
        default_factory=lambda: {"config": "config-data"},
        description="Relative path to file content",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Image name must be a plain file name."""
        if not v or "/" in v or v in (".", ".."):
            raise ValueError(f"Invalid image name: {v!r}")
        return v

    @field_validator("files")
    @classmethod
    def validate_files(cls, v):
        """Staged paths must stay inside the work directory."""
        for path in v:
            parts = PurePosixPath(path).parts
            if not parts or path.startswith("/") or ".." in parts:
                raise ValueError(f"Invalid staged file path: {path!r}")
        return v


class BMCConfig(BaseModel):
    """Out-of-band management endpoint configuration."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    address: str = Field(..., description="Endpoint URL including the system resource path")
    username: str = Field(default="")
    password: str = Field(default="")
    verify_tls: bool = Field(default=True)
    timeout: float = Field(default=30.0, gt=0)
    dwell_seconds: float = Field(default=300.0, ge=0)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        """Address must be an absolute http(s) URL."""
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Invalid BMC address: {v!r}")
        return v


class ServiceConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    data_dir: str = Field(default="./data")
    log_level: str = Field(default="INFO")
    server: ServerConfig = Field(default_factory=ServerConfig)
    image: ImageConfig = Field(default_factory=ImageConfig)
    bmc: Optional[BMCConfig] = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @property
    def images_dir(self) -> str:
        return os.path.join(self.data_dir, "isos")
