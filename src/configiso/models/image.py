"""Image specification models."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from configiso.models.config import VOLUME_LABEL_PATTERN


class ImageSpec(BaseModel):
    """A single image build: what to package, how to label it, where to write it."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    work_dir: Path = Field(..., description="Fully staged directory to package")
    volume_label: str = Field(..., pattern=VOLUME_LABEL_PATTERN)
    output_path: Path = Field(..., description="Destination image file")
