"""Image provider for building configuration images."""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional

from pycdlib.pycdlibexception import PyCdlibException

from configiso.models.config import ImageConfig, ServiceConfig
from configiso.models.image import ImageSpec
from configiso.providers.base import BaseProvider, ProviderStatus
from configiso.utils import iso


logger = logging.getLogger(__name__)


def write_input_files(work_dir: Path, files: Dict[str, str]):
    """Write the files to be packaged into work_dir."""
    for rel_path, content in files.items():
        target = work_dir / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        target.chmod(0o644)


class ImageProvider(BaseProvider[ImageSpec]):
    """Provider for ISO9660 configuration images."""

    def __init__(self):
        """Initialize image provider."""
        self.data_dir: Optional[Path] = None
        self.images_dir: Optional[Path] = None

    async def initialize(self, config: ServiceConfig):
        """Initialize provider with configuration."""
        self.data_dir = Path(config.data_dir)
        self.images_dir = Path(config.images_dir)
        await asyncio.to_thread(self.images_dir.mkdir, parents=True, exist_ok=True)

    async def status(self, spec: ImageSpec) -> ProviderStatus:
        """Check whether a finalized image with the expected label exists."""
        if not await asyncio.to_thread(spec.output_path.is_file):
            return ProviderStatus.ABSENT

        try:
            label = await asyncio.to_thread(iso.read_volume_label, spec.output_path)
        except (PyCdlibException, OSError) as e:
            logger.error(f"Error reading image {spec.output_path}: {e}")
            return ProviderStatus.ERROR

        if label != spec.volume_label:
            logger.debug(f"Image {spec.output_path} has label {label!r}, expected {spec.volume_label!r}")
            return ProviderStatus.ABSENT
        return ProviderStatus.PRESENT

    async def present(self, spec: ImageSpec) -> None:
        """Build the image, replacing any previous one at the same path."""
        logger.info(f"Building image {spec.output_path} from {spec.work_dir}")
        await asyncio.to_thread(iso.create, spec.output_path, spec.work_dir, spec.volume_label)
        logger.info(f"Image created at {spec.output_path}")

    async def absent(self, spec: ImageSpec) -> None:
        """Ensure image is absent."""
        if not await asyncio.to_thread(spec.output_path.exists):
            logger.debug(f"Image {spec.output_path} already absent")
            return

        logger.info(f"Removing image {spec.output_path}")
        await asyncio.to_thread(spec.output_path.unlink, missing_ok=True)

    async def validate_spec(self, spec: ImageSpec) -> bool:
        """Validate that the work directory and output directory exist."""
        if not spec.work_dir.is_dir():
            logger.error(f"Work directory {spec.work_dir} does not exist")
            return False
        if not spec.output_path.parent.is_dir():
            logger.error(f"Output directory {spec.output_path.parent} does not exist")
            return False
        return True

    async def stage(self, files: Dict[str, str], prefix: str) -> Path:
        """Create a work directory under the data directory holding files."""
        work_dir = Path(await asyncio.to_thread(tempfile.mkdtemp, prefix=prefix, dir=self.data_dir))
        try:
            await asyncio.to_thread(write_input_files, work_dir, files)
        except OSError:
            await asyncio.to_thread(shutil.rmtree, work_dir, True)
            raise
        logger.debug(f"Staged {len(files)} files in {work_dir}")
        return work_dir

    async def build(self, image: ImageConfig) -> Path:
        """Stage the configured files and build the image from them."""
        output_path = self.images_dir / image.name
        work_dir = await self.stage(image.files, prefix=f"{image.volume_label}-")
        try:
            spec = ImageSpec(
                work_dir=work_dir,
                volume_label=image.volume_label,
                output_path=output_path,
            )
            await self.ensure(spec)
        finally:
            await asyncio.to_thread(shutil.rmtree, work_dir, True)
        return output_path
