#!/usr/bin/env python3
"""
Image Composer

Embeds an application image into the reserved region of a kernel image.

The result equals the kernel image except that:
    - the region's bytes are the application bytes, zero-padded to the
      region length
    - the region is flagged alloc,code so it is loaded onto the device

The kernel image on disk is never modified. An application larger than
its region is rejected before anything is written.
"""

import logging
import tempfile
from pathlib import Path

from .errors import ComposeError, RegionOverflow
from .image import BinaryImage, load_image
from .models import Backend, FlasherConfig
from .objcopy import Objcopy
from .runner import ProcessRunner


def compose_image(kernel: BinaryImage, region: str, app: bytes) -> BinaryImage:
    """Return a copy of the kernel with the application in the named region."""
    return kernel.update_region(region, app)


class ImageComposer:
    """Writes combined kernel+application images."""

    def __init__(self, config: FlasherConfig, runner: ProcessRunner = None,
                 logger: logging.Logger = None):
        self.config = config
        self.region = config.compose.region
        self.backend = config.compose.backend
        self.logger = logger or logging.getLogger("ImageComposer")
        self.objcopy = Objcopy(config.tools.objcopy, runner, self.logger)

    def compose(self, kernel_path: Path, app_path: Path, out_path: Path) -> Path:
        """
        Compose kernel and application into out_path.

        Args:
            kernel_path: Kernel release image (ELF).
            app_path: Application image (flat binary).
            out_path: Combined image to write.

        Returns:
            out_path.

        Raises:
            RegionNotFound: The kernel has no such region.
            RegionOverflow: The application does not fit.
            ComposeError: The output would overwrite the kernel, or objcopy failed.
            TranscodeError: The kernel image is malformed.
        """
        kernel_path, app_path, out_path = Path(kernel_path), Path(app_path), Path(out_path)
        if out_path.resolve() == kernel_path.resolve():
            raise ComposeError(f"Refusing to overwrite the kernel image {kernel_path}")

        kernel = load_image(kernel_path)
        app = app_path.read_bytes()
        target = kernel.region(self.region)

        self.logger.info(
            f"Embedding {app_path.name} ({len(app)} bytes) into {self.region} "
            f"({target.size} bytes at {target.address:#010x})"
        )
        if len(app) > target.size:
            raise RegionOverflow(self.region, len(app), target.size)

        out_path.parent.mkdir(parents=True, exist_ok=True)
        if self.backend == Backend.OBJCOPY:
            self._compose_objcopy(kernel_path, app, target.size, out_path)
        else:
            composed = compose_image(kernel, self.region, app)
            out_path.write_bytes(composed.data)

        self.logger.info(f"Combined image: {out_path}")
        return out_path

    def _compose_objcopy(self, kernel_path: Path, app: bytes, region_size: int, out_path: Path):
        # objcopy resizes the section to the file it is given; pad to keep the layout
        with tempfile.TemporaryDirectory(prefix="imageflash-") as tmp:
            padded = Path(tmp) / "region.bin"
            padded.write_bytes(app + bytes(region_size - len(app)))
            self.objcopy.update_section(self.region, padded, kernel_path, out_path)
