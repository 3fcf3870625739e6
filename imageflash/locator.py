#!/usr/bin/env python3
"""
Artifact Locator

Resolves where the external build left the kernel and application
images, and where the derived artifacts of this pipeline go. All paths
follow the board build layout:

    <board_dir>/target/<triple>/release/<platform>          kernel
    <board_dir>/target/<triple>/release/<platform>-<app>    combined image
    <apps_dir>/<app>/build/<arch>/app.bin                   application
    <board_dir>/jtag/flash-kernel.jlink                     kernel-only script
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ArtifactNotFound
from .models import ApplicationDescriptor, FlasherConfig

APP_IMAGE_NAME = "app.bin"


@dataclass(frozen=True)
class ArtifactPaths:
    """Resolved inputs for one flash operation."""
    kernel: Path
    app: Optional[Path] = None
    combined: Optional[Path] = None


class ArtifactLocator:
    """Finds prebuilt images for a target/application pair."""

    def __init__(self, config: FlasherConfig, logger: logging.Logger = None):
        self.config = config
        self.target = config.target
        self.logger = logger or logging.getLogger("ArtifactLocator")

    @property
    def release_dir(self) -> Path:
        return self.config.board_dir / "target" / self.target.triple / "release"

    @property
    def apps_dir(self) -> Path:
        # Relative apps_dir is taken from the board directory
        return self.config.board_dir / self.config.paths.apps_dir

    def kernel_path(self) -> Path:
        return self.release_dir / self.target.platform

    def app_path(self, app: ApplicationDescriptor) -> Path:
        return self.apps_dir / app.name / "build" / self.target.arch / APP_IMAGE_NAME

    def combined_path(self, app: ApplicationDescriptor) -> Path:
        return self.release_dir / f"{self.target.platform}-{app.name}"

    def kernel_script_path(self) -> Path:
        return self.config.board_dir / self.config.paths.kernel_script

    # -------------------------------------------------------------------------
    # Resolution (existence checked)
    # -------------------------------------------------------------------------

    def kernel_image(self) -> Path:
        """Path of the kernel's release image."""
        path = self.kernel_path()
        if not path.is_file():
            raise ArtifactNotFound(
                path,
                f"build the kernel first: cargo build --release --target {self.target.triple}",
            )
        return path

    def app_image(self, app: ApplicationDescriptor) -> Path:
        """Path of an application's built image for the target architecture."""
        path = self.app_path(app)
        if not path.is_file():
            raise ArtifactNotFound(
                path,
                f"build the application first: make -C {self.apps_dir / app.name} "
                f"TOCK_ARCH={self.target.arch}",
            )
        return path

    def kernel_script(self) -> Path:
        """Path of the static kernel-only programmer script."""
        path = self.kernel_script_path()
        if not path.is_file():
            raise ArtifactNotFound(path, "the board's kernel flash script is missing")
        return path

    def resolve(self, app: Optional[ApplicationDescriptor] = None) -> ArtifactPaths:
        """
        Resolve the inputs for a flash operation.

        Args:
            app: Application to embed, or None for kernel only.

        Returns:
            ArtifactPaths with the kernel path, and for an application its
            image path and the combined output path.

        Raises:
            ArtifactNotFound: A required build output is absent.
        """
        kernel = self.kernel_image()
        if app is None:
            self.logger.info(f"Kernel image: {kernel}")
            return ArtifactPaths(kernel=kernel)

        app_image = self.app_image(app)
        self.logger.info(f"Kernel image: {kernel}")
        self.logger.info(f"Application image: {app_image}")
        return ArtifactPaths(kernel=kernel, app=app_image, combined=self.combined_path(app))
