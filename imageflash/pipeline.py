#!/usr/bin/env python3
"""
Flash Pipeline

Runs the stages in order, each feeding the next:

    locate -> compose -> transcode -> flash

Any failure is tagged with the stage it came from and propagates.
Artifacts written by earlier stages are left in place for inspection.
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from .composer import ImageComposer
from .errors import ImageFlashError
from .locator import ArtifactLocator
from .models import ApplicationDescriptor, FlasherConfig, Stage
from .runner import ProcessResult, ProcessRunner
from .session import FlashSession
from .transcoder import FormatTranscoder


@contextmanager
def stage(name: Stage, logger: logging.Logger):
    """Tag errors raised inside the block with the stage name."""
    logger.debug(f"Stage: {name.value}")
    try:
        yield
    except ImageFlashError as e:
        if e.stage is None:
            e.stage = name
        raise


class FlashPipeline:
    """Kernel and kernel+application flashing."""

    def __init__(self, config: FlasherConfig, runner: ProcessRunner = None,
                 logger: logging.Logger = None):
        self.config = config
        self.logger = logger or logging.getLogger("FlashPipeline")
        runner = runner or ProcessRunner()

        self.locator = ArtifactLocator(config)
        self.composer = ImageComposer(config, runner)
        self.transcoder = FormatTranscoder(config, runner)
        self.session = FlashSession(config, runner)

    def build_kernel_hex(self) -> Path:
        """Transcode the kernel image to hex."""
        with stage(Stage.LOCATE, self.logger):
            kernel = self.locator.resolve().kernel
        with stage(Stage.TRANSCODE, self.logger):
            return self.transcoder.transcode(kernel)

    def build_combined_image(self, app: ApplicationDescriptor) -> Path:
        """Compose kernel and application into the combined image."""
        with stage(Stage.LOCATE, self.logger):
            paths = self.locator.resolve(app)
        with stage(Stage.COMPOSE, self.logger):
            return self.composer.compose(paths.kernel, paths.app, paths.combined)

    def build_combined_hex(self, app: ApplicationDescriptor) -> Path:
        """Compose, then transcode the combined image to hex."""
        combined = self.build_combined_image(app)
        with stage(Stage.TRANSCODE, self.logger):
            return self.transcoder.transcode(combined)

    def flash_kernel(self) -> ProcessResult:
        """Transcode and flash the kernel alone."""
        with stage(Stage.LOCATE, self.logger):
            script = self.locator.kernel_script()
        hex_path = self.build_kernel_hex()
        self.logger.info(f"Kernel hex ready: {hex_path}")
        with stage(Stage.FLASH, self.logger):
            return self.session.flash_kernel(script)

    def flash_kernel_and_app(self, app: ApplicationDescriptor) -> ProcessResult:
        """Compose, transcode and flash kernel plus application."""
        hex_path = self.build_combined_hex(app)
        with stage(Stage.FLASH, self.logger):
            return self.session.flash_kernel_and_app(hex_path, app)
