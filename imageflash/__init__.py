"""
Kernel + Application Image Flasher

Packages a prebuilt kernel image and a prebuilt application image into one
flashable firmware artifact, converts it to Intel HEX, and programs it
onto a microcontroller through SEGGER J-Link Commander.

Pipeline:
    Artifact Locator      finds the kernel and application build outputs
        │
        ▼
    Image Composer        embeds the application in the kernel's .apps region
        │
        ▼
    Format Transcoder     converts the combined ELF image to Intel HEX
        │
        ▼
    Flash Session         runs J-Link: reset, load, reset, go, quit
        │
        ▼
    Device

Usage:
    from imageflash import ApplicationDescriptor, FlasherConfig, FlashPipeline

    config = FlasherConfig.from_yaml("board.yaml")
    pipeline = FlashPipeline(config)

    # Kernel alone (static script)
    pipeline.flash_kernel()

    # Kernel with an application
    pipeline.flash_kernel_and_app(ApplicationDescriptor("blink"))
"""

from .errors import (
    ArtifactNotFound,
    ComposeError,
    ConfigError,
    FlashFailed,
    ImageFlashError,
    RegionNotFound,
    RegionOverflow,
    TranscodeError,
)
from .image import BinaryImage, ImageFormat, Region, RegionFlags
from .models import (
    ApplicationDescriptor,
    FlasherConfig,
    FlashState,
    Stage,
    TargetDescriptor,
)
from .pipeline import FlashPipeline

__version__ = "0.1.0"
__all__ = [
    # Pipeline
    "FlashPipeline",
    "FlasherConfig",
    "TargetDescriptor",
    "ApplicationDescriptor",
    "FlashState",
    "Stage",
    # Images
    "BinaryImage",
    "ImageFormat",
    "Region",
    "RegionFlags",
    # Errors
    "ImageFlashError",
    "ConfigError",
    "ArtifactNotFound",
    "ComposeError",
    "RegionNotFound",
    "RegionOverflow",
    "TranscodeError",
    "FlashFailed",
]
