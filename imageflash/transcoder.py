#!/usr/bin/env python3
"""
Format Transcoder

Converts an object image into Intel HEX for the programmer. Every
loadable region is written at its absolute load address; symbols, debug
sections and anything else not loaded onto the device are dropped.
"""

import logging
from pathlib import Path

from intelhex import HexReaderError, IntelHex

from .errors import TranscodeError
from .image import BinaryImage, load_image
from .models import HEX_SUFFIX, Backend, FlasherConfig
from .objcopy import Objcopy
from .runner import ProcessRunner


def hex_path_for(image_path: Path) -> Path:
    """Output path: the image path with its extension replaced by .hex."""
    return Path(image_path).with_suffix(HEX_SUFFIX)


def image_to_intelhex(image: BinaryImage) -> IntelHex:
    """Build Intel HEX records for an image's loadable regions."""
    regions = image.loadable_regions()
    if not regions:
        raise TranscodeError("Image has no loadable regions")

    ih = IntelHex()
    for region in regions:
        ih.frombytes(image.data[region.offset:region.end], offset=region.address)
    if image.entry:
        ih.start_addr = {"EIP": image.entry}
    return ih


def read_region(hex_path: Path, address: int, length: int) -> bytes:
    """Read bytes back from a hex file; unset addresses read as 0xFF."""
    try:
        ih = IntelHex(str(hex_path))
    except (HexReaderError, OSError) as e:
        raise TranscodeError(f"Cannot read {hex_path}: {e}")
    return ih.tobinstr(start=address, size=length)


class FormatTranscoder:
    """Writes Intel HEX files next to their source images."""

    def __init__(self, config: FlasherConfig, runner: ProcessRunner = None,
                 logger: logging.Logger = None):
        self.backend = config.compose.backend
        self.logger = logger or logging.getLogger("FormatTranscoder")
        self.objcopy = Objcopy(config.tools.objcopy, runner, self.logger)

    def transcode(self, image_path: Path) -> Path:
        """
        Convert an image to Intel HEX.

        Args:
            image_path: Source image (ELF).

        Returns:
            Path of the written hex file.

        Raises:
            TranscodeError: Malformed image, no loadable regions, or objcopy failed.
        """
        image_path = Path(image_path)
        out_path = hex_path_for(image_path)
        image = load_image(image_path)

        if self.backend == Backend.OBJCOPY:
            if not image.loadable_regions():
                raise TranscodeError(f"{image_path} has no loadable regions")
            self.objcopy.to_ihex(image_path, out_path)
        else:
            ih = image_to_intelhex(image)
            ih.write_hex_file(str(out_path))

        self.logger.info(f"Hex image: {out_path}")
        return out_path
