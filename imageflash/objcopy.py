#!/usr/bin/env python3
"""
objcopy Command Builder

Used when the compose backend is "objcopy": the section update and the
Intel HEX conversion are delegated to the GNU binutils tool instead of
being done in-process.
"""

import logging
import subprocess
from pathlib import Path
from typing import List

from .errors import ComposeError, TranscodeError
from .image import APP_REGION_FLAGS, RegionFlags
from .runner import ProcessRunner


def section_flags_arg(flags: RegionFlags) -> str:
    """Render region flags in objcopy's --set-section-flags syntax."""
    names = []
    if flags & RegionFlags.ALLOC:
        names.append("alloc")
    if flags & RegionFlags.CODE:
        names.append("code")
    return ",".join(names)


class Objcopy:
    """Thin wrapper around an objcopy executable."""

    def __init__(self, executable: str, runner: ProcessRunner = None,
                 logger: logging.Logger = None):
        self.executable = executable
        self.runner = runner or ProcessRunner()
        self.logger = logger or logging.getLogger("Objcopy")

    @staticmethod
    def update_section_args(region: str, contents: Path, source: Path, dest: Path,
                            flags: RegionFlags = APP_REGION_FLAGS) -> List[str]:
        return [
            "--update-section", f"{region}={contents}",
            "--set-section-flags", f"{region}={section_flags_arg(flags)}",
            str(source),
            str(dest),
        ]

    @staticmethod
    def ihex_args(source: Path, dest: Path) -> List[str]:
        return ["-Oihex", str(source), str(dest)]

    def update_section(self, region: str, contents: Path, source: Path, dest: Path):
        """Replace a section's contents and set it to alloc,code."""
        args = self.update_section_args(region, contents, source, dest)
        try:
            result = self.runner.invoke(self.executable, args)
        except FileNotFoundError:
            raise ComposeError(f"{self.executable} not found")
        except subprocess.TimeoutExpired:
            raise ComposeError(f"{self.executable} timed out")

        if not result.ok:
            self.logger.error(f"{self.executable} --update-section failed")
            raise ComposeError(
                f"{self.executable} failed with exit status {result.returncode}:\n{result.output}"
            )

    def to_ihex(self, source: Path, dest: Path):
        """Convert an object file to Intel HEX."""
        try:
            result = self.runner.invoke(self.executable, self.ihex_args(source, dest))
        except FileNotFoundError:
            raise TranscodeError(f"{self.executable} not found")
        except subprocess.TimeoutExpired:
            raise TranscodeError(f"{self.executable} timed out")

        if not result.ok:
            self.logger.error(f"{self.executable} -Oihex failed")
            raise TranscodeError(
                f"{self.executable} failed with exit status {result.returncode}:\n{result.output}"
            )
