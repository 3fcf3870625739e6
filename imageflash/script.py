#!/usr/bin/env python3
"""
J-Link Commander Scripts

A flash script is the ordered list of commands J-Link Commander runs:

    r                   reset and halt
    loadfile "<image>"  program the image (quoted, paths may contain spaces)
    r                   reset again
    g                   go (start the CPU)
    q                   quit

Generated scripts live in a uniquely named temporary file that is
removed when the transient_script() block exits, however it exits.
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List

RESET = "r"
LOADFILE = "loadfile"
GO = "g"
QUIT = "q"

SCRIPT_SUFFIX = ".jlink"


@dataclass
class FlashScript:
    """Ordered programmer commands."""
    commands: List[str] = field(default_factory=list)

    @classmethod
    def load_and_run(cls, image: Path) -> "FlashScript":
        """Reset, load an image, reset, run, quit."""
        return cls([RESET, f"{LOADFILE} \"{image}\"", RESET, GO, QUIT])

    def render(self) -> str:
        return "".join(f"{command}\n" for command in self.commands)


@contextmanager
def transient_script(script: FlashScript, name: str,
                     logger: logging.Logger = None) -> Iterator[Path]:
    """
    Write a script to a unique temporary file and remove it on exit.

    Args:
        script: Commands to write.
        name: Readable part of the file name, e.g. "nrf51dk-blink".

    Yields:
        Path of the script file.
    """
    logger = logger or logging.getLogger("FlashScript")
    fd, path = tempfile.mkstemp(prefix=f"{name}{SCRIPT_SUFFIX}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(script.render())
        logger.debug(f"Wrote flash script {path}")
        yield Path(path)
    finally:
        try:
            os.unlink(path)
            logger.debug(f"Removed flash script {path}")
        except FileNotFoundError:
            pass
