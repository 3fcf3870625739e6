#!/usr/bin/env python3
"""
External Process Runner

Every external tool (objcopy, J-Link Commander) goes through
ProcessRunner.invoke() so the orchestration code can be tested with a
fake runner and no toolchain or hardware present.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass
class ProcessResult:
    """Exit status and combined stdout/stderr of one invocation."""
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """Runs external commands and captures their output."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger("ProcessRunner")

    def invoke(self, command: str, args: List[str],
               timeout: Optional[float] = None,
               cwd: Optional[Path] = None) -> ProcessResult:
        """
        Run a command to completion.

        Args:
            command: Executable name or path.
            args: Arguments.
            timeout: Seconds to wait, or None to wait indefinitely.
            cwd: Working directory, or None for the current one.

        Returns:
            ProcessResult with the exit status and captured output.

        Raises:
            subprocess.TimeoutExpired: The command did not finish in time.
            FileNotFoundError: The executable does not exist.
        """
        cmd = [command] + [str(a) for a in args]
        self.logger.debug(f"Running: {' '.join(cmd)}")

        # trunk-ignore(bandit/B603)
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
            cwd=cwd,
        )

        self.logger.debug(f"{command} exited with {result.returncode}")
        return ProcessResult(returncode=result.returncode, output=result.stdout or "")
