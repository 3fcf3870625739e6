#!/usr/bin/env python3
"""
Flash Session Driver

Drives J-Link Commander to program the device. Two modes share one state
machine:

    Kernel only:        IDLE -> RESET -> RUNNING -> COMPLETE
    Kernel + app:       IDLE -> RESET -> LOADED -> RUNNING -> COMPLETE

Kernel-only flashing runs the board's static script. Its loadfile path is
relative to the board directory, so the programmer always runs there.
Kernel+app flashing generates a script that loads the combined hex file
by absolute path, runs it once, and removes it afterwards.

J-Link Commander executes the whole script in one process and reports
only an exit status, so the states are recorded as one sequence after a
successful run. While the programmer is running the session is IDLE, and
a failed run leaves it there.

A failing or timed-out programmer raises FlashFailed with its output.
There is no retry: re-flashing a device left in an unknown state by an
interrupted session can corrupt its flash.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import FlashFailed
from .models import ApplicationDescriptor, FlashState, FlasherConfig
from .probe import ensure_probe
from .runner import ProcessResult, ProcessRunner
from .script import FlashScript, transient_script


class FlashSession:
    """Programs a device through the external J-Link Commander."""

    def __init__(self, config: FlasherConfig, runner: ProcessRunner = None,
                 logger: logging.Logger = None):
        self.config = config
        self.target = config.target
        self.logger = logger or logging.getLogger("FlashSession")
        self.runner = runner or ProcessRunner(self.logger)
        self.state = FlashState.IDLE
        self.history: List[FlashState] = [FlashState.IDLE]

    def _set_state(self, state: FlashState):
        """Update session state."""
        old_state = self.state
        self.state = state
        self.history.append(state)
        self.logger.info(f"State: {old_state.value} -> {state.value}")

    def _reset(self):
        self.state = FlashState.IDLE
        self.history = [FlashState.IDLE]

    # -------------------------------------------------------------------------
    # Programmer Invocation
    # -------------------------------------------------------------------------

    def programmer_args(self, script_path: Path) -> List[str]:
        """J-Link Commander arguments for one script."""
        args = [
            "-device", self.target.device,
            "-if", self.target.interface,
            "-speed", str(self.target.speed),
        ]
        if self.config.flash.autoconnect:
            args.extend(["-AutoConnect", "1"])
        if self.config.tools.jlink_script_flag:
            args.append(self.config.tools.jlink_script_flag)
        args.append(str(script_path))
        return args

    def _run_programmer(self, script_path: Path) -> ProcessResult:
        """Run the programmer on a script from inside the board directory."""
        ensure_probe(self.config.probe, self.logger)

        jlink = self.config.tools.jlink
        timeout: Optional[float] = self.config.flash.timeout
        try:
            result = self.runner.invoke(
                jlink, self.programmer_args(script_path),
                timeout=timeout, cwd=self.config.board_dir,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            raise FlashFailed(f"{jlink} timed out after {timeout} seconds", output=output)
        except FileNotFoundError:
            raise FlashFailed(f"{jlink} not found; install the J-Link software or set tools.jlink")

        if not result.ok:
            self.logger.error(f"{jlink} failed with exit status {result.returncode}")
            raise FlashFailed(
                f"{jlink} failed with exit status {result.returncode}",
                returncode=result.returncode,
                output=result.output,
            )
        return result

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def flash_kernel(self, script_path: Path) -> ProcessResult:
        """
        Flash the kernel alone using the board's static script.

        Args:
            script_path: Static script that loads the kernel hex file,
                with paths relative to the board directory.

        Returns:
            Result of the programmer invocation.

        Raises:
            FlashFailed: The programmer failed or timed out.
        """
        self._reset()
        self.logger.info(f"Flashing kernel on {self.target.device} via {script_path}")

        result = self._run_programmer(Path(script_path).resolve())

        self._set_state(FlashState.RESET)
        self._set_state(FlashState.RUNNING)
        self._set_state(FlashState.COMPLETE)
        return result

    def flash_kernel_and_app(self, hex_path: Path, app: ApplicationDescriptor) -> ProcessResult:
        """
        Flash a combined kernel+application hex file.

        Args:
            hex_path: Combined image in Intel HEX.
            app: Embedded application, used to name the script.

        Returns:
            Result of the programmer invocation.

        Raises:
            FlashFailed: The programmer failed or timed out.
        """
        self._reset()
        self.logger.info(f"Flashing {hex_path} on {self.target.device}")

        script = FlashScript.load_and_run(Path(hex_path).resolve())
        name = f"{self.target.platform}-{app.name}"
        with transient_script(script, name, self.logger) as script_path:
            result = self._run_programmer(script_path)

        self._set_state(FlashState.RESET)
        self._set_state(FlashState.LOADED)
        self._set_state(FlashState.RUNNING)
        self._set_state(FlashState.COMPLETE)
        return result
