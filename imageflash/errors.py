#!/usr/bin/env python3
"""
Error Taxonomy for the Image Flash Pipeline

None of these are retried. Every error propagates to the command line,
which reports the failing stage and exits non-zero.

    ImageFlashError
        ├── ConfigError
        ├── ArtifactNotFound
        ├── ComposeError
        │     ├── RegionNotFound
        │     └── RegionOverflow
        ├── TranscodeError
        └── FlashFailed
"""

from typing import Optional


class ImageFlashError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # Filled in by the pipeline (a models.Stage value)
        self.stage = None


class ConfigError(ImageFlashError):
    """Configuration file is missing, malformed or names an unknown board."""


class ArtifactNotFound(ImageFlashError):
    """A prerequisite build output is absent."""

    def __init__(self, path, hint: str = ""):
        message = f"Required artifact not found: {path}"
        if hint:
            message += f" ({hint})"
        super().__init__(message)
        self.path = path
        self.hint = hint


class ComposeError(ImageFlashError):
    """The application could not be merged into the kernel image."""


class RegionNotFound(ComposeError):
    """The named region does not exist in the kernel image's layout."""

    def __init__(self, region: str, available=()):
        message = f"Region '{region}' not found in image"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message)
        self.region = region


class RegionOverflow(ComposeError):
    """The application image is larger than its reserved region."""

    def __init__(self, region: str, app_size: int, region_size: int):
        super().__init__(
            f"Application image is {app_size} bytes but region '{region}' "
            f"holds only {region_size} bytes; shrink the application or "
            f"enlarge the region"
        )
        self.region = region
        self.app_size = app_size
        self.region_size = region_size


class TranscodeError(ImageFlashError):
    """The source image is malformed or has nothing to load."""


class FlashFailed(ImageFlashError):
    """The programmer failed, timed out, or the debug link is down."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output
