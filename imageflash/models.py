#!/usr/bin/env python3
"""
Data Models for the Image Flash Pipeline

This module contains the descriptors, enums and configuration classes
shared by every pipeline stage.
"""

import yaml
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from .errors import ConfigError


# =============================================================================
# Constants
# =============================================================================

# Region the application is embedded into
DEFAULT_APPS_REGION = ".apps"

# Static kernel-only command script, relative to the board directory
DEFAULT_KERNEL_SCRIPT = "jtag/flash-kernel.jlink"

# Userland examples, relative to the board directory
DEFAULT_APPS_DIR = "../../userland/examples"

# External tools
DEFAULT_OBJCOPY = "arm-none-eabi-objcopy"
DEFAULT_JLINK = "JLinkExe"

# SEGGER USB vendor id (J-Link probes)
SEGGER_VENDOR_ID = 0x1366

# Extension of the programmer's record format
HEX_SUFFIX = ".hex"


# =============================================================================
# Enums
# =============================================================================

class FlashState(Enum):
    """Flash session states."""
    IDLE = "idle"
    RESET = "reset"
    LOADED = "loaded"
    RUNNING = "running"
    COMPLETE = "complete"


class Stage(Enum):
    """Pipeline stages, used to tag failures."""
    LOCATE = "locate"
    COMPOSE = "compose"
    TRANSCODE = "transcode"
    FLASH = "flash"


class Backend(Enum):
    """How composition and transcoding are carried out."""
    BUILTIN = "builtin"
    OBJCOPY = "objcopy"


# =============================================================================
# Descriptors
# =============================================================================

@dataclass(frozen=True)
class TargetDescriptor:
    """Identifies a hardware platform."""
    arch: str
    triple: str
    platform: str
    device: str
    interface: str = "swd"
    speed: int = 1200  # kHz


@dataclass(frozen=True)
class ApplicationDescriptor:
    """Names the application to embed into the kernel image."""
    name: str

    def __post_init__(self):
        if not self.name or "/" in self.name or self.name in (".", ".."):
            raise ConfigError(f"Invalid application name: {self.name!r}")


BOARD_PRESETS: Dict[str, TargetDescriptor] = {
    "nrf51dk": TargetDescriptor(
        arch="cortex-m0",
        triple="thumbv6m-none-eabi",
        platform="nrf51dk",
        device="nrf51422",
        interface="swd",
        speed=1200,
    ),
}


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class PathsConfig:
    """Where build outputs live."""
    board_dir: str = "."
    apps_dir: str = DEFAULT_APPS_DIR
    kernel_script: str = DEFAULT_KERNEL_SCRIPT


@dataclass
class ComposeConfig:
    """Composition and transcoding settings."""
    region: str = DEFAULT_APPS_REGION
    backend: Backend = Backend.BUILTIN


@dataclass
class ToolsConfig:
    """External executables."""
    objcopy: str = DEFAULT_OBJCOPY
    jlink: str = DEFAULT_JLINK
    # Empty: pass the script as the last positional argument
    jlink_script_flag: str = ""


@dataclass
class FlashConfig:
    """Programmer invocation settings."""
    timeout: Optional[float] = None  # None blocks until the programmer exits
    autoconnect: bool = True


@dataclass
class ProbeConfig:
    """USB preflight check for the debug probe."""
    check_usb: bool = False
    vendor_id: int = SEGGER_VENDOR_ID
    product_id: Optional[int] = None


def _section(data: Dict, name: str) -> Dict:
    """A config section, empty when absent or null."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} section must be a mapping")
    return section


@dataclass
class FlasherConfig:
    """Configuration for the flash pipeline."""
    board: str = "nrf51dk"
    target: TargetDescriptor = field(default_factory=lambda: BOARD_PRESETS["nrf51dk"])
    paths: PathsConfig = field(default_factory=PathsConfig)
    compose: ComposeConfig = field(default_factory=ComposeConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    flash: FlashConfig = field(default_factory=FlashConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def board_dir(self) -> Path:
        return Path(self.paths.board_dir)

    @classmethod
    def for_board(cls, board: str) -> "FlasherConfig":
        """Default configuration for a board preset."""
        if board not in BOARD_PRESETS:
            raise ConfigError(
                f"Unknown board '{board}' (known: {', '.join(sorted(BOARD_PRESETS))})"
            )
        return cls(board=board, target=BOARD_PRESETS[board])

    @classmethod
    def from_yaml(cls, path: str) -> "FlasherConfig":
        """Load configuration from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "FlasherConfig":
        """Build configuration from a parsed YAML mapping."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        board = data.get("board", "nrf51dk")
        if not isinstance(board, str):
            raise ConfigError("board must be a preset name")
        config = cls.for_board(board)

        target_data = _section(data, "target")
        try:
            target = replace(config.target, **target_data)
        except TypeError as e:
            raise ConfigError(f"Invalid target section: {e}")

        paths = _section(data, "paths")
        comp = _section(data, "compose")
        tools = _section(data, "tools")
        flash = _section(data, "flash")
        probe = _section(data, "probe")
        log = _section(data, "logging")

        try:
            backend = Backend(comp.get("backend", Backend.BUILTIN.value))
        except ValueError:
            raise ConfigError(f"Unknown compose backend: {comp.get('backend')}")

        return cls(
            board=config.board,
            target=target,
            paths=PathsConfig(
                board_dir=str(paths.get("board_dir", ".")),
                apps_dir=str(paths.get("apps_dir", DEFAULT_APPS_DIR)),
                kernel_script=str(paths.get("kernel_script", DEFAULT_KERNEL_SCRIPT)),
            ),
            compose=ComposeConfig(
                region=comp.get("region", DEFAULT_APPS_REGION),
                backend=backend,
            ),
            tools=ToolsConfig(
                objcopy=tools.get("objcopy", DEFAULT_OBJCOPY),
                jlink=tools.get("jlink", DEFAULT_JLINK),
                jlink_script_flag=tools.get("jlink_script_flag", ""),
            ),
            flash=FlashConfig(
                timeout=flash.get("timeout"),
                autoconnect=flash.get("autoconnect", True),
            ),
            probe=ProbeConfig(
                check_usb=probe.get("check_usb", False),
                vendor_id=probe.get("vendor_id", SEGGER_VENDOR_ID),
                product_id=probe.get("product_id"),
            ),
            log_level=log.get("level", "INFO"),
            log_file=log.get("file"),
        )

    def to_dict(self) -> Dict:
        """Convert config to dictionary."""
        return {
            "board": self.board,
            "target": {
                "arch": self.target.arch,
                "triple": self.target.triple,
                "platform": self.target.platform,
                "device": self.target.device,
                "interface": self.target.interface,
                "speed": self.target.speed,
            },
            "paths": {
                "board_dir": self.paths.board_dir,
                "apps_dir": self.paths.apps_dir,
                "kernel_script": self.paths.kernel_script,
            },
            "compose": {
                "region": self.compose.region,
                "backend": self.compose.backend.value,
            },
            "tools": {
                "objcopy": self.tools.objcopy,
                "jlink": self.tools.jlink,
                "jlink_script_flag": self.tools.jlink_script_flag,
            },
            "flash": {
                "timeout": self.flash.timeout,
                "autoconnect": self.flash.autoconnect,
            },
            "probe": {
                "check_usb": self.probe.check_usb,
                "vendor_id": self.probe.vendor_id,
                "product_id": self.probe.product_id,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
            },
        }
