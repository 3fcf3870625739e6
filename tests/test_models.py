#!/usr/bin/env python3
"""
Configuration loading tests.
"""

import dataclasses

import pytest
import yaml

from imageflash.errors import ConfigError
from imageflash.models import BOARD_PRESETS, Backend, FlasherConfig, TargetDescriptor


def test_defaults_match_nrf51dk():
    config = FlasherConfig()
    assert config.target == TargetDescriptor(
        arch="cortex-m0",
        triple="thumbv6m-none-eabi",
        platform="nrf51dk",
        device="nrf51422",
        interface="swd",
        speed=1200,
    )
    assert config.compose.region == ".apps"
    assert config.compose.backend == Backend.BUILTIN
    assert config.flash.timeout is None


def test_target_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        BOARD_PRESETS["nrf51dk"].speed = 4000


def test_from_yaml(tmp_path):
    path = tmp_path / "board.yaml"
    path.write_text(
        """
board: nrf51dk
target:
  speed: 4000
paths:
  board_dir: boards/nrf51dk
compose:
  backend: objcopy
flash:
  timeout: 30
probe:
  check_usb: true
  product_id: 0x0101
logging:
  level: DEBUG
"""
    )

    config = FlasherConfig.from_yaml(str(path))

    assert config.target.speed == 4000
    assert config.target.device == "nrf51422"
    assert config.paths.board_dir == "boards/nrf51dk"
    assert config.compose.backend == Backend.OBJCOPY
    assert config.flash.timeout == 30
    assert config.probe.check_usb is True
    assert config.probe.product_id == 0x0101
    assert config.log_level == "DEBUG"


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert FlasherConfig.from_yaml(str(path)) == FlasherConfig()


def test_to_dict_round_trips_through_yaml(tmp_path):
    config = FlasherConfig()
    config.flash.timeout = 12.5
    config.compose.backend = Backend.OBJCOPY

    path = tmp_path / "out.yaml"
    path.write_text(yaml.safe_dump(config.to_dict()))

    assert FlasherConfig.from_yaml(str(path)) == config


def test_missing_file():
    with pytest.raises(ConfigError):
        FlasherConfig.from_yaml("/nonexistent/imageflash.yaml")


def test_unknown_board():
    with pytest.raises(ConfigError):
        FlasherConfig.from_dict({"board": "nosuchboard"})


def test_unknown_target_field():
    with pytest.raises(ConfigError):
        FlasherConfig.from_dict({"target": {"cpu": "m4"}})


def test_unknown_backend():
    with pytest.raises(ConfigError):
        FlasherConfig.from_dict({"compose": {"backend": "llvm"}})


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("target: [unclosed\n")
    with pytest.raises(ConfigError):
        FlasherConfig.from_yaml(str(path))


def test_config_path_is_a_directory(tmp_path):
    with pytest.raises(ConfigError):
        FlasherConfig.from_yaml(str(tmp_path))


@pytest.mark.parametrize("section", ["target", "paths", "compose", "tools", "flash", "probe", "logging"])
def test_section_must_be_a_mapping(section):
    with pytest.raises(ConfigError) as exc:
        FlasherConfig.from_dict({section: ["a", "b"]})
    assert f"{section} section must be a mapping" in str(exc.value)


def test_null_section_gives_defaults():
    assert FlasherConfig.from_dict({"paths": None}) == FlasherConfig()


def test_board_must_be_a_name():
    with pytest.raises(ConfigError):
        FlasherConfig.from_dict({"board": ["nrf51dk"]})
