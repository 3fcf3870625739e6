#!/usr/bin/env python3
"""
Command-line tests. The programmer is replaced by patching the runner.
"""

import pytest
import yaml

from conftest import release_dir
from imageflash import cli
from imageflash.runner import ProcessResult, ProcessRunner


class Calls(list):
    pass


@pytest.fixture
def calls(monkeypatch):
    recorded = Calls()
    recorded.returncode = 0
    recorded.output = ""

    def invoke(self, command, args, timeout=None, cwd=None):
        recorded.append((command, [str(a) for a in args], timeout))
        return ProcessResult(recorded.returncode, recorded.output)

    monkeypatch.setattr(ProcessRunner, "invoke", invoke)
    return recorded


def board_args(board):
    return ["--board-dir", board.paths.board_dir, "--apps-dir", board.paths.apps_dir]


def test_flash_kernel_and_app(board, calls, capsys):
    code = cli.main(board_args(board) + ["flash-kernel-and-app", "blink"])

    assert code == 0
    assert calls[0][0] == "JLinkExe"
    assert (release_dir(board) / "nrf51dk-blink.hex").is_file()
    assert "flashed successfully" in capsys.readouterr().out


def test_flash_kernel(board, calls):
    assert cli.main(board_args(board) + ["flash-kernel"]) == 0
    assert calls[0][1][-1].endswith("flash-kernel.jlink")


def test_timeout_option(board, calls):
    cli.main(board_args(board) + ["--timeout", "45", "flash-kernel"])
    assert calls[0][2] == 45.0


def test_missing_app_exit_status(board, calls, capsys):
    code = cli.main(board_args(board) + ["flash-kernel-and-app", "hello"])

    assert code == 1
    assert "Error [locate]" in capsys.readouterr().err
    assert calls == []


def test_flash_failure_shows_programmer_output(board, calls, capsys):
    calls.returncode = 1
    calls.output = "Cannot connect to J-Link."

    code = cli.main(board_args(board) + ["flash-kernel-and-app", "blink"])

    err = capsys.readouterr().err
    assert code == 1
    assert "Error [flash]" in err
    assert "Cannot connect to J-Link." in err


def test_compose_and_transcode_commands(board, calls, capsys):
    assert cli.main(board_args(board) + ["compose", "blink"]) == 0
    assert cli.main(board_args(board) + ["transcode"]) == 0
    assert cli.main(board_args(board) + ["transcode", "blink"]) == 0

    out = capsys.readouterr().out
    assert str(release_dir(board) / "nrf51dk-blink") in out
    assert str(release_dir(board) / "nrf51dk.hex") in out
    assert str(release_dir(board) / "nrf51dk-blink.hex") in out
    assert calls == []


def test_show_config(capsys):
    assert cli.main(["show-config"]) == 0
    shown = yaml.safe_load(capsys.readouterr().out)
    assert shown["target"]["device"] == "nrf51422"
    assert shown["flash"]["timeout"] is None


def test_unknown_board_exit_status(capsys):
    assert cli.main(["--board", "nosuchboard", "flash-kernel"]) == 2
    assert "Unknown board" in capsys.readouterr().err


def test_bad_app_name(capsys):
    assert cli.main(["flash-kernel-and-app", "../escape"]) == 2


def test_config_file(board, calls, tmp_path):
    path = tmp_path / "board.yaml"
    path.write_text(yaml.safe_dump({
        "paths": {"board_dir": board.paths.board_dir, "apps_dir": board.paths.apps_dir},
        "tools": {"jlink": "/opt/SEGGER/JLink/JLinkExe"},
    }))

    assert cli.main(["-c", str(path), "flash-kernel-and-app", "blink"]) == 0
    assert calls[0][0] == "/opt/SEGGER/JLink/JLinkExe"


def test_config_directory_exit_status(tmp_path, capsys):
    assert cli.main(["-c", str(tmp_path), "show-config"]) == 2
    assert "Error:" in capsys.readouterr().err


def test_config_section_not_mapping_exit_status(tmp_path, capsys):
    path = tmp_path / "board.yaml"
    path.write_text("paths: [a, b]\n")

    assert cli.main(["-c", str(path), "show-config"]) == 2
    assert "paths section must be a mapping" in capsys.readouterr().err


def test_compose_prints_only_the_path_on_stdout(board, calls, capsys):
    assert cli.main(board_args(board) + ["-v", "compose", "blink"]) == 0

    captured = capsys.readouterr()
    assert captured.out.splitlines() == [str(release_dir(board) / "nrf51dk-blink")]
    assert "Stage: compose" in captured.err
