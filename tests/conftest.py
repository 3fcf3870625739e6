"""
Shared fixtures: an in-memory ELF builder, a fake process runner, and a
board directory laid out the way the external build leaves it.
"""

import struct
from pathlib import Path

import pytest

from imageflash.elf import SHF_ALLOC, SHF_EXECINSTR, SHF_WRITE, SHT_NOBITS, SHT_PROGBITS
from imageflash.models import FlasherConfig
from imageflash.runner import ProcessResult

SHT_STRTAB = 3
PT_LOAD = 1

TEXT_ADDR = 0x00000000
APPS_ADDR = 0x00030000
APPS_SIZE = 4096
BSS_ADDR = 0x20000000

TEXT_BYTES = bytes(range(256))


def _align(buf: bytearray, base: int, alignment: int = 4):
    while (base + len(buf)) % alignment:
        buf.append(0)


def build_elf(sections, segments=(), entry=0) -> bytes:
    """
    Build a little-endian ELF32 file.

    Args:
        sections: (name, sh_type, sh_flags, addr, contents) tuples; for
            SHT_NOBITS, contents is the size.
        segments: (section_name, paddr) tuples; each becomes a PT_LOAD
            covering that section's file bytes.
        entry: Entry point.
    """
    ehsize, phentsize, shentsize = 52, 32, 40
    phoff = ehsize if segments else 0
    base = ehsize + phentsize * len(segments)

    body = bytearray()
    names = bytearray(b"\x00")
    headers = []
    placed = {}
    for name, sh_type, sh_flags, addr, contents in sections:
        name_off = len(names)
        names += name.encode() + b"\x00"
        _align(body, base)
        offset = base + len(body)
        if sh_type == SHT_NOBITS:
            size = contents
        else:
            body += contents
            size = len(contents)
        placed[name] = (offset, addr, size)
        headers.append(struct.pack(
            "<IIIIIIIIII", name_off, sh_type, sh_flags, addr, offset, size, 0, 0, 4, 0))

    shstr_name = len(names)
    names += b".shstrtab\x00"
    _align(body, base)
    shstr_off = base + len(body)
    body += names
    headers.append(struct.pack(
        "<IIIIIIIIII", shstr_name, SHT_STRTAB, 0, 0, shstr_off, len(names), 0, 0, 1, 0))

    _align(body, base)
    shoff = base + len(body)
    shnum = len(headers) + 1

    ident = b"\x7fELF" + bytes([1, 1, 1, 0]) + bytes(8)
    ehdr = ident + struct.pack(
        "<HHIIIIIHHHHHH", 2, 40, 1, entry, phoff, shoff, 0x05000200,
        ehsize, phentsize if segments else 0, len(segments),
        shentsize, shnum, shnum - 1)

    phdrs = b""
    for name, paddr in segments:
        offset, addr, size = placed[name]
        phdrs += struct.pack("<IIIIIIII", PT_LOAD, offset, addr, paddr, size, size, 5, 4)

    return ehdr + phdrs + bytes(body) + bytes(shentsize) + b"".join(headers)


def kernel_elf(apps_size: int = APPS_SIZE, apps_type: int = SHT_PROGBITS) -> bytes:
    """A small kernel with code, an empty .apps region, .bss and a comment."""
    apps = bytes(apps_size) if apps_type != SHT_NOBITS else apps_size
    return build_elf(
        [
            (".text", SHT_PROGBITS, SHF_ALLOC | SHF_EXECINSTR, TEXT_ADDR, TEXT_BYTES),
            (".apps", apps_type, SHF_WRITE, APPS_ADDR, apps),
            (".bss", SHT_NOBITS, SHF_ALLOC | SHF_WRITE, BSS_ADDR, 512),
            (".comment", SHT_PROGBITS, 0, 0, b"rustc version 1.x\x00"),
        ],
        segments=[(".text", TEXT_ADDR)],
        entry=0x41,
    )


class FakeRunner:
    """Records invocations instead of starting processes."""

    def __init__(self, returncode=0, output="", exc=None, on_invoke=None):
        self.returncode = returncode
        self.output = output
        self.exc = exc
        self.on_invoke = on_invoke
        self.calls = []
        self.cwds = []

    def invoke(self, command, args, timeout=None, cwd=None):
        self.calls.append((command, [str(a) for a in args], timeout))
        self.cwds.append(cwd)
        if self.on_invoke:
            self.on_invoke(command, args)
        if self.exc:
            raise self.exc
        return ProcessResult(self.returncode, self.output)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def board(tmp_path) -> FlasherConfig:
    """Board directory with a built kernel, a built blink app and the kernel script."""
    board_dir = tmp_path / "boards" / "nrf51dk"
    release = board_dir / "target" / "thumbv6m-none-eabi" / "release"
    release.mkdir(parents=True)
    (release / "nrf51dk").write_bytes(kernel_elf())

    app_dir = tmp_path / "userland" / "examples" / "blink" / "build" / "cortex-m0"
    app_dir.mkdir(parents=True)
    (app_dir / "app.bin").write_bytes(bytes((i * 7) & 0xFF for i in range(2048)))

    jtag = board_dir / "jtag"
    jtag.mkdir()
    (jtag / "flash-kernel.jlink").write_text(
        "r\nloadfile target/thumbv6m-none-eabi/release/nrf51dk.hex\nr\ng\nq\n")

    config = FlasherConfig.for_board("nrf51dk")
    config.paths.board_dir = str(board_dir)
    config.paths.apps_dir = "../../userland/examples"
    return config


def release_dir(config: FlasherConfig) -> Path:
    return Path(config.paths.board_dir) / "target" / "thumbv6m-none-eabi" / "release"
