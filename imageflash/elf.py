#!/usr/bin/env python3
"""
ELF Section Table Codec

Reads just enough of an ELF file to find its sections by name, and
patches section headers in place. Nothing is relocated: section sizes
and file offsets are never changed.

Supported:
    - ELFCLASS32 and ELFCLASS64
    - little- and big-endian
    - PT_LOAD program headers, used to derive section load addresses (LMA)
"""

import struct
from dataclasses import dataclass
from typing import List, Tuple


# =============================================================================
# Constants
# =============================================================================

ELF_MAGIC = b"\x7fELF"

ELFCLASS32 = 1
ELFCLASS64 = 2
ELFDATA2LSB = 1
ELFDATA2MSB = 2

# Section types
SHT_NULL = 0
SHT_PROGBITS = 1
SHT_NOBITS = 8

# Section flags
SHF_WRITE = 0x1
SHF_ALLOC = 0x2
SHF_EXECINSTR = 0x4

# Program header types
PT_LOAD = 1

# Header layouts (after e_ident)
_EHDR = {ELFCLASS32: "HHIIIIIHHHHHH", ELFCLASS64: "HHIQQQIHHHHHH"}
_SHDR = {ELFCLASS32: "IIIIIIIIII", ELFCLASS64: "IIQQQQIIQQ"}
_PHDR = {ELFCLASS32: "IIIIIIII", ELFCLASS64: "IIQQQQQQ"}

EI_NIDENT = 16

# Offset of sh_flags inside a section header (same for both classes)
SH_FLAGS_OFFSET = 8


class ElfError(ValueError):
    """The data is not a well-formed ELF file."""


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class ElfLayout:
    """Where the header tables live in the file."""
    elfclass: int
    endian: str  # struct byte order: "<" or ">"
    entry: int
    shoff: int
    shentsize: int
    shnum: int

    @property
    def flags_format(self) -> str:
        return self.endian + ("I" if self.elfclass == ELFCLASS32 else "Q")

    def header_offset(self, index: int) -> int:
        return self.shoff + index * self.shentsize


@dataclass(frozen=True)
class ElfSection:
    """One entry of the section header table."""
    index: int
    name: str
    sh_type: int
    sh_flags: int
    addr: int
    offset: int
    size: int
    lma: int

    @property
    def has_contents(self) -> bool:
        return self.sh_type not in (SHT_NULL, SHT_NOBITS)


@dataclass(frozen=True)
class _Segment:
    offset: int
    paddr: int
    filesz: int


# =============================================================================
# Parsing
# =============================================================================

def is_elf(data: bytes) -> bool:
    """Check the ELF magic number."""
    return data[:4] == ELF_MAGIC


def _unpack(fmt: str, data: bytes, offset: int, what: str) -> tuple:
    size = struct.calcsize(fmt)
    if offset < 0 or offset + size > len(data):
        raise ElfError(f"{what} at offset {offset:#x} is outside the file")
    return struct.unpack_from(fmt, data, offset)


def _read_name(data: bytes, strtab_offset: int, name_offset: int) -> str:
    start = strtab_offset + name_offset
    if start >= len(data):
        raise ElfError(f"Section name offset {name_offset:#x} is outside the file")
    end = data.find(b"\x00", start)
    if end < 0:
        end = len(data)
    return data[start:end].decode("ascii", errors="replace")


def _load_segments(data: bytes, elfclass: int, endian: str,
                   phoff: int, phentsize: int, phnum: int) -> List[_Segment]:
    segments = []
    fmt = endian + _PHDR[elfclass]
    for i in range(phnum):
        fields = _unpack(fmt, data, phoff + i * phentsize, "Program header")
        if elfclass == ELFCLASS32:
            p_type, p_offset, _vaddr, p_paddr, p_filesz = fields[:5]
        else:
            p_type, _flags, p_offset, _vaddr, p_paddr, p_filesz = fields[:6]
        if p_type == PT_LOAD and p_filesz:
            segments.append(_Segment(p_offset, p_paddr, p_filesz))
    return segments


def _load_address(sh_type: int, sh_flags: int, addr: int, offset: int,
                  size: int, segments: List[_Segment]) -> int:
    if not (sh_flags & SHF_ALLOC) or sh_type == SHT_NOBITS:
        return addr
    for seg in segments:
        if seg.offset <= offset and offset + size <= seg.offset + seg.filesz:
            return seg.paddr + (offset - seg.offset)
    return addr


def parse_elf(data: bytes) -> Tuple[ElfLayout, List[ElfSection]]:
    """
    Parse the section header table.

    Args:
        data: Complete ELF file contents.

    Returns:
        (layout, sections) with sections in header-table order.

    Raises:
        ElfError: If the file is truncated or not ELF.
    """
    if len(data) < EI_NIDENT or not is_elf(data):
        raise ElfError("Not an ELF file")

    elfclass = data[4]
    if elfclass not in (ELFCLASS32, ELFCLASS64):
        raise ElfError(f"Unsupported ELF class {elfclass}")

    if data[5] == ELFDATA2LSB:
        endian = "<"
    elif data[5] == ELFDATA2MSB:
        endian = ">"
    else:
        raise ElfError(f"Unsupported ELF data encoding {data[5]}")

    (_type, _machine, _version, entry, phoff, shoff, _flags, _ehsize,
     phentsize, phnum, shentsize, shnum, shstrndx) = _unpack(
        endian + _EHDR[elfclass], data, EI_NIDENT, "ELF header")

    if shoff == 0 or shnum == 0:
        raise ElfError("ELF file has no section header table")
    if shentsize < struct.calcsize(_SHDR[elfclass]):
        raise ElfError(f"Section header entry size {shentsize} is too small")
    if shstrndx >= shnum:
        raise ElfError("Section name table index is out of range")

    segments = _load_segments(data, elfclass, endian, phoff, phentsize, phnum) if phoff else []

    shdr_fmt = endian + _SHDR[elfclass]
    raw = [_unpack(shdr_fmt, data, shoff + i * shentsize, "Section header")
           for i in range(shnum)]
    strtab_offset = raw[shstrndx][4]

    sections = []
    for index, (sh_name, sh_type, sh_flags, addr, offset, size, *_rest) in enumerate(raw):
        if sh_type not in (SHT_NULL, SHT_NOBITS) and offset + size > len(data):
            raise ElfError(f"Section {index} contents are outside the file")
        sections.append(ElfSection(
            index=index,
            name=_read_name(data, strtab_offset, sh_name) if index else "",
            sh_type=sh_type,
            sh_flags=sh_flags,
            addr=addr,
            offset=offset,
            size=size,
            lma=_load_address(sh_type, sh_flags, addr, offset, size, segments),
        ))

    layout = ElfLayout(
        elfclass=elfclass,
        endian=endian,
        entry=entry,
        shoff=shoff,
        shentsize=shentsize,
        shnum=shnum,
    )
    return layout, sections


# =============================================================================
# Patching
# =============================================================================

def read_section_flags(data: bytes, layout: ElfLayout, index: int) -> int:
    """Read sh_flags of one section header."""
    offset = layout.header_offset(index) + SH_FLAGS_OFFSET
    return struct.unpack_from(layout.flags_format, data, offset)[0]


def write_section_flags(buf: bytearray, layout: ElfLayout, index: int, sh_flags: int):
    """Overwrite sh_flags of one section header in place."""
    offset = layout.header_offset(index) + SH_FLAGS_OFFSET
    struct.pack_into(layout.flags_format, buf, offset, sh_flags)
