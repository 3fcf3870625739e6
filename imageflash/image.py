#!/usr/bin/env python3
"""
Binary Image Model

A BinaryImage is a byte buffer plus an explicit table of named regions.
Two representations are supported:

    ELF  - a sectioned object file; regions are its sections, and flag
           changes are written back to the section header table.
    RAW  - a flat buffer with a caller-supplied region table.

Only lookup-by-name and in-place byte-range replacement are needed to
embed an application, so regions never move or change size.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntFlag
from pathlib import Path
from typing import List, Optional

from . import elf
from .errors import ComposeError, RegionNotFound, RegionOverflow, TranscodeError


# =============================================================================
# Enums
# =============================================================================

class ImageFormat(Enum):
    """Image representations."""
    ELF = "elf"
    RAW = "raw"


class RegionFlags(IntFlag):
    """Region access attributes."""
    NONE = 0x00
    ALLOC = 0x01   # Occupies target memory
    CODE = 0x02    # Executable
    WRITE = 0x04   # Writable at runtime
    NOBITS = 0x08  # No bytes in the file (e.g. .bss)


# Flags an embedded application region ends up with (objcopy "alloc,code")
APP_REGION_FLAGS = RegionFlags.ALLOC | RegionFlags.CODE


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class Region:
    """A named, fixed-length byte range of an image."""
    name: str
    offset: int   # File offset of the first byte
    size: int
    address: int  # Load address in target memory
    flags: RegionFlags = RegionFlags.NONE
    index: Optional[int] = None  # ELF section header index

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def loadable(self) -> bool:
        return (
            bool(self.flags & RegionFlags.ALLOC)
            and not self.flags & RegionFlags.NOBITS
            and self.size > 0
        )


@dataclass(frozen=True)
class BinaryImage:
    """Bytes with a table of named regions."""
    data: bytes
    regions: List[Region] = field(default_factory=list)
    format: ImageFormat = ImageFormat.RAW
    entry: Optional[int] = None
    layout: Optional[elf.ElfLayout] = None

    def __post_init__(self):
        seen = set()
        for region in self.regions:
            if region.name in seen:
                raise ValueError(f"Duplicate region name: {region.name}")
            seen.add(region.name)
            if not region.flags & RegionFlags.NOBITS and region.end > len(self.data):
                raise ValueError(
                    f"Region '{region.name}' ends at {region.end:#x}, "
                    f"past the image size {len(self.data):#x}"
                )
        if self.format == ImageFormat.ELF and self.layout is None:
            raise ValueError("ELF image requires a section table layout")

    def __len__(self) -> int:
        return len(self.data)

    def region(self, name: str) -> Region:
        """Look up a region by name."""
        for region in self.regions:
            if region.name == name:
                return region
        raise RegionNotFound(name, [r.name for r in self.regions if r.name])

    def region_bytes(self, name: str) -> bytes:
        region = self.region(name)
        if region.flags & RegionFlags.NOBITS:
            return b""
        return self.data[region.offset:region.end]

    def loadable_regions(self) -> List[Region]:
        """Regions that end up in target memory, in address order."""
        return sorted((r for r in self.regions if r.loadable), key=lambda r: r.address)

    def update_region(self, name: str, contents: bytes,
                      flags: RegionFlags = APP_REGION_FLAGS) -> "BinaryImage":
        """
        Return a copy with one region's bytes and flags replaced.

        The contents are zero-padded to the region's length.

        Raises:
            RegionNotFound: No region with that name.
            RegionOverflow: Contents longer than the region.
            ComposeError: Region has no file bytes to replace.
        """
        region = self.region(name)
        if region.flags & RegionFlags.NOBITS:
            raise ComposeError(
                f"Region '{name}' occupies no file space and cannot be updated in place"
            )
        if len(contents) > region.size:
            raise RegionOverflow(name, len(contents), region.size)

        buf = bytearray(self.data)
        buf[region.offset:region.end] = contents + bytes(region.size - len(contents))

        if self.format == ImageFormat.ELF:
            old = elf.read_section_flags(buf, self.layout, region.index)
            elf.write_section_flags(buf, self.layout, region.index, _to_elf_flags(flags, old))

        updated = replace(region, flags=flags)
        regions = [updated if r.name == name else r for r in self.regions]
        return replace(self, data=bytes(buf), regions=regions)


# =============================================================================
# Flag Conversion
# =============================================================================

def _from_elf(section: elf.ElfSection) -> RegionFlags:
    flags = RegionFlags.NONE
    if section.sh_flags & elf.SHF_ALLOC:
        flags |= RegionFlags.ALLOC
    if section.sh_flags & elf.SHF_EXECINSTR:
        flags |= RegionFlags.CODE
    if section.sh_flags & elf.SHF_WRITE:
        flags |= RegionFlags.WRITE
    if not section.has_contents:
        flags |= RegionFlags.NOBITS
    return flags


def _to_elf_flags(flags: RegionFlags, old: int) -> int:
    mask = elf.SHF_ALLOC | elf.SHF_EXECINSTR | elf.SHF_WRITE
    value = old & ~mask
    if flags & RegionFlags.ALLOC:
        value |= elf.SHF_ALLOC
    if flags & RegionFlags.CODE:
        value |= elf.SHF_EXECINSTR
    if flags & RegionFlags.WRITE:
        value |= elf.SHF_WRITE
    return value


# =============================================================================
# Loading
# =============================================================================

def image_from_elf(data: bytes) -> BinaryImage:
    """Build an image from ELF file contents."""
    try:
        layout, sections = elf.parse_elf(data)
    except elf.ElfError as e:
        raise TranscodeError(f"Malformed image: {e}")

    regions = []
    for section in sections:
        if section.index == 0 or not section.name:
            continue
        flags = _from_elf(section)
        regions.append(Region(
            name=section.name,
            offset=section.offset,
            size=section.size,
            address=section.lma,
            flags=flags,
            index=section.index,
        ))

    try:
        return BinaryImage(
            data=bytes(data),
            regions=regions,
            format=ImageFormat.ELF,
            entry=layout.entry,
            layout=layout,
        )
    except ValueError as e:
        raise TranscodeError(f"Malformed image: {e}")


def load_image(path: Path) -> BinaryImage:
    """
    Read an ELF image from disk.

    Raises:
        TranscodeError: If the file is not a well-formed ELF image.
    """
    data = Path(path).read_bytes()
    if not elf.is_elf(data):
        raise TranscodeError(f"Malformed image: {path} is not an ELF file")
    return image_from_elf(data)
