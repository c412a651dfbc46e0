"""32-bit ELF headers and loading of executables from the filesystem."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .errors import PROGRAM_VIRTUAL_ADDRESS, ErrorCode, KernelError

PF_X = 0x01
PF_W = 0x02
PF_R = 0x04

PT_NULL = 0
PT_LOAD = 1
PT_DYNAMIC = 2
PT_INTERP = 3
PT_NOTE = 4
PT_SHLIB = 5
PT_PHDR = 6

SHT_NULL = 0
SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_RELA = 4
SHT_HASH = 5
SHT_DYNAMIC = 6
SHT_NOTE = 7
SHT_NOBITS = 8
SHT_REL = 9
SHT_SHLIB = 10
SHT_DYNSYM = 11

ET_NONE = 0
ET_REL = 1
ET_EXEC = 2
ET_DYN = 3
ET_CORE = 4

EI_NIDENT = 16
EI_CLASS = 4
EI_DATA = 5

ELFCLASSNONE = 0
ELFCLASS32 = 1
ELFCLASS64 = 2

ELFDATANONE = 0
ELFDATA2LSB = 1
ELFDATA2MSB = 2

SHN_UNDEF = 0

ELF_SIGNATURE = b"\x7fELF"

_HEADER = struct.Struct("<16sHHIIiiIHHHHHH")
_PHDR = struct.Struct("<IiIIIIII")
_SHDR = struct.Struct("<IIIIiIIIII")


def _unpack(layout: struct.Struct, data: bytes, offset: int, what: str) -> tuple:
    if offset < 0 or offset + layout.size > len(data):
        raise KernelError(ErrorCode.EINFORMAT, f"{what} lies outside the file")
    return layout.unpack_from(data, offset)


@dataclass(frozen=True)
class ElfHeader:
    """The ELF file header."""

    e_ident: bytes
    e_type: int
    e_machine: int
    e_version: int
    e_entry: int
    e_phoff: int
    e_shoff: int
    e_flags: int
    e_ehsize: int
    e_phentsize: int
    e_phnum: int
    e_shentsize: int
    e_shnum: int
    e_shstrndx: int

    SIZE = _HEADER.size

    @classmethod
    def unpack(cls, data: bytes) -> "ElfHeader":
        """Decode the header from the start of ``data``."""
        return cls(*_unpack(_HEADER, data, 0, "ELF header"))


@dataclass(frozen=True)
class ProgramHeader:
    """One program (segment) header."""

    p_type: int
    p_offset: int
    p_vaddr: int
    p_paddr: int
    p_filesz: int
    p_memsz: int
    p_flags: int
    p_align: int

    SIZE = _PHDR.size

    @classmethod
    def unpack(cls, data: bytes, offset: int) -> "ProgramHeader":
        return cls(*_unpack(_PHDR, data, offset, "program header"))

    @property
    def writable(self) -> bool:
        return bool(self.p_flags & PF_W)


@dataclass(frozen=True)
class SectionHeader:
    """One section header."""

    sh_name: int
    sh_type: int
    sh_flags: int
    sh_addr: int
    sh_offset: int
    sh_size: int
    sh_link: int
    sh_info: int
    sh_addralign: int
    sh_entsize: int

    SIZE = _SHDR.size

    @classmethod
    def unpack(cls, data: bytes, offset: int) -> "SectionHeader":
        return cls(*_unpack(_SHDR, data, offset, "section header"))


class ElfFile:
    """A validated 32-bit little-endian ELF image held in memory.

    ``physical_base`` and ``physical_end`` are offsets into ``memory``.
    """

    def __init__(self, data: bytes, filename: str = "") -> None:
        self.filename = filename
        self.memory = bytes(data)
        self.in_memory_size = len(self.memory)
        if self.memory[:len(ELF_SIGNATURE)] != ELF_SIGNATURE:
            raise KernelError(ErrorCode.EINFORMAT, "missing ELF signature")
        if len(self.memory) < ElfHeader.SIZE:
            raise KernelError(ErrorCode.EINFORMAT, "ELF header is truncated")
        self.header = ElfHeader.unpack(self.memory)
        self._validate()

        self.virtual_base = 0
        self.virtual_end = 0
        self.physical_base = 0
        self.physical_end = 0
        for phdr in self.program_headers():
            if phdr.p_type == PT_LOAD:
                self._process_load(phdr)

    def _validate(self) -> None:
        ident = self.header.e_ident
        if ident[EI_CLASS] not in (ELFCLASSNONE, ELFCLASS32):
            raise KernelError(ErrorCode.EINFORMAT, "only 32-bit binaries are supported")
        if ident[EI_DATA] not in (ELFDATANONE, ELFDATA2LSB):
            raise KernelError(ErrorCode.EINFORMAT, "only little-endian binaries are supported")
        if self.header.e_phoff == 0:
            raise KernelError(ErrorCode.EINFORMAT, "no program headers")

    def _process_load(self, phdr: ProgramHeader) -> None:
        if self.virtual_base >= phdr.p_vaddr or self.virtual_base == 0:
            self.virtual_base = phdr.p_vaddr
            self.physical_base = phdr.p_offset
        end_virtual = phdr.p_vaddr + phdr.p_filesz
        if self.virtual_end <= end_virtual or self.virtual_end == 0:
            self.virtual_end = end_virtual
            self.physical_end = phdr.p_offset + phdr.p_filesz

    @property
    def entry(self) -> int:
        return self.header.e_entry

    @property
    def is_executable(self) -> bool:
        return (
            self.header.e_type == ET_EXEC
            and self.header.e_entry >= PROGRAM_VIRTUAL_ADDRESS
        )

    def program_headers(self) -> list[ProgramHeader]:
        """All program headers, in file order."""
        if self.header.e_phoff == 0:
            return []
        return [
            ProgramHeader.unpack(
                self.memory, self.header.e_phoff + index * ProgramHeader.SIZE
            )
            for index in range(self.header.e_phnum)
        ]

    def section_headers(self) -> list[SectionHeader]:
        """All section headers, in file order."""
        return [
            SectionHeader.unpack(
                self.memory, self.header.e_shoff + index * SectionHeader.SIZE
            )
            for index in range(self.header.e_shnum)
        ]

    def string_table(self) -> bytes:
        """Contents of the section-name string table."""
        sections = self.section_headers()
        index = self.header.e_shstrndx
        if index >= len(sections):
            raise KernelError(ErrorCode.EINFORMAT, "no section-name string table")
        section = sections[index]
        return self.memory[section.sh_offset:section.sh_offset + section.sh_size]

    def phdr_physical_offset(self, phdr: ProgramHeader) -> int:
        """Offset within ``memory`` where the segment's data starts."""
        return phdr.p_offset


def load_elf(vfs, filename: str) -> ElfFile:
    """Read ``filename`` through ``vfs`` and validate it as an ELF executable."""
    try:
        fd = vfs.fopen(filename, "r")
    except KernelError as exc:
        raise KernelError(ErrorCode.EIO, f"cannot open {filename}") from exc
    try:
        stat = vfs.fstat(fd)
        data = vfs.fread(fd, stat.filesize, 1)
        return ElfFile(data, filename)
    finally:
        vfs.fclose(fd)