"""Global descriptor table entries and the task state segment layout."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from typing import Iterable

from .errors import ErrorCode, KernelError

_SMALL_LIMIT_MAX = 65536


@dataclass(frozen=True)
class GdtSegment:
    """A segment described by its base, limit and access type byte."""

    base: int
    limit: int
    type: int


def encode_entry(segment: GdtSegment) -> bytes:
    """The eight descriptor bytes the processor expects for ``segment``."""
    limit = segment.limit
    if limit > _SMALL_LIMIT_MAX and (limit & 0xFFF) != 0xFFF:
        raise KernelError(ErrorCode.EINVARG, "segment limit cannot be encoded")

    flags = 0x40
    if limit > _SMALL_LIMIT_MAX:
        limit >>= 12
        flags = 0xC0

    base = segment.base
    return bytes(
        [
            limit & 0xFF,
            (limit >> 8) & 0xFF,
            base & 0xFF,
            (base >> 8) & 0xFF,
            (base >> 16) & 0xFF,
            segment.type & 0xFF,
            flags | ((limit >> 16) & 0x0F),
            (base >> 24) & 0xFF,
        ]
    )


def encode_table(segments: Iterable[GdtSegment]) -> bytes:
    """The descriptor table for ``segments`` in order."""
    return b"".join(encode_entry(segment) for segment in segments)


@dataclass
class TaskStateSegment:
    """The task state segment used to find the kernel stack on entry."""

    link: int = 0
    esp0: int = 0
    ss0: int = 0
    esp1: int = 0
    esp2: int = 0
    ss2: int = 0
    sr3: int = 0
    eip: int = 0
    eflags: int = 0
    eax: int = 0
    ecx: int = 0
    edx: int = 0
    ebx: int = 0
    esp: int = 0
    ebp: int = 0
    esi: int = 0
    edi: int = 0
    es: int = 0
    cs: int = 0
    ss: int = 0
    ds: int = 0
    fs: int = 0
    gs: int = 0
    ldtr: int = 0
    iopb: int = 0

    def pack(self) -> bytes:
        """The packed little-endian structure."""
        values = astuple(self)
        return struct.pack(f"<{len(values)}I", *values)