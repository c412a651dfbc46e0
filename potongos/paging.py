"""Identity-mapped 4 GiB page directories and the page alignment rules."""

from __future__ import annotations

from enum import IntFlag

from .errors import ErrorCode, KernelError

PAGE_SIZE = 4096
TOTAL_ENTRIES_PER_TABLE = 1024

_TABLE_SPAN = PAGE_SIZE * TOTAL_ENTRIES_PER_TABLE
_ADDRESS_SPACE = _TABLE_SPAN * TOTAL_ENTRIES_PER_TABLE
_FRAME_MASK = 0xFFFFF000


class PageFlags(IntFlag):
    """Bits of a page directory or page table entry."""

    NONE = 0x00
    IS_PRESENT = 0x01
    IS_WRITEABLE = 0x02
    ACCESS_FROM_ALL = 0x04
    WRITE_THROUGH = 0x08
    CACHE_DISABLED = 0x10


def is_aligned(address: int) -> bool:
    """Whether ``address`` sits on a page boundary."""
    return address % PAGE_SIZE == 0


def align_up(address: int) -> int:
    """Round ``address`` up to the next page boundary."""
    remainder = address % PAGE_SIZE
    return address if remainder == 0 else address + PAGE_SIZE - remainder


def align_down(address: int) -> int:
    """Round ``address`` down to the page boundary below it."""
    return address - address % PAGE_SIZE


def page_indexes(address: int) -> tuple[int, int]:
    """Directory and table index of a page-aligned virtual address."""
    if not is_aligned(address):
        raise KernelError(ErrorCode.EINVARG, "address is not page aligned")
    if not 0 <= address < _ADDRESS_SPACE:
        raise KernelError(ErrorCode.EINVARG, "address is outside the address space")
    return address // _TABLE_SPAN, (address % _TABLE_SPAN) // PAGE_SIZE


class PageDirectory:
    """A page directory that starts out mapping every page to itself."""

    def __init__(self, flags: int) -> None:
        self.flags = int(flags)
        self.directory_flags = self.flags | PageFlags.IS_WRITEABLE
        self._overrides: dict[int, int] = {}

    @staticmethod
    def _page_number(virt: int) -> int:
        directory_index, table_index = page_indexes(virt)
        return directory_index * TOTAL_ENTRIES_PER_TABLE + table_index

    def set(self, virt: int, value: int) -> None:
        """Store the raw table entry ``value`` for the page at ``virt``."""
        self._overrides[self._page_number(virt)] = int(value) & 0xFFFFFFFF

    def get(self, virt: int) -> int:
        """The raw table entry for the page at ``virt``."""
        page = self._page_number(virt)
        return self._overrides.get(page, (page * PAGE_SIZE) | self.flags)

    def map(self, virt: int, phys: int, flags: int) -> None:
        """Point the page at ``virt`` to the frame at ``phys``."""
        if not is_aligned(virt) or not is_aligned(phys):
            raise KernelError(ErrorCode.EINVARG, "mapping is not page aligned")
        self.set(virt, phys | int(flags))

    def map_range(self, virt: int, phys: int, count: int, flags: int) -> None:
        """Map ``count`` consecutive pages starting at ``virt`` and ``phys``."""
        for page in range(count):
            offset = page * PAGE_SIZE
            self.map(virt + offset, phys + offset, flags)

    def map_to(self, virt: int, phys: int, phys_end: int, flags: int) -> None:
        """Map the physical range ``phys``..``phys_end`` to ``virt`` onwards."""
        if not is_aligned(virt):
            raise KernelError(ErrorCode.EINVARG, "virtual address is not page aligned")
        if not is_aligned(phys):
            raise KernelError(ErrorCode.EINVARG, "physical start is not page aligned")
        if not is_aligned(phys_end):
            raise KernelError(ErrorCode.EINVARG, "physical end is not page aligned")
        if phys_end < phys:
            raise KernelError(ErrorCode.EINVARG, "physical end lies before its start")
        self.map_range(virt, phys, (phys_end - phys) // PAGE_SIZE, flags)

    def physical_address(self, virt: int) -> int:
        """Translate any virtual address through this directory."""
        page = align_down(virt)
        return (self.get(page) & _FRAME_MASK) + (virt - page)