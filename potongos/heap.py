"""Block heap with an entry table, and the kernel heap built on it."""

from __future__ import annotations

from enum import IntFlag

from .errors import (
    HEAP_ADDRESS,
    HEAP_BLOCK_SIZE,
    HEAP_SIZE_BYTES,
    ErrorCode,
    KernelError,
)


class BlockFlag(IntFlag):
    """Bits of one heap table entry."""

    FREE = 0x00
    TAKEN = 0x01
    IS_FIRST = 0x40
    HAS_NEXT = 0x80


def _aligned(value: int) -> bool:
    return value % HEAP_BLOCK_SIZE == 0


def _align_up(value: int) -> int:
    remainder = value % HEAP_BLOCK_SIZE
    return value if remainder == 0 else value - remainder + HEAP_BLOCK_SIZE


class Heap:
    """Allocator handing out whole blocks from ``start`` up to ``end``."""

    def __init__(self, start: int, end: int, total_blocks: int) -> None:
        if not _aligned(start) or not _aligned(end):
            raise KernelError(ErrorCode.EINVARG, "heap bounds are not block aligned")
        if total_blocks != (end - start) // HEAP_BLOCK_SIZE:
            raise KernelError(ErrorCode.EINVARG, "table size does not match heap")
        self.start = start
        self.end = end
        self._entries = bytearray(total_blocks)

    @property
    def total(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> bytes:
        """A snapshot of the block table."""
        return bytes(self._entries)

    def _is_free(self, block: int) -> bool:
        return (self._entries[block] & 0x0F) == BlockFlag.FREE

    def _start_block(self, total_blocks: int) -> int:
        run_start = -1
        run_length = 0
        for block in range(self.total):
            if not self._is_free(block):
                run_start, run_length = -1, 0
                continue
            if run_start == -1:
                run_start = block
            run_length += 1
            if run_length == total_blocks:
                return run_start
        raise KernelError(ErrorCode.ENOMEM)

    def _mark_taken(self, start_block: int, total_blocks: int) -> None:
        last = total_blocks - 1
        for offset in range(total_blocks):
            entry = BlockFlag.TAKEN
            if offset == 0:
                entry |= BlockFlag.IS_FIRST
            if offset < last:
                entry |= BlockFlag.HAS_NEXT
            self._entries[start_block + offset] = entry

    def block_to_address(self, block: int) -> int:
        return self.start + block * HEAP_BLOCK_SIZE

    def address_to_block(self, address: int) -> int:
        return (address - self.start) // HEAP_BLOCK_SIZE

    def malloc(self, size: int) -> int:
        """Reserve enough whole blocks for ``size`` bytes and return the address."""
        if size <= 0:
            raise KernelError(ErrorCode.EINVARG, "allocation size must be positive")
        total_blocks = _align_up(size) // HEAP_BLOCK_SIZE
        start_block = self._start_block(total_blocks)
        self._mark_taken(start_block, total_blocks)
        return self.block_to_address(start_block)

    def free(self, address: int) -> None:
        """Release the chain of blocks starting at ``address``."""
        block = self.address_to_block(address)
        if not 0 <= block < self.total:
            raise KernelError(ErrorCode.EINVARG, "address is outside the heap")
        for index in range(block, self.total):
            entry = self._entries[index]
            self._entries[index] = BlockFlag.FREE
            if not entry & BlockFlag.HAS_NEXT:
                break


class KernelHeap(Heap):
    """The kernel heap, with simulated memory behind its address range."""

    def __init__(self) -> None:
        super().__init__(
            HEAP_ADDRESS,
            HEAP_ADDRESS + HEAP_SIZE_BYTES,
            HEAP_SIZE_BYTES // HEAP_BLOCK_SIZE,
        )
        self._pages: dict[int, bytearray] = {}

    def kmalloc(self, size: int) -> int:
        return self.malloc(size)

    def kzalloc(self, size: int) -> int:
        address = self.kmalloc(size)
        self.write(address, bytes(size))
        return address

    def kfree(self, address: int) -> None:
        self.free(address)

    def _check_range(self, address: int, length: int) -> None:
        if length < 0 or address < self.start or address + length > self.end:
            raise KernelError(ErrorCode.EINVARG, "access outside the heap")

    def _page(self, number: int) -> bytearray:
        page = self._pages.get(number)
        if page is None:
            page = self._pages[number] = bytearray(HEAP_BLOCK_SIZE)
        return page

    def read(self, address: int, length: int) -> bytes:
        """Read ``length`` bytes of heap memory starting at ``address``."""
        self._check_range(address, length)
        out = bytearray()
        position = address
        while len(out) < length:
            number, offset = divmod(position, HEAP_BLOCK_SIZE)
            chunk = min(HEAP_BLOCK_SIZE - offset, length - len(out))
            page = self._pages.get(number)
            out += page[offset:offset + chunk] if page else bytes(chunk)
            position += chunk
        return bytes(out)

    def write(self, address: int, data: bytes) -> None:
        """Store ``data`` in heap memory starting at ``address``."""
        self._check_range(address, len(data))
        view = memoryview(bytes(data))
        position = address
        while view:
            number, offset = divmod(position, HEAP_BLOCK_SIZE)
            chunk = min(HEAP_BLOCK_SIZE - offset, len(view))
            self._page(number)[offset:offset + chunk] = view[:chunk]
            view = view[chunk:]
            position += chunk