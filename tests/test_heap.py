import pytest

from potongos.errors import (
    HEAP_ADDRESS,
    HEAP_BLOCK_SIZE,
    HEAP_SIZE_BYTES,
    ErrorCode,
    KernelError,
)
from potongos.heap import BlockFlag, Heap, KernelHeap

START = 0x01000000
BLOCKS = 16


@pytest.fixture
def heap():
    return Heap(START, START + BLOCKS * HEAP_BLOCK_SIZE, BLOCKS)


def test_first_allocation_at_start(heap):
    assert heap.malloc(1) == START


def test_allocations_do_not_overlap(heap):
    first = heap.malloc(HEAP_BLOCK_SIZE)
    second = heap.malloc(10)
    assert first == heap.block_to_address(0)
    assert second == heap.block_to_address(1)


def test_multi_block_entries(heap):
    heap.malloc(HEAP_BLOCK_SIZE * 2 + 1)
    entries = heap.entries
    assert entries[0] == BlockFlag.TAKEN | BlockFlag.IS_FIRST | BlockFlag.HAS_NEXT
    assert entries[1] == BlockFlag.TAKEN | BlockFlag.HAS_NEXT
    assert entries[2] == BlockFlag.TAKEN
    assert entries[3] == BlockFlag.FREE


def test_single_block_entry(heap):
    heap.malloc(HEAP_BLOCK_SIZE)
    assert heap.entries[0] == BlockFlag.TAKEN | BlockFlag.IS_FIRST


def test_free_releases_whole_chain(heap):
    address = heap.malloc(HEAP_BLOCK_SIZE * 3)
    heap.free(address)
    assert heap.entries == bytes(BLOCKS)


def test_free_then_reuse(heap):
    address = heap.malloc(100)
    heap.free(address)
    assert heap.malloc(100) == address


def test_needs_contiguous_run(heap):
    a = heap.malloc(1)
    b = heap.malloc(1)
    c = heap.malloc(1)
    heap.free(b)
    pair = heap.malloc(HEAP_BLOCK_SIZE * 2)
    assert pair == heap.block_to_address(3)
    assert a < b < c < pair
    assert heap.malloc(1) == b


def test_out_of_memory(heap):
    heap.malloc(HEAP_BLOCK_SIZE * BLOCKS)
    with pytest.raises(KernelError) as info:
        heap.malloc(1)
    assert info.value.code is ErrorCode.ENOMEM


def test_request_larger_than_heap(heap):
    with pytest.raises(KernelError) as info:
        heap.malloc(HEAP_BLOCK_SIZE * (BLOCKS + 1))
    assert info.value.code is ErrorCode.ENOMEM


def test_zero_size_rejected(heap):
    with pytest.raises(KernelError) as info:
        heap.malloc(0)
    assert info.value.code is ErrorCode.EINVARG


def test_misaligned_bounds_rejected():
    with pytest.raises(KernelError) as info:
        Heap(START + 1, START + BLOCKS * HEAP_BLOCK_SIZE, BLOCKS)
    assert info.value.code is ErrorCode.EINVARG


def test_wrong_table_size_rejected():
    with pytest.raises(KernelError) as info:
        Heap(START, START + BLOCKS * HEAP_BLOCK_SIZE, BLOCKS - 1)
    assert info.value.code is ErrorCode.EINVARG


def test_free_outside_heap_rejected(heap):
    with pytest.raises(KernelError):
        heap.free(START + BLOCKS * HEAP_BLOCK_SIZE)


@pytest.mark.parametrize("block", [0, 1, 7, BLOCKS - 1])
def test_block_address_round_trip(heap, block):
    assert heap.address_to_block(heap.block_to_address(block)) == block


def test_kernel_heap_geometry():
    kheap = KernelHeap()
    assert kheap.start == HEAP_ADDRESS
    assert kheap.end == HEAP_ADDRESS + HEAP_SIZE_BYTES
    assert kheap.total == HEAP_SIZE_BYTES // HEAP_BLOCK_SIZE
    assert kheap.kmalloc(1) == HEAP_ADDRESS


def test_kernel_heap_write_read_round_trip():
    kheap = KernelHeap()
    address = kheap.kzalloc(HEAP_BLOCK_SIZE * 2)
    payload = bytes(range(256)) * 20
    kheap.write(address + 100, payload)
    assert kheap.read(address + 100, len(payload)) == payload


def test_kzalloc_clears_stale_data():
    kheap = KernelHeap()
    address = kheap.kmalloc(64)
    kheap.write(address, b"hello")
    kheap.kfree(address)
    again = kheap.kmalloc(64)
    assert again == address
    assert kheap.read(again, 5) == b"hello"
    kheap.kfree(again)
    zeroed = kheap.kzalloc(64)
    assert kheap.read(zeroed, 64) == bytes(64)


def test_kernel_heap_rejects_access_outside():
    kheap = KernelHeap()
    with pytest.raises(KernelError):
        kheap.read(HEAP_ADDRESS - 1, 4)
    with pytest.raises(KernelError):
        kheap.write(HEAP_ADDRESS + HEAP_SIZE_BYTES - 2, b"abcd")