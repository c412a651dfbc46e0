import struct

import pytest

from potongos.disk import Disk
from potongos.errors import ErrorCode, KernelError
from potongos.fat16 import DirectoryItem, Fat16, FatFileDescriptor, FatHeader
from potongos.fstypes import FileMode, SeekMode, StatFlags

SECTOR = 512
HEADER_FMT = "<3s8sHBHBHHBHHHIIBBBI11s8s"
ITEM_FMT = "<8s3sBBBHHHHHHHI"


def header_bytes(signature=0x29):
    return struct.pack(
        HEADER_FMT, b"\xeb\x3c\x90", b"MSWIN4.1", SECTOR, 1, 1, 2, 16, 64,
        0xF8, 1, 32, 2, 0, 0, 0x80, 0, signature, 0x1234,
        b"NO NAME    ", b"FAT16   ",
    )


def entry(name, ext, attr, cluster, size):
    return struct.pack(
        ITEM_FMT, name.ljust(8).encode(), ext.ljust(3).encode(), attr,
        0, 0, 0, 0, 0, 0, 0, 0, cluster, size,
    )


def cluster_sector(cluster):
    # reserved 1 + 2 FATs of 1 sector -> root at 3, one root sector -> data at 4
    return 4 + (cluster - 2)


BIG = bytes(range(256)) * 4  # 1024 bytes over two clusters


def build_image(signature=0x29):
    image = bytearray(SECTOR * 16)
    image[:62] = header_bytes(signature)
    fat = {5: 7, 7: 0xFFF8, 8: 0}
    for copy in range(2):
        base = SECTOR * (1 + copy)
        for cluster, value in fat.items():
            image[base + cluster * 2:base + cluster * 2 + 2] = value.to_bytes(2, "little")
    root = (
        entry("HELLO", "TXT", 0x01, 2, 12)
        + entry("SUB", "", 0x10, 3, 0)
        + entry("BIG", "DAT", 0x00, 5, len(BIG))
        + entry("BAD", "DAT", 0x00, 8, 1024)
    )
    image[SECTOR * 3:SECTOR * 3 + len(root)] = root
    image[SECTOR * cluster_sector(2):SECTOR * cluster_sector(2) + 12] = b"Hello World!"
    sub = entry("FILE", "BIN", 0x00, 4, 5)
    image[SECTOR * cluster_sector(3):SECTOR * cluster_sector(3) + len(sub)] = sub
    image[SECTOR * cluster_sector(4):SECTOR * cluster_sector(4) + 5] = b"inner"
    image[SECTOR * cluster_sector(5):SECTOR * cluster_sector(5) + 512] = BIG[:512]
    image[SECTOR * cluster_sector(7):SECTOR * cluster_sector(7) + 512] = BIG[512:]
    return bytes(image)


@pytest.fixture
def disk():
    d = Disk(build_image())
    Fat16().resolve(d)
    return d


def open_file(disk, *parts):
    return disk.filesystem.open(disk, list(parts), FileMode.READ)


def test_header_unpack_fields():
    header = FatHeader.unpack(header_bytes())
    assert header.bytes_per_sector == SECTOR
    assert header.signature == 0x29
    assert header.system_id_string == b"FAT16   "
    assert header.root_dir_entries == 16


def test_header_unpack_truncated():
    with pytest.raises(KernelError) as info:
        FatHeader.unpack(b"\x00" * 10)
    assert info.value.code == ErrorCode.EINVARG


def test_directory_item_names():
    item = DirectoryItem.unpack(entry("HELLO", "TXT", 0, 2, 12))
    assert item.relative_filename() == "HELLO.TXT"
    assert item.first_cluster == 2
    assert item.filesize == 12
    folder = DirectoryItem.unpack(entry("SUB", "", 0x10, 3, 0))
    assert folder.relative_filename() == "SUB"
    assert folder.is_directory


def test_resolve_claims_disk():
    d = Disk(build_image())
    fs = Fat16()
    fs.resolve(d)
    assert d.filesystem is fs
    assert d.filesystem.open(d, ["HELLO.TXT"], FileMode.READ).read(5, 1) == b"Hello"


def test_resolve_rejects_other_signature():
    d = Disk(build_image(signature=0x28))
    with pytest.raises(KernelError) as info:
        Fat16().resolve(d)
    assert info.value.code == ErrorCode.EFSNOTUS
    assert d.fs_private is None


def test_read_file(disk):
    desc = open_file(disk, "HELLO.TXT")
    assert isinstance(desc, FatFileDescriptor)
    assert desc.read(12, 1) == b"Hello World!"


def test_open_is_case_insensitive(disk):
    assert open_file(disk, "hello.txt").read(5, 1) == b"Hello"


def test_read_records_concatenate(disk):
    desc = open_file(disk, "HELLO.TXT")
    assert desc.read(6, 2) == b"Hello World!"
    assert desc.pos == 0


def test_read_in_subdirectory(disk):
    assert open_file(disk, "SUB", "FILE.BIN").read(5, 1) == b"inner"


def test_read_follows_cluster_chain(disk):
    assert open_file(disk, "BIG.DAT").read(len(BIG), 1) == BIG


def test_broken_chain_raises(disk):
    with pytest.raises(KernelError) as info:
        open_file(disk, "BAD.DAT").read(1024, 1)
    assert info.value.code == ErrorCode.EIO


def test_open_write_mode_is_read_only(disk):
    with pytest.raises(KernelError) as info:
        disk.filesystem.open(disk, ["HELLO.TXT"], FileMode.WRITE)
    assert info.value.code == ErrorCode.ERDONLY


def test_open_missing_file(disk):
    with pytest.raises(KernelError) as info:
        open_file(disk, "NOPE.TXT")
    assert info.value.code == ErrorCode.EIO


def test_open_through_file_fails(disk):
    with pytest.raises(KernelError) as info:
        open_file(disk, "HELLO.TXT", "X")
    assert info.value.code == ErrorCode.EIO


def test_stat_file(disk):
    stat = open_file(disk, "HELLO.TXT").stat()
    assert stat.filesize == 12
    assert stat.flags & StatFlags.READ_ONLY
    assert not open_file(disk, "BIG.DAT").stat().flags & StatFlags.READ_ONLY


def test_stat_directory_rejected(disk):
    with pytest.raises(KernelError) as info:
        open_file(disk, "SUB").stat()
    assert info.value.code == ErrorCode.EINVARG


def test_seek_set_and_cur(disk):
    desc = open_file(disk, "HELLO.TXT")
    desc.seek(6, SeekMode.SET)
    assert desc.read(6, 1) == b"World!"
    desc.seek(2, SeekMode.CUR)
    assert desc.pos == 8
    assert desc.read(4, 1) == b"rld!"


def test_seek_end_unimplemented(disk):
    with pytest.raises(KernelError) as info:
        open_file(disk, "HELLO.TXT").seek(1, SeekMode.END)
    assert info.value.code == ErrorCode.EUNIMP


def test_seek_past_size(disk):
    with pytest.raises(KernelError) as info:
        open_file(disk, "HELLO.TXT").seek(12, SeekMode.SET)
    assert info.value.code == ErrorCode.EIO


def test_closed_descriptor_refuses_reads(disk):
    desc = open_file(disk, "HELLO.TXT")
    desc.close()
    with pytest.raises(KernelError) as info:
        desc.read(1, 1)
    assert info.value.code == ErrorCode.EIO