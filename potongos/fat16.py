"""FAT16 filesystem driver: boot header, directories and cluster chains."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Sequence, Union

from .disk import Disk, DiskStreamer
from .errors import MAX_PATH, ErrorCode, KernelError
from .fstypes import FileMode, FileStat, Filesystem, SeekMode, StatFlags
from .strings import istrncmp

FAT16_SIGNATURE = 0x29
FAT16_FAT_ENTRY_SIZE = 0x02
FAT16_BAD_SECTOR = 0xFF7
FAT16_UNUSED = 0x00

FAT_FILE_READ_ONLY = 0x01
FAT_FILE_HIDDEN = 0x02
FAT_FILE_SYSTEM = 0x04
FAT_FILE_VOLUME_LABEL = 0x08
FAT_FILE_SUBDIRECTORY = 0x10
FAT_FILE_ARCHIVED = 0x20
FAT_FILE_DEVICE = 0x40
FAT_FILE_RESERVED = 0x80

_END_OF_CHAIN = (0xFF8, 0xFFF)
_RESERVED_CLUSTERS = (0xFF0, 0xFF6)
_DELETED_MARK = 0xE5

_HEADER = struct.Struct("<3s8sHBHBHHBHHHII BBBI11s8s")
_ITEM = struct.Struct("<8s3sBBBHHHHHHHI")


@dataclass(frozen=True)
class FatHeader:
    """The boot sector's BIOS parameter block and its extended part."""

    short_jmp_ins: bytes
    oem_identifier: bytes
    bytes_per_sector: int
    sectors_per_cluster: int
    reserved_sectors: int
    fat_copies: int
    root_dir_entries: int
    number_of_sectors: int
    media_type: int
    sectors_per_fat: int
    sectors_per_track: int
    number_of_heads: int
    hidden_sectors: int
    sectors_big: int
    drive_number: int
    win_nt_bit: int
    signature: int
    volume_id: int
    volume_id_string: bytes
    system_id_string: bytes

    SIZE = _HEADER.size

    @classmethod
    def unpack(cls, data: bytes) -> "FatHeader":
        """Decode the header from the first bytes of ``data``."""
        if len(data) < _HEADER.size:
            raise KernelError(ErrorCode.EINVARG, "FAT header is truncated")
        return cls(*_HEADER.unpack_from(data))


def _proper_string(raw: bytes) -> str:
    """The name bytes up to the first NUL or space padding."""
    end = len(raw)
    for index, byte in enumerate(raw):
        if byte in (0x00, 0x20):
            end = index
            break
    return raw[:end].decode("latin-1")


@dataclass(frozen=True)
class DirectoryItem:
    """One 32-byte directory entry describing a file or subdirectory."""

    filename: bytes
    ext: bytes
    attribute: int
    reserved: int
    creation_time_tenths_of_a_sec: int
    creation_time: int
    creation_date: int
    last_access: int
    high_16_bits_first_cluster: int
    last_mod_time: int
    last_mod_date: int
    low_16_bits_first_cluster: int
    filesize: int

    SIZE = _ITEM.size

    @classmethod
    def unpack(cls, data: bytes) -> "DirectoryItem":
        """Decode an entry from the first 32 bytes of ``data``."""
        if len(data) < _ITEM.size:
            raise KernelError(ErrorCode.EINVARG, "directory entry is truncated")
        return cls(*_ITEM.unpack_from(data))

    @property
    def is_directory(self) -> bool:
        return bool(self.attribute & FAT_FILE_SUBDIRECTORY)

    @property
    def first_cluster(self) -> int:
        return (self.high_16_bits_first_cluster << 16) | self.low_16_bits_first_cluster

    def relative_filename(self) -> str:
        """The ``NAME.EXT`` form of the entry's padded name fields."""
        name = _proper_string(self.filename)
        if self.ext[:1] not in (b"\x00", b" ", b""):
            name += "." + _proper_string(self.ext)
        return name


@dataclass
class _FatDirectory:
    items: list[DirectoryItem]
    total: int
    sector_pos: int = 0
    ending_sector_pos: int = 0


_FatItem = Union[DirectoryItem, _FatDirectory]


@dataclass
class _FatPrivate:
    cluster_read_stream: DiskStreamer
    fat_read_stream: DiskStreamer
    directory_stream: DiskStreamer
    header: FatHeader | None = None
    root_directory: _FatDirectory = field(
        default_factory=lambda: _FatDirectory([], 0)
    )


def _private(disk: Disk) -> _FatPrivate:
    private = disk.fs_private
    if not isinstance(private, _FatPrivate) or private.header is None:
        raise KernelError(ErrorCode.EIO, "disk is not resolved as FAT16")
    return private


def _cluster_bytes(disk: Disk, private: _FatPrivate) -> int:
    size = private.header.sectors_per_cluster * disk.sector_size
    if size <= 0:
        raise KernelError(ErrorCode.EIO, "cluster size is zero")
    return size


def _cluster_to_sector(private: _FatPrivate, cluster: int) -> int:
    return private.root_directory.ending_sector_pos + (
        (cluster - 2) * private.header.sectors_per_cluster
    )


def _fat_entry(disk: Disk, private: _FatPrivate, cluster: int) -> int:
    stream = private.fat_read_stream
    table_position = private.header.reserved_sectors * disk.sector_size
    stream.seek(table_position + cluster * FAT16_FAT_ENTRY_SIZE)
    return int.from_bytes(stream.read(FAT16_FAT_ENTRY_SIZE), "little")


def _cluster_for_offset(
    disk: Disk, private: _FatPrivate, starting_cluster: int, offset: int
) -> int:
    cluster = starting_cluster
    for _ in range(offset // _cluster_bytes(disk, private)):
        entry = _fat_entry(disk, private, cluster)
        if entry in _END_OF_CHAIN:
            raise KernelError(ErrorCode.EIO, "offset is past the end of the chain")
        if entry == FAT16_BAD_SECTOR:
            raise KernelError(ErrorCode.EIO, "cluster is marked bad")
        if entry in _RESERVED_CLUSTERS:
            raise KernelError(ErrorCode.EIO, "cluster is reserved")
        if entry == FAT16_UNUSED:
            raise KernelError(ErrorCode.EIO, "cluster chain is broken")
        cluster = entry
    return cluster


def _read_internal(
    disk: Disk, private: _FatPrivate, cluster: int, offset: int, total: int
) -> bytes:
    """Read ``total`` bytes at ``offset`` of the chain starting at ``cluster``."""
    stream = private.cluster_read_stream
    cluster_size = _cluster_bytes(disk, private)
    out = bytearray()
    while True:
        cluster_to_use = _cluster_for_offset(disk, private, cluster, offset)
        starting_pos = (
            _cluster_to_sector(private, cluster_to_use) * disk.sector_size
            + offset % cluster_size
        )
        chunk = min(total, cluster_size)
        stream.seek(starting_pos)
        out += stream.read(chunk)
        total -= chunk
        offset += chunk
        if total <= 0:
            return bytes(out)


def _count_items(disk: Disk, private: _FatPrivate, start_sector: int) -> int:
    stream = private.directory_stream
    stream.seek(start_sector * disk.sector_size)
    count = 0
    while True:
        first = stream.read(DirectoryItem.SIZE)[0]
        if first == 0x00:
            return count
        if first != _DELETED_MARK:
            count += 1


def _parse_items(data: bytes) -> list[DirectoryItem]:
    return [
        DirectoryItem.unpack(data[start:start + DirectoryItem.SIZE])
        for start in range(0, len(data) - DirectoryItem.SIZE + 1, DirectoryItem.SIZE)
    ]


def _root_directory(disk: Disk, private: _FatPrivate) -> _FatDirectory:
    header = private.header
    sector_pos = header.fat_copies * header.sectors_per_fat + header.reserved_sectors
    size = header.root_dir_entries * DirectoryItem.SIZE
    total = _count_items(disk, private, sector_pos)
    stream = private.directory_stream
    stream.seek(sector_pos * disk.sector_size)
    items = _parse_items(stream.read(size))
    return _FatDirectory(
        items, total, sector_pos, sector_pos + size // disk.sector_size
    )


def _load_directory(
    disk: Disk, private: _FatPrivate, item: DirectoryItem
) -> _FatDirectory:
    if not item.is_directory:
        raise KernelError(ErrorCode.EINVARG, "entry is not a directory")
    cluster = item.first_cluster
    sector = _cluster_to_sector(private, cluster)
    total = _count_items(disk, private, sector)
    size = total * DirectoryItem.SIZE
    data = _read_internal(disk, private, cluster, 0, size) if size else b""
    return _FatDirectory(_parse_items(data), total, sector)


def _new_item(disk: Disk, private: _FatPrivate, item: DirectoryItem) -> _FatItem:
    if item.is_directory:
        return _load_directory(disk, private, item)
    return item


def _find_in_directory(
    disk: Disk, private: _FatPrivate, directory: _FatDirectory, name: str
) -> _FatItem | None:
    found = None
    for item in directory.items[:directory.total]:
        if istrncmp(item.relative_filename(), name, MAX_PATH) == 0:
            found = item
    return _new_item(disk, private, found) if found is not None else None


def _directory_entry(
    disk: Disk, private: _FatPrivate, parts: Sequence[str]
) -> _FatItem | None:
    current = _find_in_directory(disk, private, private.root_directory, parts[0])
    for part in parts[1:]:
        if not isinstance(current, _FatDirectory):
            return None
        current = _find_in_directory(disk, private, current, part)
    return current


class FatFileDescriptor:
    """An open FAT16 file or directory with its current position."""

    def __init__(self, disk: Disk, item: _FatItem) -> None:
        self.disk = disk
        self.item = item
        self.pos = 0
        self.closed = False

    def _file_item(self) -> DirectoryItem:
        if self.closed:
            raise KernelError(ErrorCode.EIO, "descriptor is closed")
        if not isinstance(self.item, DirectoryItem):
            raise KernelError(ErrorCode.EINVARG, "descriptor is not a file")
        return self.item

    def read(self, size: int, nmemb: int) -> bytes:
        """Read ``nmemb`` records of ``size`` bytes starting at the position.

        The position itself is left where it was.
        """
        item = self._file_item()
        private = _private(self.disk)
        out = bytearray()
        offset = self.pos
        for _ in range(nmemb):
            out += _read_internal(self.disk, private, item.first_cluster, offset, size)
            offset += size
        return bytes(out)

    def seek(self, offset: int, whence: SeekMode) -> None:
        """Move the position; offsets at or past the file size are refused."""
        item = self._file_item()
        if offset < 0 or offset >= item.filesize:
            raise KernelError(ErrorCode.EIO, "offset is outside the file")
        if whence == SeekMode.SET:
            self.pos = offset
        elif whence == SeekMode.END:
            raise KernelError(ErrorCode.EUNIMP, "seeking from the end")
        elif whence == SeekMode.CUR:
            self.pos += offset
        else:
            raise KernelError(ErrorCode.EINVARG, "unknown seek mode")

    def stat(self) -> FileStat:
        """Size and read-only flag of the file."""
        item = self._file_item()
        flags = StatFlags.NONE
        if item.attribute & FAT_FILE_READ_ONLY:
            flags |= StatFlags.READ_ONLY
        return FileStat(flags=flags, filesize=item.filesize)

    def close(self) -> None:
        self.closed = True


class Fat16(Filesystem):
    """The FAT16 driver."""

    name = "FAT16"

    def resolve(self, disk: Disk) -> None:
        """Claim ``disk`` if its boot sector carries the FAT16 signature."""
        private = _FatPrivate(
            cluster_read_stream=DiskStreamer(disk),
            fat_read_stream=DiskStreamer(disk),
            directory_stream=DiskStreamer(disk),
        )
        disk.fs_private = private
        try:
            header = FatHeader.unpack(DiskStreamer(disk).read(FatHeader.SIZE))
            if header.signature != FAT16_SIGNATURE:
                raise KernelError(ErrorCode.EFSNOTUS)
            private.header = header
            try:
                private.root_directory = _root_directory(disk, private)
            except KernelError as exc:
                raise KernelError(ErrorCode.EIO, "cannot read root directory") from exc
        except KernelError:
            disk.fs_private = None
            raise
        disk.filesystem = self

    def open(self, disk: Disk, parts: Sequence[str], mode: FileMode) -> Any:
        """Open the entry at ``parts`` for reading."""
        if mode != FileMode.READ:
            raise KernelError(ErrorCode.ERDONLY)
        if not parts:
            raise KernelError(ErrorCode.EINVARG, "no path given")
        private = _private(disk)
        item = _directory_entry(disk, private, list(parts))
        if item is None:
            raise KernelError(ErrorCode.EIO, "no such file")
        return FatFileDescriptor(disk, item)