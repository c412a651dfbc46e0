"""The virtual filesystem: drivers, attached disks and numbered descriptors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .disk import Disk
from .errors import MAX_FILE_DESCRIPTORS, MAX_FILESYSTEMS, ErrorCode, KernelError
from .fat16 import Fat16
from .fstypes import FileMode, FileStat, Filesystem, SeekMode
from .pparser import parse_path


@dataclass
class _Descriptor:
    index: int
    filesystem: Filesystem
    private: Any
    disk: Disk


class VirtualFileSystem:
    """Routes file calls to the filesystem driver of the disk they name."""

    def __init__(self) -> None:
        self._filesystems: list[Filesystem | None] = [None] * MAX_FILESYSTEMS
        self._descriptors: list[_Descriptor | None] = [None] * MAX_FILE_DESCRIPTORS
        self._disks: dict[int, Disk] = {}
        self.insert_filesystem(Fat16())

    def insert_filesystem(self, filesystem: Filesystem) -> None:
        """Register a driver in the first free slot."""
        for slot, current in enumerate(self._filesystems):
            if current is None:
                self._filesystems[slot] = filesystem
                return
        raise KernelError(ErrorCode.ENOMEM, "no room for another filesystem")

    def resolve(self, disk: Disk) -> Filesystem | None:
        """The first registered driver that claims ``disk``, if any."""
        for filesystem in self._filesystems:
            if filesystem is None:
                continue
            try:
                filesystem.resolve(disk)
            except KernelError:
                continue
            return filesystem
        return None

    def attach_disk(self, disk: Disk) -> Filesystem | None:
        """Make ``disk`` reachable by its id and bind it to its filesystem."""
        disk.filesystem = self.resolve(disk)
        self._disks[disk.id] = disk
        return disk.filesystem

    def _new_descriptor(self, disk: Disk, private: Any) -> _Descriptor:
        for slot, current in enumerate(self._descriptors):
            if current is None:
                descriptor = _Descriptor(slot + 1, disk.filesystem, private, disk)
                self._descriptors[slot] = descriptor
                return descriptor
        raise KernelError(ErrorCode.ENOMEM, "no free file descriptors")

    def _descriptor(self, fd: int) -> _Descriptor | None:
        if fd <= 0 or fd >= MAX_FILE_DESCRIPTORS:
            return None
        return self._descriptors[fd - 1]

    def fopen(self, filename: str, mode: str = "r") -> int:
        """Open ``filename`` and return its descriptor number, starting at 1."""
        try:
            root = parse_path(filename)
        except KernelError as exc:
            raise KernelError(ErrorCode.EINVARG, "invalid path") from exc
        if root.first is None:
            raise KernelError(ErrorCode.EINVARG, "path names only a drive")

        disk = self._disks.get(root.drive_no)
        if disk is None:
            raise KernelError(ErrorCode.EIO, f"no disk {root.drive_no}")
        if disk.filesystem is None:
            raise KernelError(ErrorCode.EIO, "disk has no known filesystem")

        file_mode = FileMode.from_string(mode)
        if file_mode == FileMode.INVALID:
            raise KernelError(ErrorCode.EINVARG, f"invalid mode {mode!r}")

        private = disk.filesystem.open(disk, root.parts, file_mode)
        try:
            descriptor = self._new_descriptor(disk, private)
        except KernelError:
            private.close()
            raise
        return descriptor.index

    def fread(self, fd: int, size: int, nmemb: int) -> bytes:
        """Read ``nmemb`` records of ``size`` bytes from an open file."""
        if size == 0 or nmemb == 0 or fd < 1:
            raise KernelError(ErrorCode.EINVARG, "invalid read request")
        descriptor = self._descriptor(fd)
        if descriptor is None:
            raise KernelError(ErrorCode.EINVARG, f"bad descriptor {fd}")
        return descriptor.private.read(size, nmemb)

    def fseek(self, fd: int, offset: int, whence: SeekMode) -> None:
        """Move the position of an open file."""
        descriptor = self._descriptor(fd)
        if descriptor is None:
            raise KernelError(ErrorCode.EIO, f"bad descriptor {fd}")
        descriptor.private.seek(offset, whence)

    def fstat(self, fd: int) -> FileStat:
        """Size and attributes of an open file."""
        descriptor = self._descriptor(fd)
        if descriptor is None:
            raise KernelError(ErrorCode.EIO, f"bad descriptor {fd}")
        return descriptor.private.stat()

    def fclose(self, fd: int) -> None:
        """Close an open file and release its descriptor number."""
        descriptor = self._descriptor(fd)
        if descriptor is None:
            raise KernelError(ErrorCode.EIO, f"bad descriptor {fd}")
        descriptor.private.close()
        self._descriptors[descriptor.index - 1] = None