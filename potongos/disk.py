"""A sector-addressed disk over an image, and a byte stream reading from it."""

from __future__ import annotations

from typing import Any

from .errors import SECTOR_SIZE, ErrorCode, KernelError

DISK_TYPE_REAL = 0


class Disk:
    """A disk backed by an in-memory image; sectors past its end read as zeros."""

    def __init__(
        self, image: bytes, disk_id: int = 0, sector_size: int = SECTOR_SIZE
    ) -> None:
        if sector_size <= 0:
            raise KernelError(ErrorCode.EINVARG, "sector size must be positive")
        self.image = bytes(image)
        self.id = disk_id
        self.sector_size = sector_size
        self.type = DISK_TYPE_REAL
        self.filesystem: Any = None
        self.fs_private: Any = None

    def read_block(self, lba: int, total: int) -> bytes:
        """Read ``total`` whole sectors starting at sector ``lba``."""
        if lba < 0 or total < 0:
            raise KernelError(ErrorCode.EIO, "sector range is invalid")
        start = lba * self.sector_size
        length = total * self.sector_size
        data = self.image[start:start + length]
        return data + bytes(length - len(data))


class DiskStreamer:
    """Reads arbitrary byte ranges from a disk, one sector at a time."""

    def __init__(self, disk: Disk) -> None:
        self.disk = disk
        self.pos = 0

    def seek(self, pos: int) -> None:
        self.pos = pos

    def read(self, total: int) -> bytes:
        """Read ``total`` bytes from the current position and advance past them."""
        if total < 0:
            raise KernelError(ErrorCode.EINVARG, "cannot read a negative length")
        sector_size = self.disk.sector_size
        out = bytearray()
        while len(out) < total:
            sector, offset = divmod(self.pos, sector_size)
            chunk = min(total - len(out), sector_size - offset)
            block = self.disk.read_block(sector, 1)
            out += block[offset:offset + chunk]
            self.pos += chunk
        return bytes(out)