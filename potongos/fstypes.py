"""Types shared by the virtual filesystem and the filesystem drivers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Any, Sequence


class FileMode(IntEnum):
    """How a file is opened."""

    READ = 0
    WRITE = 1
    APPEND = 2
    INVALID = 3

    @classmethod
    def from_string(cls, text: str) -> "FileMode":
        """The mode named by the first character of ``text``."""
        return {"r": cls.READ, "w": cls.WRITE, "a": cls.APPEND}.get(
            text[:1], cls.INVALID
        )


class SeekMode(IntEnum):
    """Where a seek offset is measured from."""

    SET = 0
    CUR = 1
    END = 2


class StatFlags(IntFlag):
    """Attribute bits reported by a stat call."""

    NONE = 0x00
    READ_ONLY = 0x01


@dataclass
class FileStat:
    """Size and attributes of an open file."""

    flags: StatFlags = StatFlags.NONE
    filesize: int = 0


class Filesystem(ABC):
    """A filesystem driver that can claim disks and open files on them.

    ``open`` returns a descriptor offering ``read(size, nmemb)``,
    ``seek(offset, whence)``, ``stat()`` and ``close()``.
    """

    name: str = ""

    @abstractmethod
    def resolve(self, disk: Any) -> None:
        """Take over ``disk``; raise KernelError if it does not hold this filesystem."""

    @abstractmethod
    def open(self, disk: Any, parts: Sequence[str], mode: FileMode) -> Any:
        """Open the file at ``parts`` on ``disk`` and return its descriptor."""