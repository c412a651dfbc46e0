"""Parsing of drive-qualified paths such as ``0:/bin/shell.elf``."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import MAX_PATH, ErrorCode, KernelError


@dataclass
class PathRoot:
    """A drive number and the path components below the drive's root."""

    drive_no: int
    parts: list[str] = field(default_factory=list)

    @property
    def first(self) -> str | None:
        return self.parts[0] if self.parts else None


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def parse_path(path: str) -> PathRoot:
    """Split ``path`` into its drive number and components.

    Parsing stops at the first empty component, so ``0:/a//b`` yields only
    ``a``. A path too long or not of the form ``<digit>:/`` is rejected.
    """
    text = path.split("\0", 1)[0]
    if len(text) > MAX_PATH:
        raise KernelError(ErrorCode.EBADPATH, "path is too long")
    if len(text) < 3 or not _is_digit(text[0]) or text[1:3] != ":/":
        raise KernelError(ErrorCode.EBADPATH, "path does not start with a drive")

    parts: list[str] = []
    for piece in text[3:].split("/"):
        if not piece:
            break
        parts.append(piece)
    return PathRoot(int(text[0]), parts)