"""Kernel status codes, the exception that carries them, and system limits."""

from __future__ import annotations

from enum import IntEnum

KERNEL_CODE_SELECTOR = 0x08
KERNEL_DATA_SELECTOR = 0x10

TOTAL_INTERRUPTS = 512

HEAP_SIZE_BYTES = 104857600
HEAP_BLOCK_SIZE = 4096
HEAP_ADDRESS = 0x01000000
HEAP_TABLE_ADDRESS = 0x00007E00

SECTOR_SIZE = 512

MAX_FILESYSTEMS = 12
MAX_FILE_DESCRIPTORS = 512

MAX_PATH = 108

TOTAL_GDT_SEGMENTS = 6

PROGRAM_VIRTUAL_ADDRESS = 0x400000
USER_PROGRAM_STACK_SIZE = 1024 * 16
PROGRAM_VIRTUAL_STACK_ADDRESS_START = 0x3FF000
PROGRAM_VIRTUAL_STACK_ADDRESS_END = (
    PROGRAM_VIRTUAL_STACK_ADDRESS_START - USER_PROGRAM_STACK_SIZE
)

MAX_PROGRAM_ALLOCATIONS = 1024
MAX_PROCESSES = 12

USER_DATA_SEGMENT = 0x23
USER_CODE_SEGMENT = 0x1B

MAX_ISR80H_COMMANDS = 1024

KEYBOARD_BUFFER_SIZE = 1024

VGA_WIDTH = 80
VGA_HEIGHT = 20


class ErrorCode(IntEnum):
    """Status codes reported by kernel subsystems."""

    ALL_OK = 0
    EIO = 1
    EINVARG = 2
    ENOMEM = 3
    EBADPATH = 4
    EFSNOTUS = 5
    ERDONLY = 6
    EUNIMP = 7
    EISTKN = 8
    EINFORMAT = 9


_DESCRIPTIONS = {
    ErrorCode.ALL_OK: "no error",
    ErrorCode.EIO: "input/output error",
    ErrorCode.EINVARG: "invalid argument",
    ErrorCode.ENOMEM: "out of memory",
    ErrorCode.EBADPATH: "bad path",
    ErrorCode.EFSNOTUS: "filesystem not handled by this driver",
    ErrorCode.ERDONLY: "read only",
    ErrorCode.EUNIMP: "not supported",
    ErrorCode.EISTKN: "slot is taken",
    ErrorCode.EINFORMAT: "invalid format",
}


class KernelError(Exception):
    """Raised where a kernel routine reports a failure status."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = ErrorCode(abs(int(code)))
        self.message = message if message is not None else _DESCRIPTIONS[self.code]
        super().__init__(f"{self.code.name}: {self.message}")

    @property
    def status(self) -> int:
        """The negative status value a kernel call would return."""
        return -int(self.code)