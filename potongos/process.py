"""Processes: program images, stacks, allocations, arguments and their slots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable

from .elf import ElfFile, load_elf
from .errors import (
    MAX_PATH,
    MAX_PROCESSES,
    MAX_PROGRAM_ALLOCATIONS,
    PROGRAM_VIRTUAL_ADDRESS,
    PROGRAM_VIRTUAL_STACK_ADDRESS_END,
    USER_PROGRAM_STACK_SIZE,
    ErrorCode,
    KernelError,
)
from .heap import KernelHeap
from .keyboard import KeyboardBuffer
from .paging import PageDirectory, PageFlags, align_down, align_up
from .task import Task, TaskList

_USER_PAGE = PageFlags.IS_PRESENT | PageFlags.ACCESS_FROM_ALL
_USER_WRITABLE = _USER_PAGE | PageFlags.IS_WRITEABLE
_ARGUMENT_SIZE = 512
_POINTER_SIZE = 4


class FileType(IntEnum):
    """The kind of program image a process was loaded from."""

    ELF = 0
    BINARY = 1


@dataclass(eq=False)
class Process:
    """A loaded program with its memory, task, key buffer and arguments."""

    id: int
    filename: str
    heap: KernelHeap = field(repr=False)
    task: Task | None = None
    filetype: FileType = FileType.BINARY
    elf_file: ElfFile | None = field(default=None, repr=False)
    data_address: int = 0
    size: int = 0
    stack: int = 0
    allocations: dict[int, int] = field(default_factory=dict)
    keyboard: KeyboardBuffer = field(default_factory=KeyboardBuffer, repr=False)
    arguments: list[str] = field(default_factory=list)
    argv_address: int = 0

    def _directory(self) -> PageDirectory:
        if self.task is None:
            raise KernelError(ErrorCode.EINVARG, "process has no task")
        return self.task.page_directory

    def malloc(self, size: int) -> int:
        """Allocate zeroed memory and make it reachable from user mode."""
        directory = self._directory()
        address = self.heap.kzalloc(size)
        try:
            if len(self.allocations) >= MAX_PROGRAM_ALLOCATIONS:
                raise KernelError(ErrorCode.ENOMEM, "too many allocations")
            directory.map_to(address, address, align_up(address + size), _USER_WRITABLE)
        except KernelError:
            self.heap.kfree(address)
            raise
        self.allocations[address] = size
        return address

    def free(self, address: int) -> None:
        """Unmap and release an allocation; addresses not owned are ignored."""
        size = self.allocations.get(address)
        if size is None:
            return
        self._directory().map_to(
            address, address, align_up(address + size), PageFlags.NONE
        )
        del self.allocations[address]
        self.heap.kfree(address)

    def inject_arguments(self, arguments: Iterable[str]) -> None:
        """Copy command arguments into process memory as ``argc``/``argv``."""
        values = list(arguments)
        if not values:
            raise KernelError(ErrorCode.EIO, "no arguments to inject")
        argv_address = self.malloc(_POINTER_SIZE * len(values))
        stored: list[str] = []
        pointers = bytearray()
        for argument in values:
            address = self.malloc(_ARGUMENT_SIZE)
            text = argument.split("\0", 1)[0][:_ARGUMENT_SIZE - 1]
            self.heap.write(address, text.encode("latin-1", "replace") + b"\0")
            pointers += address.to_bytes(_POINTER_SIZE, "little")
            stored.append(text)
        self.heap.write(argv_address, bytes(pointers))
        self.arguments = stored
        self.argv_address = argv_address

    def get_arguments(self) -> tuple[int, list[str]]:
        """The argument count and the arguments themselves."""
        return len(self.arguments), list(self.arguments)


class ProcessManager:
    """The process slots, loading programs into them and tearing them down."""

    def __init__(self, vfs: Any, heap: KernelHeap, tasks: TaskList) -> None:
        self.vfs = vfs
        self.heap = heap
        self.tasks = tasks
        self._processes: list[Process | None] = [None] * MAX_PROCESSES
        self.current: Process | None = None

    def get(self, process_id: int) -> Process | None:
        """The process in slot ``process_id``, or None."""
        if not 0 <= process_id < MAX_PROCESSES:
            return None
        return self._processes[process_id]

    def switch(self, process: Process) -> None:
        self.current = process

    def free_slot(self) -> int:
        """The first empty process slot."""
        for slot, process in enumerate(self._processes):
            if process is None:
                return slot
        raise KernelError(ErrorCode.EISTKN, "no free process slot")

    def load(self, filename: str) -> Process:
        """Load ``filename`` into the first free slot."""
        return self.load_for_slot(filename, self.free_slot())

    def load_switch(self, filename: str) -> Process:
        """Load ``filename`` and make it the current process."""
        process = self.load(filename)
        self.switch(process)
        return process

    def load_for_slot(self, filename: str, slot: int) -> Process:
        """Load ``filename`` as an ELF or flat binary into process ``slot``."""
        if not 0 <= slot < MAX_PROCESSES:
            raise KernelError(ErrorCode.EINVARG, f"no process slot {slot}")
        if self._processes[slot] is not None:
            raise KernelError(ErrorCode.EISTKN, f"process slot {slot} is taken")

        process = Process(id=slot, filename=filename[:MAX_PATH - 1], heap=self.heap)
        self._load_data(filename, process)
        try:
            process.stack = self.heap.kzalloc(USER_PROGRAM_STACK_SIZE)
            entry = (
                process.elf_file.entry
                if process.filetype == FileType.ELF and process.elf_file is not None
                else PROGRAM_VIRTUAL_ADDRESS
            )
            process.task = self.tasks.new(process, entry)
            self._map_memory(process)
        except KernelError:
            if process.task is not None:
                self.tasks.free(process.task)
            if process.stack:
                self.heap.kfree(process.stack)
            self.heap.kfree(process.data_address)
            raise

        self._processes[slot] = process
        return process

    def _store(self, data: bytes) -> int:
        address = self.heap.kzalloc(len(data))
        self.heap.write(address, data)
        return address

    def _load_data(self, filename: str, process: Process) -> None:
        try:
            elf_file = load_elf(self.vfs, filename)
        except KernelError as exc:
            if exc.code != ErrorCode.EINFORMAT:
                raise
            self._load_binary(filename, process)
            return
        process.filetype = FileType.ELF
        process.elf_file = elf_file
        process.data_address = self._store(elf_file.memory)
        process.size = len(elf_file.memory)

    def _load_binary(self, filename: str, process: Process) -> None:
        try:
            fd = self.vfs.fopen(filename, "r")
        except KernelError as exc:
            raise KernelError(ErrorCode.EIO, f"cannot open {filename}") from exc
        try:
            stat = self.vfs.fstat(fd)
            try:
                data = self.vfs.fread(fd, stat.filesize, 1)
            except KernelError as exc:
                raise KernelError(ErrorCode.EIO, f"cannot read {filename}") from exc
        finally:
            self.vfs.fclose(fd)
        process.filetype = FileType.BINARY
        process.data_address = self._store(data)
        process.size = stat.filesize

    def _map_memory(self, process: Process) -> None:
        directory = process.task.page_directory
        if process.filetype == FileType.ELF:
            elf_file = process.elf_file
            for phdr in elf_file.program_headers():
                phys = process.data_address + elf_file.phdr_physical_offset(phdr)
                flags = _USER_WRITABLE if phdr.writable else _USER_PAGE
                directory.map_to(
                    align_down(phdr.p_vaddr),
                    align_down(phys),
                    align_up(phys + phdr.p_memsz),
                    flags,
                )
        elif process.filetype == FileType.BINARY:
            directory.map_to(
                PROGRAM_VIRTUAL_ADDRESS,
                process.data_address,
                align_up(process.data_address + process.size),
                _USER_WRITABLE,
            )
        else:
            raise KernelError(ErrorCode.EINVARG, "invalid process file type")

        directory.map_to(
            PROGRAM_VIRTUAL_STACK_ADDRESS_END,
            process.stack,
            align_up(process.stack + USER_PROGRAM_STACK_SIZE),
            _USER_WRITABLE,
        )

    def _free_program_data(self, process: Process) -> None:
        if process.filetype not in (FileType.BINARY, FileType.ELF):
            raise KernelError(ErrorCode.EINVARG, "invalid process file type")
        self.heap.kfree(process.data_address)
        process.elf_file = None

    def terminate(self, process: Process) -> None:
        """Release everything the process owns and empty its slot.

        If it was current, the first remaining process becomes current; with
        none left a KernelError is raised.
        """
        for address in list(process.allocations):
            process.free(address)
        self._free_program_data(process)
        self.heap.kfree(process.stack)
        if process.task is not None and process.task in self.tasks:
            self.tasks.free(process.task)

        self._processes[process.id] = None
        if self.current is process:
            self.current = next((p for p in self._processes if p is not None), None)
            if self.current is None:
                raise KernelError(ErrorCode.EIO, "No processes to switch to")