"""Tasks: saved register state, a page directory each, and the run list."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Iterator

from .errors import (
    PROGRAM_VIRTUAL_ADDRESS,
    PROGRAM_VIRTUAL_STACK_ADDRESS_START,
    USER_CODE_SEGMENT,
    USER_DATA_SEGMENT,
    ErrorCode,
    KernelError,
)
from .paging import PageDirectory, PageFlags

DEFAULT_BURST_TIME = 1000


@dataclass
class Registers:
    """The processor registers of a task that is not running."""

    edi: int = 0
    esi: int = 0
    ebp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    ip: int = 0
    cs: int = 0
    flags: int = 0
    esp: int = 0
    ss: int = 0


@dataclass(eq=False)
class Task:
    """A schedulable thread of execution belonging to a process."""

    id: int
    process: Any
    page_directory: PageDirectory
    registers: Registers = field(default_factory=Registers)
    burst_time: int = DEFAULT_BURST_TIME
    remaining_time: int = DEFAULT_BURST_TIME

    def save_state(self, frame: Any) -> None:
        """Copy the registers captured in an interrupt ``frame`` into the task."""
        for item in fields(Registers):
            setattr(self.registers, item.name, int(getattr(frame, item.name)))


class TaskList:
    """The tasks in scheduling order, and the one currently running."""

    def __init__(self) -> None:
        self._tasks: list[Task] = []
        self._next_id = 0
        self.current: Task | None = None
        self.active_directory: PageDirectory | None = None

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task: object) -> bool:
        return any(task is existing for existing in self._tasks)

    @property
    def head(self) -> Task | None:
        return self._tasks[0] if self._tasks else None

    @property
    def tail(self) -> Task | None:
        return self._tasks[-1] if self._tasks else None

    def _index(self, task: Task) -> int:
        for index, existing in enumerate(self._tasks):
            if existing is task:
                return index
        raise KernelError(ErrorCode.EINVARG, "task is not in the list")

    def new(self, process: Any, entry: int | None = None) -> Task:
        """Create a task for ``process`` starting at ``entry`` and append it."""
        registers = Registers(
            ip=PROGRAM_VIRTUAL_ADDRESS if entry is None else int(entry),
            cs=USER_CODE_SEGMENT,
            ss=USER_DATA_SEGMENT,
            esp=PROGRAM_VIRTUAL_STACK_ADDRESS_START,
        )
        task = Task(
            id=self._next_id,
            process=process,
            page_directory=PageDirectory(
                PageFlags.IS_PRESENT | PageFlags.ACCESS_FROM_ALL
            ),
            registers=registers,
        )
        self._next_id += 1
        self._tasks.append(task)
        if self.current is None:
            self.current = task
        return task

    def get_next(self) -> Task | None:
        """The task after the current one, wrapping round to the head."""
        if self.current is None or self.current not in self:
            return self.head
        index = self._index(self.current) + 1
        return self._tasks[index] if index < len(self._tasks) else self.head

    def free(self, task: Task) -> None:
        """Remove ``task``; if it was current, the following task becomes current."""
        index = self._index(task)
        del self._tasks[index]
        if task is self.current:
            self.current = (
                self._tasks[index] if index < len(self._tasks) else self.head
            )
        if self.active_directory is task.page_directory:
            self.active_directory = None

    def switch(self, task: Task) -> None:
        """Make ``task`` current and activate its page directory."""
        self.current = task
        self.active_directory = task.page_directory

    def next(self) -> Task:
        """Switch to the next task and return it."""
        following = self.get_next()
        if following is None:
            raise KernelError(ErrorCode.EINVARG, "No more tasks")
        self.switch(following)
        return following

    def save_current_state(self, frame: Any) -> None:
        """Save ``frame`` into the current task."""
        if self.current is None:
            raise KernelError(ErrorCode.EINVARG, "No current task to save")
        self.current.save_state(frame)