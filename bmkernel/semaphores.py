"""Named counting semaphores that block and wake scheduler processes."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from bmkernel.scheduler import Scheduler

MAX_SEMAPHORES = 30
MAX_COUNT = 0xFFFF


class SemaphoreError(Exception):
    """Raised when a semaphore operation cannot be carried out."""


@dataclass
class _Semaphore:
    name: str
    count: int
    attached: int = 0
    blocked: deque = field(default_factory=deque)
    granted: set = field(default_factory=set)


class SemaphoreTable:
    """A fixed-size table of named semaphores.

    A process that waits on a semaphore whose count is zero is blocked in the
    scheduler. A later post hands the unit directly to the longest waiting
    process; when that process runs again and repeats its wait, the wait
    completes at once.
    """

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._slots: list[Optional[_Semaphore]] = [None] * MAX_SEMAPHORES

    def _get(self, index: int) -> _Semaphore:
        if not 0 <= index < MAX_SEMAPHORES or self._slots[index] is None:
            raise SemaphoreError(f"No active semaphore at index {index}")
        return self._slots[index]

    def _search(self, name: str) -> Optional[int]:
        return next(
            (i for i, sem in enumerate(self._slots) if sem is not None and sem.name == name),
            None,
        )

    def open(self, name: str, initial_count: int = 0) -> int:
        """Attach to the semaphore called name, creating it if needed; return its index."""
        if name is None:
            raise SemaphoreError("A semaphore needs a name")
        index = self._search(name)
        if index is None:
            if not 0 <= initial_count <= MAX_COUNT:
                raise ValueError(f"Initial count must be between 0 and {MAX_COUNT}")
            index = next((i for i, sem in enumerate(self._slots) if sem is None), None)
            if index is None:
                raise SemaphoreError("No free semaphores")
            self._slots[index] = _Semaphore(name, initial_count)
        self._slots[index].attached += 1
        return index

    def wait(self, index: int) -> bool:
        """Take one unit.

        Returns True when the unit was taken, False when the running process
        was blocked and must repeat the wait once it is scheduled again.
        """
        sem = self._get(index)
        pid = self._scheduler.current_pid()
        if pid in sem.granted:
            sem.granted.discard(pid)
            return True
        if sem.count > 0:
            sem.count -= 1
            return True
        if self._scheduler.current_process() is None:
            raise SemaphoreError("No running process to block")
        sem.blocked.append(pid)
        self._scheduler.block(pid)
        return False

    def post(self, index: int) -> None:
        """Release one unit, waking the longest waiting process if any."""
        sem = self._get(index)
        if sem.count > 0 or not sem.blocked:
            sem.count = min(sem.count + 1, MAX_COUNT) if sem.count < MAX_COUNT else 0
            return
        pid = sem.blocked.popleft()
        sem.granted.add(pid)
        try:
            self._scheduler.unblock(pid)
        except ProcessLookupError:
            sem.granted.discard(pid)

    def close(self, index: int) -> bool:
        """Detach from a semaphore; returns True when it was destroyed."""
        sem = self._get(index)
        sem.attached -= 1
        if sem.attached > 0:
            return False
        if sem.blocked:
            raise SemaphoreError("Error closing semaphore, processes still blocked")
        self._slots[index] = None
        return True

    def dump(self) -> str:
        parts = ["Active semaphores:\n\n"]
        for index, sem in enumerate(self._slots):
            if sem is None:
                continue
            parts.append(f"Sem index: {index}\n")
            parts.append(f"Value: {sem.count}\n")
            parts.append(self.dump_semaphore(index))
            parts.append("\n\n")
        return "".join(parts)

    def dump_semaphore(self, index: int) -> str:
        sem = self._get(index)
        parts = [
            f"      Name: {sem.name}\n",
            f"          attachedProcesses: {sem.attached}\n",
            "          Blocked processes:\n",
        ]
        parts.extend(f"  PID: {pid}\n" for pid in sem.blocked)
        return "".join(parts)