"""Named, bounded character pipes synchronised with semaphores."""

from __future__ import annotations

from collections import deque
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from typing import Iterator, Optional

from bmkernel.semaphores import SemaphoreError, SemaphoreTable

TOTAL_PIPES = 20
PIPE_BUF = 1024
MAX_NAME_LENGTH = 19
LOCK_NAME = "pipes_lock"


class PipeError(Exception):
    """Raised when a pipe operation cannot be carried out."""


@dataclass
class _Pipe:
    name: str
    read_sem: int
    write_sem: int
    attached: int = 0
    buffer: deque = field(default_factory=deque)


class PipeTable:
    """A fixed-size table of pipes addressed by 1-based descriptors.

    Descriptor 0 stands for the console, so pipes start at 1. Reads and
    writes that would block put the running process to sleep and report it;
    the process repeats the call once it is scheduled again.
    """

    def __init__(self, semaphores: SemaphoreTable):
        self._sems = semaphores
        self._pipes: list[Optional[_Pipe]] = [None] * TOTAL_PIPES
        try:
            self._lock = semaphores.open(LOCK_NAME, 1)
        except SemaphoreError as exc:
            raise PipeError("error initing pipes") from exc

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self._sems.wait(self._lock)
        try:
            yield
        finally:
            self._sems.post(self._lock)

    def _get(self, index: int) -> _Pipe:
        slot = index - 1
        if not 0 <= slot < TOTAL_PIPES or self._pipes[slot] is None:
            raise PipeError(f"No active pipe with descriptor {index}")
        return self._pipes[slot]

    def _search(self, name: str) -> Optional[int]:
        return next(
            (i for i, pipe in enumerate(self._pipes) if pipe is not None and pipe.name == name),
            None,
        )

    def _create(self, name: str) -> int:
        slot = next((i for i, pipe in enumerate(self._pipes) if pipe is None), None)
        if slot is None:
            raise PipeError("No free pipes")
        try:
            read_sem = self._sems.open(f"{name}_R", 0)
        except SemaphoreError as exc:
            raise PipeError(f"Unable to create pipe '{name}'") from exc
        try:
            write_sem = self._sems.open(f"{name}_W", PIPE_BUF)
        except SemaphoreError as exc:
            with suppress(SemaphoreError):
                self._sems.close(read_sem)
            raise PipeError(f"Unable to create pipe '{name}'") from exc
        self._pipes[slot] = _Pipe(name, read_sem, write_sem)
        return slot

    def open(self, name: str) -> int:
        """Attach to the pipe called name, creating it if needed; return its descriptor."""
        if len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"Pipe names are at most {MAX_NAME_LENGTH} characters")
        with self._locked():
            slot = self._search(name)
            if slot is None:
                slot = self._create(name)
            self._pipes[slot].attached += 1
        return slot + 1

    def close(self, index: int) -> bool:
        """Detach from a pipe; returns True when it was destroyed."""
        pipe = self._get(index)
        with self._locked():
            pipe.attached -= 1
            if pipe.attached > 0:
                return False
            for sem in (pipe.read_sem, pipe.write_sem):
                with suppress(SemaphoreError):
                    self._sems.close(sem)
            self._pipes[index - 1] = None
        return True

    def write(self, index: int, text: str) -> int:
        """Write text up to its first NUL; return how many characters went in.

        Fewer than all are written only when the running process blocked on
        a full pipe.
        """
        self._get(index)
        written = 0
        for char in text.split("\0", 1)[0]:
            if not self.write_char(index, char):
                break
            written += 1
        return written

    def write_char(self, index: int, char: str) -> bool:
        """Write one character; returns False if the running process blocked."""
        if len(char) != 1:
            raise ValueError("write_char takes exactly one character")
        pipe = self._get(index)
        if not self._sems.wait(pipe.write_sem):
            return False
        pipe.buffer.append(char)
        self._sems.post(pipe.read_sem)
        return True

    def read(self, index: int) -> Optional[str]:
        """Read one character, or return None if the running process blocked."""
        pipe = self._get(index)
        if not self._sems.wait(pipe.read_sem):
            return None
        char = pipe.buffer.popleft()
        self._sems.post(pipe.write_sem)
        return char

    def dump(self) -> str:
        parts = ["Active pipes:\n"]
        for slot, pipe in enumerate(self._pipes):
            if pipe is None:
                continue
            parts.append("\n")
            parts.append(f"Pipe index: {slot}\n")
            parts.append(self._dump_pipe(pipe))
            parts.append("\n\n")
        parts.append("\n")
        return "".join(parts)

    def _dump_pipe(self, pipe: _Pipe) -> str:
        return "".join([
            f"   Name: {pipe.name}\n",
            f"   attachedProcesses: {pipe.attached}\n",
            f"   read sem: {pipe.read_sem}\n",
            f"   write sem: {pipe.write_sem}\n",
            "   Buffer content: ",
            "".join(pipe.buffer),
            "\n\n",
            "   blocked by read: \n",
            self._sems.dump_semaphore(pipe.read_sem),
            "\n",
            "   blocked by write: \n",
            self._sems.dump_semaphore(pipe.write_sem),
            "\n",
        ])