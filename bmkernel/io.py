"""Per-process standard input and output routed to the console or to pipes."""

from __future__ import annotations

from typing import Callable, Optional

from bmkernel.keyboard import KeyboardDriver
from bmkernel.pipes import PipeTable
from bmkernel.scheduler import Process, Scheduler

CONSOLE_FD = 0
NO_INPUT = -1


class IOManager:
    """Sends a running process's output and input through its descriptors.

    Descriptor 0 is the console: output goes to the console callable and
    input comes from the keyboard, but only for foreground processes.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        pipes: PipeTable,
        keyboard: KeyboardDriver,
        console: Callable[[str], object],
    ):
        self._scheduler = scheduler
        self._pipes = pipes
        self._keyboard = keyboard
        self._console = console

    def _current(self) -> Process:
        process = self._scheduler.current_process()
        if process is None:
            raise RuntimeError("No process is running")
        return process

    def write(self, text: str) -> int:
        """Write text to the running process's output; return characters written."""
        process = self._current()
        if process.outfd == CONSOLE_FD:
            self._console(text)
            return len(text)
        return self._pipes.write(process.outfd, text)

    def getchar(self) -> Optional[int]:
        """Read one character code from the running process's input.

        Returns NO_INPUT for a background process reading the console, and
        None when nothing is available yet.
        """
        process = self._current()
        if process.infd == CONSOLE_FD:
            if not process.fg:
                return NO_INPUT
            return self._keyboard.get_char()
        char = self._pipes.read(process.infd)
        return None if char is None else ord(char)