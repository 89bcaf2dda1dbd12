"""Priority round-robin process scheduler."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

DEFAULT_FG_PRIORITY = 2
DEFAULT_BG_PRIORITY = 1
MAX_PRIORITY = 60
IDLE_NAME = "System Idle Process"


class ProcessState(Enum):
    READY = "READY"
    BLOCKED = "BLOCKED"
    KILLED = "KILLED"


@dataclass
class Process:
    """Process control block."""

    pid: int
    ppid: int
    name: str
    fg: bool
    priority: int
    infd: int = 0
    outfd: int = 0
    state: ProcessState = ProcessState.READY


class Scheduler:
    """Round-robin scheduler where a process's priority is its time slice in ticks.

    Each call to schedule() stands for one timer interrupt.
    """

    def __init__(self) -> None:
        self._queue: deque[Process] = deque()
        self._ready = 0
        self._current: Optional[Process] = None
        self._ticks_left = 0
        self._next_pid = 1
        self._idle = self._create(IDLE_NAME, True, None)

    def _create(self, name: str, fg, fds: Optional[Sequence[int]]) -> Process:
        if int(fg) > 1 or int(fg) < 0:
            raise ValueError(f"Invalid foreground flag: {fg!r}")
        pid = self._next_pid
        self._next_pid += 1
        current = self._current
        ppid = current.pid if current is not None else 0
        is_fg = bool(fg) if current is None or current.fg else False
        infd, outfd = (fds[0], fds[1]) if fds else (0, 0)
        return Process(
            pid=pid,
            ppid=ppid,
            name=name,
            fg=is_fg,
            priority=DEFAULT_FG_PRIORITY if is_fg else DEFAULT_BG_PRIORITY,
            infd=infd,
            outfd=outfd,
        )

    def _enqueue(self, process: Process) -> None:
        self._queue.append(process)
        if process.state is ProcessState.READY:
            self._ready += 1

    def _dequeue(self) -> Optional[Process]:
        if not self._queue:
            return None
        process = self._queue.popleft()
        if process.state is ProcessState.READY:
            self._ready -= 1
        return process

    def _find(self, pid: int) -> Optional[Process]:
        if self._current is not None and self._current.pid == pid:
            return self._current
        return next((p for p in self._queue if p.pid == pid), None)

    def _change_state(self, pid: int, state: ProcessState) -> Optional[bool]:
        process = self._find(pid)
        if process is None or process.state is ProcessState.KILLED:
            return None
        if process.state is state:
            return False
        if process is not self._current:
            if state is ProcessState.READY:
                self._ready += 1
            elif process.state is ProcessState.READY:
                self._ready -= 1
        process.state = state
        return True

    def _transition(self, pid: int, state: ProcessState) -> bool:
        changed = self._change_state(pid, state)
        if self._current is not None and pid == self._current.pid:
            self.schedule()
        if changed is None:
            raise ProcessLookupError(f"No live process with pid {pid}")
        return changed

    def add_process(self, name: str, fg=True, fds: Optional[Sequence[int]] = None) -> int:
        """Create a process and return its pid.

        A foreground child blocks its parent until it finishes.
        """
        process = self._create(name, fg, fds)
        self._enqueue(process)
        if process.fg and process.ppid:
            self.block(process.ppid)
        return process.pid

    def schedule(self) -> Process:
        """Handle one timer tick and return the process that runs next."""
        current = self._current
        if current is not None:
            if current.state is ProcessState.READY and self._ticks_left > 0:
                self._ticks_left -= 1
                return current
            if current is not self._idle:
                if current.state is ProcessState.KILLED:
                    parent = self._find(current.ppid)
                    if (
                        parent is not None
                        and current.fg
                        and parent.state is ProcessState.BLOCKED
                    ):
                        self.unblock(parent.pid)
                else:
                    self._enqueue(current)

        if self._ready > 0:
            chosen = self._dequeue()
            while chosen.state is not ProcessState.READY:
                if chosen.state is ProcessState.BLOCKED:
                    self._enqueue(chosen)
                chosen = self._dequeue()
            self._current = chosen
        else:
            self._current = self._idle

        self._ticks_left = self._current.priority
        return self._current

    def kill(self, pid: int) -> bool:
        """Mark a process killed; returns False if it already was in that state."""
        return self._transition(pid, ProcessState.KILLED)

    def block(self, pid: int) -> bool:
        return self._transition(pid, ProcessState.BLOCKED)

    def unblock(self, pid: int) -> bool:
        changed = self._change_state(pid, ProcessState.READY)
        if changed is None:
            raise ProcessLookupError(f"No live process with pid {pid}")
        return changed

    def change_priority(self, pid: int, priority: int) -> int:
        if priority > MAX_PRIORITY:
            raise ValueError(f"Priority must be at most {MAX_PRIORITY}")
        process = self._find(pid)
        if process is None:
            raise ProcessLookupError(f"No process with pid {pid}")
        process.priority = priority
        return pid

    def wait(self, pid: int) -> bool:
        """Block the running process until the given process finishes."""
        process = self._find(pid)
        if process is None:
            return False
        process.fg = True
        self.block(self._require_current().pid)
        return True

    def yield_cpu(self) -> Process:
        self._ticks_left = 0
        return self.schedule()

    def resign(self) -> None:
        """Terminate the running process."""
        self.kill(self._require_current().pid)

    def _require_current(self) -> Process:
        if self._current is None:
            raise RuntimeError("No process is running")
        return self._current

    def current_pid(self) -> int:
        return self._current.pid if self._current is not None else 0

    def current_process(self) -> Optional[Process]:
        return self._current

    def kill_foreground(self) -> None:
        current = self._current
        if current is not None and current.fg and current.state is ProcessState.READY:
            self.kill(current.pid)

    def list_processes(self) -> str:
        rows = ["PID    PPID    CMD    FG    PRIO    STATE\n"]
        shown = ([self._current] if self._current is not None else []) + list(self._queue)
        rows.extend(
            f"{p.pid}      {p.ppid}      {p.name}    {int(p.fg)}    "
            f"{p.priority}    {p.state.value}    \n"
            for p in shown
        )
        return "".join(rows)