"""PS/2 keyboard driver: turns scan codes into buffered character codes."""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Callable, Optional, Sequence

KEYS = 59
BUFFER_SIZE = 50
REGISTERS = 16
SNAPSHOT_RSP_INDEX = 15 + 3
RELEASE_BIT = 0x80

L_SHIFT_SC = 0x2A
R_SHIFT_SC = 0x36
CAPS_LOCK_SC = 0x3A
L_CONTROL_SC = 0x1D

CLEAR_SCREEN = 0x16
EOF = -1

# (plain, shifted) character for every scan code up to caps lock; "" means none.
_PRESS_CODES: tuple[tuple[str, str], ...] = (
    ("", ""), ("", ""), ("1", "!"), ("2", "@"), ("3", "#"), ("4", "$"),
    ("5", "%"), ("6", "^"), ("7", "&"), ("8", "*"), ("9", "("), ("0", ")"),
    ("-", "_"), ("=", "+"), ("\b", "\b"), ("\t", "\t"), ("q", "Q"), ("w", "W"),
    ("e", "E"), ("r", "R"), ("t", "T"), ("y", "Y"), ("u", "U"), ("i", "I"),
    ("o", "O"), ("p", "P"), ("[", "{"), ("]", "}"), ("\n", "\n"), ("", ""),
    ("a", "A"), ("s", "S"), ("d", "D"), ("f", "F"), ("g", "G"), ("h", "H"),
    ("j", "J"), ("k", "K"), ("l", "L"), (";", ":"), ("'", '"'), ("`", "~"),
    ("", ""), ("\\", "|"), ("z", "Z"), ("x", "X"), ("c", "C"), ("v", "V"),
    ("b", "B"), ("n", "N"), ("m", "M"), (",", "<"), (".", ">"), ("/", "?"),
    ("", ""), ("", ""), ("", ""), (" ", " "), ("", ""),
)


class KeyAction(Enum):
    PRESSED = 1
    RELEASED = 2
    ERROR = -1


def classify(scan_code: int) -> KeyAction:
    """Tell whether a scan code is a key press, a key release or neither."""
    if 0x01 <= scan_code <= 0x3A:
        return KeyAction.PRESSED
    if 0x81 <= scan_code <= 0xBA:
        return KeyAction.RELEASED
    return KeyAction.ERROR


class KeyboardDriver:
    """Tracks modifier keys and queues the character codes of key presses.

    Control combinations: Ctrl+L queues CLEAR_SCREEN, Ctrl+D queues EOF,
    Ctrl+S takes a register snapshot and Ctrl+C calls on_interrupt.
    """

    def __init__(self, on_interrupt: Optional[Callable[[], None]] = None):
        self._on_interrupt = on_interrupt
        self._shift = False
        self._caps_lock = False
        self._ctrl = False
        self._buffer: deque[int] = deque()
        self._registers = [0] * (REGISTERS + 1)

    def handle(self, scan_code: int, registers: Optional[Sequence[int]] = None) -> KeyAction:
        """Process one scan code; registers is the interrupted stack frame."""
        action = classify(scan_code)
        if action is KeyAction.PRESSED:
            self._press(scan_code, registers)
        elif action is KeyAction.RELEASED:
            self._release(scan_code)
        return action

    def _press(self, scan_code: int, registers: Optional[Sequence[int]]) -> None:
        if scan_code in (L_SHIFT_SC, R_SHIFT_SC):
            self._shift = True
            return
        if scan_code == CAPS_LOCK_SC:
            self._caps_lock = not self._caps_lock
            return
        if scan_code == L_CONTROL_SC:
            self._ctrl = True
            return

        plain, shifted = _PRESS_CODES[scan_code]
        if not plain:
            return
        if self._ctrl:
            if plain == "l":
                self._enqueue(CLEAR_SCREEN)
            elif plain == "s":
                self._update_snapshot(registers)
            elif plain == "c":
                if self._on_interrupt is not None:
                    self._on_interrupt()
            elif plain == "d":
                self._enqueue(EOF)
            return

        if "a" <= plain <= "z":
            upper = self._caps_lock != self._shift
        else:
            upper = self._shift
        self._enqueue(ord(shifted if upper else plain))

    def _release(self, scan_code: int) -> None:
        if scan_code in (L_SHIFT_SC | RELEASE_BIT, R_SHIFT_SC | RELEASE_BIT):
            self._shift = False
        elif scan_code == L_CONTROL_SC | RELEASE_BIT:
            self._ctrl = False

    def _enqueue(self, code: int) -> None:
        # A full buffer drops further keys.
        if len(self._buffer) < BUFFER_SIZE:
            self._buffer.append(code)

    def _update_snapshot(self, registers: Optional[Sequence[int]]) -> None:
        if registers is None or len(registers) <= SNAPSHOT_RSP_INDEX:
            raise ValueError(
                f"A register snapshot needs a stack frame of at least "
                f"{SNAPSHOT_RSP_INDEX + 1} values"
            )
        self._registers = [*registers[:REGISTERS], registers[SNAPSHOT_RSP_INDEX]]

    def get_char(self) -> Optional[int]:
        """Take the next queued character code, or None if nothing is waiting."""
        return self._buffer.popleft() if self._buffer else None

    def snapshot(self) -> list[int]:
        """The registers saved by the last Ctrl+S: R15..RAX, RIP, then RSP."""
        return list(self._registers)