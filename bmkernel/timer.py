"""Timer-tick counter driven by the programmable interval timer."""

from __future__ import annotations

TICKS_PER_SECOND = 18


class Timer:
    """Counts timer interrupts and converts them to elapsed seconds."""

    def __init__(self) -> None:
        self._ticks = 0

    def tick(self) -> None:
        """Record one timer interrupt."""
        self._ticks += 1

    def ticks_elapsed(self) -> int:
        return self._ticks

    def seconds_elapsed(self) -> int:
        return self._ticks // TICKS_PER_SECOND