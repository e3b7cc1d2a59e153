"""
Crafty - Request Pacing
========================
Leaky-bucket pacer that spaces calls to a rate-limited provider.

``Pacer.wait()`` returns once at least ``interval_ms`` has passed since
the previous slot was handed out.  Time spent doing the work between
two ``wait()`` calls counts towards the interval, so a slow API call is
never followed by an additional fixed sleep.  ``hold()`` pushes the
next slot further out (the pause between ingestion batches).

Waiting happens on a ``threading.Event``: calling ``cancel()`` wakes any
pending wait immediately and makes it raise
``IngestionInterruptedError``.

Usage:
    pacer = Pacer(interval_ms=100)
    for item in items:
        pacer.wait()
        call_provider(item)
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from crafty.src.core.errors import IngestionInterruptedError

Clock = Callable[[], float]
Sleeper = Callable[[float], bool]


class Pacer:
    """
    Minimum-spacing pacer.

    Parameters
    ----------
    interval_ms
        Minimum spacing between two slots, in milliseconds.
    clock
        Monotonic time source in seconds.
    sleeper
        Blocks for the given number of seconds and returns True when the
        wait was cancelled.  Defaults to the pacer's own cancel event.
    """

    __slots__ = ("_interval", "_next_slot", "_lock", "_cancelled", "_clock", "_sleeper")

    def __init__(self, interval_ms: int, clock: Clock = time.monotonic, sleeper: Sleeper | None = None) -> None:
        if interval_ms < 0:
            raise ValueError(f"interval_ms must be ≥ 0, got {interval_ms}")
        self._interval: float = interval_ms / 1000
        self._next_slot: float | None = None
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._clock = clock
        self._sleeper: Sleeper = sleeper or self._cancelled.wait


    @property
    def interval_ms(self) -> int:
        return round(self._interval * 1000)


    def wait(self) -> float:
        """
        Block until the next slot is due and claim it.

        Returns
        -------
        float
            Seconds actually waited (0.0 when the slot was already due).

        Raises
        ------
        IngestionInterruptedError
            If ``cancel()`` was called before or during the wait.
        """
        with self._lock:
            now = self._clock()
            due = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = due + self._interval
            delay = due - now

        if self._cancelled.is_set():
            raise IngestionInterruptedError("Pacing wait cancelled.")
        if delay > 0 and self._sleeper(delay):
            raise IngestionInterruptedError(f"Pacing wait cancelled after up to {delay:.3f}s.")
        return delay


    def hold(self, delay_ms: int) -> None:
        """Make the next ``wait()`` return no earlier than *delay_ms* from now."""
        with self._lock:
            target = self._clock() + delay_ms / 1000
            if self._next_slot is None or target > self._next_slot:
                self._next_slot = target


    def cancel(self) -> None:
        """Wake any pending wait and make every later wait raise."""
        self._cancelled.set()


    def reset(self) -> None:
        """Forget the schedule and clear a previous cancellation."""
        with self._lock:
            self._next_slot = None
            self._cancelled.clear()


    def __repr__(self) -> str:
        return f"Pacer(interval_ms={self.interval_ms})"
