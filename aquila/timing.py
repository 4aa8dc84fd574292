"""A stopwatch reporting elapsed milliseconds at microsecond resolution."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from typing import Optional, TextIO


class Stopwatch:
    """Measures time since :meth:`start` using a nanosecond clock."""

    def __init__(
        self,
        clock: Callable[[], int] = time.perf_counter_ns,
        out: Optional[TextIO] = None,
    ) -> None:
        self._clock = clock
        self._out = out
        self._started: Optional[int] = None

    def start(self) -> None:
        """Start, or restart, the measurement."""
        self._started = self._clock()

    def elapsed_ms(self) -> float:
        """Milliseconds since :meth:`start`, truncated to whole microseconds."""
        if self._started is None:
            raise RuntimeError("stopwatch was not started")
        micros = (self._clock() - self._started) // 1000
        return micros / 1000.0

    def stop(self) -> float:
        """Write the elapsed milliseconds on a line and return them."""
        elapsed = self.elapsed_ms()
        print(f"{elapsed:g}", file=self._out if self._out is not None else sys.stdout)
        return elapsed

    def __enter__(self) -> "Stopwatch":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()