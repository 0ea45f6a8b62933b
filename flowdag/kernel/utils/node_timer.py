"""Timing context manager used around node work and hook callbacks."""

import time
from collections.abc import Generator
from contextlib import contextmanager


class Timer:
    """Tracks elapsed milliseconds since construction.

    ``stop()`` freezes the reading so it can be reported after the block.

    Examples
    --------
    >>> with node_timer() as t:
    ...     pass  # do work
    >>> assert t.duration_ms >= 0
    """

    __slots__ = ("_start", "_end")

    def __init__(self) -> None:
        self._start = time.perf_counter()
        self._end: float | None = None

    def stop(self) -> float:
        """Freeze the timer and return the elapsed milliseconds."""
        if self._end is None:
            self._end = time.perf_counter()
        return self.duration_ms

    @property
    def duration_ms(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return (end - self._start) * 1000

    @property
    def duration_str(self) -> str:
        return f"{self.duration_ms:.2f}"


@contextmanager
def node_timer() -> Generator[Timer, None, None]:
    """Time a block; the yielded ``Timer`` is stopped when the block exits.

    The timer is stopped even when the block raises, so failure paths can
    still report timing.
    """
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()
