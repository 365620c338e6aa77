#!/usr/bin/python3

import math
import time
from typing import Callable

import msgspec

from .progress import ProgressEvent


def _divide(numerator: float, denominator: float) -> float:
    # IEEE 754 division; Python raises on a zero denominator instead
    if denominator:
        return numerator / denominator
    if math.isnan(numerator) or not numerator:
        return math.nan
    return math.copysign(math.inf, numerator)


def speed(current_seconds: float, elapsed_seconds: float) -> float:
    """
    Media seconds encoded per second of wall-clock time (e.g. 2.0 for "2x").

    This is infinite (or NaN at position zero) before any time has elapsed.
    """
    return _divide(current_seconds, elapsed_seconds)


def eta(current_seconds: float, total_seconds: float, elapsed_seconds: float) -> float:
    """Estimated wall-clock seconds until the job finishes at the current speed."""
    return _divide(total_seconds - current_seconds, speed(current_seconds, elapsed_seconds))


def estimate_out_size(
    in_size: int, current_out_size: int, current_seconds: float, total_seconds: float
) -> float:
    """
    Extrapolates the final output size from the bytes written so far.

    Output is assumed to grow linearly with the encoded position.  The result is NaN when
    nothing has been encoded yet, so callers should wait for a non-zero position.
    """
    # in_size is accepted for callers that want to compare against the source; the
    # extrapolation only depends on what has been written so far
    estimated_rate = _divide(current_out_size, current_seconds)
    remaining_seconds = total_seconds - current_seconds
    return current_out_size + estimated_rate * remaining_seconds


class ProgressReport(msgspec.Struct, frozen=True, kw_only=True):
    current_seconds: float
    total_seconds: float
    elapsed_seconds: float
    speed: float
    eta: float


class ProgressTimer:
    """
    Converts progress events into reports with timing information.

    The clock starts when ``start()`` is called, or on the first event otherwise.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._start_time: float | None = None

    def start(self) -> None:
        self._start_time = self._clock()

    def report(self, event: ProgressEvent) -> ProgressReport:
        now = self._clock()
        if self._start_time is None:
            self._start_time = now
        elapsed_seconds = now - self._start_time
        return ProgressReport(
            current_seconds=event.current_seconds,
            total_seconds=event.total_seconds,
            elapsed_seconds=elapsed_seconds,
            speed=speed(event.current_seconds, elapsed_seconds),
            eta=eta(event.current_seconds, event.total_seconds, elapsed_seconds),
        )
