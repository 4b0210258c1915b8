"""Helpers for cutting decoded audio into analysis windows."""

from __future__ import annotations

from typing import Iterator, List

import numpy as np

from ..types import SampleWindow, Window


def iter_windows(n: int, size: int, step: int = 1) -> Iterator[Window]:
    """Yield ``Window`` objects covering ``n`` samples.

    ``size`` is the window length and ``step`` controls how far the
    window advances each iteration.  Only complete windows are produced.
    ``ValueError`` is raised if the arguments are not sensible.
    """

    if size <= 0 or step <= 0:
        raise ValueError("size and step must be positive")
    for start in range(0, n - size + 1, step):
        yield Window(start, start + size)


def seconds_to_frames(seconds: float, sample_rate: int) -> int:
    """Convert a duration to a frame count, at least one frame."""

    return max(1, int(round(seconds * sample_rate)))


def sample_windows(signal: np.ndarray, size: int, step: int = 1) -> List[SampleWindow]:
    """Return a sorted :class:`SampleWindow` for each window of ``signal``."""

    data = np.asarray(signal, dtype=float).reshape(-1)
    return [
        SampleWindow.from_values(data[w.start : w.end])
        for w in iter_windows(data.shape[0], size, step)
    ]
