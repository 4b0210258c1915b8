"""Common type helpers for pcmfeat.

This module defines lightweight containers exchanged between the WAVE
source, the statistics engine and the host code driving them.  The
structures are intentionally minimal but add clarity around the shapes of
frequently passed arrays.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Window:
    """Index based window used for segmenting sequences."""

    start: int
    end: int

    @property
    def width(self) -> int:
        """Return the number of elements covered by the window."""

        return self.end - self.start


@dataclass
class SampleWindow:
    """A window of samples together with its ascending sorted copy.

    The statistics engine only reads ``sorted``; producing it is the
    caller's job.  ``sorted`` may be ``None`` to signal that the caller did
    not provide it, which the engine treats as a fatal error.
    """

    raw: np.ndarray
    sorted: Optional[np.ndarray]

    def __post_init__(self) -> None:
        self.raw = np.asarray(self.raw, dtype=float).reshape(-1)
        if self.sorted is not None:
            self.sorted = np.asarray(self.sorted, dtype=float).reshape(-1)
            if self.sorted.shape != self.raw.shape:
                raise ValueError("raw and sorted must have the same length")

    @classmethod
    def from_values(cls, values: Sequence[float] | np.ndarray) -> "SampleWindow":
        """Build a window from unordered ``values``, sorting a copy."""

        raw = np.asarray(values, dtype=float).reshape(-1)
        return cls(raw=raw, sorted=np.sort(raw))

    def __len__(self) -> int:
        return int(self.raw.shape[0])


@dataclass
class DecodedBlock:
    """Block of normalized PCM samples with shape ``(channels, frames)``."""

    data: np.ndarray
    start_frame: int
    sample_rate: int
    field_name: str = "pcm"

    @property
    def channels(self) -> int:
        return int(self.data.shape[0])

    @property
    def frames(self) -> int:
        return int(self.data.shape[1])

    @property
    def start_time(self) -> float:
        """Time of the first frame in seconds."""

        if self.sample_rate <= 0:
            return 0.0
        return self.start_frame / self.sample_rate
