from __future__ import annotations

"""Percentile, quartile and inter-percentile range statistics.

:class:`FunctionalPercentiles` computes a fixed feature vector over one
window of samples per call.  The vector starts with the three quartiles and
the three inter-quartile ranges (each can be disabled), followed by every
configured percentile and every configured inter-percentile range.

Two rank estimators are available.  With ``interp`` disabled the value at
the nearest rank is used:

.. math::

   i = \\operatorname{round}(p (N - 1))

With ``interp`` enabled the estimate is linearly interpolated between the
two neighbouring ranks of :math:`p (N - 1)`.

The engine expects the window to be sorted in ascending order already; it
never sorts by itself.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from ..types import SampleWindow
from .config import INVALID_RANGE, StatConfig

logger = logging.getLogger(__name__)

# Names of the fixed outputs, in output order.
FIXED_NAMES = ("quartile1", "quartile2", "quartile3", "iqr1-2", "iqr2-3", "iqr1-3")
PERCENTILE_NAME = "percentile"
PCTLRANGE_NAME = "pctlrange"


def _round_half_away(x: float) -> int:
    return int(math.floor(x + 0.5)) if x >= 0 else int(math.ceil(x - 0.5))


def pctl_index(p: float, n: int) -> int:
    """Return the nearest-rank index of percentile ``p`` in ``n`` sorted values.

    Halves are rounded away from zero.  The index is clamped into
    ``[0, n - 1]``.
    """

    idx = _round_half_away(p * (n - 1))
    if idx < 0:
        return 0
    if idx >= n:
        return n - 1
    return idx


def nearest_rank_percentile(p: float, sorted_values: Sequence[float]) -> float:
    """Return the sorted value at the nearest rank of ``p``."""

    return float(sorted_values[pctl_index(p, len(sorted_values))])


def interp_percentile(p: float, sorted_values: Sequence[float]) -> float:
    """Return the linearly interpolated percentile ``p`` of ``sorted_values``."""

    n = len(sorted_values)
    pos = p * (n - 1)
    i1 = min(max(int(math.floor(pos)), 0), n - 1)
    i2 = min(max(int(math.ceil(pos)), 0), n - 1)
    if i1 == i2:
        return float(sorted_values[i1])
    w1 = pos - i1
    w2 = i2 - pos
    return float(sorted_values[i1] * w2 + sorted_values[i2] * w1)


class FunctionalPercentiles:
    """Quartiles, percentiles and their ranges over sorted sample windows.

    Parameters
    ----------
    config:
        Resolved :class:`~pcmfeat.core.config.StatConfig`.  It is not
        modified; one engine instance can process any number of windows.
    """

    def __init__(self, config: StatConfig | None = None) -> None:
        self.config = config if config is not None else StatConfig()

    def estimate(self, p: float, sorted_values: Sequence[float]) -> float:
        """Estimate percentile ``p`` with the configured rank estimator."""

        if self.config.interp:
            return interp_percentile(p, sorted_values)
        return nearest_rank_percentile(p, sorted_values)

    @property
    def output_count(self) -> int:
        """Number of values written by :meth:`process`."""

        cfg = self.config
        n = sum(cfg.quartiles) + sum(cfg.iqr)
        if cfg.percentiles_enabled:
            n += len(cfg.percentiles)
        if cfg.ranges_enabled:
            n += len(cfg.ranges)
        return n

    def process(self, window: SampleWindow, out: Optional[np.ndarray]) -> int:
        """Compute the statistics of ``window`` into ``out``.

        Returns the number of values written.  Nothing is written for an
        empty window or when ``out`` is ``None``.  A window without sorted
        samples raises :class:`ValueError`.
        """

        n_in = len(window)
        if n_in <= 0 or out is None:
            return 0
        if window.sorted is None:
            logger.error("expected sorted input, however got None!")
            raise ValueError("FunctionalPercentiles requires a sorted sample window")

        cfg = self.config
        srt = window.sorted
        q1 = self.estimate(0.25, srt)
        q2 = self.estimate(0.50, srt)
        q3 = self.estimate(0.75, srt)

        fixed = (q1, q2, q3, q2 - q1, q3 - q2, q3 - q1)
        enabled = cfg.quartiles + cfg.iqr
        n = 0
        for value, flag in zip(fixed, enabled):
            if flag:
                out[n] = value
                n += 1

        if cfg.percentiles_enabled or cfg.ranges_enabled:
            n0 = n
            for p in cfg.percentiles:
                out[n] = self.estimate(p, srt)
                n += 1
            if cfg.ranges_enabled:
                for a, b in cfg.ranges:
                    if (a, b) == INVALID_RANGE:
                        out[n] = 0.0
                    else:
                        out[n] = abs(out[n0 + b] - out[n0 + a])
                    n += 1
        return n

    def compute(self, window: SampleWindow) -> np.ndarray:
        """Return the statistics of ``window`` as a new vector."""

        out = np.zeros(self.output_count, dtype=float)
        n = self.process(window, out)
        return out[:n]

    def value_names(self) -> List[str]:
        """Return the output names, parallel to the values of :meth:`process`."""

        cfg = self.config
        names = [
            name for name, flag in zip(FIXED_NAMES, cfg.quartiles + cfg.iqr) if flag
        ]
        if cfg.percentiles_enabled:
            names.extend(f"{PERCENTILE_NAME}{p * 100.0:.1f}" for p in cfg.percentiles)
        if cfg.ranges_enabled:
            names.extend(f"{PCTLRANGE_NAME}{a}-{b}" for a, b in cfg.ranges)
        return names

    def get_value_name(self, i: int) -> str:
        """Return the name of output ``i``."""

        names = self.value_names()
        if i < 0 or i >= len(names):
            raise IndexError(f"output index {i} out of range (0..{len(names) - 1})")
        return names[i]
