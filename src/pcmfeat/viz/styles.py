"""Matplotlib rcParams for pcmfeat figures.

Two layouts are used: a single axis of feature tracks (``"tracks"``) and the
waveform-over-features overview of ``pcmfeat viz`` (``"overview"``).
"""

from __future__ import annotations

import matplotlib
import matplotlib.pyplot as plt
from matplotlib import cycler

# Feature plots often carry more than ten tracks.
TRACK_COLORS = matplotlib.colormaps["tab20"].colors

BASE_STYLE = {
    "axes.grid": True,
    "grid.linestyle": ":",
    "grid.alpha": 0.4,
    "axes.prop_cycle": cycler(color=TRACK_COLORS),
    "lines.linewidth": 1.0,
    "legend.fontsize": "small",
    "legend.framealpha": 0.6,
}

LAYOUTS = {
    "tracks": {"figure.figsize": (10, 4)},
    "overview": {"figure.figsize": (10, 6), "lines.linewidth": 0.6, "axes.titlesize": "medium"},
}


def apply_style(layout: str = "tracks", extra: dict | None = None) -> None:
    """Apply the rcParams of ``layout`` on top of :data:`BASE_STYLE`.

    ``extra`` entries override both.  Unknown layouts raise ``KeyError``.
    """
    style = dict(BASE_STYLE)
    style.update(LAYOUTS[layout])
    if extra:
        style.update(extra)
    plt.rcParams.update(style)
