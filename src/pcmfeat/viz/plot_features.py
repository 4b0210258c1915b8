"""Plot decoded waveforms and percentile feature tracks."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np

from .styles import apply_style


def plot_waveform(ax, data: np.ndarray, sample_rate: int, *, start_frame: int = 0) -> None:
    """Draw every row of a ``(channels, frames)`` block against time."""

    data = np.atleast_2d(np.asarray(data, dtype=float))
    t = (start_frame + np.arange(data.shape[1])) / float(sample_rate or 1)
    for ch, row in enumerate(data):
        ax.plot(t, row, label=f"ch{ch}")
    ax.set_xlabel("Time [s]")
    ax.set_ylabel("Amplitude")
    if data.shape[0] > 1:
        ax.legend(loc="upper right")


def plot_feature_tracks(ax, times: np.ndarray, X: np.ndarray, names: Sequence[str]) -> None:
    """Draw one line per feature column of ``X``."""

    X = np.asarray(X, dtype=float)
    for j, name in enumerate(names):
        ax.plot(times, X[:, j], label=name)
    ax.set_xlabel("Time [s]")
    ax.set_ylabel("Value")
    if names:
        ax.legend(loc="upper right", ncol=2)


def plot_overview(
    data: np.ndarray,
    sample_rate: int,
    times: np.ndarray,
    X: np.ndarray,
    names: Sequence[str],
    *,
    start_frame: int = 0,
    title: str = "Signal",
):
    """Return a two-panel figure: waveform on top, feature tracks below."""

    apply_style("overview")
    fig, (ax_wave, ax_feat) = plt.subplots(2, 1, sharex=True)
    plot_waveform(ax_wave, data, sample_rate, start_frame=start_frame)
    ax_wave.set_title(title)
    plot_feature_tracks(ax_feat, times, X, names)
    fig.tight_layout()
    return fig


def save_or_show(fig, save: str | Path | None = None, show: bool = False) -> None:
    if save:
        fig.savefig(save)
    if show:
        plt.show()
    plt.close(fig)


def main() -> None:
    parser = argparse.ArgumentParser(description="Plot a feature matrix saved by 'pcmfeat stats'")
    parser.add_argument("features", help="Path to an .npz archive written by 'pcmfeat stats'")
    parser.add_argument("--save", help="Path to save the figure")
    parser.add_argument("--show", action="store_true", help="Display the figure interactively")
    args = parser.parse_args()

    data = np.load(args.features)
    names = [str(n) for n in data["names"]]
    X = data["X"]
    times = data["t"] if data["t"].size else np.arange(X.shape[0], dtype=float)

    apply_style()
    fig, ax = plt.subplots()
    plot_feature_tracks(ax, times, X, names)
    ax.set_title(Path(args.features).stem)
    save_or_show(fig, args.save, args.show)


if __name__ == "__main__":
    main()
