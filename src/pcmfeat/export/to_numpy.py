from __future__ import annotations

"""Utilities for converting per-window feature vectors into NumPy arrays."""

from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np


def to_numpy(
    features: Sequence[Sequence[float] | np.ndarray],
    names: Sequence[str],
    *,
    times: Sequence[float] | np.ndarray | None = None,
    save_csv: str | Path | None = None,
    save_npz: str | Path | None = None,
) -> np.ndarray:
    """Return the feature matrix ``X`` built from in-memory vectors.

    Parameters
    ----------
    features:
        Sequence of feature vectors, one per analysis window.  Each element is
        converted to a 1-D array and stacked to form ``X`` with shape
        ``(n_windows, n_features)``.
    names:
        Feature names, one per column of ``X``.
    times:
        Optional start time of each window in seconds.  It is written as the
        first CSV column (``time``) and as the ``t`` entry of the archive.
    save_csv, save_npz:
        Optional paths.  If provided the matrix is persisted either as a CSV
        file with a header row of ``names`` or an ``.npz`` archive with ``X``,
        ``names`` and ``t`` entries.
    """

    X = np.asarray(features, dtype=float)
    if X.size == 0:
        X = X.reshape(0, len(names))
    if X.ndim != 2 or X.shape[1] != len(names):
        raise ValueError("Each feature vector must have one value per name")
    t = None if times is None else np.asarray(times, dtype=float).reshape(-1)
    if t is not None and t.shape[0] != X.shape[0]:
        raise ValueError("Features and times must contain the same number of windows")

    if save_csv:
        path = Path(save_csv)
        header = list(names)
        arr = X
        if t is not None:
            header = ["time"] + header
            arr = np.hstack([t[:, None], X])
        np.savetxt(path, arr, delimiter=",", header=",".join(header), comments="")

    if save_npz:
        path = Path(save_npz)
        np.savez(
            path,
            X=X,
            names=np.asarray(list(names), dtype=str),
            t=t if t is not None else np.zeros(0),
        )

    return X


def load(path: str | Path) -> Tuple[np.ndarray, List[str]]:
    """Load a matrix saved via :func:`to_numpy` as ``(X, names)``.

    For CSV files a leading ``time`` column is dropped.
    """
    p = Path(path)
    if p.suffix == ".npz":
        data = np.load(p)
        return data["X"], [str(n) for n in data["names"]]

    with open(p, "r", encoding="utf8") as fh:
        header = fh.readline().strip().split(",")
    arr = np.loadtxt(p, delimiter=",", skiprows=1, ndmin=2)
    if header and header[0] == "time":
        return arr[:, 1:], header[1:]
    return arr, header
