from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

EPS = 1e-12


def _as_2d(q) -> np.ndarray:
    a = np.asarray(q, dtype=np.float64)
    if a.ndim == 1:
        return a.reshape(-1, 1)
    if a.ndim != 2:
        raise ValueError(f"Expected quantile predictions of shape (n, r), got {a.shape}")
    return a


def pinball_matrix(y, q, tau) -> np.ndarray:
    """Elementwise pinball loss ``psi_tau(y - q)`` with shape ``(n, r)``."""
    y_arr = np.asarray(y, dtype=np.float64).reshape(-1, 1)
    q2 = _as_2d(q)
    t = np.asarray(tau, dtype=np.float64).reshape(1, -1)
    if q2.shape[0] != y_arr.shape[0] or q2.shape[1] != t.shape[1]:
        raise ValueError(f"Shape mismatch: y {y_arr.shape[0]}, q {q2.shape}, tau {t.shape[1]}")
    v = y_arr - q2
    return np.maximum(t * v, (t - 1.0) * v)


def _weighted_mean(values: np.ndarray, w) -> np.ndarray:
    if w is None:
        return values.mean(axis=0)
    w_arr = np.asarray(w, dtype=np.float64).reshape(-1)
    if w_arr.shape[0] != values.shape[0]:
        raise ValueError(f"w has length {w_arr.shape[0]}, expected {values.shape[0]}")
    return (w_arr[:, None] * values).sum(axis=0) / max(float(w_arr.sum()), EPS)


def pinball_loss(y, q, tau, w=None) -> float:
    """Weighted mean (over observations) of the pinball loss summed over levels."""
    per_level = _weighted_mean(pinball_matrix(y, q, tau), w)
    return float(per_level.sum())


def member_predictions(qarr, member_names: Optional[Sequence[str]] = None) -> Dict[str, np.ndarray]:
    """Split a ``(n, p, r)`` array into one ``(n, r)`` prediction matrix per member."""
    q = np.asarray(qarr, dtype=np.float64)
    if q.ndim != 3:
        raise ValueError(f"qarr must be 3-dimensional, got shape {q.shape}")
    names = list(member_names) if member_names is not None else [f"member_{j}" for j in range(q.shape[1])]
    if len(names) != q.shape[1]:
        raise ValueError(f"Expected {q.shape[1]} member names, got {len(names)}")
    return {name: q[:, j, :] for j, name in enumerate(names)}


def quantile_loss_table(
    y,
    predictions: Mapping[str, np.ndarray],
    tau,
    w=None,
) -> pd.DataFrame:
    """Per-level and total pinball loss for several prediction matrices.

    Returns a DataFrame indexed by prediction name with one column per
    quantile level and a ``total`` column, sorted by ``total``.
    """
    t = np.asarray(tau, dtype=np.float64).reshape(-1)
    rows = {}
    for name, q in predictions.items():
        per_level = _weighted_mean(pinball_matrix(y, q, t), w)
        rows[name] = list(per_level) + [float(per_level.sum())]

    columns = [f"{x:g}" for x in t] + ["total"]
    out = pd.DataFrame.from_dict(rows, orient="index", columns=columns)
    out.index.name = "model"
    return out.sort_values("total", kind="mergesort")


def interval_coverage(y, lower, upper) -> float:
    """Fraction of observations inside ``[lower, upper]``."""
    y_arr = np.asarray(y, dtype=np.float64).reshape(-1)
    lo = np.asarray(lower, dtype=np.float64).reshape(-1)
    hi = np.asarray(upper, dtype=np.float64).reshape(-1)
    if not (y_arr.shape == lo.shape == hi.shape):
        raise ValueError(f"Shape mismatch: y {y_arr.shape}, lower {lo.shape}, upper {hi.shape}")
    if y_arr.size == 0:
        return float("nan")
    return float(np.mean((y_arr >= lo) & (y_arr <= hi)))


def count_crossings(q, tol: float = 0.0) -> int:
    """Number of adjacent-level pairs where the predicted quantile decreases by more than `tol`."""
    q2 = _as_2d(q)
    if q2.shape[1] < 2:
        return 0
    return int(np.sum(np.diff(q2, axis=1) < -tol))
