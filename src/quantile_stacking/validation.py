from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import (
    DimensionMismatch,
    InvalidGroups,
    InvalidQuantileLevels,
    InvalidWeights,
    NonFiniteValues,
)

TauGroupsLike = Union[None, str, Sequence[Hashable], np.ndarray]


@dataclass(frozen=True)
class ResolvedGroups:
    """Tau groups resolved to positions.

    ``labels`` holds one label per group in order of first appearance along the
    quantile levels; ``index[k]`` is the position in ``labels`` of level ``k``'s
    group.
    """

    labels: Tuple[Hashable, ...]
    index: np.ndarray

    @property
    def n_groups(self) -> int:
        return len(self.labels)

    def level_labels(self) -> Tuple[Hashable, ...]:
        return tuple(self.labels[g] for g in self.index)


def as_quantile_array(qarr, name: str = "qarr") -> np.ndarray:
    """Coerce to a finite float array of shape (n, p, r)."""
    q = np.asarray(qarr, dtype=np.float64)
    if q.ndim != 3:
        raise DimensionMismatch(f"{name} must be 3-dimensional (n, p, r), got shape {q.shape}")
    if min(q.shape) < 1:
        raise DimensionMismatch(f"{name} must have n, p, r >= 1, got shape {q.shape}")
    if not np.all(np.isfinite(q)):
        bad = int(np.sum(~np.isfinite(q)))
        raise NonFiniteValues(f"{name} contains {bad} non-finite entries")
    return q


def check_responses(y, n: int) -> np.ndarray:
    y_arr = np.asarray(y, dtype=np.float64).reshape(-1)
    if y_arr.shape[0] != n:
        raise DimensionMismatch(f"y has length {y_arr.shape[0]} but qarr has n={n} observations")
    if not np.all(np.isfinite(y_arr)):
        raise NonFiniteValues(f"y contains {int(np.sum(~np.isfinite(y_arr)))} non-finite entries")
    return y_arr


def check_tau(tau, r: int) -> np.ndarray:
    """Quantile levels must lie in (0, 1) and be strictly increasing."""
    t = np.asarray(tau, dtype=np.float64).reshape(-1)
    if t.shape[0] != r:
        raise DimensionMismatch(f"tau has length {t.shape[0]} but qarr has r={r} quantile levels")
    if not np.all(np.isfinite(t)) or np.any(t <= 0.0) or np.any(t >= 1.0):
        raise InvalidQuantileLevels(f"tau must lie in the open interval (0, 1), got {t.tolist()}")
    if t.shape[0] > 1 and np.any(np.diff(t) <= 0.0):
        raise InvalidQuantileLevels(f"tau must be strictly increasing, got {t.tolist()}")
    return t


def check_weights(w, n: int) -> np.ndarray:
    if w is None:
        return np.ones(n, dtype=np.float64)
    w_arr = np.asarray(w, dtype=np.float64).reshape(-1)
    if w_arr.shape[0] != n:
        raise DimensionMismatch(f"w has length {w_arr.shape[0]} but qarr has n={n} observations")
    if not np.all(np.isfinite(w_arr)):
        raise InvalidWeights("w contains non-finite entries")
    if np.any(w_arr < 0.0):
        raise InvalidWeights(f"w must be non-negative, min(w)={float(w_arr.min())}")
    return w_arr


def resolve_tau_groups(tau_groups: TauGroupsLike, r: int) -> ResolvedGroups:
    """Resolve a tau-groups specification to labels and per-level positions.

    Accepts ``None`` / ``"standard"`` (one shared group), ``"flexible"`` (one
    group per level) or an explicit length-``r`` sequence of hashable labels.
    """
    if tau_groups is None or (isinstance(tau_groups, str) and tau_groups == "standard"):
        labels_per_level: list = [0] * r
    elif isinstance(tau_groups, str):
        if tau_groups != "flexible":
            raise InvalidGroups(f"Unknown tau_groups shorthand: {tau_groups!r} (use 'standard' or 'flexible')")
        labels_per_level = list(range(r))
    else:
        raw = tau_groups.tolist() if isinstance(tau_groups, np.ndarray) else list(tau_groups)
        if len(raw) != r:
            raise InvalidGroups(f"tau_groups has length {len(raw)} but there are r={r} quantile levels")
        labels_per_level = raw

    labels: list = []
    positions: dict = {}
    index = np.empty(r, dtype=np.intp)
    for k, lab in enumerate(labels_per_level):
        if lab is None:
            raise InvalidGroups(f"tau_groups[{k}] is None; every level needs a group")
        try:
            pos = positions.get(lab)
        except TypeError as e:
            raise InvalidGroups(f"tau_groups[{k}]={lab!r} is not hashable") from e
        if pos is None:
            pos = len(labels)
            positions[lab] = pos
            labels.append(lab)
        index[k] = pos

    index.setflags(write=False)
    return ResolvedGroups(labels=tuple(labels), index=index)


def check_constraint_points(points, p: int, r: int) -> Optional[np.ndarray]:
    if points is None:
        return None
    q0 = as_quantile_array(points, name="constraint_points")
    if q0.shape[1] != p or q0.shape[2] != r:
        raise DimensionMismatch(
            f"constraint_points has shape {q0.shape}; expected (m, {p}, {r}) to match qarr members and levels"
        )
    return q0


def check_member_names(member_names: Optional[Sequence[str]], p: int) -> Tuple[str, ...]:
    if member_names is None:
        return tuple(f"member_{j}" for j in range(p))
    names = tuple(str(m) for m in member_names)
    if len(names) != p:
        raise DimensionMismatch(f"member_names has {len(names)} entries but qarr has p={p} members")
    if len(set(names)) != p:
        raise DimensionMismatch(f"member_names must be unique, got {list(names)}")
    return names
