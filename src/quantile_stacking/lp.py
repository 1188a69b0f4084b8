"""Linear-program construction for quantile stacking.

The weighted pinball-loss minimisation

    min_alpha  sum_i sum_k w_i * psi_{tau_k}(y_i - sum_j alpha[j, g(k)] q[i, j, k])

over one probability simplex per tau group is rewritten with one epigraph
slack ``u[i, k]`` per (observation, level) pair:

    min  sum_i sum_k w_i u[i, k]
    s.t. u[i, k] >= tau_k       (y_i - sum_j alpha[j, g(k)] q[i, j, k])
         u[i, k] >= (tau_k - 1) (y_i - sum_j alpha[j, g(k)] q[i, j, k])
         sum_j alpha[j, g] = 1,  alpha >= 0,  u free.

Column layout: ``alpha[j, g]`` at ``g * p + j``, then ``u[i, k]`` at
``p * G + i * r + k``. Row layout of ``A_ub``: the ``tau`` pieces
(row ``i * r + k``), then the ``tau - 1`` pieces, then noncrossing rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, List, Optional, Tuple

import numpy as np
from scipy import sparse

from .logging_utils import get_logger
from .validation import (
    TauGroupsLike,
    as_quantile_array,
    check_constraint_points,
    check_responses,
    check_tau,
    check_weights,
    resolve_tau_groups,
)

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class LPProgram:
    """Canonical LP ``min c @ x  s.t.  A_ub x <= b_ub, A_eq x == b_eq, lower <= x <= upper``.

    ``alpha_index[j, g]`` is the column of the ensemble weight of member ``j``
    in group ``g``; ``group_index[k]`` is the group position of level ``k``.
    """

    c: np.ndarray
    A_ub: sparse.csr_matrix
    b_ub: np.ndarray
    A_eq: sparse.csr_matrix
    b_eq: np.ndarray
    lower: np.ndarray
    upper: np.ndarray

    alpha_index: np.ndarray
    group_labels: Tuple[Hashable, ...]
    group_index: np.ndarray
    tau: np.ndarray

    n_obs: int
    n_noncross_rows: int = 0

    @property
    def n_members(self) -> int:
        return int(self.alpha_index.shape[0])

    @property
    def n_groups(self) -> int:
        return int(self.alpha_index.shape[1])

    @property
    def n_levels(self) -> int:
        return int(self.group_index.shape[0])

    @property
    def n_variables(self) -> int:
        return int(self.c.shape[0])

    @property
    def noncross(self) -> bool:
        return self.n_noncross_rows > 0

    def bounds(self) -> List[Tuple[Optional[float], Optional[float]]]:
        """Bounds in the list-of-pairs form accepted by ``scipy.optimize.linprog``."""
        return [
            (float(lo) if np.isfinite(lo) else None, float(hi) if np.isfinite(hi) else None)
            for lo, hi in zip(self.lower, self.upper)
        ]


def _pinball_rows(
    q: np.ndarray,
    y: np.ndarray,
    tau: np.ndarray,
    group_index: np.ndarray,
    n_cols: int,
    n_alpha: int,
) -> Tuple[sparse.csr_matrix, np.ndarray]:
    n, p, r = q.shape
    n_rows = n * r

    # Row m = i * r + k carries alpha[., g(k)] * q[i, ., k] and -u[i, k].
    qt = q.transpose(0, 2, 1)  # (n, r, p)
    ii, kk, jj = np.meshgrid(np.arange(n), np.arange(r), np.arange(p), indexing="ij")
    rows = (ii * r + kk).ravel()
    cols = (group_index[kk] * p + jj).ravel()
    vals = qt.ravel()

    slack_rows = np.arange(n_rows)
    slack_cols = n_alpha + slack_rows

    tau_row = np.tile(tau, n)  # tau_k for row i * r + k
    y_row = np.repeat(y, r)

    all_rows = np.concatenate([rows, slack_rows])
    all_cols = np.concatenate([cols, slack_cols])

    upper_piece = sparse.coo_matrix(
        (np.concatenate([-tau_row[rows] * vals, -np.ones(n_rows)]), (all_rows, all_cols)),
        shape=(n_rows, n_cols),
    ).tocsr()
    lower_piece = sparse.coo_matrix(
        (np.concatenate([(1.0 - tau_row[rows]) * vals, -np.ones(n_rows)]), (all_rows, all_cols)),
        shape=(n_rows, n_cols),
    ).tocsr()

    A = sparse.vstack([upper_piece, lower_piece], format="csr")
    b = np.concatenate([-tau_row * y_row, (1.0 - tau_row) * y_row])
    return A, b


def _noncross_rows(
    points: np.ndarray,
    group_index: np.ndarray,
    n_cols: int,
) -> sparse.csr_matrix:
    """Rows ``sum_j alpha[j, g(k)] q0[j, k] - sum_j alpha[j, g(k+1)] q0[j, k+1] <= 0``.

    One row per (adjacent level pair with differing groups, constraint point),
    ordered by level pair first.
    """
    m, p, _ = points.shape
    pairs = [k for k in range(group_index.shape[0] - 1) if group_index[k] != group_index[k + 1]]
    if not pairs or m == 0:
        return sparse.csr_matrix((0, n_cols))

    row_blocks, col_blocks, val_blocks = [], [], []
    jj = np.arange(p)
    for b, k in enumerate(pairs):
        base = b * m
        row_ids = np.repeat(base + np.arange(m), p)
        lo_cols = np.tile(group_index[k] * p + jj, m)
        hi_cols = np.tile(group_index[k + 1] * p + jj, m)

        row_blocks.extend([row_ids, row_ids])
        col_blocks.extend([lo_cols, hi_cols])
        val_blocks.extend([points[:, :, k].ravel(), -points[:, :, k + 1].ravel()])

    return sparse.coo_matrix(
        (np.concatenate(val_blocks), (np.concatenate(row_blocks), np.concatenate(col_blocks))),
        shape=(len(pairs) * m, n_cols),
    ).tocsr()


def build(
    qarr,
    y,
    tau,
    w=None,
    tau_groups: TauGroupsLike = None,
    constraint_points=None,
    *,
    noncross: bool = False,
    include_training_points: bool = True,
) -> LPProgram:
    """Build the linear program for a quantile-stacking problem.

    Parameters
    ----------
    qarr:
        Member quantile predictions, shape ``(n, p, r)``.
    y:
        Responses, length ``n``.
    tau:
        Strictly increasing quantile levels in (0, 1), length ``r``.
    w:
        Non-negative observation weights, length ``n`` (default: ones).
    tau_groups:
        Group label per level, or ``"standard"`` / ``"flexible"``.
    constraint_points:
        Optional array ``(m, p, r)`` of member predictions at extra points
        where noncrossing must hold.
    noncross:
        Emit noncrossing rows between adjacent levels in different groups.
    include_training_points:
        Also use the rows of `qarr` as noncrossing constraint points.

    Returns
    -------
    LPProgram

    Raises
    ------
    DimensionMismatch, InvalidQuantileLevels, InvalidGroups, InvalidWeights, NonFiniteValues
        On invalid input; nothing is built.
    """
    q = as_quantile_array(qarr)
    n, p, r = q.shape
    y_arr = check_responses(y, n)
    t = check_tau(tau, r)
    w_arr = check_weights(w, n)
    groups = resolve_tau_groups(tau_groups, r)
    extra = check_constraint_points(constraint_points, p, r)

    G = groups.n_groups
    n_alpha = p * G
    n_cols = n_alpha + n * r

    c = np.concatenate([np.zeros(n_alpha), np.repeat(w_arr, r)])

    A_pin, b_pin = _pinball_rows(q, y_arr, t, groups.index, n_cols, n_alpha)

    n_noncross = 0
    blocks = [A_pin]
    if noncross:
        sources = []
        if include_training_points:
            sources.append(q)
        if extra is not None:
            sources.append(extra)
        if sources:
            points = np.concatenate(sources, axis=0)
            A_nc = _noncross_rows(points, groups.index, n_cols)
            n_noncross = int(A_nc.shape[0])
            if n_noncross:
                blocks.append(A_nc)
            else:
                logger.debug("Noncrossing requested but all adjacent levels share a group; no rows emitted.")
        else:
            logger.warning("Noncrossing requested without any constraint points; no rows emitted.")
    elif extra is not None:
        logger.debug("constraint_points ignored because noncross=False.")

    A_ub = sparse.vstack(blocks, format="csr") if len(blocks) > 1 else A_pin
    b_ub = np.concatenate([b_pin, np.zeros(n_noncross)])

    A_eq = sparse.coo_matrix(
        (np.ones(n_alpha), (np.repeat(np.arange(G), p), np.arange(n_alpha))),
        shape=(G, n_cols),
    ).tocsr()
    b_eq = np.ones(G)

    lower = np.concatenate([np.zeros(n_alpha), np.full(n * r, -np.inf)])
    upper = np.full(n_cols, np.inf)

    alpha_index = (np.arange(G)[None, :] * p + np.arange(p)[:, None]).astype(np.intp)

    logger.debug(
        "Built LP: n=%d, p=%d, r=%d, groups=%d, variables=%d, inequality rows=%d (noncross=%d)",
        n,
        p,
        r,
        G,
        n_cols,
        A_ub.shape[0],
        n_noncross,
    )

    return LPProgram(
        c=c,
        A_ub=A_ub,
        b_ub=b_ub,
        A_eq=A_eq,
        b_eq=b_eq,
        lower=lower,
        upper=upper,
        alpha_index=alpha_index,
        group_labels=groups.labels,
        group_index=groups.index,
        tau=t,
        n_obs=n,
        n_noncross_rows=n_noncross,
    )
