from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Dict, Hashable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.isotonic import isotonic_regression

from .config import StackingConfig
from .errors import FitFailure, ShapeMismatch, SolverError
from .logging_utils import get_logger
from .lp import LPProgram, build
from .solver import HighsSolver, LPSolver
from .utils import cpu_guard
from .validation import TauGroupsLike, check_member_names

logger = get_logger(__name__)


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, copy=True)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class EnsembleWeights:
    """Ensemble weights ``alpha[j, g]``: one simplex over members per tau group."""

    alpha: np.ndarray
    group_labels: Tuple[Hashable, ...]
    member_names: Tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "alpha", _readonly(np.asarray(self.alpha, dtype=np.float64)))

    @property
    def n_weights(self) -> int:
        return int(self.alpha.size)

    def for_levels(self, group_index: np.ndarray) -> np.ndarray:
        """Expand to a ``(p, r)`` matrix with the weight vector of each level's group."""
        return self.alpha[:, np.asarray(group_index)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.alpha,
            index=pd.Index(self.member_names, name="member"),
            columns=pd.Index(list(self.group_labels), name="group"),
        )


@dataclass(frozen=True, eq=False)
class FittedEnsemble:
    """A fitted quantile ensemble. Immutable; refitting produces a new instance."""

    weights: EnsembleWeights
    tau: np.ndarray
    group_index: np.ndarray
    objective: float
    n_obs: int
    noncross: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "tau", _readonly(self.tau))
        object.__setattr__(self, "group_index", _readonly(self.group_index))

    @property
    def n_members(self) -> int:
        return int(self.weights.alpha.shape[0])

    @property
    def n_levels(self) -> int:
        return int(self.tau.shape[0])

    @property
    def member_names(self) -> Tuple[str, ...]:
        return self.weights.member_names

    @property
    def tau_groups(self) -> Tuple[Hashable, ...]:
        """Group label of each quantile level."""
        labels = self.weights.group_labels
        return tuple(labels[g] for g in self.group_index)

    def coefficients(self) -> EnsembleWeights:
        return self.weights

    def predict(self, new_q, *, sort: bool = False, isotonic: bool = False) -> np.ndarray:
        return predict(self, new_q, sort=sort, isotonic=isotonic)


def _postprocess_alpha(alpha: np.ndarray, zero_tol: float, sum_tol: float) -> np.ndarray:
    """Clamp solver noise to zero and renormalise each group onto the simplex."""
    alpha = np.array(alpha, dtype=np.float64, copy=True)

    if np.any(alpha < -zero_tol):
        worst = float(alpha.min())
        raise SolverError(f"Solver returned a negative weight {worst:.3e} beyond tolerance {zero_tol:.1e}")
    alpha[np.abs(alpha) <= zero_tol] = 0.0

    sums = alpha.sum(axis=0)
    if np.any(sums <= 0.0):
        raise SolverError(f"Solver returned a group with non-positive total weight: {sums.tolist()}")
    off = np.abs(sums - 1.0) > sum_tol
    if np.any(off):
        logger.debug("Renormalising %d group(s); max deviation %.3e", int(off.sum()), float(np.max(np.abs(sums - 1.0))))
        alpha[:, off] = alpha[:, off] / sums[off]
    return alpha


def fit(
    qarr,
    y,
    tau,
    w=None,
    tau_groups: TauGroupsLike = None,
    constraint_points=None,
    *,
    noncross: Optional[bool] = None,
    include_training_points: Optional[bool] = None,
    member_names: Optional[Sequence[str]] = None,
    config: Optional[StackingConfig] = None,
    solver: Optional[LPSolver] = None,
) -> FittedEnsemble:
    """Fit quantile-stacking weights by linear programming.

    Parameters
    ----------
    qarr, y, tau, w, tau_groups, constraint_points:
        Problem data; see :func:`quantile_stacking.lp.build`.
    noncross, include_training_points:
        Override the corresponding :class:`StackingConfig` flags.
    member_names:
        Labels for the ensemble members (default ``member_0``, ...).
    config:
        Fitting configuration.
    solver:
        LP back-end; defaults to :class:`HighsSolver` built from ``config.solver``.

    Returns
    -------
    FittedEnsemble

    Raises
    ------
    ValidationError
        Invalid inputs; raised before any solver call.
    FitFailure
        The solver failed; ``reason`` holds the underlying error.
    """
    cfg = config or StackingConfig()
    use_noncross = cfg.noncross if noncross is None else bool(noncross)
    use_train_pts = cfg.include_training_points if include_training_points is None else bool(include_training_points)

    program = build(
        qarr,
        y,
        tau,
        w,
        tau_groups,
        constraint_points,
        noncross=use_noncross,
        include_training_points=use_train_pts,
    )
    names = check_member_names(member_names, program.n_members)

    logger.info(
        "Fitting quantile ensemble: n=%d, p=%d, r=%d, groups=%d, noncross_rows=%d",
        program.n_obs,
        program.n_members,
        program.n_levels,
        program.n_groups,
        program.n_noncross_rows,
    )

    lp_solver = solver if solver is not None else HighsSolver(cfg.solver)
    try:
        x = np.asarray(lp_solver(program), dtype=np.float64)
        if x.shape != (program.n_variables,):
            raise SolverError(f"Solver returned a solution of shape {x.shape}; expected ({program.n_variables},)")
        alpha = _postprocess_alpha(x[program.alpha_index], cfg.zero_tol, cfg.sum_tol)
    except SolverError as e:
        raise _fit_failure(e, program, use_noncross) from e

    objective = float(program.c @ x)
    logger.debug("LP objective (weighted pinball loss) = %.6g", objective)

    return FittedEnsemble(
        weights=EnsembleWeights(alpha=alpha, group_labels=program.group_labels, member_names=names),
        tau=program.tau,
        group_index=program.group_index,
        objective=objective,
        n_obs=program.n_obs,
        noncross=program.noncross,
    )


def _fit_failure(err: SolverError, program: LPProgram, noncross: bool) -> FitFailure:
    return FitFailure(
        err,
        n_obs=program.n_obs,
        n_members=program.n_members,
        n_levels=program.n_levels,
        n_groups=program.n_groups,
        noncross=noncross,
        n_noncross_rows=program.n_noncross_rows,
    )


def fit_many(
    qarr,
    y,
    tau,
    groupings: Mapping[str, TauGroupsLike],
    *,
    max_workers: Optional[int] = None,
    **kwargs,
) -> Dict[str, FittedEnsemble]:
    """Fit one ensemble per tau-group configuration, concurrently.

    Each fit builds and owns its own LP; keyword arguments other than
    ``tau_groups`` are forwarded to :func:`fit`. The first failure is
    re-raised once all fits have finished.

    The BLAS thread limit of ``config.solver.n_threads`` is applied once
    around the whole pool; workers solve with ``n_threads=None`` because
    ``threadpool_limits`` changes process-wide state.
    """
    if "tau_groups" in kwargs:
        raise TypeError("fit_many() takes the tau groups from `groupings`; do not pass `tau_groups`")
    if not groupings:
        return {}

    cfg = kwargs.pop("config", None) or StackingConfig()
    worker_cfg = replace(cfg, solver=replace(cfg.solver, n_threads=None))

    with cpu_guard(cfg.solver.n_threads), ThreadPoolExecutor(max_workers=max_workers) as ex:
        futures = {
            name: ex.submit(fit, qarr, y, tau, tau_groups=groups, config=worker_cfg, **kwargs)
            for name, groups in groupings.items()
        }
        return {name: fut.result() for name, fut in futures.items()}


def predict(fitted: FittedEnsemble, new_q, *, sort: bool = False, isotonic: bool = False) -> np.ndarray:
    """Ensemble quantile predictions ``yhat[i, k] = sum_j alpha[j, g(k)] new_q[i, j, k]``.

    Parameters
    ----------
    fitted:
        A fitted ensemble.
    new_q:
        Member predictions, shape ``(n', p, r)`` with the fitted member and
        level ordering.
    sort:
        Sort each row across levels (quantile rearrangement).
    isotonic:
        Project each row onto nondecreasing sequences across levels.

    Without `sort` / `isotonic` every prediction is a convex combination of
    the members' predictions at the same (observation, level).
    """
    q = np.asarray(new_q, dtype=np.float64)
    if q.ndim != 3:
        raise ShapeMismatch(f"new_q must be 3-dimensional (n, p, r), got shape {q.shape}")
    if q.shape[1] != fitted.n_members or q.shape[2] != fitted.n_levels:
        raise ShapeMismatch(
            f"new_q has shape {q.shape}; fitted ensemble expects (n, {fitted.n_members}, {fitted.n_levels})"
        )

    A = fitted.weights.for_levels(fitted.group_index)  # (p, r)
    yhat = np.einsum("ijk,jk->ik", q, A)

    if isotonic:
        yhat = np.vstack([isotonic_regression(row, increasing=True) for row in yhat]) if len(yhat) else yhat
    if sort:
        yhat = np.sort(yhat, axis=1)
    return yhat


def coefficients(fitted: FittedEnsemble) -> EnsembleWeights:
    return fitted.weights
