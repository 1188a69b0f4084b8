from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

_LINPROG_METHODS = ("highs", "highs-ds", "highs-ipm")


@dataclass(frozen=True)
class SolverConfig:
    """Configuration for the HiGHS linear-programming back-end.

    Notes
    -----
    - `method` is passed to :func:`scipy.optimize.linprog` and must be one of
      the HiGHS variants (``highs``, ``highs-ds``, ``highs-ipm``).
    - `time_limit` is in seconds. Hitting it surfaces as ``SolverTimeout``.
    - `n_threads` caps BLAS/OpenMP pools during the solve; ``None`` disables the cap.
    """

    method: str = "highs"
    presolve: bool = True
    time_limit: Optional[float] = None

    primal_feasibility_tolerance: float = 1e-9
    dual_feasibility_tolerance: float = 1e-9

    n_threads: Optional[int] = 1

    def __post_init__(self) -> None:
        if self.method not in _LINPROG_METHODS:
            raise ValueError(f"Unknown LP method: {self.method!r} (expected one of {_LINPROG_METHODS})")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")
        if self.primal_feasibility_tolerance <= 0 or self.dual_feasibility_tolerance <= 0:
            raise ValueError("Feasibility tolerances must be positive")
        if self.n_threads is not None and self.n_threads < 1:
            raise ValueError(f"n_threads must be >= 1, got {self.n_threads}")

    def linprog_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "presolve": self.presolve,
            "primal_feasibility_tolerance": self.primal_feasibility_tolerance,
            "dual_feasibility_tolerance": self.dual_feasibility_tolerance,
        }
        if self.time_limit is not None:
            options["time_limit"] = float(self.time_limit)
        return options


@dataclass(frozen=True)
class StackingConfig:
    """Configuration for fitting a quantile ensemble.

    Parameters
    ----------
    noncross:
        Emit noncrossing constraints between adjacent quantile levels that
        belong to different tau groups.
    include_training_points:
        Use the training quantile predictions as noncrossing constraint
        points. Extra points may be supplied to ``fit`` in addition to (or,
        with this flag off, instead of) the training rows.
    zero_tol:
        Weights with magnitude at most `zero_tol` are set to exactly zero
        after solving.
    sum_tol:
        A group whose weights sum to something further than `sum_tol` from one
        is renormalised.
    solver:
        Options for the LP back-end.
    """

    noncross: bool = False
    include_training_points: bool = True

    zero_tol: float = 1e-8
    sum_tol: float = 1e-10

    solver: SolverConfig = field(default_factory=SolverConfig)

    def __post_init__(self) -> None:
        if self.zero_tol < 0 or self.sum_tol < 0:
            raise ValueError("zero_tol and sum_tol must be non-negative")
