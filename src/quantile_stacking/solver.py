from __future__ import annotations

from typing import Callable, Optional

import numpy as np
from scipy.optimize import linprog

from .config import SolverConfig
from .errors import Infeasible, SolverError, SolverTimeout, Unbounded
from .logging_utils import get_logger
from .lp import LPProgram
from .utils import cpu_guard

logger = get_logger(__name__)

# Anything with this signature can stand in for the HiGHS back-end: it must
# return the primal solution or raise one of the SolverError subclasses.
LPSolver = Callable[[LPProgram], np.ndarray]

# scipy.optimize.linprog status codes
_STATUS_ERRORS = {
    1: SolverTimeout,  # iteration or time limit reached
    2: Infeasible,
    3: Unbounded,
}


class HighsSolver:
    """Solve an :class:`LPProgram` with ``scipy.optimize.linprog`` (HiGHS)."""

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()

    def __repr__(self) -> str:
        return f"HighsSolver(method={self.config.method!r})"

    def __call__(self, program: LPProgram) -> np.ndarray:
        cfg = self.config
        with cpu_guard(cfg.n_threads):
            res = linprog(
                program.c,
                A_ub=program.A_ub,
                b_ub=program.b_ub,
                A_eq=program.A_eq,
                b_eq=program.b_eq,
                bounds=program.bounds(),
                method=cfg.method,
                options=cfg.linprog_options(),
            )

        status = int(getattr(res, "status", -1))
        message = str(getattr(res, "message", ""))
        logger.debug("linprog(%s) status=%d nit=%s: %s", cfg.method, status, getattr(res, "nit", "?"), message)

        if status != 0 or res.x is None:
            err_cls = _STATUS_ERRORS.get(status, SolverError)
            raise err_cls(f"linprog({cfg.method}) failed with status {status}: {message}", status=status)

        return np.asarray(res.x, dtype=np.float64)


def solve(program: LPProgram, config: Optional[SolverConfig] = None) -> np.ndarray:
    """Solve `program` with the default HiGHS back-end and return the primal solution."""
    return HighsSolver(config)(program)
