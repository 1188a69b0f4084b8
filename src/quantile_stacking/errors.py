"""Exception hierarchy.

Validation errors subclass :class:`ValueError` and solver failures subclass
:class:`RuntimeError`, so callers catching the builtin types keep working.
"""

from __future__ import annotations

from typing import Optional


class QuantileStackingError(Exception):
    """Base class for all errors raised by the package."""


class ValidationError(QuantileStackingError, ValueError):
    """Invalid problem input, detected before any LP is built or solved."""


class DimensionMismatch(ValidationError):
    """Array shapes of qarr / y / w / tau / constraint points disagree."""


class InvalidQuantileLevels(ValidationError):
    """Quantile levels outside (0, 1) or not strictly increasing."""


class InvalidGroups(ValidationError):
    """Tau groups do not assign exactly one group to every level."""


class InvalidWeights(ValidationError):
    """Observation weights negative or non-finite."""


class NonFiniteValues(ValidationError):
    """NaN or infinite entries in quantile predictions or responses."""


class ShapeMismatch(ValidationError):
    """Prediction input incompatible with a fitted ensemble."""


class SolverError(QuantileStackingError, RuntimeError):
    """The LP back-end could not return an optimal solution."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message


class Infeasible(SolverError):
    """No weight vector satisfies the constraints."""


class Unbounded(SolverError):
    """The objective is unbounded below."""


class SolverTimeout(SolverError):
    """The solver hit its iteration or time limit."""


class FitFailure(QuantileStackingError, RuntimeError):
    """Fitting failed in the solver; wraps the underlying :class:`SolverError`.

    Attributes
    ----------
    reason:
        The solver error that caused the failure.
    n_obs, n_members, n_levels, n_groups:
        Problem dimensions.
    noncross:
        Whether noncrossing constraints were part of the program.
    n_noncross_rows:
        Number of noncrossing rows emitted.
    """

    def __init__(
        self,
        reason: Exception,
        *,
        n_obs: int,
        n_members: int,
        n_levels: int,
        n_groups: int,
        noncross: bool,
        n_noncross_rows: int = 0,
    ):
        self.reason = reason
        self.n_obs = n_obs
        self.n_members = n_members
        self.n_levels = n_levels
        self.n_groups = n_groups
        self.noncross = noncross
        self.n_noncross_rows = n_noncross_rows
        super().__init__(
            f"Quantile ensemble fit failed ({type(reason).__name__}: {reason}) "
            f"[n={n_obs}, p={n_members}, r={n_levels}, groups={n_groups}, "
            f"noncross={noncross}, noncross_rows={n_noncross_rows}]"
        )
