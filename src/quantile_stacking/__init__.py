"""Quantile stacking.

This package combines several conditional-quantile estimators into one
ensemble whose weights minimise the weighted pinball loss, solved as a
linear program.

Key components:
- LP construction with per-group simplex constraints and optional noncrossing rows
- HiGHS solver adapter (``scipy.optimize.linprog``) with a pluggable contract
- Immutable fitted ensembles with prediction and coefficient inspection
- Pinball-loss metrics and ensemble diagnostics
"""

from __future__ import annotations

from .config import SolverConfig, StackingConfig
from .ensemble import EnsembleWeights, FittedEnsemble, coefficients, fit, fit_many, predict
from .errors import (
    DimensionMismatch,
    FitFailure,
    Infeasible,
    InvalidGroups,
    InvalidQuantileLevels,
    InvalidWeights,
    NonFiniteValues,
    QuantileStackingError,
    ShapeMismatch,
    SolverError,
    SolverTimeout,
    Unbounded,
    ValidationError,
)
from .lp import LPProgram, build
from .solver import HighsSolver, solve

__all__ = [
    "__version__",
    "DimensionMismatch",
    "EnsembleWeights",
    "FitFailure",
    "FittedEnsemble",
    "HighsSolver",
    "Infeasible",
    "InvalidGroups",
    "InvalidQuantileLevels",
    "InvalidWeights",
    "LPProgram",
    "NonFiniteValues",
    "QuantileStackingError",
    "ShapeMismatch",
    "SolverConfig",
    "SolverError",
    "SolverTimeout",
    "StackingConfig",
    "Unbounded",
    "ValidationError",
    "build",
    "coefficients",
    "fit",
    "fit_many",
    "predict",
    "solve",
]

__version__ = "0.1.0"
