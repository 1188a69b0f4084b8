from types import SimpleNamespace

import numpy as np
import pytest

from quantile_stacking import solver as solver_mod
from quantile_stacking.config import SolverConfig, StackingConfig
from quantile_stacking.ensemble import fit
from quantile_stacking.errors import FitFailure, Infeasible, SolverError, SolverTimeout, Unbounded
from quantile_stacking.lp import build
from quantile_stacking.solver import HighsSolver, solve


def test_solver_returns_feasible_primal_solution():
    rng = np.random.default_rng(0)
    y = rng.normal(size=30)
    qarr = np.stack([y + rng.normal(scale=0.2, size=30), y + 1.0], axis=1)[:, :, None]
    prog = build(qarr, y, [0.5])

    x = solve(prog)
    assert x.shape == (prog.n_variables,)
    assert np.all(prog.A_ub @ x <= prog.b_ub + 1e-7)
    np.testing.assert_allclose(prog.A_eq @ x, prog.b_eq, atol=1e-8)
    assert np.all(x[prog.alpha_index] >= -1e-9)


@pytest.mark.parametrize("method", ["highs-ds", "highs-ipm"])
def test_solver_methods_agree(method):
    rng = np.random.default_rng(1)
    y = rng.normal(size=25)
    qarr = y[:, None, None] + rng.normal(scale=[0.1, 0.8], size=(25, 2))[:, :, None]
    prog = build(qarr, y, [0.5])

    ref = solve(prog)
    other = HighsSolver(SolverConfig(method=method))(prog)
    assert float(prog.c @ other) == pytest.approx(float(prog.c @ ref), rel=1e-6, abs=1e-8)


def test_infeasible_program_raises_infeasible():
    y = np.zeros(3)
    qarr = np.zeros((3, 1, 2))
    prog = build(
        qarr,
        y,
        [0.2, 0.8],
        tau_groups="flexible",
        constraint_points=np.array([[[1.0, 0.0]]]),
        noncross=True,
        include_training_points=False,
    )
    with pytest.raises(Infeasible) as excinfo:
        HighsSolver()(prog)
    assert excinfo.value.status == 2


@pytest.mark.parametrize(
    "status, err_cls",
    [(1, SolverTimeout), (3, Unbounded), (4, SolverError)],
)
def test_linprog_status_maps_to_error_type(monkeypatch, status, err_cls):
    def fake_linprog(*args, **kwargs):
        return SimpleNamespace(status=status, message=f"status {status}", x=None, nit=0)

    monkeypatch.setattr(solver_mod, "linprog", fake_linprog)
    rng = np.random.default_rng(2)
    y = rng.normal(size=8)
    qarr = y[:, None, None] + rng.normal(size=(8, 2, 1))

    with pytest.raises(SolverError) as excinfo:
        solve(build(qarr, y, [0.5]))
    assert type(excinfo.value) is err_cls
    assert excinfo.value.status == status

    with pytest.raises(FitFailure) as fit_info:
        fit(qarr, y, [0.5])
    reason = fit_info.value.reason
    assert type(reason) is err_cls
    assert reason.status == status
    assert fit_info.value.__cause__ is reason


def test_solver_config_validation():
    with pytest.raises(ValueError):
        SolverConfig(method="interior-point")
    with pytest.raises(ValueError):
        SolverConfig(time_limit=0)
    with pytest.raises(ValueError):
        SolverConfig(n_threads=0)
    with pytest.raises(ValueError):
        StackingConfig(zero_tol=-1.0)


def test_linprog_options():
    assert "time_limit" not in SolverConfig().linprog_options()
    opts = SolverConfig(time_limit=5, presolve=False).linprog_options()
    assert opts["time_limit"] == 5.0
    assert opts["presolve"] is False
