"""Synthetic demo for the quantile stacking package.

This example simulates a heteroskedastic regression problem, fits two base
quantile models with scikit-learn (lasso with residual quantiles, and
L1-penalised quantile regression), and stacks them with three tau-group
configurations.

The objective is to demonstrate the API wiring; the base models are not tuned.
"""

from __future__ import annotations

import numpy as np
from sklearn.linear_model import Lasso, QuantileRegressor

from quantile_stacking import fit_many
from quantile_stacking.diagnostics import diagnose_ensemble
from quantile_stacking.logging_utils import get_logger
from quantile_stacking.metrics import member_predictions, quantile_loss_table

logger = get_logger("quantile_stacking.demo")

TAU = np.array([0.05, 0.1, 0.25, 0.5, 0.75, 0.9, 0.95])


def make_synthetic_data(n: int = 300, d: int = 10, seed: int = 7):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, d))
    beta = np.zeros(d)
    beta[:3] = [1.0, -0.5, 0.25]
    scale = 0.5 + np.abs(X[:, 0])
    y = X @ beta + scale * rng.standard_t(df=4, size=n)
    return X, y


def lasso_quantiles(X_tr, y_tr, X_list, tau) -> list[np.ndarray]:
    """Mean lasso plus empirical quantiles of its training residuals."""
    model = Lasso(alpha=0.05).fit(X_tr, y_tr)
    offsets = np.quantile(y_tr - model.predict(X_tr), tau)
    return [model.predict(X)[:, None] + offsets[None, :] for X in X_list]


def quantile_lasso(X_tr, y_tr, X_list, tau) -> list[np.ndarray]:
    """One L1-penalised linear quantile regression per level."""
    out = [np.empty((X.shape[0], len(tau))) for X in X_list]
    for k, t in enumerate(tau):
        model = QuantileRegressor(quantile=float(t), alpha=0.01, solver="highs").fit(X_tr, y_tr)
        for dest, X in zip(out, X_list):
            dest[:, k] = model.predict(X)
    return out


def main() -> None:
    X, y = make_synthetic_data()
    n_val = 100
    n_test = 100
    X_tr, y_tr = X[: -n_val - n_test], y[: -n_val - n_test]
    X_val, y_val = X[-n_val - n_test : -n_test], y[-n_val - n_test : -n_test]
    X_te, y_te = X[-n_test:], y[-n_test:]

    lasso_val, lasso_te = lasso_quantiles(X_tr, y_tr, [X_val, X_te], TAU)
    qlasso_val, qlasso_te = quantile_lasso(X_tr, y_tr, [X_val, X_te], TAU)

    members = ["lasso", "quantile_lasso"]
    q_val = np.stack([lasso_val, qlasso_val], axis=1)
    q_te = np.stack([lasso_te, qlasso_te], axis=1)

    groupings = {
        "standard": "standard",
        "flexible": "flexible",
        "tails": ["tail", "tail", "mid", "mid", "mid", "tail", "tail"],
    }
    fits = fit_many(q_val, y_val, TAU, groupings, member_names=members, noncross=True)

    predictions = member_predictions(q_te, members)
    for name, fitted in fits.items():
        predictions[f"ensemble_{name}"] = fitted.predict(q_te)
        logger.info("%s weights:\n%s", name, fitted.coefficients().to_frame().round(3))

    table = quantile_loss_table(y_te, predictions, TAU)
    logger.info("Test pinball loss:\n%s", table.round(4))

    diag = diagnose_ensemble(fits["flexible"], q_te, y_te)
    logger.info("Flexible ensemble issues: %s", list(diag.issues) or "none")


if __name__ == "__main__":
    main()
