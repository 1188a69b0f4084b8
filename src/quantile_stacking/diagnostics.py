from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Hashable, List, Tuple

import numpy as np

from .ensemble import FittedEnsemble, predict
from .metrics import count_crossings, member_predictions, pinball_matrix


@dataclass(frozen=True)
class EnsembleDiagnostics:
    n_obs: int
    n_members: int
    n_levels: int
    n_groups: int

    ensemble_loss: float
    member_losses: Dict[str, float]
    best_member: str
    improvement_vs_best_pct: float

    level_losses: Dict[str, float]
    n_crossings: int
    effective_members: Dict[Hashable, float]

    issues: Tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "n_obs": self.n_obs,
            "n_members": self.n_members,
            "n_levels": self.n_levels,
            "n_groups": self.n_groups,
            "ensemble_loss": self.ensemble_loss,
            "member_losses": self.member_losses,
            "best_member": self.best_member,
            "improvement_vs_best_pct": self.improvement_vs_best_pct,
            "level_losses": self.level_losses,
            "n_crossings": self.n_crossings,
            "effective_members": self.effective_members,
            "issues": list(self.issues),
        }


def _weighted_level_means(loss: np.ndarray, w: np.ndarray) -> np.ndarray:
    return (w[:, None] * loss).sum(axis=0) / max(float(w.sum()), 1e-12)


def diagnose_ensemble(fitted: FittedEnsemble, qarr, y, w=None) -> EnsembleDiagnostics:
    """Summarise a fitted ensemble against its own members on ``(qarr, y)``.

    Losses are weighted means over observations of the pinball loss summed
    over levels, so they are comparable with the LP objective divided by the
    total weight.
    """
    q = np.asarray(qarr, dtype=np.float64)
    y_arr = np.asarray(y, dtype=np.float64).reshape(-1)
    w_arr = np.ones(y_arr.shape[0]) if w is None else np.asarray(w, dtype=np.float64).reshape(-1)
    tau = fitted.tau

    yhat = predict(fitted, q)
    level_loss = _weighted_level_means(pinball_matrix(y_arr, yhat, tau), w_arr)
    ensemble_loss = float(level_loss.sum())

    member_losses = {
        name: float(_weighted_level_means(pinball_matrix(y_arr, pred, tau), w_arr).sum())
        for name, pred in member_predictions(q, fitted.member_names).items()
    }
    best_member = min(member_losses, key=member_losses.get)
    best_loss = member_losses[best_member]
    improvement = 100.0 * (best_loss - ensemble_loss) / max(best_loss, 1e-12)

    alpha = fitted.weights.alpha
    effective = {
        label: float(1.0 / np.sum(alpha[:, g] ** 2))
        for g, label in enumerate(fitted.weights.group_labels)
    }

    n_crossings = count_crossings(yhat, tol=1e-9)

    issues: List[str] = []
    if ensemble_loss > best_loss * (1.0 + 1e-9):
        issues.append(f"Ensemble loss exceeds best member '{best_member}' on the evaluation data")
    if n_crossings > 0:
        issues.append(f"{n_crossings} quantile crossings in ensemble predictions")
    collapsed = [lab for lab, eff in effective.items() if eff < 1.0 + 1e-6]
    if collapsed and fitted.n_members > 1:
        issues.append(f"All weight on a single member in group(s) {collapsed}")

    return EnsembleDiagnostics(
        n_obs=int(y_arr.shape[0]),
        n_members=fitted.n_members,
        n_levels=fitted.n_levels,
        n_groups=len(fitted.weights.group_labels),
        ensemble_loss=ensemble_loss,
        member_losses=member_losses,
        best_member=best_member,
        improvement_vs_best_pct=float(improvement),
        level_losses={f"{t:g}": float(v) for t, v in zip(tau, level_loss)},
        n_crossings=n_crossings,
        effective_members=effective,
        issues=tuple(issues),
    )
