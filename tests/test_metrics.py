import numpy as np
import pytest

from quantile_stacking.metrics import (
    count_crossings,
    interval_coverage,
    member_predictions,
    pinball_loss,
    pinball_matrix,
    quantile_loss_table,
)


def test_pinball_loss_perfect_prediction():
    y = np.array([1.0, 2.0, 3.0])
    q = np.column_stack([y, y])
    assert pinball_loss(y, q, [0.1, 0.9]) == 0.0


def test_pinball_loss_asymmetry():
    # Under-prediction by 1 costs tau, over-prediction by 1 costs 1 - tau.
    y = np.array([1.0, 0.0])
    q = np.array([[0.0], [1.0]])
    m = pinball_matrix(y, q, [0.9])
    np.testing.assert_allclose(m.ravel(), [0.9, 0.1])
    assert pinball_loss(y, q, [0.9]) == pytest.approx(0.5)


def test_pinball_loss_weights():
    y = np.array([1.0, 0.0])
    q = np.array([[0.0], [1.0]])
    assert pinball_loss(y, q, [0.9], w=[1.0, 0.0]) == pytest.approx(0.9)


def test_quantile_loss_table_sorted_by_total():
    y = np.array([0.0, 1.0, 2.0, 3.0])
    tau = [0.25, 0.75]
    good = np.column_stack([y - 0.1, y + 0.1])
    bad = np.column_stack([y - 2.0, y + 2.0])

    table = quantile_loss_table(y, {"bad": bad, "good": good}, tau)
    assert list(table.index) == ["good", "bad"]
    assert list(table.columns) == ["0.25", "0.75", "total"]
    assert table.loc["good", "total"] == pytest.approx(table.loc["good", ["0.25", "0.75"]].sum())


def test_member_predictions_split():
    qarr = np.arange(2 * 3 * 4, dtype=float).reshape(2, 3, 4)
    preds = member_predictions(qarr, ["a", "b", "c"])
    assert list(preds) == ["a", "b", "c"]
    np.testing.assert_array_equal(preds["b"], qarr[:, 1, :])


def test_interval_coverage():
    y = np.array([0.0, 1.0, 2.0, 3.0])
    assert interval_coverage(y, np.full(4, 0.5), np.full(4, 2.5)) == pytest.approx(0.5)


def test_count_crossings():
    q = np.array([[0.0, 1.0, 2.0], [0.0, -1.0, 2.0], [3.0, 2.0, 1.0]])
    assert count_crossings(q) == 3
    assert count_crossings(q[:, :1]) == 0
