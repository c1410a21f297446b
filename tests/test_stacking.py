import numpy as np
import pytest

from miselect import DimensionError, PenaltyContext, stack_imputations
from miselect.stacking import standardize_blocks


def test_stacked_layout_and_weights(gaussian_data):
    X_list, y_list, w = gaussian_data
    data = stack_imputations(X_list, y_list, w)

    n, p = X_list[0].shape
    assert data.X.shape == (3 * n, p)
    assert data.n_obs == n
    assert data.n_imputations == 3
    np.testing.assert_allclose(data.weights, np.tile(w, 3) / 3)
    np.testing.assert_array_equal(data.y[n:2 * n], y_list[1])


def test_stacked_columns_are_weighted_standardized(gaussian_data):
    X_list, y_list, w = gaussian_data
    data = stack_imputations(X_list, y_list, w)

    ww = data.weights / data.weights.sum()
    np.testing.assert_allclose(ww @ data.X, 0.0, atol=1e-12)
    np.testing.assert_allclose(ww @ data.X ** 2, 1.0, atol=1e-10)


def test_stacking_does_not_alias_inputs(gaussian_data):
    X_list, y_list, w = gaussian_data
    before = X_list[0].copy()
    data = stack_imputations(X_list, y_list, w)
    data.X[:] = 0.0
    np.testing.assert_array_equal(X_list[0], before)


def test_unstandardize_recovers_linear_predictor(gaussian_data):
    X_list, y_list, w = gaussian_data
    data = stack_imputations(X_list, y_list, w)
    rng = np.random.default_rng(3)
    beta = rng.normal(size=data.n_features)

    b, b0 = data.unstandardize(beta, 0.7)
    raw = np.vstack(X_list)
    np.testing.assert_allclose(b0 + raw @ b, 0.7 + data.X @ beta, atol=1e-10)


def test_constant_column_keeps_unit_scale():
    X = np.ones((10, 2))
    X[:, 1] = np.arange(10)
    data = stack_imputations([X], [np.arange(10.0)])
    assert data.scale[0] == 1.0
    np.testing.assert_allclose(data.X[:, 0], 0.0)


def test_dimension_errors(gaussian_data):
    X_list, y_list, w = gaussian_data
    with pytest.raises(DimensionError):
        stack_imputations([X_list[0], X_list[1][:-1]], y_list[:2], w)
    with pytest.raises(DimensionError):
        stack_imputations([X_list[0], X_list[1][:, :-1]], y_list[:2], w)
    with pytest.raises(DimensionError):
        stack_imputations(X_list, y_list, w[:-1])
    with pytest.raises(DimensionError):
        stack_imputations(X_list, [y_list[0][:-1]] + y_list[1:], w)


def test_blocks_standardize_each_imputation(gaussian_data):
    X_list, y_list, _ = gaussian_data
    blocks = standardize_blocks(X_list, y_list)

    assert blocks.X.shape == (3,) + X_list[0].shape
    np.testing.assert_allclose(blocks.X.mean(axis=1), 0.0, atol=1e-12)
    np.testing.assert_allclose((blocks.X ** 2).mean(axis=1), 1.0, atol=1e-10)


def test_penalty_context_validation():
    ctx = PenaltyContext.build(None, [1.0, 0.0, 2.0], 3)
    np.testing.assert_array_equal(ctx.pf, np.ones(3))
    np.testing.assert_array_equal(ctx.penalized, [True, False, True])
    np.testing.assert_allclose(ctx.l1(2.0, 0.5), [1.0, 0.0, 2.0])
    np.testing.assert_allclose(ctx.l2(2.0, 0.5), [1.0, 1.0, 1.0])
    np.testing.assert_array_equal(ctx.ridge_only, [False, True, False])
    np.testing.assert_array_equal(ctx.null_l1(), [np.inf, 0.0, np.inf])

    with pytest.raises(DimensionError):
        PenaltyContext.build(np.ones(2), None, 3)
    with pytest.raises(ValueError):
        PenaltyContext.build([1.0, -1.0, 1.0], None, 3)
