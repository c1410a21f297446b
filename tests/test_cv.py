import numpy as np
import pytest

from conftest import make_imputations
from miselect import (
    InsufficientFoldsError,
    NonConvergenceWarning,
    assign_folds,
    cv_galasso,
    cv_saenet,
    select_coefficients,
)
from miselect.cv import select_indices, summarize_folds


def test_assign_folds_balanced_and_seeded():
    a = assign_folds(23, nfolds=5, seed=7)
    b = assign_folds(23, nfolds=5, seed=7)
    np.testing.assert_array_equal(a, b)
    counts = np.bincount(a)
    assert len(counts) == 5
    assert counts.max() - counts.min() <= 1


def test_assign_folds_relabels_caller_ids():
    foldid = assign_folds(6, foldid=[10, 10, 20, 20, 30, 30])
    np.testing.assert_array_equal(foldid, [0, 0, 1, 1, 2, 2])


def test_assign_folds_errors():
    with pytest.raises(InsufficientFoldsError):
        assign_folds(10, nfolds=1)
    with pytest.raises(InsufficientFoldsError):
        assign_folds(3, nfolds=5)
    with pytest.raises(InsufficientFoldsError):
        assign_folds(4, foldid=[1, 1, 1, 1])
    with pytest.raises(InsufficientFoldsError):
        assign_folds(4, foldid=[0, 1, 0])


def test_summarize_and_select_on_known_curve():
    lambdas = np.array([[1.0, 0.5, 0.25, 0.125], [1.0, 0.5, 0.25, 0.125]])
    fold_errors = np.array([
        [[4.0, 2.0, 1.1, 1.3], [5.0, 3.0, 2.0, 2.0]],
        [[4.0, 2.2, 0.9, 1.1], [5.0, 3.0, 2.0, 2.0]],
    ])
    cvm, cvsd = summarize_folds(fold_errors, np.array([1.0, 1.0]))
    np.testing.assert_allclose(cvm[0], [4.0, 2.1, 1.0, 1.2])
    np.testing.assert_allclose(cvsd[0, 2], 0.1)

    index_min, index_1se = select_indices(cvm, cvsd, lambdas)
    assert index_min == (0, 2)
    # 1.2 > 1.0 + 0.1, 2.1 too; only lambda=0.25 itself qualifies
    assert index_1se == (0, 2)

    cvsd[0, 2] = 1.5
    _, index_1se = select_indices(cvm, cvsd, lambdas)
    assert index_1se == (0, 1)


def test_cv_saenet_is_reproducible_with_seed(gaussian_data):
    X_list, y_list, w = gaussian_data
    kwargs = dict(weights=w, alpha=[0.5, 1.0], nfolds=4, seed=11, nlambda=15, verbose=False)

    r1 = cv_saenet(X_list, y_list, **kwargs)
    r2 = cv_saenet(X_list, y_list, **kwargs)

    np.testing.assert_array_equal(r1.foldid, r2.foldid)
    np.testing.assert_array_equal(r1.cvm, r2.cvm)
    np.testing.assert_array_equal(r1.cvsd, r2.cvsd)
    assert r1.index_min == r2.index_min
    assert r1.index_1se == r2.index_1se


def test_cv_saenet_result_structure(gaussian_data):
    X_list, y_list, w = gaussian_data
    result = cv_saenet(X_list, y_list, weights=w, alpha=[0.5, 1.0], nfolds=4, seed=0, nlambda=15, verbose=False)

    assert result.cvm.shape == (2, 15)
    assert result.fold_errors.shape == (4, 2, 15)
    assert result.nfolds == 4
    np.testing.assert_allclose(result.fold_weights.sum(), w.sum())
    assert result.alpha_1se == result.alpha_min
    assert result.lambda_1se >= result.lambda_min

    frame = result.to_frame()
    assert len(frame) == 30
    assert {"cvm", "cvsd", "cvup", "cvlo"} <= set(frame.columns)


def test_cv_thread_and_sequential_runs_agree(gaussian_data):
    X_list, y_list, w = gaussian_data
    kwargs = dict(weights=w, alpha=[0.5, 1.0], nfolds=3, seed=2, nlambda=10, verbose=False)

    seq = cv_saenet(X_list, y_list, n_jobs=1, **kwargs)
    par = cv_saenet(X_list, y_list, n_jobs=2, parallel_backend="threads", **kwargs)
    np.testing.assert_array_equal(seq.cvm, par.cvm)


def test_cv_saenet_binomial(binomial_data):
    X_list, y_list, w = binomial_data
    result = cv_saenet(X_list, y_list, weights=w, family="binomial", nfolds=4, seed=3, nlambda=15, verbose=False)

    assert np.all(np.isfinite(result.cvm))
    assert result.lambda_1se >= result.lambda_min
    coef = select_coefficients(result)
    assert coef[1] > 0 and coef[2] < 0


def test_cv_galasso(gaussian_data):
    X_list, y_list, _ = gaussian_data
    result = cv_galasso(X_list, y_list, nfolds=4, seed=5, nlambda=15, verbose=False)

    assert result.cvm.shape == (1, 15)
    assert result.alpha_min == 1.0
    assert result.lambda_1se >= result.lambda_min
    np.testing.assert_allclose(result.fold_weights.sum(), X_list[0].shape[0])

    coef = select_coefficients(result, average=False)
    zero = coef[1:] == 0.0
    assert np.all(zero.all(axis=1) | (~zero).all(axis=1))


def test_cv_with_explicit_foldid(gaussian_data):
    X_list, y_list, w = gaussian_data
    n = X_list[0].shape[0]
    foldid = np.arange(n) % 3
    result = cv_saenet(X_list, y_list, weights=w, foldid=foldid, nlambda=8, verbose=False)

    assert result.nfolds == 3
    np.testing.assert_array_equal(result.foldid, foldid)


def test_cv_rejects_bad_fold_settings(gaussian_data):
    X_list, y_list, w = gaussian_data
    with pytest.raises(InsufficientFoldsError):
        cv_saenet(X_list, y_list, weights=w, nfolds=1, verbose=False)
    with pytest.raises(InsufficientFoldsError):
        cv_galasso(X_list, y_list, foldid=np.zeros(X_list[0].shape[0]), verbose=False)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_end_to_end_recovers_informative_variables(seed):
    p = 20
    beta = np.zeros(p)
    beta[:3] = [2.0, -1.5, 1.0]
    X_list, y_list, w = make_imputations(n=200, p=p, M=5, beta=beta, noise=1.0, miss_frac=0.1, seed=seed)

    result = cv_saenet(X_list, y_list, weights=w, alpha=[0.5, 1.0], nfolds=5, seed=seed, nlambda=50, verbose=False)
    coef = select_coefficients(result)[1:]

    assert np.all(coef[:3] != 0.0)
    assert np.sign(coef[:3]).tolist() == [1.0, -1.0, 1.0]
    assert np.abs(coef[3:]).max() < 0.5 * np.abs(coef[:3]).min()


def test_cv_galasso_is_reproducible_with_seed(gaussian_data):
    X_list, y_list, _ = gaussian_data
    kwargs = dict(nfolds=4, seed=9, nlambda=12, verbose=False)

    r1 = cv_galasso(X_list, y_list, **kwargs)
    r2 = cv_galasso(X_list, y_list, **kwargs)

    np.testing.assert_array_equal(r1.foldid, r2.foldid)
    np.testing.assert_array_equal(r1.cvm, r2.cvm)
    np.testing.assert_array_equal(r1.cvsd, r2.cvsd)
    assert r1.index_min == r2.index_min
    assert r1.index_1se == r2.index_1se


def test_fold_convergence_is_recorded_per_grid_point(gaussian_data):
    X_list, y_list, w = gaussian_data
    with pytest.warns(NonConvergenceWarning, match="cross-validation"):
        result = cv_saenet(
            X_list, y_list, weights=w, alpha=[0.5, 1.0], nfolds=3, seed=0, nlambda=10, max_iter=1, verbose=False
        )

    assert result.fold_converged.shape == (3, 2, 10)
    assert result.fold_converged.dtype == bool
    assert not result.fold_converged.all()
    frame = result.to_frame()
    assert frame["fold_unconverged"].sum() == (~result.fold_converged).sum()


def test_fold_convergence_all_true_on_easy_problem(gaussian_data):
    X_list, y_list, _ = gaussian_data
    result = cv_galasso(X_list, y_list, nfolds=3, seed=0, nlambda=8, verbose=False)
    assert result.fold_converged.shape == (3, 1, 8)
    assert result.fold_converged.all()
