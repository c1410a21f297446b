import numpy as np
import pytest


def make_imputations(n=120, p=8, M=3, beta=None, noise=0.5, miss_frac=0.1, seed=0, binomial=False):
    """Synthetic completed datasets: shared truth, imputation noise on missing cells."""
    rng = np.random.default_rng(seed)
    X_true = rng.normal(size=(n, p))
    if beta is None:
        beta = np.zeros(p)
        beta[:3] = [2.0, -1.5, 1.0]
    eta = 0.5 + X_true @ beta
    if binomial:
        y = (rng.uniform(size=n) < 1.0 / (1.0 + np.exp(-eta))).astype(float)
    else:
        y = eta + rng.normal(scale=noise, size=n)

    missing = rng.uniform(size=(n, p)) < miss_frac
    X_list, y_list = [], []
    for _ in range(M):
        Xm = X_true.copy()
        Xm[missing] = rng.normal(size=missing.sum())
        X_list.append(Xm)
        y_list.append(y.copy())
    weights = 1.0 - missing.mean(axis=1)
    return X_list, y_list, weights


@pytest.fixture
def gaussian_data():
    return make_imputations()


@pytest.fixture
def binomial_data():
    return make_imputations(n=200, binomial=True, seed=1)
