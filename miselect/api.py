"""User-facing API: SAENET and GALASSO fits and their cross-validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np
from joblib import Parallel, delayed

from miselect._config import SolverConfig, resolve_config
from miselect._preprocess import (
    validate_alphas,
    validate_imputations,
    validate_lambdas,
    validate_obs_weights,
)
from miselect.cv import CrossValidator, CVResult, FoldScorer
from miselect.families import Family
from miselect.path import PathDriver, SolutionPath
from miselect.penalty import PenaltyContext
from miselect.solvers import ElasticNetPath, GroupLassoPath
from miselect.stacking import stack_imputations, standardize_blocks


@dataclass
class _Problem:
    """Validated inputs of one fit call; read-only once built."""
    X: List[np.ndarray]
    y: List[np.ndarray]
    weights: np.ndarray
    penalty: PenaltyContext
    family: Family
    config: SolverConfig
    feature_names: List[str]

    @property
    def n_obs(self) -> int:
        return self.X[0].shape[0]

    @property
    def n_imputations(self) -> int:
        return len(self.X)

    def subset(self, rows: Optional[np.ndarray]):
        if rows is None:
            return self.X, self.y, self.weights
        return [Xm[rows] for Xm in self.X], [ym[rows] for ym in self.y], self.weights[rows]


def _prepare(X, y, pf, adw, weights, family, config, overrides) -> _Problem:
    family = Family.resolve(family)
    config = resolve_config(config, **overrides)
    X_arr, y_arr, feature_names = validate_imputations(X, y, family)
    n, p = X_arr[0].shape
    return _Problem(
        X=X_arr,
        y=y_arr,
        weights=validate_obs_weights(weights, n),
        penalty=PenaltyContext.build(pf, adw, p),
        family=family,
        config=config,
        feature_names=feature_names,
    )


def _saenet_engine(problem: _Problem, rows: Optional[np.ndarray] = None) -> ElasticNetPath:
    X, y, w = problem.subset(rows)
    data = stack_imputations(X, y, w, standardize=problem.config.standardize)
    return ElasticNetPath(data, problem.penalty, problem.family, problem.config)


def _galasso_engine(problem: _Problem, rows: Optional[np.ndarray] = None) -> GroupLassoPath:
    X, y, _ = problem.subset(rows)
    data = standardize_blocks(X, y, standardize=problem.config.standardize)
    return GroupLassoPath(data, problem.penalty, problem.family, problem.config)


def _fit_path(
    method: str,
    problem: _Problem,
    alphas: np.ndarray,
    lambdas: Optional[np.ndarray],
    n_jobs: int,
    parallel_backend: str,
    show_progress: bool,
) -> SolutionPath:
    engine = _saenet_engine(problem) if method == "saenet" else _galasso_engine(problem)
    driver = PathDriver(engine, problem.config)
    grids = [lambdas if lambdas is not None else driver.lambda_sequence(a) for a in alphas]

    if len(alphas) == 1:
        paths = [driver.run(grids[0], float(alphas[0]), show_progress)]
    else:
        paths = Parallel(n_jobs=n_jobs, prefer=parallel_backend)(
            delayed(driver.run)(grid, float(a), show_progress)
            for a, grid in zip(alphas, grids)
        )

    return SolutionPath.from_alpha_paths(
        method,
        problem.family,
        alphas,
        paths,
        feature_names=problem.feature_names,
        n_obs=problem.n_obs,
        n_imputations=problem.n_imputations,
    )


def _saenet_scorer(problem: _Problem, path: SolutionPath) -> FoldScorer:
    family, clip = problem.family, problem.config.prob_clip
    M = problem.n_imputations

    def score(train, test, a):
        engine = _saenet_engine(problem, train)
        fit = PathDriver(engine, problem.config).run(path.lambdas[a], float(path.alphas[a]))

        X_test = np.vstack([Xm[test] for Xm in problem.X])
        y_test = np.concatenate([ym[test] for ym in problem.y])
        w_test = np.tile(problem.weights[test], M)

        eta = fit.coef[:, :1] + fit.coef[:, 1:] @ X_test.T
        dev = family.unit_deviance(y_test, family.mean(eta), clip)
        errors = dev @ w_test / w_test.sum()
        return errors, float(problem.weights[test].sum()), fit.converged

    return score


def _galasso_scorer(problem: _Problem, path: SolutionPath) -> FoldScorer:
    family, clip = problem.family, problem.config.prob_clip

    def score(train, test, a):
        engine = _galasso_engine(problem, train)
        fit = PathDriver(engine, problem.config).run(path.lambdas[a], float(path.alphas[a]))

        X_test = np.stack([Xm[test] for Xm in problem.X])
        y_test = np.stack([ym[test] for ym in problem.y])

        # coef is (L, p+1, M); eta is (L, M, n_test)
        eta = fit.coef[:, 0, :, None] + np.einsum("mij,ljm->lmi", X_test, fit.coef[:, 1:, :])
        dev = family.unit_deviance(y_test, family.mean(eta), clip)
        errors = dev.mean(axis=(1, 2))
        return errors, float(len(test)), fit.converged

    return score


def fit_saenet(
    X: Sequence,
    y: Sequence,
    pf=None,
    adw=None,
    weights=None,
    family: Union[str, Family] = "gaussian",
    alpha: Union[float, Sequence[float]] = 1.0,
    lambdas: Optional[Sequence[float]] = None,
    *,
    config: Optional[SolverConfig] = None,
    n_jobs: int = -1,
    parallel_backend: str = "threads",
    verbose: bool = True,
    show_progress: bool = False,
    **kwargs,
) -> SolutionPath:
    """
    Stacked adaptive elastic net over multiply-imputed data.

    The M imputations are stacked into one design with observation weights
    divided by M, and a single coefficient vector is fit per (lambda, alpha),
    so every imputation shares the same selected variables.

    Parameters
    ----------
    X : sequence of array-like of shape (n, p)
        One completed design matrix per imputation (ndarray or DataFrame).
    y : sequence of array-like of shape (n,)
        One response per imputation; 0/1 for family='binomial'.
    pf : array-like of shape (p,), optional
        Penalty factors; 0 leaves a variable unpenalized. Default ones.
    adw : array-like of shape (p,), optional
        Adaptive weights on the lasso term. Default ones.
    weights : array-like of shape (n,), optional
        Observation weights in (0, 1], e.g. 1 - fraction missing. Default ones.
    family : {"gaussian", "binomial"}
    alpha : float or sequence of float
        Elastic net mixing values in [0, 1]; each gets its own path.
    lambdas : sequence of float, optional
        Lambda grid shared by every alpha. If None, a log-spaced grid of
        `nlambda` values below each alpha's lambda_max.
    config : SolverConfig, optional
        Solver settings. Any SolverConfig field may also be passed as a
        keyword argument to override it.
    n_jobs : int, default=-1
        Parallel jobs across alpha values.
    parallel_backend : str, default='threads'
        Joblib backend preference.
    verbose : bool, default=True
        Print a summary line.
    show_progress : bool, default=False
        Show a tqdm bar along each lambda path.

    Returns
    -------
    SolutionPath
    """
    problem = _prepare(X, y, pf, adw, weights, family, config, kwargs)
    alphas = validate_alphas(alpha)
    lambdas = validate_lambdas(lambdas)

    if verbose:
        n, p = problem.X[0].shape
        print(f"SAENET ({problem.family.value}): {problem.n_imputations} imputations × "
              f"{n:,} rows × {p} features, {len(alphas)} alpha value(s)")

    path = _fit_path("saenet", problem, alphas, lambdas, n_jobs, parallel_backend, show_progress)
    path.warn_unconverged()
    return path


def cv_saenet(
    X: Sequence,
    y: Sequence,
    pf=None,
    adw=None,
    weights=None,
    family: Union[str, Family] = "gaussian",
    alpha: Union[float, Sequence[float]] = 1.0,
    lambdas: Optional[Sequence[float]] = None,
    nfolds: int = 5,
    seed: Optional[int] = None,
    foldid=None,
    *,
    config: Optional[SolverConfig] = None,
    n_jobs: int = -1,
    parallel_backend: str = "threads",
    verbose: bool = True,
    show_progress: bool = False,
    **kwargs,
) -> CVResult:
    """
    Cross-validated SAENET.

    Fits the full-data path, then refits it on each training split (the same
    original observations are held out in every imputation) and scores the
    held-out rows: weighted mean squared error for gaussian, weighted mean
    deviance for binomial. See `fit_saenet` for the shared parameters.

    Parameters
    ----------
    nfolds : int, default=5
        Number of folds (ignored when `foldid` is given).
    seed : int, optional
        Seed of the fold assignment; a fixed seed gives identical results.
    foldid : array-like of shape (n,), optional
        Explicit fold label per observation.

    Returns
    -------
    CVResult
        With lambda_min/alpha_min and lambda_1se/alpha_1se.
    """
    problem = _prepare(X, y, pf, adw, weights, family, config, kwargs)
    alphas = validate_alphas(alpha)
    lambdas = validate_lambdas(lambdas)
    cv = CrossValidator(nfolds, seed, foldid, n_jobs, parallel_backend)
    folds = cv.folds(problem.n_obs)

    if verbose:
        n, p = problem.X[0].shape
        print(f"SAENET CV ({problem.family.value}): {int(folds.max()) + 1} folds, "
              f"{problem.n_imputations} imputations × {n:,} rows × {p} features, "
              f"{len(alphas)} alpha value(s)")

    path = _fit_path("saenet", problem, alphas, lambdas, n_jobs, parallel_backend, show_progress)
    path.warn_unconverged()
    result = cv.run(path, folds, _saenet_scorer(problem, path))

    if verbose:
        print(f"lambda.min={result.lambda_min:.4g} (alpha={result.alpha_min:g}), "
              f"lambda.1se={result.lambda_1se:.4g}")
    return result


def fit_galasso(
    X: Sequence,
    y: Sequence,
    pf=None,
    adw=None,
    family: Union[str, Family] = "gaussian",
    lambdas: Optional[Sequence[float]] = None,
    *,
    config: Optional[SolverConfig] = None,
    verbose: bool = True,
    show_progress: bool = False,
    **kwargs,
) -> SolutionPath:
    """
    Grouped adaptive lasso over multiply-imputed data.

    Each imputation keeps its own coefficients, but the penalty acts on the
    norm of each variable's M coefficients, so a variable is either selected
    in every imputation or in none.

    Parameters
    ----------
    X, y, pf, adw, family, lambdas, config, verbose, show_progress
        As in `fit_saenet`. There are no observation weights and no alpha.

    Returns
    -------
    SolutionPath
        `coef` has shape (1, L, p+1, M).
    """
    problem = _prepare(X, y, pf, adw, None, family, config, kwargs)
    lambdas = validate_lambdas(lambdas)

    if verbose:
        n, p = problem.X[0].shape
        print(f"GALASSO ({problem.family.value}): {problem.n_imputations} imputations × "
              f"{n:,} rows × {p} features")

    path = _fit_path("galasso", problem, np.array([1.0]), lambdas, 1, "threads", show_progress)
    path.warn_unconverged()
    return path


def cv_galasso(
    X: Sequence,
    y: Sequence,
    pf=None,
    adw=None,
    family: Union[str, Family] = "gaussian",
    lambdas: Optional[Sequence[float]] = None,
    nfolds: int = 5,
    seed: Optional[int] = None,
    foldid=None,
    *,
    config: Optional[SolverConfig] = None,
    n_jobs: int = -1,
    parallel_backend: str = "threads",
    verbose: bool = True,
    show_progress: bool = False,
    **kwargs,
) -> CVResult:
    """
    Cross-validated GALASSO.

    Held-out error averages each imputation's own predictions on its own
    held-out rows. See `fit_galasso` and `cv_saenet` for the parameters.
    """
    problem = _prepare(X, y, pf, adw, None, family, config, kwargs)
    lambdas = validate_lambdas(lambdas)
    cv = CrossValidator(nfolds, seed, foldid, n_jobs, parallel_backend)
    folds = cv.folds(problem.n_obs)

    if verbose:
        n, p = problem.X[0].shape
        print(f"GALASSO CV ({problem.family.value}): {int(folds.max()) + 1} folds, "
              f"{problem.n_imputations} imputations × {n:,} rows × {p} features")

    path = _fit_path("galasso", problem, np.array([1.0]), lambdas, 1, "threads", show_progress)
    path.warn_unconverged()
    result = cv.run(path, folds, _galasso_scorer(problem, path))

    if verbose:
        print(f"lambda.min={result.lambda_min:.4g}, lambda.1se={result.lambda_1se:.4g}")
    return result
