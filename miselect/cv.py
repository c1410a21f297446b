"""K-fold cross-validation over a fitted regularization grid."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from miselect._errors import InsufficientFoldsError, NonConvergenceWarning
from miselect._preprocess import to_numpy
from miselect.path import SolutionPath

# (train_idx, test_idx, alpha_idx) -> (errors over the lambda grid, fold weight, converged flags)
FoldScorer = Callable[[np.ndarray, np.ndarray, int], Tuple[np.ndarray, float, np.ndarray]]


def assign_folds(
    n: int,
    nfolds: int = 5,
    seed: Optional[int] = None,
    foldid=None,
) -> np.ndarray:
    """
    Fold label in 0..k-1 for each of n observations.

    A caller `foldid` is relabeled to consecutive integers and takes
    precedence over `nfolds`. Otherwise labels are a seeded permutation of
    ``arange(n) % nfolds``, so folds differ in size by at most one.
    """
    if foldid is not None:
        raw = to_numpy(foldid).ravel()
        if raw.shape[0] != n:
            raise InsufficientFoldsError(f"foldid has length {raw.shape[0]}, expected {n}")
        _, labels = np.unique(raw, return_inverse=True)
        if labels.max() + 1 < 2:
            raise InsufficientFoldsError("foldid must contain at least 2 distinct folds")
        return labels.astype(np.int64)

    if nfolds < 2:
        raise InsufficientFoldsError(f"nfolds must be >= 2, got {nfolds}")
    if nfolds > n:
        raise InsufficientFoldsError(f"nfolds={nfolds} leaves empty folds with only {n} observations")
    rng = np.random.default_rng(seed)
    return rng.permutation(np.arange(n) % nfolds).astype(np.int64)


@dataclass
class CVResult:
    """
    Cross-validated error over the grid of a full-data `SolutionPath`.

    Attributes
    ----------
    path : SolutionPath
        Fit on all observations; coefficients are selected from it.
    cvm, cvsd : ndarray of shape (A, L)
        Mean held-out error and its standard error.
    fold_errors : ndarray of shape (k, A, L)
    fold_converged : ndarray of bool, shape (k, A, L)
        Whether each fold's refit converged at each grid point.
    fold_weights : ndarray of shape (k,)
    foldid : ndarray of shape (n,)
    index_min, index_1se : (alpha index, lambda index)
    """
    path: SolutionPath
    cvm: np.ndarray
    cvsd: np.ndarray
    fold_errors: np.ndarray
    fold_converged: np.ndarray
    fold_weights: np.ndarray
    foldid: np.ndarray
    index_min: Tuple[int, int]
    index_1se: Tuple[int, int]

    @property
    def nfolds(self) -> int:
        return self.fold_errors.shape[0]

    @property
    def lambda_min(self) -> float:
        return float(self.path.lambdas[self.index_min])

    @property
    def alpha_min(self) -> float:
        return float(self.path.alphas[self.index_min[0]])

    @property
    def lambda_1se(self) -> float:
        return float(self.path.lambdas[self.index_1se])

    @property
    def alpha_1se(self) -> float:
        return float(self.path.alphas[self.index_1se[0]])

    def to_frame(self) -> pd.DataFrame:
        """One row per grid point with cvm, cvsd, the +/- 1 SE band, df and unconverged fold count."""
        frame = self.path.to_frame()
        frame["cvm"] = self.cvm.ravel()
        frame["cvsd"] = self.cvsd.ravel()
        frame["cvup"] = frame["cvm"] + frame["cvsd"]
        frame["cvlo"] = frame["cvm"] - frame["cvsd"]
        frame["fold_unconverged"] = (~self.fold_converged).sum(axis=0).ravel()
        return frame


def summarize_folds(fold_errors: np.ndarray, fold_weights: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Fold-weighted mean error and its standard error, per grid point."""
    k = fold_errors.shape[0]
    wf = fold_weights / fold_weights.sum()
    cvm = np.tensordot(wf, fold_errors, axes=1)
    var = np.tensordot(wf, (fold_errors - cvm) ** 2, axes=1)
    cvsd = np.sqrt(var / (k - 1))
    return cvm, cvsd


def select_indices(cvm: np.ndarray, cvsd: np.ndarray, lambdas: np.ndarray) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """
    Grid indices of the minimum-error and one-standard-error settings.

    The minimum is global over (alpha, lambda); ties go to the earlier alpha
    and larger lambda. The 1se setting stays on the minimum's alpha and takes
    the largest lambda whose error is within one SE of the minimum.
    """
    finite = np.where(np.isfinite(cvm), cvm, np.inf)
    a_min, l_min = np.unravel_index(int(np.argmin(finite)), finite.shape)
    bound = finite[a_min, l_min] + cvsd[a_min, l_min]

    row = lambdas[a_min]
    ok = np.where(finite[a_min] <= bound)[0]
    l_1se = int(ok[np.argmax(row[ok])])
    return (int(a_min), int(l_min)), (int(a_min), l_1se)


class CrossValidator:
    """
    Scores every grid point of a full-data path on held-out folds.

    Work is split into independent (fold, alpha) units and run through
    joblib; results are merged once into the (k, A, L) error array.

    Parameters
    ----------
    nfolds : int
        Number of folds when `foldid` is not given.
    seed : int, optional
        Seed for the fold permutation.
    foldid : array-like, optional
        Explicit fold labels, one per observation.
    n_jobs : int
        Number of parallel jobs (-1 = all cores).
    parallel_backend : str
        Joblib backend preference, 'threads' or 'processes'.
    """

    def __init__(
        self,
        nfolds: int = 5,
        seed: Optional[int] = None,
        foldid=None,
        n_jobs: int = -1,
        parallel_backend: str = "threads",
    ):
        self.nfolds = nfolds
        self.seed = seed
        self.foldid = foldid
        self.n_jobs = n_jobs
        self.parallel_backend = parallel_backend

    def folds(self, n: int) -> np.ndarray:
        foldid = assign_folds(n, self.nfolds, self.seed, self.foldid)
        k = int(foldid.max()) + 1
        counts = np.bincount(foldid, minlength=k)
        if k < 2 or (counts == 0).any():
            raise InsufficientFoldsError(f"every fold needs observations, got sizes {counts.tolist()}")
        if (counts == n).any():
            raise InsufficientFoldsError("a fold may not contain every observation")
        return foldid

    def run(self, path: SolutionPath, foldid: np.ndarray, scorer: FoldScorer) -> CVResult:
        k = int(foldid.max()) + 1
        A = len(path.alphas)
        tasks: List[Tuple[int, int]] = [(f, a) for f in range(k) for a in range(A)]

        results = Parallel(n_jobs=self.n_jobs, prefer=self.parallel_backend)(
            delayed(scorer)(np.where(foldid != f)[0], np.where(foldid == f)[0], a)
            for f, a in tasks
        )

        L = path.lambdas.shape[1]
        fold_errors = np.empty((k, A, L), dtype=np.float64)
        fold_converged = np.ones((k, A, L), dtype=bool)
        fold_weights = np.zeros(k, dtype=np.float64)
        for (f, a), (errors, weight, converged) in zip(tasks, results):
            fold_errors[f, a] = errors
            fold_converged[f, a] = converged
            fold_weights[f] = weight

        n_unconverged = int((~fold_converged).sum())
        if n_unconverged:
            warnings.warn(
                f"{path.method} cross-validation: {n_unconverged} fold grid points did not converge; "
                f"see `fold_converged` on the result.",
                NonConvergenceWarning,
                stacklevel=3,
            )

        cvm, cvsd = summarize_folds(fold_errors, fold_weights)
        index_min, index_1se = select_indices(cvm, cvsd, path.lambdas)
        return CVResult(
            path=path,
            cvm=cvm,
            cvsd=cvsd,
            fold_errors=fold_errors,
            fold_converged=fold_converged,
            fold_weights=fold_weights,
            foldid=foldid,
            index_min=index_min,
            index_1se=index_1se,
        )
