"""Regularization grids and warm-started solution paths."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import List, NamedTuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from miselect._config import SolverConfig
from miselect._errors import NonConvergenceWarning
from miselect.families import Family
from miselect.solvers import ElasticNetPath, GroupLassoPath

Engine = Union[ElasticNetPath, GroupLassoPath]


def default_min_ratio(n: int, p: int) -> float:
    return 1e-4 if n > p else 1e-2


def lambda_grid(lambda_max: float, nlambda: int, min_ratio: float) -> np.ndarray:
    """Log-spaced, descending grid from lambda_max to min_ratio * lambda_max."""
    lambda_max = max(lambda_max, np.finfo(np.float64).eps)
    if nlambda == 1:
        return np.array([lambda_max])
    return np.geomspace(lambda_max, lambda_max * min_ratio, nlambda)


class AlphaPath(NamedTuple):
    """One alpha's path: arrays indexed by position along the lambda grid."""
    lambdas: np.ndarray
    coef: np.ndarray
    converged: np.ndarray
    n_iter: np.ndarray
    deviance: np.ndarray


class PathDriver:
    """
    Runs an engine down a descending lambda sequence for a fixed alpha.

    Each point starts from the previous solution; the first point starts
    from the engine's null fit. Paths for different alphas are independent
    and may be run concurrently on the same driver.
    """

    def __init__(self, engine: Engine, config: SolverConfig):
        self.engine = engine
        self.config = config

    def lambda_sequence(self, alpha: float) -> np.ndarray:
        data = self.engine.data
        ratio = self.config.lambda_min_ratio
        if ratio is None:
            ratio = default_min_ratio(data.n_obs, data.n_features)
        return lambda_grid(self.engine.lambda_max(alpha), self.config.nlambda, ratio)

    def run(
        self,
        lambdas: np.ndarray,
        alpha: float,
        show_progress: bool = False,
    ) -> AlphaPath:
        L = len(lambdas)
        coefs = []
        converged = np.ones(L, dtype=bool)
        n_iter = np.zeros(L, dtype=np.int64)
        deviance = np.full(L, np.nan)

        start = self.engine.null
        for k in tqdm(range(L), disable=not show_progress, desc=f"alpha={alpha:g}"):
            fit = self.engine.fit(float(lambdas[k]), alpha, start)
            coefs.append(self.engine.coefficients(fit))
            converged[k] = fit.converged
            n_iter[k] = fit.n_iter
            deviance[k] = fit.deviance
            start = fit

        return AlphaPath(np.asarray(lambdas, dtype=np.float64), np.stack(coefs), converged, n_iter, deviance)


@dataclass
class SolutionPath:
    """
    Coefficients over a (lambda, alpha) grid.

    Attributes
    ----------
    method : {"saenet", "galasso"}
    family : Family
    alphas : ndarray of shape (A,)
        Mixing values; GALASSO reports a single alpha of 1.0.
    lambdas : ndarray of shape (A, L)
        Descending lambda sequence of each alpha.
    coef : ndarray
        SAENET: (A, L, p+1). GALASSO: (1, L, p+1, M), one column per
        imputation. Index 0 along the coefficient axis is the intercept.
    converged, n_iter, deviance : ndarray of shape (A, L)
        Per-point solver diagnostics. Deviance is the weighted mean deviance
        on the training data; for GALASSO, the mean over imputations of each
        imputation's mean deviance.
    feature_names : list of str
    """
    method: str
    family: Family
    alphas: np.ndarray
    lambdas: np.ndarray
    coef: np.ndarray
    converged: np.ndarray
    n_iter: np.ndarray
    deviance: np.ndarray
    feature_names: List[str] = field(default_factory=list)
    n_obs: int = 0
    n_imputations: int = 1

    @classmethod
    def from_alpha_paths(cls, method, family, alphas, paths: List[AlphaPath], **kwargs) -> "SolutionPath":
        return cls(
            method=method,
            family=family,
            alphas=np.asarray(alphas, dtype=np.float64),
            lambdas=np.stack([ap.lambdas for ap in paths]),
            coef=np.stack([ap.coef for ap in paths]),
            converged=np.stack([ap.converged for ap in paths]),
            n_iter=np.stack([ap.n_iter for ap in paths]),
            deviance=np.stack([ap.deviance for ap in paths]),
            **kwargs,
        )

    @property
    def n_features(self) -> int:
        return self.coef.shape[2] - 1

    @property
    def slopes(self) -> np.ndarray:
        return self.coef[:, :, 1:]

    @property
    def df(self) -> np.ndarray:
        """Number of selected variables at each grid point, shape (A, L)."""
        nonzero = self.slopes != 0
        if nonzero.ndim == 4:
            nonzero = nonzero.any(axis=-1)
        return nonzero.sum(axis=-1)

    def warn_unconverged(self) -> None:
        n_bad = int((~self.converged).sum())
        if n_bad:
            warnings.warn(
                f"{self.method}: {n_bad} of {self.converged.size} grid points "
                f"did not converge; see `converged` on the result.",
                NonConvergenceWarning,
                stacklevel=3,
            )

    def to_frame(self) -> pd.DataFrame:
        """One row per grid point: alpha, lambda, df, deviance, converged."""
        A, L = self.lambdas.shape
        return pd.DataFrame({
            "alpha": np.repeat(self.alphas, L),
            "lambda": self.lambdas.ravel(),
            "df": self.df.ravel(),
            "deviance": self.deviance.ravel(),
            "converged": self.converged.ravel(),
        })
