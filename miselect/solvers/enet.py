"""Stacked adaptive elastic net (SAENET) engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from miselect._config import SolverConfig
from miselect._errors import DimensionError
from miselect.families import Family
from miselect.penalty import PenaltyContext
from miselect.solvers.irls import irls
from miselect.solvers.kernels import enet_coordinate_descent
from miselect.stacking import StackedDataset

ALPHA_FLOOR = 1e-3
# kernel loops and BLAS round gradients differently
LAMBDA_MAX_SLACK = 1e-9
BOUNDARY_MAX_ITER = 100


@dataclass
class EnetFit:
    """Solution at one (lambda, alpha) on the standardized scale."""
    beta: np.ndarray
    intercept: float
    n_iter: int = 0
    converged: bool = True
    deviance: float = np.nan


class _EnetIterate:
    def __init__(self, X, beta, intercept, l1, l2, config):
        self.X = X
        self.beta = beta
        self.intercept = intercept
        self.l1 = l1
        self.l2 = l2
        self.config = config

    def linear_predictor(self) -> np.ndarray:
        return self.intercept + self.X @ self.beta

    def solve_weighted(self, z, ww) -> Tuple[int, bool]:
        self.intercept, n_iter, converged = enet_coordinate_descent(
            self.X,
            np.ascontiguousarray(z, dtype=np.float64),
            np.ascontiguousarray(ww, dtype=np.float64),
            self.beta,
            float(self.intercept),
            self.l1,
            self.l2,
            self.config.max_iter,
            self.config.tol,
        )
        return int(n_iter), bool(converged)


class ElasticNetPath:
    """
    Solves the stacked adaptive elastic net at single (lambda, alpha) points.

    The loss is averaged with the stacked weights (observation weight / M),
    so M identical imputations give the same fit as one copy. Instances hold
    only read-only data and may be shared by threads running separate paths.
    """

    def __init__(
        self,
        data: StackedDataset,
        penalty: PenaltyContext,
        family: Family,
        config: SolverConfig,
    ):
        if penalty.n_features != data.n_features:
            raise DimensionError("penalty and data disagree on the number of features")
        self.data = data
        self.penalty = penalty
        self.family = family
        self.config = config
        self._w = data.weights / data.weights.sum()
        self.null = self._null_fit()

    def _solve(self, l1, l2, start: EnetFit) -> EnetFit:
        iterate = _EnetIterate(
            self.data.X, start.beta.copy(), start.intercept, l1, l2, self.config
        )
        res = irls(self.family, self.data.y, self._w, iterate, self.config)
        return EnetFit(iterate.beta, float(iterate.intercept), res.n_iter, res.converged, res.deviance)

    def _null_fit(self) -> EnetFit:
        p = self.data.n_features
        start = EnetFit(
            beta=np.zeros(p, dtype=np.float64),
            intercept=float(self.family.null_intercept(self.data.y, self._w, self.config.prob_clip)),
        )
        return self._solve(self.penalty.null_l1(), np.zeros(p, dtype=np.float64), start)

    def _boundary(self, fit: EnetFit, denom: np.ndarray) -> float:
        mask = self.penalty.penalized
        eta = fit.intercept + self.data.X @ fit.beta
        resid = self.data.y - self.family.mean(eta)
        grad = np.abs(self.data.X.T @ (self._w * resid))
        return float(np.max(grad[mask] / denom[mask]))

    def lambda_max(self, alpha: float) -> float:
        """
        Smallest lambda at which every lasso-penalized slope is zero.

        Ridge-only variables (pf > 0, adw = 0) stay free in the null fit.
        When alpha < 1 their ridge term depends on lambda itself, so the
        boundary is refined by refitting the null model at the current
        estimate until it stops moving.
        """
        if not self.penalty.penalized.any():
            return 0.0
        denom = max(alpha, ALPHA_FLOOR) * self.penalty.lasso_factors
        fit = self.null
        lam = self._boundary(fit, denom)

        if alpha < 1.0 and self.penalty.ridge_only.any():
            l1 = self.penalty.null_l1()
            for _ in range(BOUNDARY_MAX_ITER):
                fit = self._solve(l1, self.penalty.l2(lam, alpha), fit)
                new = self._boundary(fit, denom)
                done = abs(new - lam) <= self.config.tol * max(new, lam)
                lam = new
                if done:
                    break
            # the refined boundary is only as exact as the inner solves
            return lam * (1.0 + max(LAMBDA_MAX_SLACK, 100.0 * self.config.tol))

        return lam * (1.0 + LAMBDA_MAX_SLACK)

    def fit(self, lam: float, alpha: float, start: EnetFit) -> EnetFit:
        return self._solve(
            self.penalty.l1(lam, alpha), self.penalty.l2(lam, alpha), start
        )

    def coefficients(self, fit: EnetFit) -> np.ndarray:
        """Intercept followed by slopes, on the original covariate scale."""
        b, b0 = self.data.unstandardize(fit.beta, fit.intercept)
        return np.concatenate(([b0], b))
