"""Grouped adaptive lasso (GALASSO) engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from miselect._config import SolverConfig
from miselect._errors import DimensionError
from miselect.families import Family
from miselect.penalty import PenaltyContext
from miselect.solvers.irls import irls
from miselect.solvers.enet import LAMBDA_MAX_SLACK
from miselect.solvers.kernels import group_coordinate_descent
from miselect.stacking import ImputationBlocks


@dataclass
class GroupFit:
    """Per-imputation solution at one lambda: B is p x M, intercepts length M."""
    B: np.ndarray
    intercepts: np.ndarray
    n_iter: int = 0
    converged: bool = True
    deviance: float = np.nan


class _GroupIterate:
    def __init__(self, X, B, intercepts, pen, config):
        self.X = X
        self.B = B
        self.intercepts = intercepts
        self.pen = pen
        self.config = config

    def linear_predictor(self) -> np.ndarray:
        return self.intercepts[:, None] + np.einsum("mij,jm->mi", self.X, self.B)

    def solve_weighted(self, z, ww) -> Tuple[int, bool]:
        n_iter, converged = group_coordinate_descent(
            self.X,
            np.ascontiguousarray(z, dtype=np.float64),
            np.ascontiguousarray(ww, dtype=np.float64),
            self.B,
            self.intercepts,
            self.pen,
            self.config.max_iter,
            self.config.tol,
        )
        return int(n_iter), bool(converged)


class GroupLassoPath:
    """
    Solves the grouped adaptive lasso at single lambda values.

    Every imputation keeps its own slopes and intercept; the penalty on the
    Euclidean norm of each variable's M slopes zeroes them together, so all
    imputations share one selection.
    """

    def __init__(
        self,
        data: ImputationBlocks,
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
        M, n = data.y.shape
        self._w = np.full((M, n), 1.0 / n, dtype=np.float64)
        self.null = self._null_fit()

    def _solve(self, pen, start: GroupFit) -> GroupFit:
        iterate = _GroupIterate(
            self.data.X, start.B.copy(), start.intercepts.copy(), pen, self.config
        )
        res = irls(self.family, self.data.y, self._w, iterate, self.config)
        # irls sums the M per-imputation mean deviances; report their mean
        deviance = res.deviance / self.data.n_imputations
        return GroupFit(iterate.B, iterate.intercepts, res.n_iter, res.converged, deviance)

    def _null_fit(self) -> GroupFit:
        p, M = self.data.n_features, self.data.n_imputations
        intercepts = self.family.null_intercept(self.data.y, self._w, self.config.prob_clip)
        start = GroupFit(
            B=np.zeros((p, M), dtype=np.float64),
            intercepts=np.asarray(intercepts, dtype=np.float64),
        )
        return self._solve(self.penalty.null_l1(), start)

    def lambda_max(self, alpha: float = 1.0) -> float:
        """Smallest lambda at which every penalized group is zero."""
        mask = self.penalty.penalized
        if not mask.any():
            return 0.0
        eta = _GroupIterate(self.data.X, self.null.B, self.null.intercepts, None, self.config).linear_predictor()
        resid = self._w * (self.data.y - self.family.mean(eta))
        grad = np.einsum("mi,mij->jm", resid, self.data.X)
        norms = np.sqrt(np.sum(grad ** 2, axis=1))
        return float(np.max(norms[mask] / self.penalty.lasso_factors[mask])) * (1.0 + LAMBDA_MAX_SLACK)

    def fit(self, lam: float, alpha: float, start: GroupFit) -> GroupFit:
        return self._solve(self.penalty.group(lam), start)

    def coefficients(self, fit: GroupFit) -> np.ndarray:
        """(p+1) x M: intercepts in row 0, original covariate scale."""
        b, a = self.data.unstandardize(fit.B, fit.intercepts)
        return np.vstack((a[None, :], b))
