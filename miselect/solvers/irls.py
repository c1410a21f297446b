"""Outer reweighting loop shared by the SAENET and GALASSO engines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple

import numpy as np

from miselect._config import SolverConfig
from miselect.families import Family


class WeightedLeastSquares(Protocol):
    """Iterate of a penalized weighted least squares problem."""

    def linear_predictor(self) -> np.ndarray: ...

    def solve_weighted(self, z: np.ndarray, ww: np.ndarray) -> Tuple[int, bool]: ...


@dataclass
class IRLSResult:
    n_iter: int
    converged: bool
    deviance: float


def irls(
    family: Family,
    y: np.ndarray,
    w: np.ndarray,
    iterate: WeightedLeastSquares,
    config: SolverConfig,
) -> IRLSResult:
    """
    Fit `iterate` to (y, w) under `family`.

    Gaussian needs a single weighted least squares solve. Binomial replaces
    the log-likelihood by its quadratic expansion at the current linear
    predictor and re-solves until the relative deviance change drops below
    `config.tol`. `y` and `w` may be 1D (stacked) or 2D (per imputation);
    all arithmetic here is elementwise.
    """
    clip = config.prob_clip
    if family is Family.GAUSSIAN:
        n_iter, converged = iterate.solve_weighted(y, w)
        dev = family.deviance(y, iterate.linear_predictor(), w)
        return IRLSResult(n_iter, converged, dev)

    eta = iterate.linear_predictor()
    dev_old = family.deviance(y, family.mean(eta), w, clip)
    total = 0
    dev = dev_old
    for _ in range(config.max_irls_iter):
        z, v = family.working(y, eta, clip)
        n_iter, inner_converged = iterate.solve_weighted(z, w * v)
        total += n_iter

        eta = iterate.linear_predictor()
        dev = family.deviance(y, family.mean(eta), w, clip)
        if abs(dev - dev_old) / (abs(dev) + 0.1) < config.tol:
            return IRLSResult(total, inner_converged, dev)
        dev_old = dev

    return IRLSResult(total, False, dev)
