"""Per-variable penalty factors and adaptive weights."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from miselect._errors import DimensionError, InvalidParameterError
from miselect._preprocess import to_numpy


def _as_penalty_vector(values, p: int, name: str) -> np.ndarray:
    if values is None:
        return np.ones(p, dtype=np.float64)
    vec = to_numpy(values).ravel()
    if vec.shape[0] != p:
        raise DimensionError(f"{name} has length {vec.shape[0]}, expected {p}")
    if not np.isfinite(vec).all() or (vec < 0).any():
        raise InvalidParameterError(f"{name} must be finite and non-negative")
    return vec


@dataclass(frozen=True)
class PenaltyContext:
    """
    Validated penalty factors (pf) and adaptive weights (adw) for p variables.

    pf_j = 0 leaves variable j unpenalized. adw_j multiplies only the lasso
    part of the penalty, so pf_j > 0 with adw_j = 0 gives a ridge-only term.
    """
    pf: np.ndarray
    adw: np.ndarray

    @classmethod
    def build(cls, pf, adw, p: int) -> "PenaltyContext":
        return cls(
            pf=_as_penalty_vector(pf, p, "pf"),
            adw=_as_penalty_vector(adw, p, "adw"),
        )

    @property
    def n_features(self) -> int:
        return self.pf.shape[0]

    @property
    def lasso_factors(self) -> np.ndarray:
        return self.pf * self.adw

    @property
    def penalized(self) -> np.ndarray:
        """Variables that some lambda can set to exactly zero."""
        return self.lasso_factors > 0

    def l1(self, lam: float, alpha: float) -> np.ndarray:
        return lam * alpha * self.lasso_factors

    def l2(self, lam: float, alpha: float) -> np.ndarray:
        return lam * (1.0 - alpha) * self.pf

    def group(self, lam: float) -> np.ndarray:
        return lam * self.lasso_factors

    @property
    def ridge_only(self) -> np.ndarray:
        """Variables with a ridge term but no lasso term (pf > 0, adw = 0)."""
        return (self.pf > 0) & ~self.penalized

    def null_l1(self) -> np.ndarray:
        """Thresholds that zero every lasso-penalized slope and free the rest."""
        return np.where(self.penalized, np.inf, 0.0)


def adaptive_weights(coef, n: int) -> np.ndarray:
    """
    Adaptive lasso weights 1 / (|b_j| + 1/n) from a preliminary fit.

    Parameters
    ----------
    coef : array-like
        Preliminary slopes. A length p+1 vector from `select_coefficients`
        should be passed without its intercept, i.e. ``coef[1:]``.
    n : int
        Number of observations; 1/n keeps the weights finite at zero.
    """
    if n < 1:
        raise InvalidParameterError(f"n must be >= 1, got {n}")
    b = np.abs(to_numpy(coef).ravel())
    return 1.0 / (b + 1.0 / n)
