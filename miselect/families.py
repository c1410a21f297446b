"""Response families: inverse link, deviance and IRLS working quantities."""

from __future__ import annotations

from enum import Enum
from typing import Tuple, Union

import numpy as np
from scipy.special import expit, xlogy

from miselect._errors import InvalidParameterError


class Family(str, Enum):
    """Loss used for fitting and for scoring held-out folds."""

    GAUSSIAN = "gaussian"
    BINOMIAL = "binomial"

    @classmethod
    def resolve(cls, family: Union[str, "Family"]) -> "Family":
        try:
            return cls(family)
        except ValueError:
            raise InvalidParameterError(
                f"family must be 'gaussian' or 'binomial', got {family!r}"
            ) from None

    def mean(self, eta: np.ndarray) -> np.ndarray:
        """Inverse link."""
        if self is Family.BINOMIAL:
            return expit(eta)
        return eta

    def unit_deviance(self, y: np.ndarray, mu: np.ndarray, prob_clip: float = 1e-5) -> np.ndarray:
        if self is Family.BINOMIAL:
            mu = np.clip(mu, prob_clip, 1.0 - prob_clip)
            return -2.0 * (xlogy(y, mu) + xlogy(1.0 - y, 1.0 - mu))
        return (y - mu) ** 2

    def deviance(self, y: np.ndarray, mu: np.ndarray, w: np.ndarray, prob_clip: float = 1e-5) -> float:
        """Weighted sum of unit deviances."""
        return float(np.sum(w * self.unit_deviance(y, mu, prob_clip)))

    def working(
        self, y: np.ndarray, eta: np.ndarray, prob_clip: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Working response and IRLS weights for a quadratic approximation at eta.

        Probabilities are clipped to [prob_clip, 1 - prob_clip] so the weights
        mu * (1 - mu) stay bounded away from zero.
        """
        if self is Family.BINOMIAL:
            mu = np.clip(expit(eta), prob_clip, 1.0 - prob_clip)
            v = mu * (1.0 - mu)
            return eta + (y - mu) / v, v
        return y, np.ones_like(eta)

    def null_intercept(self, y: np.ndarray, w: np.ndarray, prob_clip: float = 1e-5) -> np.ndarray:
        """Intercept of the intercept-only fit (along the last axis)."""
        ybar = np.sum(w * y, axis=-1) / np.sum(w, axis=-1)
        if self is Family.BINOMIAL:
            ybar = np.clip(ybar, prob_clip, 1.0 - prob_clip)
            return np.log(ybar / (1.0 - ybar))
        return ybar

    def check_response(self, y: np.ndarray) -> None:
        if self is Family.BINOMIAL and not np.isin(y, (0.0, 1.0)).all():
            raise InvalidParameterError("binomial responses must be coded 0/1")
