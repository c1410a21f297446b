"""Solver configuration."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Optional

from miselect._errors import InvalidParameterError


@dataclass
class SolverConfig:
    """
    Numerical settings shared by the SAENET and GALASSO engines.

    Parameters
    ----------
    nlambda : int
        Number of lambda values when the grid is generated.
    lambda_min_ratio : float, optional
        Smallest lambda as a fraction of lambda_max. If None, 1e-4 when
        n > p, otherwise 1e-2.
    standardize : bool
        Scale columns to unit (weighted) variance before fitting. Coefficients
        are always reported on the original scale.
    tol : float
        Convergence tolerance for both the coordinate descent cycles and the
        IRLS deviance change.
    max_iter : int
        Cap on full coordinate descent cycles per inner solve.
    max_irls_iter : int
        Cap on IRLS reweighting steps (binomial family only).
    prob_clip : float
        Fitted probabilities are clipped to [prob_clip, 1 - prob_clip] when
        forming IRLS weights.
    """
    nlambda: int = 100
    lambda_min_ratio: Optional[float] = None
    standardize: bool = True
    tol: float = 1e-7
    max_iter: int = 10_000
    max_irls_iter: int = 100
    prob_clip: float = 1e-5

    def validate(self) -> "SolverConfig":
        if self.nlambda < 1:
            raise InvalidParameterError(f"nlambda must be >= 1, got {self.nlambda}")
        if self.lambda_min_ratio is not None and not (0 < self.lambda_min_ratio < 1):
            raise InvalidParameterError(
                f"lambda_min_ratio must be in (0, 1), got {self.lambda_min_ratio}"
            )
        if self.tol <= 0:
            raise InvalidParameterError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1 or self.max_irls_iter < 1:
            raise InvalidParameterError("max_iter and max_irls_iter must be >= 1")
        if not (0 < self.prob_clip < 0.5):
            raise InvalidParameterError(f"prob_clip must be in (0, 0.5), got {self.prob_clip}")
        return self


def resolve_config(config: Optional[SolverConfig] = None, **kwargs) -> SolverConfig:
    """Build a config, applying keyword overrides to a copy of `config`."""
    names = {f.name for f in fields(SolverConfig)}
    unknown = sorted(set(kwargs) - names)
    if unknown:
        raise InvalidParameterError(f"Unknown solver options: {unknown}")

    base = {} if config is None else {name: getattr(config, name) for name in names}
    base.update(kwargs)
    return SolverConfig(**base).validate()
