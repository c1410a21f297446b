"""Stacking of imputed datasets into one weighted design."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from miselect._errors import DimensionError


@dataclass
class StackedDataset:
    """
    M imputations stacked row-wise: block m holds rows m*n .. (m+1)*n - 1.

    `X` is centered (and scaled, if standardized) with the weighted moments
    of the stacked rows; `center` and `scale` undo that on coefficients.
    `weights` are the observation weights tiled M times and divided by M.
    """
    X: np.ndarray
    y: np.ndarray
    weights: np.ndarray
    center: np.ndarray
    scale: np.ndarray
    n_obs: int
    n_imputations: int

    @property
    def n_features(self) -> int:
        return self.X.shape[1]

    def unstandardize(self, beta: np.ndarray, intercept: float) -> Tuple[np.ndarray, float]:
        b = beta / self.scale
        return b, float(intercept - np.dot(self.center, b))


def _weighted_moments(X: np.ndarray, w: np.ndarray, standardize: bool):
    w_sum = w.sum()
    center = w @ X / w_sum
    if standardize:
        var = w @ (X - center) ** 2 / w_sum
        scale = np.where(var > 1e-12, np.sqrt(var), 1.0)
    else:
        scale = np.ones(X.shape[1], dtype=np.float64)
    return center, scale


def stack_imputations(
    X_list: Sequence[np.ndarray],
    y_list: Sequence[np.ndarray],
    obs_weights: Optional[np.ndarray] = None,
    standardize: bool = True,
) -> StackedDataset:
    """
    Build the (n*M) x p stacked design with weights obs_weights / M.

    Parameters
    ----------
    X_list : sequence of ndarray of shape (n, p)
        One completed design matrix per imputation.
    y_list : sequence of ndarray of shape (n,)
        One response per imputation.
    obs_weights : ndarray of shape (n,), optional
        Per-observation weights shared across imputations. Default ones.
    standardize : bool
        Scale columns to unit weighted variance. Columns are always centered.

    Returns
    -------
    StackedDataset
    """
    M = len(X_list)
    if M == 0 or len(y_list) != M:
        raise DimensionError("X_list and y_list must hold the same, non-zero number of imputations")
    n, p = np.shape(X_list[0])
    for m in range(M):
        if np.shape(X_list[m]) != (n, p):
            raise DimensionError(f"Imputation {m}: X has shape {np.shape(X_list[m])}, expected ({n}, {p})")
        if np.shape(y_list[m]) != (n,):
            raise DimensionError(f"Imputation {m}: y has shape {np.shape(y_list[m])}, expected ({n},)")

    if obs_weights is None:
        obs_weights = np.ones(n, dtype=np.float64)
    if np.shape(obs_weights) != (n,):
        raise DimensionError(f"obs_weights has shape {np.shape(obs_weights)}, expected ({n},)")

    X = np.vstack([np.asarray(Xm, dtype=np.float64) for Xm in X_list])
    y = np.concatenate([np.asarray(ym, dtype=np.float64) for ym in y_list])
    w = np.tile(np.asarray(obs_weights, dtype=np.float64), M) / M

    center, scale = _weighted_moments(X, w, standardize)
    X = np.ascontiguousarray((X - center) / scale)

    return StackedDataset(
        X=X,
        y=y,
        weights=w,
        center=center,
        scale=scale,
        n_obs=n,
        n_imputations=M,
    )


@dataclass
class ImputationBlocks:
    """
    Imputations kept separate as an (M, n, p) array, each block centered and
    scaled with its own moments. Used by the group lasso engine.
    """
    X: np.ndarray
    y: np.ndarray
    center: np.ndarray
    scale: np.ndarray

    @property
    def n_imputations(self) -> int:
        return self.X.shape[0]

    @property
    def n_obs(self) -> int:
        return self.X.shape[1]

    @property
    def n_features(self) -> int:
        return self.X.shape[2]

    def unstandardize(self, B: np.ndarray, intercepts: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """B is p x M, intercepts length M."""
        b = B / self.scale.T
        a = intercepts - np.einsum("mj,jm->m", self.center, b)
        return b, a


def standardize_blocks(
    X_list: List[np.ndarray],
    y_list: List[np.ndarray],
    standardize: bool = True,
) -> ImputationBlocks:
    """Center (and scale) each imputation with unit observation weights."""
    X = np.stack([np.asarray(Xm, dtype=np.float64) for Xm in X_list])
    y = np.stack([np.asarray(ym, dtype=np.float64) for ym in y_list])
    M, n, p = X.shape
    w = np.ones(n, dtype=np.float64)

    center = np.empty((M, p))
    scale = np.empty((M, p))
    for m in range(M):
        center[m], scale[m] = _weighted_moments(X[m], w, standardize)

    X = np.ascontiguousarray((X - center[:, None, :]) / scale[:, None, :])
    return ImputationBlocks(X=X, y=np.ascontiguousarray(y), center=center, scale=scale)
