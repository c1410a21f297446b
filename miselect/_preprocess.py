"""Input validation and conversion for imputed datasets."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from miselect._errors import DimensionError, InvalidParameterError
from miselect.families import Family


# --- Input conversion ---


def to_numpy(data, dtype=np.float64) -> np.ndarray:
    """Convert a DataFrame, Series or nested list to a float array."""
    if isinstance(data, (pd.DataFrame, pd.Series)):
        try:
            return data.to_numpy(dtype=dtype, na_value=np.nan)
        except TypeError:
            arr = data.to_numpy()
            if arr.dtype == object:
                arr = np.where(pd.isna(arr), np.nan, arr)
            return arr.astype(dtype)
    if hasattr(data, "values"):
        return np.asarray(data.values, dtype=dtype)
    return np.asarray(data, dtype=dtype)


def extract_feature_names(X) -> Optional[List[str]]:
    """Extract column names from DataFrame, or None for ndarray."""
    if hasattr(X, "columns"):
        return [str(c) for c in X.columns]
    return None


# --- Validation ---


def validate_imputations(
    X: Sequence, y: Sequence, family: Family
) -> Tuple[List[np.ndarray], List[np.ndarray], List[str]]:
    """
    Convert M imputed (X_m, y_m) pairs to float64 arrays and check shapes.

    Every X_m must be n x p with the same n and p, and every y_m of length n.
    Values must be finite: imputation is assumed to be complete.
    """
    if isinstance(X, (np.ndarray, pd.DataFrame)) or isinstance(y, (np.ndarray, pd.Series)):
        raise DimensionError(
            "X and y must be sequences with one entry per imputation; "
            "wrap a single dataset as [X], [y]."
        )
    X = list(X)
    y = list(y)
    if len(X) == 0:
        raise DimensionError("At least one imputed dataset is required.")
    if len(X) != len(y):
        raise DimensionError(f"Got {len(X)} design matrices but {len(y)} responses.")

    feature_names = extract_feature_names(X[0])
    X_arr = [to_numpy(Xm) for Xm in X]
    y_arr = [to_numpy(ym).ravel() for ym in y]

    if X_arr[0].ndim != 2:
        raise DimensionError(f"Design matrices must be 2D, got shape {X_arr[0].shape}")
    n, p = X_arr[0].shape
    for m, (Xm, ym) in enumerate(zip(X_arr, y_arr)):
        if Xm.ndim != 2 or Xm.shape != (n, p):
            raise DimensionError(
                f"Imputation {m}: X has shape {Xm.shape}, expected ({n}, {p})"
            )
        if ym.shape[0] != n:
            raise DimensionError(f"Imputation {m}: y has {ym.shape[0]} rows but X has {n}")
        if not np.isfinite(Xm).all():
            raise InvalidParameterError(f"Imputation {m}: X contains non-finite values")
        if not np.isfinite(ym).all():
            raise InvalidParameterError(f"Imputation {m}: y contains non-finite values")
        family.check_response(ym)

    if feature_names is None:
        feature_names = [f"x{i}" for i in range(p)]

    return X_arr, y_arr, feature_names


def validate_obs_weights(weights, n: int) -> np.ndarray:
    if weights is None:
        return np.ones(n, dtype=np.float64)
    w = to_numpy(weights).ravel()
    if w.shape[0] != n:
        raise DimensionError(f"weights has length {w.shape[0]}, expected {n}")
    if not np.isfinite(w).all() or (w <= 0).any() or (w > 1).any():
        raise InvalidParameterError("weights must lie in (0, 1]")
    return w


def validate_alphas(alpha) -> np.ndarray:
    alphas = np.atleast_1d(np.asarray(alpha, dtype=np.float64)).ravel()
    if alphas.size == 0:
        raise InvalidParameterError("alpha grid is empty")
    if not np.isfinite(alphas).all() or (alphas < 0).any() or (alphas > 1).any():
        raise InvalidParameterError(f"alpha values must lie in [0, 1], got {alphas.tolist()}")
    return alphas


def validate_lambdas(lambdas) -> Optional[np.ndarray]:
    """Check a caller lambda grid and return it in descending order."""
    if lambdas is None:
        return None
    lam = np.atleast_1d(np.asarray(lambdas, dtype=np.float64)).ravel()
    if lam.size == 0:
        raise InvalidParameterError("lambda grid is empty")
    if not np.isfinite(lam).all() or (lam < 0).any():
        raise InvalidParameterError("lambda values must be finite and non-negative")
    return np.sort(lam)[::-1].copy()
