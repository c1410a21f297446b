"""Coefficient lookup on fitted grids, and prediction."""

from __future__ import annotations

from typing import Literal, Optional, Union

import numpy as np

from miselect._errors import DimensionError, InvalidParameterError, NotFoundError
from miselect._preprocess import to_numpy
from miselect.cv import CVResult
from miselect.path import SolutionPath

Rule = Literal["min", "1se"]


def _isclose(grid: np.ndarray, value: float) -> np.ndarray:
    return np.isclose(grid, value, rtol=1e-10, atol=0.0)


def match_alpha(alphas: np.ndarray, alpha: Optional[float]) -> int:
    if alpha is None:
        if len(alphas) != 1:
            raise InvalidParameterError(
                f"alpha must be given for a path over {len(alphas)} alpha values"
            )
        return 0
    hits = np.where(_isclose(alphas, alpha))[0]
    if hits.size == 0:
        raise NotFoundError(f"alpha={alpha} is not in the fitted grid {alphas.tolist()}")
    return int(hits[0])


def match_lambda(lambdas: np.ndarray, lam: float) -> int:
    hits = np.where(_isclose(lambdas, lam))[0]
    if hits.size == 0:
        raise NotFoundError(f"lambda={lam} was not computed for this alpha")
    return int(hits[0])


def grid_index(
    result: Union[SolutionPath, CVResult],
    lam: Optional[float] = None,
    alpha: Optional[float] = None,
    rule: Rule = "min",
):
    """(alpha index, lambda index) of the requested setting."""
    if isinstance(result, CVResult):
        path = result.path
        if lam is None:
            if rule not in ("min", "1se"):
                raise InvalidParameterError(f"rule must be 'min' or '1se', got {rule!r}")
            index = result.index_min if rule == "min" else result.index_1se
            if alpha is not None and match_alpha(path.alphas, alpha) != index[0]:
                raise InvalidParameterError(
                    "alpha conflicts with the CV-selected setting; pass lam as well"
                )
            return path, index
        if alpha is None:
            alpha = result.alpha_min
    elif isinstance(result, SolutionPath):
        path = result
        if lam is None:
            raise InvalidParameterError("lam is required when selecting from a SolutionPath")
    else:
        raise InvalidParameterError(
            f"expected a SolutionPath or CVResult, got {type(result).__name__}"
        )

    a = match_alpha(path.alphas, alpha)
    return path, (a, match_lambda(path.lambdas[a], lam))


def select_coefficients(
    result: Union[SolutionPath, CVResult],
    lam: Optional[float] = None,
    alpha: Optional[float] = None,
    *,
    rule: Rule = "min",
    average: bool = True,
) -> np.ndarray:
    """
    Coefficients (intercept first) stored at one grid point.

    Parameters
    ----------
    result : SolutionPath or CVResult
    lam : float, optional
        Lambda of the grid point. Required for a SolutionPath; for a CVResult
        it defaults to the setting chosen by `rule`.
    alpha : float, optional
        Alpha of the grid point. May be omitted for single-alpha paths and
        GALASSO; for a CVResult with `lam` given it defaults to alpha.min.
    rule : {"min", "1se"}
        CV selection rule used when `lam` is omitted.
    average : bool
        GALASSO only: average the per-imputation coefficients into one
        length p+1 vector. If False, return the (p+1) x M matrix.

    Returns
    -------
    ndarray
        A copy of the stored coefficients; nothing is refit.
    """
    path, index = grid_index(result, lam, alpha, rule)
    coef = path.coef[index].copy()
    if coef.ndim == 2 and average:
        return coef.mean(axis=1)
    return coef


def predict(
    result: Union[SolutionPath, CVResult],
    X,
    lam: Optional[float] = None,
    alpha: Optional[float] = None,
    *,
    rule: Rule = "min",
    type: Literal["link", "response"] = "link",
) -> np.ndarray:
    """Linear predictor or fitted mean for the rows of X at one grid point."""
    path, _ = grid_index(result, lam, alpha, rule)
    coef = select_coefficients(result, lam, alpha, rule=rule, average=True)
    X_arr = to_numpy(X)
    if X_arr.ndim != 2 or X_arr.shape[1] != path.n_features:
        raise DimensionError(
            f"X must have {path.n_features} columns, got shape {X_arr.shape}"
        )
    eta = coef[0] + X_arr @ coef[1:]
    if type == "response":
        return path.family.mean(eta)
    if type != "link":
        raise InvalidParameterError(f"type must be 'link' or 'response', got {type!r}")
    return eta
