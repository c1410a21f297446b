"""Coordinate descent kernels for penalized weighted least squares."""

from __future__ import annotations

import numpy as np
from numba import njit


@njit(cache=True, nogil=True)
def soft_threshold(u: float, t: float) -> float:
    if u > t:
        return u - t
    if u < -t:
        return u + t
    return 0.0


@njit(cache=True, nogil=True)
def enet_coordinate_descent(
    X: np.ndarray,
    z: np.ndarray,
    ww: np.ndarray,
    beta: np.ndarray,
    intercept: float,
    l1: np.ndarray,
    l2: np.ndarray,
    max_iter: int,
    tol: float,
):
    """
    Minimize 1/2 sum_i ww_i (z_i - b0 - x_i.b)^2 + sum_j l1_j |b_j| + l2_j/2 b_j^2.

    `beta` is updated in place. Returns (intercept, n_iter, converged).
    An infinite l1_j pins b_j at zero.
    """
    n, p = X.shape

    r = np.empty(n, dtype=np.float64)
    for i in range(n):
        eta = intercept
        for j in range(p):
            eta += X[i, j] * beta[j]
        r[i] = z[i] - eta

    w_sum = 0.0
    for i in range(n):
        w_sum += ww[i]

    xv = np.zeros(p, dtype=np.float64)
    for j in range(p):
        s = 0.0
        for i in range(n):
            s += ww[i] * X[i, j] * X[i, j]
        xv[j] = s

    n_iter = 0
    converged = False
    while n_iter < max_iter:
        n_iter += 1
        max_delta = 0.0
        max_coef = abs(intercept)

        for j in range(p):
            old = beta[j]
            denom = xv[j] + l2[j]
            if denom <= 0.0:
                new = 0.0
            else:
                grad = 0.0
                for i in range(n):
                    grad += ww[i] * X[i, j] * r[i]
                new = soft_threshold(grad + xv[j] * old, l1[j]) / denom

            delta = new - old
            if delta != 0.0:
                for i in range(n):
                    r[i] -= delta * X[i, j]
                beta[j] = new
                if abs(delta) > max_delta:
                    max_delta = abs(delta)
            if abs(new) > max_coef:
                max_coef = abs(new)

        if w_sum > 0.0:
            d0 = 0.0
            for i in range(n):
                d0 += ww[i] * r[i]
            d0 /= w_sum
            if d0 != 0.0:
                intercept += d0
                for i in range(n):
                    r[i] -= d0
                if abs(d0) > max_delta:
                    max_delta = abs(d0)

        if max_delta <= tol * max(1.0, max_coef):
            converged = True
            break

    return intercept, n_iter, converged


@njit(cache=True, nogil=True)
def group_coordinate_descent(
    X: np.ndarray,
    z: np.ndarray,
    ww: np.ndarray,
    B: np.ndarray,
    intercepts: np.ndarray,
    pen: np.ndarray,
    max_iter: int,
    tol: float,
):
    """
    Minimize sum_m 1/2 sum_i ww_mi (z_mi - a_m - x_mi.b_m)^2 + sum_j pen_j ||B_j||_2.

    X is (M, n, p), z and ww are (M, n), B is (p, M) and intercepts (M,).
    Each group j takes a majorized step with curvature max_m v_jm, which is
    the exact block minimizer when all v_jm are equal. B and intercepts are
    updated in place. Returns (n_iter, converged).
    """
    M, n, p = X.shape

    R = np.empty((M, n), dtype=np.float64)
    for m in range(M):
        for i in range(n):
            eta = intercepts[m]
            for j in range(p):
                eta += X[m, i, j] * B[j, m]
            R[m, i] = z[m, i] - eta

    w_sum = np.zeros(M, dtype=np.float64)
    for m in range(M):
        for i in range(n):
            w_sum[m] += ww[m, i]

    vmax = np.zeros(p, dtype=np.float64)
    for j in range(p):
        for m in range(M):
            s = 0.0
            for i in range(n):
                s += ww[m, i] * X[m, i, j] * X[m, i, j]
            if s > vmax[j]:
                vmax[j] = s

    u = np.empty(M, dtype=np.float64)
    n_iter = 0
    converged = False
    while n_iter < max_iter:
        n_iter += 1
        max_delta = 0.0
        max_coef = 0.0

        for j in range(p):
            if vmax[j] <= 0.0:
                continue
            norm2 = 0.0
            for m in range(M):
                g = 0.0
                for i in range(n):
                    g += ww[m, i] * X[m, i, j] * R[m, i]
                u[m] = vmax[j] * B[j, m] + g
                norm2 += u[m] * u[m]
            norm = np.sqrt(norm2)

            if norm <= pen[j]:
                shrink = 0.0
            else:
                shrink = (1.0 - pen[j] / norm) / vmax[j]

            for m in range(M):
                new = shrink * u[m]
                delta = new - B[j, m]
                if delta != 0.0:
                    for i in range(n):
                        R[m, i] -= delta * X[m, i, j]
                    B[j, m] = new
                    if abs(delta) > max_delta:
                        max_delta = abs(delta)
                if abs(new) > max_coef:
                    max_coef = abs(new)

        for m in range(M):
            if abs(intercepts[m]) > max_coef:
                max_coef = abs(intercepts[m])
            if w_sum[m] <= 0.0:
                continue
            d0 = 0.0
            for i in range(n):
                d0 += ww[m, i] * R[m, i]
            d0 /= w_sum[m]
            if d0 != 0.0:
                intercepts[m] += d0
                for i in range(n):
                    R[m, i] -= d0
                if abs(d0) > max_delta:
                    max_delta = abs(d0)

        if max_delta <= tol * max(1.0, max_coef):
            converged = True
            break

    return n_iter, converged
