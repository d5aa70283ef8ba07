"""householder.py

Householder primitives and the dense reduction to upper Hessenberg form.

Reflectors are stored LARFG-style: a vector v with v[0] = 1 and a scalar tau
so that H = I - tau v v^T maps x onto [beta, 0, ..., 0]^T. The reduction
applies one reflector per column k = 0..n-3 from both sides and accumulates
the product into Q, giving

    A = Q H Q^T

with H upper Hessenberg and Q orthogonal.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Householder primitive (LARFG-style)
# -----------------------------------------------------------------------------


def householder_vec(x: np.ndarray) -> Tuple[np.ndarray, float, float]:
    """Return (v, tau, beta) with (I - tau v v^T) x = [beta, 0, ...]^T and v[0]=1.

    beta takes the sign opposite to x[0] so that v[0] = x[0] - beta never
    suffers cancellation. A zero tail yields tau = 0 (the identity).
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("x must be 1D")
    n = x.shape[0]
    if n == 0:
        return x.copy(), 0.0, 0.0
    if n == 1:
        v = x.copy()
        v[0] = 1.0
        return v, 0.0, float(x[0])

    alpha = float(x[0])
    xnorm = float(np.linalg.norm(x[1:]))

    if xnorm == 0.0:
        v = np.zeros_like(x)
        v[0] = 1.0
        return v, 0.0, alpha

    beta = -float(np.copysign(np.hypot(alpha, xnorm), alpha))
    tau = (beta - alpha) / beta
    v = x.copy()
    v /= alpha - beta
    v[0] = 1.0
    return v, tau, beta


def apply_householder_left(panel: np.ndarray, v: np.ndarray, tau: float) -> None:
    """panel <- (I - tau v v^T) panel (acts on rows)."""
    if tau == 0:
        return
    w = v @ panel
    panel -= np.outer(tau * v, w)


def apply_householder_right(panel: np.ndarray, v: np.ndarray, tau: float) -> None:
    """panel <- panel (I - tau v v^T) (acts on cols)."""
    if tau == 0:
        return
    w = panel @ v
    panel -= np.outer(w, tau * v)


# -----------------------------------------------------------------------------
# Hessenberg reduction
# -----------------------------------------------------------------------------


def reduce_to_hessenberg(A: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Reduce a square matrix to upper Hessenberg form.

    Returns fresh arrays (H, Q) with A = Q H Q^T. A itself is not touched.
    Columns whose sub-subdiagonal segment is already zero are skipped.
    Non-finite entries propagate without being detected here.
    """
    A = np.asarray(A)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError("A must be a square 2D array")

    H = np.array(A, dtype=np.float64, copy=True)
    n = H.shape[0]
    Q = np.eye(n, dtype=np.float64)

    skipped = 0
    for k in range(n - 2):
        v, tau, beta = householder_vec(H[k + 1 :, k])
        if tau == 0:
            skipped += 1
            continue

        # Left: rows k+1.. of columns k..; right: columns k+1.. of every row.
        apply_householder_left(H[k + 1 :, k:], v, tau)
        apply_householder_right(H[:, k + 1 :], v, tau)
        apply_householder_right(Q[:, k + 1 :], v, tau)

        H[k + 1, k] = beta
        H[k + 2 :, k] = 0.0

    if skipped:
        logger.debug("hessenberg: skipped %d of %d reflectors", skipped, max(0, n - 2))
    return H, Q


def is_upper_hessenberg(M: np.ndarray, tol: float = 0.0) -> bool:
    """Check that every entry below the first subdiagonal is within tol of zero."""
    M = np.asarray(M)
    n = M.shape[0]
    if n <= 2:
        return True
    below = np.tril(M, k=-2)
    return float(np.max(np.abs(below))) <= tol
