"""backsolve.py

Eigenvectors of a real Schur factor by back substitution.

For each eigenvalue the singular system (T - lambda I) x = 0 is solved
directly, exploiting the quasi-triangular structure: x is fixed to 1 at the
eigenvalue's own slot and the rows above are solved bottom-up, one row per
1x1 block and a 2x2 real system per complex block. Complex eigenvalues are
handled on (real, imag) component pairs with scaled complex division, never
with a native complex type. The Schur-basis vectors are then mapped back with
V = Q X and normalized.

Vanishing divisors are replaced by eps * ||T|| so repeated eigenvalues and
already-triangular inputs never abort the solve.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import InvalidIndexError
from .francis import EPS, hessenberg_norm, is_quasi_triangular
from .schur import ComplexConjugatePair, Eigenpair, RealEigenpair, eigenvalue_arrays, schur_blocks, split_real_block


def cdiv(xr: float, xi: float, yr: float, yi: float) -> Tuple[float, float]:
    """(xr + i xi) / (yr + i yi), scaling by the larger-magnitude component of y."""
    if abs(yr) > abs(yi):
        r = yi / yr
        den = yr + r * yi
        return (xr + r * xi) / den, (xi - r * xr) / den
    r = yr / yi
    den = yi + r * yr
    return (r * xr + xi) / den, (r * xi - xr) / den


# -----------------------------------------------------------------------------
# Schur-basis solves
# -----------------------------------------------------------------------------


def _solve_real(T: np.ndarray, d: np.ndarray, e: np.ndarray, col: int, norm: float, eps: float) -> np.ndarray:
    n = T.shape[0]
    p = d[col]
    x = np.zeros((n,), dtype=np.float64)
    x[col] = 1.0

    l = col
    z = s = 0.0
    for i in range(col - 1, -1, -1):
        w = T[i, i] - p
        r = float(T[i, l : col + 1] @ x[l : col + 1])
        if e[i] < 0.0:
            # Second row of a complex block: keep it for the row above.
            z, s = w, r
            continue

        l = i
        if e[i] == 0.0:
            x[i] = -r / w if w != 0.0 else -r / (eps * norm)
        else:
            xx = T[i, i + 1]
            y = T[i + 1, i]
            q = (d[i] - p) * (d[i] - p) + e[i] * e[i]
            t = (xx * s - z * r) / q
            x[i] = t
            if abs(xx) > abs(z):
                x[i + 1] = (-r - w * t) / xx
            else:
                x[i + 1] = (-s - y * t) / z

        # Overflow control
        t = abs(x[i])
        if (eps * t) * t > 1:
            x[i : col + 1] /= t
    return x


def _solve_complex(
    T: np.ndarray, d: np.ndarray, e: np.ndarray, col: int, norm: float, eps: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Solve for p + i q with q = e[col] < 0; returns (xr, xi).

    xr + i xi is the eigenvector of the conjugate p - i q, i.e. of the
    positive member stored at col - 1.
    """
    n = T.shape[0]
    p = d[col]
    q = e[col]
    m = col - 1
    xr = np.zeros((n,), dtype=np.float64)
    xi = np.zeros((n,), dtype=np.float64)

    # Last component purely imaginary, so the block itself is triangular.
    if abs(T[col, m]) > abs(T[m, col]):
        xr[m] = q / T[col, m]
        xi[m] = -(T[col, col] - p) / T[col, m]
    else:
        xr[m], xi[m] = cdiv(0.0, -T[m, col], T[m, m] - p, q)
    xi[col] = 1.0

    l = m
    z = r = s = 0.0
    for i in range(col - 2, -1, -1):
        ra = float(T[i, l : col + 1] @ xr[l : col + 1])
        sa = float(T[i, l : col + 1] @ xi[l : col + 1])
        w = T[i, i] - p
        if e[i] < 0.0:
            z, r, s = w, ra, sa
            continue

        l = i
        if e[i] == 0.0:
            xr[i], xi[i] = cdiv(-ra, -sa, w, q)
        else:
            xx = T[i, i + 1]
            y = T[i + 1, i]
            vr = (d[i] - p) * (d[i] - p) + e[i] * e[i] - q * q
            vi = (d[i] - p) * 2.0 * q
            if vr == 0.0 and vi == 0.0:
                vr = eps * norm * (abs(w) + abs(q) + abs(xx) + abs(y) + abs(z))
            xr[i], xi[i] = cdiv(xx * r - z * ra + q * sa, xx * s - z * sa - q * ra, vr, vi)
            if abs(xx) > abs(z) + abs(q):
                xr[i + 1] = (-ra - w * xr[i] + q * xi[i]) / xx
                xi[i + 1] = (-sa - w * xi[i] - q * xr[i]) / xx
            else:
                xr[i + 1], xi[i + 1] = cdiv(-r - y * xr[i], -s - y * xi[i], z, q)

        # Overflow control
        t = max(abs(xr[i]), abs(xi[i]))
        if (eps * t) * t > 1:
            xr[i : col + 1] /= t
            xi[i : col + 1] /= t
    return xr, xi


def solve_block(
    T: np.ndarray,
    pair: Eigenpair,
    d: np.ndarray,
    e: np.ndarray,
    norm: float,
    eps: float = EPS,
) -> np.ndarray:
    """Schur-basis eigenvector columns for one eigenpair, shape (n, pair.size).

    For a complex pair the two columns are the real and imaginary parts of the
    eigenvector of real + i imag.
    """
    if isinstance(pair, ComplexConjugatePair):
        xr, xi = _solve_complex(T, d, e, pair.index + 1, norm, eps)
        return np.stack([xr, xi], axis=1)
    return _solve_real(T, d, e, pair.index, norm, eps)[:, None]


# -----------------------------------------------------------------------------
# Normalization and public entry points
# -----------------------------------------------------------------------------


def normalize_columns(V: np.ndarray, imag: np.ndarray, eps: float = EPS) -> None:
    """Scale eigenvector columns of V in place to unit 2-norm.

    Columns of a complex pair are scaled jointly. Each block is first divided
    by its max-abs entry, and entries below eps are flushed to zero afterwards.
    """
    n = V.shape[1]
    i = 0
    while i < n:
        width = 2 if imag[i] != 0.0 else 1
        block = V[:, i : i + width]
        peak = float(np.max(np.abs(block))) if block.size else 0.0
        if peak > 0.0:
            block /= peak
            block /= np.linalg.norm(block)
            block[np.abs(block) < eps] = 0.0
        i += width


def _prepare(T: np.ndarray, Q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    T = np.array(T, dtype=np.float64, copy=True)
    Q = np.array(Q, dtype=np.float64, copy=True)
    if T.ndim != 2 or T.shape[0] != T.shape[1]:
        raise ValueError("T must be square")
    if Q.shape != T.shape:
        raise ValueError("Q must have the same shape as T")
    if not is_quasi_triangular(T):
        raise ValueError("T must be quasi-upper-triangular")

    # Real-eigenvalue 2x2 blocks are split first so only complex blocks remain.
    for i in range(T.shape[0] - 1):
        if T[i + 1, i] != 0.0 and (i == 0 or T[i, i - 1] == 0.0):
            split_real_block(T, Q, i)
    return T, Q


def eigenvectors(T: np.ndarray, Q: np.ndarray, eps: float = EPS) -> np.ndarray:
    """Eigenvector matrix V of A = Q T Q^T, columns laid out like the eigenvalue slots."""
    T, Q = _prepare(T, Q)
    n = T.shape[0]
    pairs = schur_blocks(T)
    d, e = eigenvalue_arrays(pairs, n)
    norm = hessenberg_norm(T)

    if norm == 0.0:
        X = np.eye(n, dtype=np.float64)
    else:
        X = np.zeros((n, n), dtype=np.float64)
        for pair in pairs:
            X[:, pair.index : pair.index + pair.size] = solve_block(T, pair, d, e, norm, eps)

    V = Q @ X
    normalize_columns(V, e, eps)
    return V


def eigenvector(
    T: np.ndarray,
    Q: np.ndarray,
    index: int,
    eps: float = EPS,
) -> Tuple[np.ndarray, np.ndarray]:
    """(real, imag) parts of the normalized eigenvector whose block starts at index.

    Raises InvalidIndexError if index is out of range or is the second slot of
    a complex pair.
    """
    T, Q = _prepare(T, Q)
    n = T.shape[0]
    if not (0 <= index < n):
        raise InvalidIndexError(index)
    pairs = schur_blocks(T)
    match = [pair for pair in pairs if pair.index == index]
    if not match:
        raise InvalidIndexError(index, f"index {index} is not the start of a 1x1/2x2 block")
    pair = match[0]

    d, e = eigenvalue_arrays(pairs, n)
    norm = hessenberg_norm(T)
    if norm == 0.0:
        X = np.eye(n, dtype=np.float64)[:, index : index + 1]
    else:
        X = solve_block(T, pair, d, e, norm, eps)

    V = Q @ X
    normalize_columns(V, e[index : index + pair.size], eps)
    if isinstance(pair, RealEigenpair):
        return V[:, 0], np.zeros((n,), dtype=np.float64)
    return V[:, 0], V[:, 1]
