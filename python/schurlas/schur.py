"""schur.py

Reading eigenvalues off a real quasi-upper-triangular (real Schur) matrix.

The diagonal is walked top to bottom. A zero subdiagonal entry below position
i closes a 1x1 block; a nonzero one opens a 2x2 block whose eigenvalues come
from the closed-form quadratic

    lambda^2 - tr lambda + det = 0,   disc = tr^2 - 4 det = (a - d)^2 + 4 b c.

disc < 0 gives a conjugate pair (tr/2 +- i sqrt(-disc)/2, positive imaginary
part first); disc >= 0 gives two real eigenvalues, one per slot. The order is
the order along the diagonal; nothing is sorted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class RealEigenpair:
    """A real eigenvalue at diagonal slot `index`."""

    index: int
    value: float

    @property
    def size(self) -> int:
        return 1


@dataclass(frozen=True)
class ComplexConjugatePair:
    """real +- i imag occupying slots index (positive member) and index+1."""

    index: int
    real: float
    imag: float

    @property
    def size(self) -> int:
        return 2


Eigenpair = Union[RealEigenpair, ComplexConjugatePair]


def _block_eigenvalues(T: np.ndarray, i: int) -> Tuple[float, float, float]:
    """Return (re, im, other) for the 2x2 block at i.

    im > 0 marks a complex pair re +- i im; otherwise re and other are the two
    real eigenvalues.
    """
    a, b = float(T[i, i]), float(T[i, i + 1])
    c, d = float(T[i + 1, i]), float(T[i + 1, i + 1])
    p = 0.5 * (a - d)
    half_disc = p * p + b * c  # disc / 4
    mid = 0.5 * (a + d)
    if half_disc < 0.0:
        return mid, float(np.sqrt(-half_disc)), mid

    # Larger-magnitude root first, the other from det / root to avoid
    # cancellation.
    z = p + np.copysign(np.sqrt(half_disc), p)
    first = d + z
    second = d - (b * c) / z if z != 0.0 else first
    return float(first), 0.0, float(second)


def schur_blocks(T: np.ndarray) -> List[Eigenpair]:
    """Split the diagonal of T into tagged 1x1/2x2 eigenpairs."""
    T = np.asarray(T)
    if T.ndim != 2 or T.shape[0] != T.shape[1]:
        raise ValueError("T must be square")
    n = T.shape[0]
    pairs: List[Eigenpair] = []
    i = 0
    while i < n:
        if i + 1 < n and T[i + 1, i] != 0.0:
            re, im, other = _block_eigenvalues(T, i)
            if im > 0.0:
                pairs.append(ComplexConjugatePair(index=i, real=re, imag=im))
            else:
                pairs.append(RealEigenpair(index=i, value=re))
                pairs.append(RealEigenpair(index=i + 1, value=other))
            i += 2
        else:
            pairs.append(RealEigenpair(index=i, value=float(T[i, i])))
            i += 1
    return pairs


def eigenvalue_arrays(pairs: List[Eigenpair], n: int) -> Tuple[np.ndarray, np.ndarray]:
    """Flatten tagged eigenpairs into parallel (real, imag) arrays of length n."""
    real = np.zeros((n,), dtype=np.float64)
    imag = np.zeros((n,), dtype=np.float64)
    for pair in pairs:
        if isinstance(pair, ComplexConjugatePair):
            real[pair.index] = real[pair.index + 1] = pair.real
            imag[pair.index] = pair.imag
            imag[pair.index + 1] = -pair.imag
        else:
            real[pair.index] = pair.value
    return real, imag


def extract_eigenvalues(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return the (real, imag) eigenvalue arrays of quasi-triangular T."""
    T = np.asarray(T)
    return eigenvalue_arrays(schur_blocks(T), T.shape[0])


def split_real_block(T: np.ndarray, Q: np.ndarray, i: int) -> bool:
    """Rotate the 2x2 block at i to upper triangular form if its eigenvalues are real.

    The rotation is applied to rows i, i+1 of T (columns i..), to columns
    i, i+1 of T (rows ..i+1) and to columns i, i+1 of Q, keeping A = Q T Q^T.
    Returns False (and leaves everything untouched) for a complex pair.
    """
    a, b = T[i, i], T[i, i + 1]
    c, d = T[i + 1, i], T[i + 1, i + 1]
    p = 0.5 * (a - d)
    half_disc = p * p + b * c
    if half_disc < 0.0:
        return False
    if c == 0.0:
        return True

    # (z, c) spans the eigenvector of d + z.
    z = p + np.copysign(np.sqrt(half_disc), p)
    scale = abs(c) + abs(z)
    cs, sn = z / scale, c / scale
    r = np.hypot(cs, sn)
    G = np.array([[cs / r, sn / r], [-sn / r, cs / r]])
    T[i : i + 2, i:] = G @ T[i : i + 2, i:]
    T[: i + 2, i : i + 2] = T[: i + 2, i : i + 2] @ G.T
    Q[:, i : i + 2] = Q[:, i : i + 2] @ G.T
    T[i + 1, i] = 0.0
    return True


def diagonalize_symmetric(T: np.ndarray, Q: np.ndarray) -> None:
    """Finish the Schur form of a symmetric matrix as a diagonal one, in place.

    T = Q^T A Q is symmetric up to rounding, so every off-diagonal entry is
    O(eps ||A||). Any 2x2 block left behind (near-equal eigenvalues can leave
    one flagged as a tiny complex pair) is symmetrized and diagonalized by a
    Jacobi rotation applied to Q; everything off the diagonal is then zeroed.
    The columns of Q are the orthonormal eigenvectors afterwards.
    """
    n = T.shape[0]
    i = 0
    while i < n - 1:
        if T[i + 1, i] == 0.0:
            i += 1
            continue
        a, d = T[i, i], T[i + 1, i + 1]
        b = 0.5 * (T[i, i + 1] + T[i + 1, i])
        if b != 0.0:
            tau = (d - a) / (2.0 * b)
            t = (1.0 if tau >= 0.0 else -1.0) / (abs(tau) + np.hypot(1.0, tau))
            cs = 1.0 / np.hypot(1.0, t)
            sn = t * cs
            T[i, i] = a - t * b
            T[i + 1, i + 1] = d + t * b
            Q[:, i : i + 2] = Q[:, i : i + 2] @ np.array([[cs, sn], [-sn, cs]])
        i += 2
    diag = np.diag(T).copy()
    T[...] = 0.0
    T[np.diag_indices(n)] = diag
