"""decomp.py

Public driver: eigenvalues and eigenvectors of a dense real square matrix.

    result = compute(A)
    A @ result.eigenvector_matrix() ~= result.eigenvector_matrix() @ result.block_diagonal_d()

Pipeline: Householder reduction to Hessenberg form, Francis double-shift QR to
real Schur form, eigenvalue extraction from the 1x1/2x2 diagonal blocks, and
eigenvector back substitution mapped through the accumulated orthogonal
transform. Every call works on its own buffers; nothing is shared between
calls, so independent calls may run on separate threads.

Layout of the results
---------------------
Eigenvalues are returned as parallel arrays real[n], imag[n] in the order
they appear on the Schur diagonal. A conjugate pair occupies two consecutive
slots, the member with positive imaginary part first. In the eigenvector
matrix V, a real eigenvalue's column is its eigenvector; for a pair at slots
i, i+1, column i holds the real part and column i+1 the imaginary part of the
eigenvector of real[i] + i imag[i]. D is block diagonal with

    | re  im |
    | -im re |

blocks for the pairs, so that A V = V D.
"""

from __future__ import annotations

import logging
import operator
from typing import List, Optional, Sequence

import numpy as np

from .backsolve import eigenvectors
from .errors import InvalidIndexError
from .francis import FrancisConfig, IterationReport, iterate_to_schur
from .householder import reduce_to_hessenberg
from .schur import Eigenpair, diagonalize_symmetric, eigenvalue_arrays, schur_blocks

logger = logging.getLogger(__name__)


class EigenResult:
    """Eigen-decomposition of one matrix. Accessors return copies."""

    def __init__(
        self,
        *,
        real: np.ndarray,
        imag: np.ndarray,
        vectors: np.ndarray,
        schur: np.ndarray,
        schur_vectors: np.ndarray,
        pairs: List[Eigenpair],
        report: IterationReport,
    ) -> None:
        self._real = real
        self._imag = imag
        self._V = vectors
        self._T = schur
        self._Q = schur_vectors
        self._pairs = list(pairs)
        self._report = report
        for arr in (self._real, self._imag, self._V, self._T, self._Q):
            arr.setflags(write=False)

    def __repr__(self) -> str:
        return f"EigenResult(n={self.n}, iterations={self.iterations})"

    @property
    def n(self) -> int:
        return self._real.shape[0]

    @property
    def number_of_rows(self) -> int:
        return self.n

    @property
    def number_of_columns(self) -> int:
        return self.n

    @property
    def iterations(self) -> int:
        """Total Francis iterations spent on this matrix."""
        return self._report.iterations

    @property
    def report(self) -> IterationReport:
        return self._report

    def _check_index(self, i: int) -> int:
        i = operator.index(i)
        if not (0 <= i < self.n):
            raise InvalidIndexError(i)
        return i

    # -------------------------------------------------------------------------
    # Eigenvalues
    # -------------------------------------------------------------------------

    def real_eigenvalues(self) -> np.ndarray:
        return self._real.copy()

    def imag_eigenvalues(self) -> np.ndarray:
        return self._imag.copy()

    def real_eigenvalue(self, i: int) -> float:
        return float(self._real[self._check_index(i)])

    def imag_eigenvalue(self, i: int) -> float:
        return float(self._imag[self._check_index(i)])

    def eigenpairs(self) -> List[Eigenpair]:
        """Tagged RealEigenpair / ComplexConjugatePair entries in diagonal order."""
        return list(self._pairs)

    # -------------------------------------------------------------------------
    # Eigenvectors
    # -------------------------------------------------------------------------

    def eigenvector_matrix(self) -> np.ndarray:
        return np.array(self._V, copy=True)

    def eigenvector_matrix_transpose(self) -> np.ndarray:
        """V^T; row k is the k-th column of V."""
        return np.array(self._V.T, copy=True)

    def real_eigenvector(self, k: int) -> np.ndarray:
        """Real part of the eigenvector for eigenvalue k."""
        k = self._check_index(k)
        return np.array(self._V[:, k], copy=True)

    def imag_eigenvector(self, k: int) -> np.ndarray:
        """Imaginary part of the eigenvector for eigenvalue k (zeros if real).

        The positive member of a pair takes column k+1, the negative member
        column k-1.
        """
        k = self._check_index(k)
        im = self._imag[k]
        if im == 0.0:
            return np.zeros((self.n,), dtype=np.float64)
        col = k + 1 if im > 0.0 else k - 1
        return np.array(self._V[:, col], copy=True)

    def block_diagonal_d(self) -> np.ndarray:
        n = self.n
        D = np.diag(self._real).astype(np.float64)
        for i in range(n):
            if self._imag[i] > 0.0:
                D[i, i + 1] = self._imag[i]
            elif self._imag[i] < 0.0:
                D[i, i - 1] = self._imag[i]
        return D

    # -------------------------------------------------------------------------
    # Schur factorization
    # -------------------------------------------------------------------------

    def schur_form(self) -> np.ndarray:
        """Quasi-upper-triangular T with A = Q T Q^T."""
        return np.array(self._T, copy=True)

    def schur_vectors(self) -> np.ndarray:
        """Orthogonal Q with A = Q T Q^T."""
        return np.array(self._Q, copy=True)


# -----------------------------------------------------------------------------
# Input checks
# -----------------------------------------------------------------------------


def _rows_of(matrix) -> list:
    if matrix is None:
        raise ValueError("matrix must not be None")
    if isinstance(matrix, np.ndarray) and matrix.ndim != 2:
        raise ValueError(f"matrix must be 2D, got ndim={matrix.ndim}")
    try:
        return list(matrix)
    except TypeError as e:
        raise ValueError("matrix must be a 2D array-like") from e


def check_matrix(matrix, n: Optional[int] = None, strict: bool = True) -> np.ndarray:
    """Validate a square matrix and return a fresh float64 n x n copy.

    With strict=True the input must be exactly n x n. With strict=False rows
    and columns may be longer and only the leading n x n block is used.
    n defaults to the number of rows.
    """
    rows = _rows_of(matrix)
    if not rows:
        raise ValueError("matrix has no rows")
    if n is None:
        n = len(rows)
    n = operator.index(n)
    if n <= 0:
        raise ValueError(f"n must be positive, got {n}")
    if len(rows) < n:
        raise ValueError(f"matrix has {len(rows)} rows, need {n}")
    if strict and len(rows) != n:
        raise ValueError(f"matrix is not square: {len(rows)} rows, expected {n}")

    A = np.empty((n, n), dtype=np.float64)
    for i in range(n):
        if rows[i] is None:
            raise ValueError(f"row {i} is missing")
        row = np.asarray(rows[i], dtype=np.float64)
        if row.ndim != 1:
            raise ValueError(f"row {i} must be 1D")
        size = row.shape[0]
        if size < n or (strict and size != n):
            raise ValueError(f"row {i} has {size} entries, expected {n}")
        A[i, :] = row[:n]

    if not np.all(np.isfinite(A)):
        raise ValueError("matrix contains non-finite values")
    return A


def matrix_from_flat(
    flat: Sequence[float],
    n: int,
    *,
    column_major: bool = False,
    strict: bool = True,
) -> np.ndarray:
    """Build an n x n matrix from a flat row-major (or column-major) sequence."""
    n = operator.index(n)
    if n <= 0:
        raise ValueError(f"n must be positive, got {n}")
    if flat is None:
        raise ValueError("flat matrix must not be None")
    values = np.asarray(flat, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError("flat matrix must be 1D")
    needed = n * n
    if values.shape[0] < needed:
        raise ValueError(f"flat matrix too short: {values.shape[0]} entries for a {n}x{n} matrix")
    if strict and values.shape[0] != needed:
        raise ValueError(f"flat matrix has {values.shape[0]} entries, expected {needed}")
    return values[:needed].reshape((n, n), order="F" if column_major else "C").copy()


# -----------------------------------------------------------------------------
# Public driver
# -----------------------------------------------------------------------------


def compute(
    matrix,
    n: Optional[int] = None,
    *,
    strict: bool = True,
    config: Optional[FrancisConfig] = None,
) -> EigenResult:
    """Eigenvalues and eigenvectors of a real square matrix.

    The input is copied and never modified. Raises ValueError for malformed
    input and ConvergenceFailure if the QR iteration exceeds its cap.
    """
    A = check_matrix(matrix, n, strict)
    config = config or FrancisConfig()
    size = A.shape[0]
    symmetric = bool(np.array_equal(A, A.T))

    H, Q = reduce_to_hessenberg(A)
    report = iterate_to_schur(H, Q, config)

    # Schur vectors of a symmetric matrix are its orthonormal eigenvectors.
    if symmetric:
        diagonalize_symmetric(H, Q)
    pairs = schur_blocks(H)
    real, imag = eigenvalue_arrays(pairs, size)
    V = Q.copy() if symmetric else eigenvectors(H, Q, eps=config.eps)

    logger.debug(
        "compute: n=%d, symmetric=%s, %d complex pair(s), %d iterations",
        size,
        symmetric,
        int(np.count_nonzero(imag > 0.0)),
        report.iterations,
    )
    return EigenResult(
        real=real,
        imag=imag,
        vectors=V,
        schur=H,
        schur_vectors=Q,
        pairs=pairs,
        report=report,
    )


def compute_flat(
    flat: Sequence[float],
    n: int,
    *,
    column_major: bool = False,
    strict: bool = True,
    config: Optional[FrancisConfig] = None,
) -> EigenResult:
    """compute() for a matrix stored as a flat sequence of n*n values."""
    A = matrix_from_flat(flat, n, column_major=column_major, strict=strict)
    return compute(A, config=config)
