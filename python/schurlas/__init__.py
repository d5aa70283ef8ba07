"""
schurlas: dense real nonsymmetric eigen-decomposition.

Householder reduction to Hessenberg form, Francis double-shift QR to real
Schur form, and eigenvector back substitution, on float64 numpy arrays.

    from schurlas import compute
    result = compute(A)
    result.real_eigenvalues(), result.imag_eigenvalues()
    result.eigenvector_matrix(), result.block_diagonal_d()
"""

from .backsolve import cdiv, eigenvector, eigenvectors
from .decomp import EigenResult, check_matrix, compute, compute_flat, matrix_from_flat
from .errors import ConvergenceFailure, InvalidIndexError, SchurlasError
from .francis import EPS, FrancisConfig, FrancisIterator, IterationReport, IterationState, iterate_to_schur
from .householder import householder_vec, reduce_to_hessenberg
from .schur import (
    ComplexConjugatePair,
    Eigenpair,
    RealEigenpair,
    diagonalize_symmetric,
    extract_eigenvalues,
    schur_blocks,
)

__all__ = [
    "EPS",
    "ComplexConjugatePair",
    "ConvergenceFailure",
    "EigenResult",
    "Eigenpair",
    "FrancisConfig",
    "FrancisIterator",
    "InvalidIndexError",
    "IterationReport",
    "IterationState",
    "RealEigenpair",
    "SchurlasError",
    "cdiv",
    "check_matrix",
    "compute",
    "compute_flat",
    "diagonalize_symmetric",
    "eigenvector",
    "eigenvectors",
    "extract_eigenvalues",
    "householder_vec",
    "iterate_to_schur",
    "matrix_from_flat",
    "reduce_to_hessenberg",
    "schur_blocks",
]

__version__ = "0.1.0"
