"""Accuracy metrics for eigen-decompositions.

All metrics are relative and dimensionless so that they can be compared
across sizes and condition numbers in the evaluation sweeps.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np


def _fro(M: np.ndarray) -> float:
    return float(np.linalg.norm(M, ord="fro"))


def relative_residual(A: np.ndarray, V: np.ndarray, D: np.ndarray) -> float:
    """||A V - V D||_F / ||A||_F (absolute when A is zero)."""
    A = np.asarray(A, dtype=np.float64)
    R = A @ V - V @ D
    scale = _fro(A)
    return _fro(R) / scale if scale > 0.0 else _fro(R)


def orthogonality_error(V: np.ndarray) -> float:
    """||V^T V - I||_F."""
    V = np.asarray(V, dtype=np.float64)
    return _fro(V.T @ V - np.eye(V.shape[1]))


def schur_similarity_error(A: np.ndarray, T: np.ndarray, Q: np.ndarray) -> float:
    """||A - Q T Q^T||_F / ||A||_F."""
    A = np.asarray(A, dtype=np.float64)
    R = A - Q @ T @ Q.T
    scale = _fro(A)
    return _fro(R) / scale if scale > 0.0 else _fro(R)


def match_eigenvalues(computed: np.ndarray, reference: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Pair each reference eigenvalue with its nearest unused computed one.

    Greedy, largest-magnitude reference first. Returns (computed_matched,
    reference) as complex arrays in reference order.
    """
    computed = np.asarray(computed, dtype=np.complex128)
    reference = np.asarray(reference, dtype=np.complex128)
    if computed.shape != reference.shape:
        raise ValueError("computed and reference must have the same length")

    used = np.zeros(computed.shape[0], dtype=bool)
    matched = np.empty_like(reference)
    for j in np.argsort(-np.abs(reference), kind="stable"):
        dist = np.abs(computed - reference[j])
        dist[used] = np.inf
        k = int(np.argmin(dist))
        used[k] = True
        matched[j] = computed[k]
    return matched, reference


def max_relative_eigenvalue_error(
    real: np.ndarray,
    imag: np.ndarray,
    reference: np.ndarray,
    scale: float = 0.0,
) -> float:
    """max_j |lambda_j - ref_j| / max(|ref_j|, scale) after nearest matching.

    scale guards against division by tiny reference eigenvalues; pass e.g.
    eps * ||A|| for it.
    """
    computed = np.asarray(real, dtype=np.float64) + 1j * np.asarray(imag, dtype=np.float64)
    if computed.size == 0:
        return 0.0
    matched, ref = match_eigenvalues(computed, reference)
    denom = np.maximum(np.abs(ref), scale)
    err = np.abs(matched - ref)
    with np.errstate(divide="ignore", invalid="ignore"):
        rel = np.where(denom > 0.0, err / np.where(denom > 0.0, denom, 1.0), err)
    return float(np.max(rel))
