"""Exception types raised by schurlas."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np


class SchurlasError(Exception):
    """Base class for schurlas errors."""


class InvalidIndexError(SchurlasError, IndexError):
    """An eigenvalue/eigenvector index is out of range or not a block start."""

    def __init__(self, index: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"index {index} out of range")
        self.index = index


class ConvergenceFailure(SchurlasError, RuntimeError):
    """The Francis iteration hit its iteration cap.

    Carries the partially deflated state so a caller can decide whether the
    eigenvalues isolated so far are usable. ``deflated`` counts eigenvalues
    below the active window, ``active_window`` is the inclusive (lo, hi)
    range still unreduced.
    """

    def __init__(
        self,
        *,
        iterations: int,
        max_iterations: int,
        deflated: int,
        active_window: Tuple[int, int],
        schur: Optional[np.ndarray] = None,
        vectors: Optional[np.ndarray] = None,
    ) -> None:
        lo, hi = active_window
        super().__init__(
            f"Francis QR did not converge after {iterations} iterations "
            f"(cap={max_iterations}); {deflated} eigenvalue(s) deflated, "
            f"active window [{lo}, {hi}]"
        )
        self.iterations = iterations
        self.max_iterations = max_iterations
        self.deflated = deflated
        self.active_window = active_window
        self.schur = schur
        self.vectors = vectors
