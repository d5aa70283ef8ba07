"""francis.py

Implicit double-shift (Francis) QR iteration: upper Hessenberg -> real Schur.

The iteration is an explicit, steppable state machine over an active window
[lo, hi] of the Hessenberg matrix H:

    SEARCHING          scan H[hi, hi-1], H[hi-1, hi-2], ... for a negligible
                       subdiagonal entry; the first one found (from the bottom)
                       is set to exactly zero and fixes lo.
    DEFLATED_1X1       window is 1x1 at the bottom: hi -= 1.
    DEFLATED_2X2       window is 2x2 at the bottom: a real pair is rotated to
                       upper triangular form, a complex pair is kept; hi -= 2.
    SHIFT_AND_SWEEP    double shift from the trailing 2x2 of the window, then
                       one bulge chase lo -> hi with 3x3 (and a final 2x2)
                       Householder reflectors.
    EXCEPTIONAL_SHIFT  same sweep with an ad hoc shift, taken every
                       `exceptional_shift_interval` non-deflating iterations.
    CONVERGED          hi < 0.
    FAILED             total iteration cap reached; raises ConvergenceFailure.

Every reflector/rotation is applied to the whole matrix (rows above the window
and columns right of it included), so that on return A = Q T Q^T holds with T
quasi-upper-triangular, not only its diagonal blocks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .errors import ConvergenceFailure
from .householder import apply_householder_left, apply_householder_right, householder_vec
from .schur import split_real_block

logger = logging.getLogger(__name__)

EPS = 2.0 ** -52


@dataclass(frozen=True)
class FrancisConfig:
    """Knobs for the Francis iteration.

    exceptional_shift_interval: non-deflating iterations on one window between
        exceptional shifts.
    max_iterations_factor: total iteration cap is this times n.
    eps: relative threshold for treating a subdiagonal entry as zero.
    """

    exceptional_shift_interval: int = 10
    max_iterations_factor: int = 30
    eps: float = EPS

    def __post_init__(self) -> None:
        if self.exceptional_shift_interval <= 0:
            raise ValueError("exceptional_shift_interval must be positive")
        if self.max_iterations_factor <= 0:
            raise ValueError("max_iterations_factor must be positive")
        if not (0.0 < self.eps < 1.0):
            raise ValueError("eps must be in (0, 1)")

    def max_iterations(self, n: int) -> int:
        return self.max_iterations_factor * max(1, n)


class IterationState(Enum):
    SEARCHING = "searching"
    SHIFT_AND_SWEEP = "shift_and_sweep"
    EXCEPTIONAL_SHIFT = "exceptional_shift"
    DEFLATED_1X1 = "deflated_1x1"
    DEFLATED_2X2 = "deflated_2x2"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass(frozen=True)
class IterationReport:
    iterations: int
    exceptional_shifts: int
    deflations_1x1: int
    deflations_2x2: int


def hessenberg_norm(H: np.ndarray) -> float:
    """Sum of |H[i, j]| over j >= i-1."""
    return float(np.sum(np.abs(np.triu(H, k=-1))))


class FrancisIterator:
    """Windowed Francis QR state machine operating in place on (H, Q).

    H must be upper Hessenberg; Q is the accumulated orthogonal transform and
    receives every reflector applied to H from the right.
    """

    def __init__(self, H: np.ndarray, Q: np.ndarray, config: Optional[FrancisConfig] = None) -> None:
        if H.ndim != 2 or H.shape[0] != H.shape[1]:
            raise ValueError("H must be square")
        if Q.shape != H.shape:
            raise ValueError("Q must have the same shape as H")
        self.H = H
        self.Q = Q
        self.config = config or FrancisConfig()
        self.n = H.shape[0]
        self.lo = 0
        self.hi = self.n - 1
        self.state = IterationState.SEARCHING
        self.iterations = 0
        self.window_iterations = 0
        self.exceptional_shifts = 0
        self.deflations_1x1 = 0
        self.deflations_2x2 = 0
        self.max_iterations = self.config.max_iterations(self.n)
        self.norm = hessenberg_norm(H)

    @property
    def deflated(self) -> int:
        """Number of eigenvalues isolated below the active window."""
        return self.n - 1 - self.hi

    @property
    def done(self) -> bool:
        return self.state is IterationState.CONVERGED

    def report(self) -> IterationReport:
        return IterationReport(
            iterations=self.iterations,
            exceptional_shifts=self.exceptional_shifts,
            deflations_1x1=self.deflations_1x1,
            deflations_2x2=self.deflations_2x2,
        )

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def step(self) -> IterationState:
        """Perform one transition and return the new state."""
        state = self.state
        if state is IterationState.SEARCHING:
            self.state = self._search()
        elif state is IterationState.DEFLATED_1X1:
            self._deflate_1x1()
            self.state = IterationState.SEARCHING
        elif state is IterationState.DEFLATED_2X2:
            self._deflate_2x2()
            self.state = IterationState.SEARCHING
        elif state is IterationState.SHIFT_AND_SWEEP:
            self._sweep(*self._standard_shift())
            self.state = IterationState.SEARCHING
        elif state is IterationState.EXCEPTIONAL_SHIFT:
            self._sweep(*self._exceptional_shift())
            self.exceptional_shifts += 1
            self.state = IterationState.SEARCHING
        elif state is IterationState.FAILED:
            self._fail()
        return self.state

    def run(self) -> IterationReport:
        while not self.done:
            self.step()
        logger.debug(
            "francis: n=%d converged in %d iterations (%d exceptional, %d+%d deflations)",
            self.n,
            self.iterations,
            self.exceptional_shifts,
            self.deflations_1x1,
            self.deflations_2x2,
        )
        return self.report()

    def _search(self) -> IterationState:
        if self.hi < 0:
            return IterationState.CONVERGED

        H = self.H
        eps = self.config.eps
        l = self.hi
        while l > 0:
            s = abs(H[l - 1, l - 1]) + abs(H[l, l])
            if s == 0.0:
                s = self.norm
            if H[l, l - 1] == 0.0 or abs(H[l, l - 1]) < eps * s:
                H[l, l - 1] = 0.0
                break
            l -= 1
        self.lo = l

        if l == self.hi:
            return IterationState.DEFLATED_1X1
        if l == self.hi - 1:
            return IterationState.DEFLATED_2X2
        if self.iterations >= self.max_iterations:
            return IterationState.FAILED
        interval = self.config.exceptional_shift_interval
        if self.window_iterations > 0 and self.window_iterations % interval == 0:
            return IterationState.EXCEPTIONAL_SHIFT
        return IterationState.SHIFT_AND_SWEEP

    def _fail(self) -> None:
        logger.warning(
            "francis: iteration cap %d reached with window [%d, %d] (%d deflated)",
            self.max_iterations,
            self.lo,
            self.hi,
            self.deflated,
        )
        raise ConvergenceFailure(
            iterations=self.iterations,
            max_iterations=self.max_iterations,
            deflated=self.deflated,
            active_window=(self.lo, self.hi),
            schur=self.H.copy(),
            vectors=self.Q.copy(),
        )

    # -------------------------------------------------------------------------
    # Deflation
    # -------------------------------------------------------------------------

    def _deflate_1x1(self) -> None:
        logger.debug("francis: 1x1 block at %d after %d iterations", self.hi, self.window_iterations)
        self.hi -= 1
        self.window_iterations = 0
        self.deflations_1x1 += 1

    def _deflate_2x2(self) -> None:
        i = self.hi - 1
        if split_real_block(self.H, self.Q, i):
            logger.debug("francis: real 2x2 block at %d split", i)
        else:
            logger.debug("francis: complex 2x2 block at %d", i)

        self.hi -= 2
        self.window_iterations = 0
        self.deflations_2x2 += 1

    # -------------------------------------------------------------------------
    # Shifts and the double-shift sweep
    # -------------------------------------------------------------------------

    def _standard_shift(self) -> Tuple[float, float]:
        """(sum, product) of the eigenvalues of the trailing 2x2 window block."""
        H = self.H
        m = self.hi - 1
        s = H[m, m] + H[m + 1, m + 1]
        t = H[m, m] * H[m + 1, m + 1] - H[m, m + 1] * H[m + 1, m]
        return float(s), float(t)

    def _exceptional_shift(self) -> Tuple[float, float]:
        """Ad hoc shift from subdiagonal magnitudes, alternating window ends."""
        H = self.H
        if (self.window_iterations // self.config.exceptional_shift_interval) % 2 == 1:
            i = self.hi
            s = abs(H[i, i - 1]) + abs(H[i - 1, i - 2])
            h = 0.75 * s + H[i, i]
        else:
            i = self.lo
            s = abs(H[i + 1, i]) + abs(H[i + 2, i + 1])
            h = 0.75 * s + H[i, i]
        logger.debug(
            "francis: exceptional shift on window [%d, %d] after %d iterations",
            self.lo,
            self.hi,
            self.window_iterations,
        )
        # Shift block [[h, -0.4375 s], [s, h]].
        return float(2.0 * h), float(h * h + 0.4375 * s * s)

    def _sweep(self, s: float, t: float) -> None:
        """One implicit double-shift QR step on the window, chasing the bulge down."""
        H, Q = self.H, self.Q
        lo, hi = self.lo, self.hi

        # First column of (H - s1 I)(H - s2 I), scaled by 1/H[lo+1, lo].
        h00, h01 = H[lo, lo], H[lo, lo + 1]
        h10, h11 = H[lo + 1, lo], H[lo + 1, lo + 1]
        x = (h00 * (h00 - s) + t) / h10 + h01
        y = h00 + h11 - s
        z = H[lo + 2, lo + 1]

        for k in range(lo, hi - 1):
            v, tau, beta = householder_vec(np.array([x, y, z]))
            if tau != 0:
                col0 = max(lo, k - 1)
                row1 = min(k + 3, hi) + 1
                apply_householder_left(H[k : k + 3, col0:], v, tau)
                apply_householder_right(H[:row1, k : k + 3], v, tau)
                apply_householder_right(Q[:, k : k + 3], v, tau)
                if k > lo:
                    H[k, k - 1] = beta
                    H[k + 1, k - 1] = 0.0
                    H[k + 2, k - 1] = 0.0

            x = H[k + 1, k]
            y = H[k + 2, k]
            if k < hi - 2:
                z = H[k + 3, k]

        k = hi - 1
        v, tau, beta = householder_vec(np.array([x, y]))
        if tau != 0:
            apply_householder_left(H[k : k + 2, k - 1 :], v, tau)
            apply_householder_right(H[: hi + 1, k : k + 2], v, tau)
            apply_householder_right(Q[:, k : k + 2], v, tau)
            H[k, k - 1] = beta
            H[k + 1, k - 1] = 0.0

        self.iterations += 1
        self.window_iterations += 1


def iterate_to_schur(
    H: np.ndarray,
    Q: np.ndarray,
    config: Optional[FrancisConfig] = None,
) -> IterationReport:
    """Drive Hessenberg H to real Schur form in place, updating Q alongside.

    Raises ConvergenceFailure when the iteration cap is exceeded.
    """
    return FrancisIterator(H, Q, config).run()


def is_quasi_triangular(T: np.ndarray, tol: float = 0.0) -> bool:
    """Upper Hessenberg with no two consecutive nonzero subdiagonal entries."""
    T = np.asarray(T)
    n = T.shape[0]
    if n > 2 and float(np.max(np.abs(np.tril(T, k=-2)))) > tol:
        return False
    sub = np.abs(np.diag(T, k=-1)) > tol
    return not bool(np.any(sub[1:] & sub[:-1]))

