#!/usr/bin/env python3
"""Accuracy sweep for schurlas.compute against numpy's LAPACK eigensolver.

Matrices are generated with a prescribed 2-norm condition number,

    general:    A = U diag(sigma) W^T          (U, W random orthogonal)
    symmetric:  A = U diag(+-sigma) U^T

with sigma log-spaced between 1 and 10^-log10_cond. One CSV row per sample:

    impl, n, seed, log10_cond, R, O, max_relerr, iterations, status

R is ||AV - VD||_F / ||A||_F, O is ||V^T V - I||_F, max_relerr is the
worst eigenvalue relative error against numpy.linalg.eigvals after nearest
matching. Failed samples keep NaN metrics and status "convergence_failure".
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger("accuracy_eval")

COLUMNS = ["impl", "n", "seed", "log10_cond", "R", "O", "max_relerr", "iterations", "status"]


def _ensure_importable() -> None:
    py_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "python")
    py_dir = os.path.normpath(py_dir)
    if py_dir not in sys.path:
        sys.path.insert(0, py_dir)


def _default_csv_path() -> str:
    here = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(here, "..", "output", "accuracy", "schurlas_accuracy.csv")


def random_orthogonal(n: int, rng: np.random.Generator) -> np.ndarray:
    Z = rng.standard_normal((n, n))
    Q, R = np.linalg.qr(Z)
    # Sign fix so Q is Haar distributed.
    return Q * np.sign(np.where(np.diag(R) == 0.0, 1.0, np.diag(R)))


def make_conditioned_matrix(n: int, log10_cond: float, rng: np.random.Generator, *, symmetric: bool = False) -> np.ndarray:
    """Random n x n matrix whose 2-norm condition number is 10**log10_cond."""
    if n <= 0:
        raise ValueError("n must be positive")
    sigma = np.logspace(0.0, -float(log10_cond), n) if n > 1 else np.ones(1)
    U = random_orthogonal(n, rng)
    if symmetric:
        signs = rng.choice([-1.0, 1.0], size=n)
        M = (U * (signs * sigma)) @ U.T
        return 0.5 * (M + M.T)
    W = random_orthogonal(n, rng)
    return (U * sigma) @ W.T


@dataclass
class Sample:
    impl: str
    n: int
    seed: int
    log10_cond: float
    R: float
    O: float
    max_relerr: float
    iterations: int
    status: str

    def as_row(self) -> Dict[str, object]:
        return {c: getattr(self, c) for c in COLUMNS}


def evaluate_matrix(A: np.ndarray, *, impl: str, seed: int, log10_cond: float) -> Sample:
    from schurlas import ConvergenceFailure, compute
    from schurlas.validation import max_relative_eigenvalue_error, orthogonality_error, relative_residual

    n = A.shape[0]
    try:
        result = compute(A)
    except ConvergenceFailure as e:
        logger.warning("n=%d seed=%d: %s", n, seed, e)
        return Sample(impl, n, seed, log10_cond, np.nan, np.nan, np.nan, e.iterations, "convergence_failure")

    V = result.eigenvector_matrix()
    D = result.block_diagonal_d()
    reference = np.linalg.eigvals(A)
    scale = np.finfo(np.float64).eps * float(np.linalg.norm(A, ord="fro"))
    return Sample(
        impl=impl,
        n=n,
        seed=seed,
        log10_cond=log10_cond,
        R=relative_residual(A, V, D),
        O=orthogonality_error(V),
        max_relerr=max_relative_eigenvalue_error(result.real_eigenvalues(), result.imag_eigenvalues(), reference, scale),
        iterations=result.iterations,
        status="ok",
    )


def run_sweep(
    ns: List[int],
    *,
    samples: int,
    log10_cond_min: float,
    log10_cond_max: float,
    seed: int,
    symmetric: bool = False,
) -> pd.DataFrame:
    impl = "schurlas_sym" if symmetric else "schurlas"
    rows = []
    for n in ns:
        for s in range(samples):
            sample_seed = seed + 100003 * n + s
            rng = np.random.default_rng(sample_seed)
            log10_cond = float(rng.uniform(log10_cond_min, log10_cond_max))
            A = make_conditioned_matrix(n, log10_cond, rng, symmetric=symmetric)
            rows.append(evaluate_matrix(A, impl=impl, seed=sample_seed, log10_cond=log10_cond).as_row())
        logger.info("n=%d: %d samples done", n, samples)
    return pd.DataFrame(rows, columns=COLUMNS)


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    ok = df[df["status"] == "ok"]
    summary = ok.groupby(["impl", "n"]).agg(
        R_max=("R", "max"),
        O_median=("O", "median"),
        relerr_max=("max_relerr", "max"),
        iterations_mean=("iterations", "mean"),
    )
    failures = df.groupby(["impl", "n"])["status"].apply(lambda s: int((s != "ok").sum()))
    summary["failures"] = failures
    return summary.reset_index()


def _parse_ns(values: Optional[str]) -> List[int]:
    if not values:
        return [4, 8, 16, 32]
    parts = [p.strip() for p in values.split(",") if p.strip()]
    if not parts:
        return [4, 8, 16, 32]
    return [int(p) for p in parts]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="schurlas accuracy sweep vs numpy.linalg.eigvals")
    parser.add_argument("--output", default=_default_csv_path(), help="output CSV path")
    parser.add_argument("--ns", default=None, help="comma-separated N list (default: 4,8,16,32)")
    parser.add_argument("--samples", type=int, default=200, help="matrices per N")
    parser.add_argument("--log10-cond-min", type=float, default=0.0)
    parser.add_argument("--log10-cond-max", type=float, default=12.0)
    parser.add_argument("--seed", type=int, default=1234)
    parser.add_argument("--symmetric", action="store_true", help="generate symmetric matrices")
    parser.add_argument("-v", "--verbose", action="store_true", help="log progress")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    _ensure_importable()

    if args.samples <= 0:
        parser.error("--samples must be positive")

    df = run_sweep(
        _parse_ns(args.ns),
        samples=args.samples,
        log10_cond_min=args.log10_cond_min,
        log10_cond_max=args.log10_cond_max,
        seed=args.seed,
        symmetric=args.symmetric,
    )

    out_dir = os.path.dirname(os.path.abspath(args.output))
    os.makedirs(out_dir, exist_ok=True)
    df.to_csv(args.output, index=False)
    print(f"Wrote {len(df)} rows to {args.output}")
    print(summarize(df).to_string(index=False))
    return 1 if (df["status"] != "ok").any() else 0


if __name__ == "__main__":
    raise SystemExit(main())
