#!/usr/bin/env python3

from __future__ import annotations

import argparse
import datetime as _dt
import json
import platform
import statistics
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Case:
    kind: str  # "general" | "symmetric"
    n: int
    seed: int = 0


@dataclass(frozen=True)
class MeasurementKey:
    kind: str
    n: int
    seed: int
    metric: str


@dataclass
class Measurement:
    key: MeasurementKey
    value: float
    avg_ms: float
    stddev_ms: float
    iterations: int = 0


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _ensure_importable(repo_root: Path) -> None:
    # Allow running from a source checkout without installing the package.
    py_dir = str(repo_root / "python")
    if py_dir not in sys.path:
        sys.path.insert(0, py_dir)


def make_case_matrix(case: Case) -> np.ndarray:
    rng = np.random.default_rng(case.seed)
    A = rng.standard_normal((case.n, case.n))
    if case.kind == "symmetric":
        A = 0.5 * (A + A.T)
    elif case.kind != "general":
        raise ValueError(f"unknown case kind '{case.kind}'")
    return A


def _metric_is_higher_better(metric: str) -> bool:
    m = metric.strip().lower()
    if "gflops" in m or "throughput" in m:
        return True
    return False


def _metric_is_lower_better(metric: str) -> bool:
    return not _metric_is_higher_better(metric)


def _time_case(
    case: Case,
    *,
    warmup: int,
    min_time_ms: float,
    min_iters: int,
    max_iters: int,
) -> Measurement:
    from schurlas import compute

    A = make_case_matrix(case)
    for _ in range(warmup):
        compute(A)

    samples: List[float] = []
    total = 0.0
    iterations = 0
    while len(samples) < max_iters and (len(samples) < min_iters or total < min_time_ms):
        t0 = time.perf_counter()
        result = compute(A)
        dt_ms = (time.perf_counter() - t0) * 1e3
        samples.append(dt_ms)
        total += dt_ms
        iterations = result.iterations

    avg = statistics.fmean(samples)
    std = statistics.pstdev(samples) if len(samples) > 1 else 0.0
    return Measurement(
        key=MeasurementKey(kind=case.kind, n=case.n, seed=case.seed, metric="avg_ms"),
        value=avg,
        avg_ms=avg,
        stddev_ms=std,
        iterations=iterations,
    )


def run_cases(
    cases: List[Case],
    *,
    warmup: int = 1,
    min_time_ms: float = 200.0,
    min_iters: int = 3,
    max_iters: int = 50,
) -> List[Measurement]:
    out: List[Measurement] = []
    for case in cases:
        m = _time_case(
            case,
            warmup=warmup,
            min_time_ms=min_time_ms,
            min_iters=min_iters,
            max_iters=max_iters,
        )
        print(f"{case.kind:>9} n={case.n:<4d} seed={case.seed:<3d} {m.avg_ms:10.3f} ms ({m.iterations} QR iterations)")
        out.append(m)
    return out


def load_cases(path: Path) -> List[Case]:
    data = json.loads(path.read_text())
    cases: List[Case] = []
    for item in data.get("cases", []):
        cases.append(Case(kind=item.get("kind", "general"), n=int(item["n"]), seed=int(item.get("seed", 0))))
    return cases


def _save_results_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n")


def measurements_to_payload(measurements: List[Measurement], *, meta: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "meta": meta,
        "results": [
            {
                "kind": m.key.kind,
                "n": m.key.n,
                "seed": m.key.seed,
                "metric": m.key.metric,
                "value": m.value,
                "avg_ms": m.avg_ms,
                "stddev_ms": m.stddev_ms,
                "iterations": m.iterations,
            }
            for m in measurements
        ],
    }


def payload_to_measurements(payload: Dict[str, Any]) -> List[Measurement]:
    out: List[Measurement] = []
    for r in payload.get("results", []):
        key = MeasurementKey(kind=r["kind"], n=int(r["n"]), seed=int(r["seed"]), metric=r["metric"])
        out.append(
            Measurement(
                key=key,
                value=float(r["value"]),
                avg_ms=float(r.get("avg_ms", 0.0)),
                stddev_ms=float(r.get("stddev_ms", 0.0)),
                iterations=int(r.get("iterations", 0)),
            )
        )
    return out


def _index_measurements(measurements: Iterable[Measurement]) -> Dict[MeasurementKey, Measurement]:
    return {m.key: m for m in measurements}


def compare(
    *,
    baseline: List[Measurement],
    current: List[Measurement],
    tolerance: float,
) -> Tuple[bool, List[str]]:
    base = _index_measurements(baseline)
    cur = _index_measurements(current)

    ok = True
    lines: List[str] = []

    missing_in_current = [k for k in base.keys() if k not in cur]
    extra_in_current = [k for k in cur.keys() if k not in base]

    if missing_in_current:
        ok = False
        lines.append(f"Missing {len(missing_in_current)} baseline measurement(s) in current run")
        for k in missing_in_current[:20]:
            lines.append(f"  - missing: {k}")
        if len(missing_in_current) > 20:
            lines.append("  - ...")

    if extra_in_current:
        lines.append(f"Note: {len(extra_in_current)} extra measurement(s) not present in baseline")

    for k, b in base.items():
        c = cur.get(k)
        if c is None:
            continue

        if b.value <= 0:
            continue

        ratio = c.value / b.value
        pct = (ratio - 1.0) * 100.0

        if _metric_is_lower_better(k.metric):
            regressed = ratio > (1.0 + tolerance)
            direction = "higher (worse)"
        else:
            regressed = ratio < (1.0 - tolerance)
            direction = "lower (worse)"

        if regressed:
            ok = False
            lines.append(
                f"REGRESSION {k.kind} n={k.n} seed={k.seed} metric='{k.metric}': "
                f"baseline={b.value:.6g}, current={c.value:.6g} ({pct:+.2f}%, {direction})"
            )

    return ok, lines


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="schurlas perf eval (wall time of compute())")
    p.add_argument(
        "--cases",
        default="",
        help="Path to cases JSON (default: evaluation/perf_cases.json)",
    )
    p.add_argument(
        "--baseline",
        default="evaluation/baselines/perf.json",
        help="Baseline JSON path",
    )
    p.add_argument("--record", action="store_true", help="Record baseline (overwrite baseline file)")
    p.add_argument(
        "--check",
        action="store_true",
        help="Compare current vs baseline and exit nonzero on regression",
    )
    p.add_argument(
        "--tolerance",
        type=float,
        default=0.25,
        help="Allowed relative regression (default: 0.25 = 25%%)",
    )
    p.add_argument("--warmup", type=int, default=1)
    p.add_argument("--min-time", type=float, default=200.0)
    p.add_argument("--min-iters", type=int, default=3)
    p.add_argument("--max-iters", type=int, default=50)

    args = p.parse_args(argv)

    if not args.record and not args.check:
        p.error("Must specify --record or --check")

    repo_root = _repo_root()
    _ensure_importable(repo_root)
    cases_path = Path(args.cases) if args.cases else (repo_root / "evaluation" / "perf_cases.json")
    baseline_path = (repo_root / args.baseline).resolve() if not Path(args.baseline).is_absolute() else Path(args.baseline)

    cases = load_cases(cases_path)
    measurements = run_cases(
        cases,
        warmup=args.warmup,
        min_time_ms=args.min_time,
        min_iters=args.min_iters,
        max_iters=args.max_iters,
    )

    meta = {
        "timestamp": _dt.datetime.now(tz=_dt.timezone.utc).isoformat(),
        "cases": str(cases_path),
        "python": platform.python_version(),
        "numpy": np.__version__,
        "timing": {
            "warmup": args.warmup,
            "min_time_ms": args.min_time,
            "min_iters": args.min_iters,
            "max_iters": args.max_iters,
        },
    }

    payload = measurements_to_payload(measurements, meta=meta)

    if args.record:
        _save_results_json(baseline_path, payload)
        print(f"Wrote baseline: {baseline_path}")
        return 0

    # --check
    if not baseline_path.exists():
        print(f"Baseline not found: {baseline_path}", file=sys.stderr)
        print("Run with --record to create one.", file=sys.stderr)
        return 2

    baseline_payload = json.loads(baseline_path.read_text())
    baseline_measurements = payload_to_measurements(baseline_payload)

    ok, lines = compare(baseline=baseline_measurements, current=measurements, tolerance=args.tolerance)

    if ok:
        print("OK: no performance regressions detected")
        return 0

    print("FAIL: performance regressions detected", file=sys.stderr)
    for ln in lines:
        print(ln, file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
