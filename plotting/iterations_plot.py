from __future__ import annotations
import argparse
import json
import os
from typing import List, Optional

import numpy as np
import pandas as pd
from bench_common import load_results, plot_metric, run_evaluation, save_figure


def _default_csv_path() -> str:
    here = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(here, "..", "output", "accuracy", "schurlas_accuracy.csv")


def _default_plot_path() -> str:
    here = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(here, "..", "output", "plots", "schurlas_iterations.png")


def iterations_per_n(df: pd.DataFrame) -> pd.DataFrame:
    """Mean/std of QR iterations per eigenvalue, grouped by (impl, n). Failed rows are dropped."""
    for col in ("impl", "n", "iterations"):
        if col not in df.columns:
            raise ValueError(f"Missing required column '{col}' in CSV")
    if "status" in df.columns:
        df = df[df["status"].astype(str) == "ok"]
    if df.empty:
        raise ValueError("No successful rows to summarize")

    df = df.assign(per_eig=df["iterations"].astype(float) / df["n"].astype(float))
    out = df.groupby(["impl", "n"])["per_eig"].agg(["mean", "std"]).reset_index()
    out = out.rename(columns={"mean": "iters_per_eig", "std": "iters_per_eig_std"})
    out["iters_per_eig_std"] = out["iters_per_eig_std"].fillna(0.0)
    return out


def plot_iterations(df: pd.DataFrame, savepath: Optional[str] = None) -> None:
    summary = iterations_per_n(df)
    fig, ax = plot_metric(
        summary,
        "iters_per_eig",
        x_field="n",
        group_by="impl",
        metric_std="iters_per_eig_std",
        label_fmt="{group}",
        xlabel="Matrix Size (N)",
        ylabel="Francis iterations / eigenvalue",
        title="Francis QR iteration count",
    )
    ax.set_xscale("log", base=2)
    ax.set_xticks(sorted(summary["n"].unique()))
    ax.set_xticklabels([str(n) for n in sorted(summary["n"].unique())])
    ax.set_ylim(bottom=0.0, top=max(1.0, float(np.nanmax(summary["iters_per_eig"])) * 1.3))

    save_figure(fig, savepath or _default_plot_path())


def load_perf_json(path: str) -> pd.DataFrame:
    """Flatten a perf_eval.py baseline/results JSON into one row per case."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"JSON not found: {path}")
    with open(path) as f:
        payload = json.load(f)
    df = pd.DataFrame(payload.get("results", []))
    if df.empty:
        raise ValueError(f"No results in {path}")
    return df


def plot_time_vs_n(df: pd.DataFrame, savepath: str) -> None:
    fig, ax = plot_metric(
        df,
        "avg_ms",
        x_field="n",
        group_by="kind",
        metric_std="stddev_ms",
        label_fmt="{group}",
        xlabel="Matrix Size (N)",
        ylabel="Time per compute() [ms]",
        title="schurlas wall time",
        logy=True,
    )
    ax.set_xscale("log", base=2)
    ax.set_xticks(sorted(df["n"].unique()))
    ax.set_xticklabels([str(n) for n in sorted(df["n"].unique())])
    save_figure(fig, savepath)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Plot Francis QR iteration counts from an accuracy sweep")
    parser.add_argument("--run", action="store_true", help="run accuracy_eval.py before plotting")
    parser.add_argument("--csv", default=_default_csv_path(), help="CSV path")
    parser.add_argument("--output", default=None, help="optional path to save the plot (default: output/plots/schurlas_iterations.png)")
    parser.add_argument("--perf-json", default=None, help="optional perf_eval.py JSON; adds a time-vs-N plot")
    parser.add_argument("--output-time", default=None, help="path for the time-vs-N plot (default: output/plots/schurlas_time.png)")
    parser.add_argument(
        "--eval-args",
        nargs=argparse.REMAINDER,
        default=[],
        help="extra args forwarded to accuracy_eval.py (prefix with --)",
    )
    args = parser.parse_args(argv)

    if args.run:
        run_evaluation("accuracy_eval.py", args.csv, args.eval_args)

    df = load_results(args.csv)
    plot_iterations(df, savepath=args.output)

    if args.perf_json:
        here = os.path.dirname(os.path.abspath(__file__))
        time_path = args.output_time or os.path.join(here, "..", "output", "plots", "schurlas_time.png")
        plot_time_vs_n(load_perf_json(args.perf_json), time_path)


if __name__ == "__main__":
    main()
