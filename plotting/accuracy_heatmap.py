from __future__ import annotations

import argparse
import os
from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.colors import LogNorm

from bench_common import load_results, run_evaluation, save_figure
import stylesheet


METRIC_INFO = {
    "R": {
        "raw": "R",
        "log": "log10_R",
        "ylabel": r"$\log_{10}(\|AV-VD\|_F/\|A\|_F)$",
        "name": "residual",
    },
    "O": {
        "raw": "O",
        "log": "log10_O",
        "ylabel": r"$\log_{10}(\|V^TV-I\|_F)$",
        "name": "orthogonality",
    },
    "relerr": {
        "raw": "max_relerr",
        "log": "log10_relerr",
        "ylabel": r"$\log_{10}(\mathrm{max\ relative\ error})$",
        "name": "relerr",
    },
}


def _default_csv_path() -> str:
    here = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(here, "..", "output", "accuracy", "schurlas_accuracy.csv")


def _derive_output_paths(base_output: Optional[str], metric: str) -> Tuple[str, str]:
    suffix = METRIC_INFO[metric]["name"]
    if not base_output:
        here = os.path.dirname(os.path.abspath(__file__))
        root = os.path.join(here, "..", "output", "plots", "schurlas_accuracy")
        ext = ".png"
    else:
        root, ext = os.path.splitext(base_output)
        if not ext:
            ext = ".png"
    return f"{root}_{suffix}_heatmap{ext}", f"{root}_{suffix}_mean_lines{ext}"


def prepare_dataframe(df: pd.DataFrame, metric: str) -> pd.DataFrame:
    """Add the log10 metric column; failed rows keep NaN there."""
    info = METRIC_INFO[metric]
    raw_col = info["raw"]
    log_col = info["log"]

    for col in ("log10_cond", raw_col):
        if col not in df.columns:
            raise ValueError(f"Missing required column '{col}' in CSV")

    df = df.copy()
    df[log_col] = np.log10(np.maximum(np.abs(df[raw_col].astype(float)), np.finfo(float).tiny))
    if "status" in df.columns:
        df.loc[df["status"].astype(str) != "ok", log_col] = np.nan
    df = df.replace([np.inf, -np.inf], np.nan)
    df = df.dropna(subset=["log10_cond"])
    return df


def make_bins(values: np.ndarray, bins: int, *, clamp: Optional[Tuple[float, float]] = None) -> np.ndarray:
    if clamp is not None:
        vmin, vmax = clamp
    else:
        vmin = float(np.nanmin(values)) if values.size else np.nan
        vmax = float(np.nanmax(values)) if values.size else np.nan
    if not np.isfinite(vmin) or not np.isfinite(vmax):
        vmin, vmax = -1.0, 1.0
    elif vmin == vmax:
        pad = 1.0 if vmin == 0.0 else max(1.0, abs(vmin) * 0.1)
        vmin, vmax = vmin - pad, vmin + pad
    return np.linspace(vmin, vmax, bins + 1)


def density_histogram(x: np.ndarray, y: np.ndarray, xedges: np.ndarray, yedges: np.ndarray) -> np.ndarray:
    """2D histogram of (x, y) normalized to a probability density, shape (ny, nx)."""
    H, _, _ = np.histogram2d(x, y, bins=[xedges, yedges], density=False)
    H = H.T
    total = float(np.sum(H))
    if total <= 0.0:
        return H
    area = np.outer(np.diff(yedges), np.diff(xedges))
    return H / (total * area)


def bin_means(x: np.ndarray, y: np.ndarray, xedges: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    inds = np.digitize(x, xedges) - 1
    centers = 0.5 * (xedges[:-1] + xedges[1:])
    means = np.full_like(centers, np.nan, dtype=float)
    for i in range(len(centers)):
        yi = y[inds == i]
        yi = yi[np.isfinite(yi)]
        if yi.size:
            means[i] = float(np.mean(yi))
    return centers, means


def bin_failure_rate(x: np.ndarray, y: np.ndarray, xedges: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    inds = np.digitize(x, xedges) - 1
    centers = 0.5 * (xedges[:-1] + xedges[1:])
    rates = np.full_like(centers, np.nan, dtype=float)
    for i in range(len(centers)):
        in_bin = inds == i
        total = int(np.count_nonzero(in_bin))
        if total > 0:
            rates[i] = int(np.count_nonzero(~np.isfinite(y[in_bin]))) / float(total)
    return centers, rates


def _select(df: pd.DataFrame, impls: List[str], ns: List[int]) -> Tuple[pd.DataFrame, List[str], List[int]]:
    available_impls = sorted(set(df["impl"].astype(str).tolist()))
    impls = [imp for imp in impls if imp] or available_impls
    missing = [imp for imp in impls if imp not in available_impls]
    if missing:
        raise ValueError(f"No rows matched impl(s) {missing}")

    available_ns = sorted(set(df["n"].astype(int).tolist()))
    ns = [n for n in ns if n in available_ns] if ns else available_ns
    if not ns:
        raise ValueError("No rows matched requested N values")

    df = df[df["impl"].astype(str).isin(impls) & df["n"].astype(int).isin(ns)].copy()
    if df.empty:
        raise ValueError("No rows matched impl/N filters")
    return df, impls, ns


def plot_multi_heatmap(
    df: pd.DataFrame,
    metric: str,
    *,
    impls: List[str],
    ns: List[int],
    x_bins: int,
    y_bins: int,
    clamp_x: Optional[Tuple[float, float]],
    clamp_y: Optional[Tuple[float, float]],
    log_color: bool,
    output: str,
) -> plt.Figure:
    info = METRIC_INFO[metric]
    log_col = info["log"]

    df, impls, ns = _select(prepare_dataframe(df, metric), impls, ns)
    success = df[np.isfinite(df[log_col].to_numpy())]
    if success.empty:
        raise ValueError(f"No successful rows (finite {log_col}) matched impl/N filters")

    xedges = make_bins(df["log10_cond"].to_numpy(), x_bins, clamp=clamp_x)
    yedges = make_bins(success[log_col].to_numpy(), y_bins, clamp=clamp_y)

    hists = {}
    failures = {}
    for n in ns:
        for impl in impls:
            dfi = df[(df["impl"].astype(str) == impl) & (df["n"].astype(int) == n)]
            ok = dfi[np.isfinite(dfi[log_col].to_numpy())]
            hists[n, impl] = density_histogram(ok["log10_cond"].to_numpy(), ok[log_col].to_numpy(), xedges, yedges)
            failures[n, impl] = bin_failure_rate(dfi["log10_cond"].to_numpy(), dfi[log_col].to_numpy(), xedges)

    all_vals = np.concatenate([h.ravel() for h in hists.values()])
    max_val = float(np.max(all_vals)) if all_vals.size else 0.0
    min_pos = float(np.min(all_vals[all_vals > 0])) if np.any(all_vals > 0) else None
    if log_color and (min_pos is None or max_val <= 0.0):
        log_color = False
    norm = LogNorm(vmin=min_pos, vmax=max_val) if log_color else None

    rows, cols = len(ns), len(impls)
    fig, axes = plt.subplots(rows, cols, sharex=True, sharey=True, figsize=(5 * cols, 4 * rows), constrained_layout=True)
    axes = np.array(axes).reshape(rows, cols)

    mesh = None
    for r, n in enumerate(ns):
        for c, impl in enumerate(impls):
            ax = axes[r, c]
            mesh = ax.pcolormesh(xedges, yedges, hists[n, impl], shading="auto", norm=norm)

            fcenters, frates = failures[n, impl]
            finite = np.isfinite(frates)
            ax_fail = ax.twinx()
            if np.any(finite) and np.any(frates[finite] > 0.0):
                ax_fail.plot(fcenters[finite], frates[finite], color="C3", linewidth=1.6, alpha=0.9)
            ax_fail.set_ylim(0.0, 1.0)
            ax_fail.set_yticks([0.0, 0.5, 1.0])
            if c == cols - 1:
                ax_fail.set_ylabel("Failure probability", color="C3")
                ax_fail.tick_params(axis="y", colors="C3")
            else:
                ax_fail.set_yticklabels([])
                ax_fail.tick_params(axis="y", length=0)

            if r == 0:
                ax.set_title(impl)
            if c == 0:
                ax.set_ylabel(f"N={n}\n" + info["ylabel"])
            if r == rows - 1:
                ax.set_xlabel(r"$\log_{10}(\kappa(A))$")
            ax.grid(True, alpha=0.2)

    if mesh is not None:
        fig.colorbar(mesh, ax=axes.ravel().tolist(), label="Probability density", fraction=0.046, pad=0.04)
    fig.suptitle(f"schurlas accuracy heatmaps ({info['name']})")
    save_figure(fig, output)
    return fig


def plot_mean_lines_by_n(
    df: pd.DataFrame,
    metric: str,
    *,
    impls: List[str],
    ns: List[int],
    x_bins: int,
    clamp_x: Optional[Tuple[float, float]],
    output: str,
) -> plt.Figure:
    info = METRIC_INFO[metric]
    log_col = info["log"]

    df, impls, ns = _select(prepare_dataframe(df, metric), impls, ns)
    xedges = make_bins(df["log10_cond"].to_numpy(), x_bins, clamp=clamp_x)

    fig, axes = plt.subplots(1, len(ns), sharex=True, sharey=True, figsize=(3.4 * len(ns), 3.2))
    axes = np.atleast_1d(axes)

    for ax, n in zip(axes, ns):
        dfn = df[df["n"].astype(int) == n]
        for idx, impl in enumerate(impls):
            dfi = dfn[dfn["impl"].astype(str) == impl]
            centers, means = bin_means(dfi["log10_cond"].to_numpy(), dfi[log_col].to_numpy(), xedges)
            mask = np.isfinite(means)
            ax.plot(centers[mask], means[mask], label=impl, linewidth=1.6, color=stylesheet.impl_color(impl, idx))
        ax.set_title(f"N={n}", fontsize=12)
        if ax is axes[0]:
            ax.set_ylabel(info["ylabel"], fontsize=12)
        ax.set_xlim(xedges[0], xedges[-1])
        ax.set_xlabel(r"$\log_{10}(\kappa(A))$", fontsize=12)
        ax.tick_params(axis="both", which="major", labelsize=10)

    axes[0].legend(loc="upper left", frameon=False, fontsize=10)
    save_figure(fig, output)
    return fig


def parse_clamp(values: Optional[str]) -> Optional[Tuple[float, float]]:
    if not values:
        return None
    parts = [p.strip() for p in values.split(",") if p.strip()]
    if len(parts) != 2:
        raise ValueError("Clamp must be 'min,max'")
    v0 = float(parts[0])
    v1 = float(parts[1])
    return (v0, v1) if v0 <= v1 else (v1, v0)


def parse_ns(values: Optional[str]) -> List[int]:
    if not values:
        return []
    return [int(p) for p in values.split(",") if p.strip()]


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Plot schurlas accuracy heatmaps")
    parser.add_argument("--csv", default=_default_csv_path(), help="input CSV from evaluation/accuracy_eval.py")
    parser.add_argument("--output", default=None, help="output image base path (metric-specific suffixes added)")
    parser.add_argument("--metric", default="all", choices=["all", "R", "O", "relerr"], help="which metric to plot")

    parser.add_argument("--run", action="store_true", help="run accuracy_eval.py before plotting")
    parser.add_argument("--eval-samples", type=int, default=200, help="accuracy_eval --samples value")
    parser.add_argument("--eval-log10-cond-min", type=float, default=0.0)
    parser.add_argument("--eval-log10-cond-max", type=float, default=12.0)
    parser.add_argument("--eval-seed", type=int, default=1234)
    parser.add_argument("--eval-symmetric", action="store_true", help="accuracy_eval --symmetric")

    parser.add_argument("--impls", default=None, help="comma-separated impl list for plots")
    parser.add_argument("--ns", default=None, help="comma-separated N list (default: all in CSV; with --run: 4,8,16,32)")
    parser.add_argument("--x-bins", type=int, default=40, help="number of bins for log10(cond)")
    parser.add_argument("--y-bins", type=int, default=40, help="number of bins for metric")
    parser.add_argument("--clamp-x", default=None, help="clamp log10(cond) to min,max (e.g. --clamp-x=0,12)")
    parser.add_argument("--clamp-y", default=None, help="clamp metric to min,max (e.g. --clamp-y=-17,-8)")
    parser.add_argument("--linear-color", action="store_true", help="use linear color scale instead of log")
    args = parser.parse_args(argv)

    ns = parse_ns(args.ns)
    if args.run:
        extra = [
            f"--ns={','.join(str(n) for n in (ns or [4, 8, 16, 32]))}",
            f"--samples={args.eval_samples}",
            f"--log10-cond-min={args.eval_log10_cond_min}",
            f"--log10-cond-max={args.eval_log10_cond_max}",
            f"--seed={args.eval_seed}",
        ]
        if args.eval_symmetric:
            extra.append("--symmetric")
        run_evaluation("accuracy_eval.py", args.csv, extra)

    df = load_results(args.csv)
    impls = [s.strip() for s in args.impls.split(",")] if args.impls else []
    clamp_x = parse_clamp(args.clamp_x)
    clamp_y = parse_clamp(args.clamp_y)

    metrics = list(METRIC_INFO) if args.metric == "all" else [args.metric]
    for metric in metrics:
        heatmap_output, mean_output = _derive_output_paths(args.output, metric)
        plot_multi_heatmap(
            df,
            metric,
            impls=impls,
            ns=ns,
            x_bins=args.x_bins,
            y_bins=args.y_bins,
            clamp_x=clamp_x,
            clamp_y=clamp_y,
            log_color=not args.linear_color,
            output=heatmap_output,
        )
        plot_mean_lines_by_n(
            df,
            metric,
            impls=impls,
            ns=ns,
            x_bins=args.x_bins,
            clamp_x=clamp_x,
            output=mean_output,
        )
        plt.close("all")


if __name__ == "__main__":
    main()
