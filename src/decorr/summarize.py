#!/usr/bin/env python3
"""
Aggregate the per-experiment ``Results.csv`` files of a results tree.

Walks:
  <results>/<gain>/<movement>/<exposure>/Results.csv

Saves:
  * <results>/summary.csv with one row per experiment: number of frames and
    mean / std of every numeric column
  * optionally <results>/plots/<gain>_<movement>_<exposure>.png with MIG,
    confidence and displacement over the frames
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from decorr.results import RESULTS_FILENAME
from decorr.utils import setup_logging

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "summary.csv"
KEY_COLS = ["gain", "movement", "exposure"]


def collect_results(results_root: Path) -> pd.DataFrame:
    """Read every results CSV below the root into one table.

    :param results_root: root of the results tree
    :return: DataFrame with the CSV columns plus gain, movement, exposure and frame
    """
    tables = []
    for csv_path in sorted(Path(results_root).glob(f"*/*/*/{RESULTS_FILENAME}")):
        df = pd.read_csv(csv_path)
        exposure_dir = csv_path.parent
        df.insert(0, "frame", range(len(df)))
        df.insert(0, "exposure", exposure_dir.name)
        df.insert(0, "movement", exposure_dir.parent.name)
        df.insert(0, "gain", exposure_dir.parent.parent.name)
        tables.append(df)
    if not tables:
        return pd.DataFrame(columns=[*KEY_COLS, "frame"])
    return pd.concat(tables, ignore_index=True)


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    """Compute mean and std (ddof=0) of the numeric columns per experiment.

    Columns that are empty for an experiment (e.g. the error columns) are left out.

    :param df: table from :func:`collect_results`
    :return: one row per experiment with ``num_frames`` and ``<col>_mean``/``<col>_std``
    """
    rows = []
    for keys, group in df.groupby(KEY_COLS, sort=True):
        out = dict(zip(KEY_COLS, keys, strict=True))
        out["num_frames"] = len(group)
        for col in group.columns:
            if col in KEY_COLS or col == "frame":
                continue
            values = group[col]
            if not np.issubdtype(values.dtype, np.number) or values.isna().all():
                continue
            out[f"{col}_mean"] = float(values.mean())
            out[f"{col}_std"] = float(values.std(ddof=0))
        rows.append(out)
    return pd.DataFrame(rows)


def plot_experiment(df: pd.DataFrame, out_path: Path) -> None:
    """Plot MIG, confidence and displacement of one experiment over its frames.

    :param df: rows of a single experiment
    :param out_path: PNG file to write
    """
    fig, axes = plt.subplots(3, 1, figsize=(10, 9), sharex=True)
    axes[0].plot(df["frame"], df["MIG"], marker="o", color="tab:blue")
    axes[0].set_ylabel("MIG")
    axes[1].plot(df["frame"], df["Confidence (%)"], marker="o", color="tab:orange")
    axes[1].set_ylabel("Confidence (%)")
    if df["Dist. X (mm)"].notna().any():
        axes[2].plot(df["frame"], df["Dist. X (mm)"], marker="o", label="X")
        axes[2].plot(df["frame"], df["Dist. Y (mm)"], marker="o", label="Y")
        axes[2].set_ylabel("Displacement (mm)")
    else:
        axes[2].plot(df["frame"], df["Pixel Shift X (Columns)"], marker="o", label="X")
        axes[2].plot(df["frame"], df["Pixel Shift Y (Rows)"], marker="o", label="Y")
        axes[2].set_ylabel("Pixel shift")
    axes[2].set_xlabel("Frame")
    axes[2].legend()
    for ax in axes:
        ax.grid(True, alpha=0.3)
    first = df.iloc[0]
    fig.suptitle(f"{first['gain']} / {first['movement']} / {first['exposure']}")
    fig.tight_layout()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)


def write_summary(results_root: Path, plots: bool = False) -> Path | None:
    """Write the summary table (and plots) for a results tree.

    :param results_root: root of the results tree
    :param plots: whether to write one figure per experiment
    :return: path of the summary CSV, None if no results were found
    """
    results_root = Path(results_root)
    df = collect_results(results_root)
    if df.empty:
        logger.warning(f"No {RESULTS_FILENAME} found below {results_root}")
        return None
    summary_path = results_root / SUMMARY_FILENAME
    summarize(df).to_csv(summary_path, index=False)
    logger.info(f"Summary of {df.groupby(KEY_COLS).ngroups} experiments: {summary_path}")
    if plots:
        for keys, group in df.groupby(KEY_COLS, sort=True):
            plot_path = results_root / "plots" / f"{'_'.join(keys)}.png"
            plot_experiment(group, plot_path)
            logger.info(f"Plot: {plot_path}")
    return summary_path


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Summarize the Results.csv files of a results tree")
    ap.add_argument("--results", required=True, help="root of the results tree")
    ap.add_argument("--plots", action="store_true", help="also write one figure per experiment")
    args = ap.parse_args(argv)

    setup_logging()
    results_root = Path(args.results)
    if not results_root.exists():
        logger.error(f"Results directory {results_root} does not exist")
        return 1
    return 0 if write_summary(results_root, plots=args.plots) is not None else 1


if __name__ == "__main__":
    sys.exit(main())
