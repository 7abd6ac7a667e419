from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

# Matplotlib must be configured before importing pyplot.
_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib  # noqa: E402

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


def save_figure(fig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=300, bbox_inches="tight")
    plt.close(fig)


def _yerr(table: pd.DataFrame, est: str, low: str = "ci_low", high: str = "ci_high"):
    return [table[est] - table[low], table[high] - table[est]]


def plot_estimates_by_slice(
    table: pd.DataFrame,
    *,
    x: str,
    title: str,
    ylabel: str,
    out_path: Path,
    estimate: str = "estimate",
    reference_line: Optional[float] = 0.0,
) -> None:
    """Point estimates with CI error bars, one per slice level."""

    fig, ax = plt.subplots(figsize=(8, 5))
    labels = table[x].astype(str).tolist()
    ax.errorbar(labels, table[estimate], yerr=_yerr(table, estimate), fmt="o", capsize=4)
    if reference_line is not None:
        ax.axhline(reference_line, color="grey", linewidth=0.8, linestyle="--")
    ax.set_title(title)
    ax.set_ylabel(ylabel)
    ax.set_xlabel(x)
    fig.tight_layout()
    save_figure(fig, out_path)


def plot_grouped_estimates(
    table: pd.DataFrame,
    *,
    x: str,
    group: str,
    title: str,
    ylabel: str,
    out_path: Path,
    estimate: str = "estimate",
) -> None:
    """Estimates over `x` with one dodged series per `group` level."""

    x_levels = list(dict.fromkeys(table[x].tolist()))
    groups = list(dict.fromkeys(table[group].tolist()))
    positions = np.arange(len(x_levels))
    width = 0.8 / max(len(groups), 1)

    fig, ax = plt.subplots(figsize=(9, 5))
    for i, g in enumerate(groups):
        sub = table.loc[table[group] == g].set_index(x).reindex(x_levels)
        offset = (i - (len(groups) - 1) / 2.0) * width
        ax.errorbar(
            positions + offset,
            sub[estimate],
            yerr=_yerr(sub, estimate),
            fmt="o",
            capsize=3,
            label=str(g),
        )
    ax.set_xticks(positions)
    ax.set_xticklabels([str(v) for v in x_levels])
    ax.set_title(title)
    ax.set_ylabel(ylabel)
    ax.set_xlabel(x)
    ax.legend(title=group)
    fig.tight_layout()
    save_figure(fig, out_path)
