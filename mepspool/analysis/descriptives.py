from __future__ import annotations

import itertools
from typing import Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.stats.weightstats import DescrStatsW

from mepspool.config import ALPHA
from mepspool.survey.design import SurveyDesign


def weighted_mean_with_ci(values: np.ndarray, weights: np.ndarray, alpha: float = ALPHA) -> Tuple[float, float, float, float]:
    """Return (weighted_n, weighted_mean, ci_low, ci_high).

    CI is the t-based interval on the weighted mean (weight-only, not
    design-based).
    """

    if values.size == 0:
        return 0.0, np.nan, np.nan, np.nan

    w = weights.astype(float)
    x = values.astype(float)
    w_sum = float(w.sum())
    if w_sum <= 0:
        return w_sum, np.nan, np.nan, np.nan

    ds = DescrStatsW(x, weights=w, ddof=0)
    if values.size < 2:
        return w_sum, float(ds.mean), np.nan, np.nan
    ci_low, ci_high = ds.tconfint_mean(alpha=alpha)
    return w_sum, float(ds.mean), float(ci_low), float(ci_high)


def weighted_mean_table(design: SurveyDesign, value: str, by: Sequence[str], alpha: float = ALPHA) -> pd.DataFrame:
    """Weighted mean of `value` for each observed combination of the `by` columns.

    Intervals come from `weighted_mean_with_ci`: they use the weights only and
    ignore PSU and stratum, and are typically narrower than design-based intervals.
    Use the regression margins for design-based inference.
    """

    df = design.data
    by = list(by)
    levels = []
    for col in by:
        s = df[col]
        if isinstance(s.dtype, pd.CategoricalDtype):
            levels.append([c for c in s.cat.categories if (s == c).any()])
        else:
            levels.append(sorted(s.dropna().unique().tolist()))

    rows = []
    for combo in itertools.product(*levels):
        mask = df[value].notna()
        for col, level in zip(by, combo):
            mask &= df[col] == level
        if not mask.any():
            continue
        x = df.loc[mask, value].to_numpy(dtype=float)
        w = df.loc[mask, design.weight].to_numpy(dtype=float)
        weighted_n, mean, ci_low, ci_high = weighted_mean_with_ci(x, w, alpha=alpha)
        rows.append(
            {
                **dict(zip(by, combo)),
                "n": int(mask.sum()),
                "weighted_n": round(weighted_n, 6),
                f"{value}_weighted_mean": mean,
                "ci_low": ci_low,
                "ci_high": ci_high,
            }
        )
    return pd.DataFrame(rows)
