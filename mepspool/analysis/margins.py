"""Average adjusted predictions and average marginal effects for a WeightedFit.

Both are weighted averages of linear functions of the coefficients. Each one
is tested as a single linear restriction ``g @ params`` on the fitted result,
so SE, p-value and interval follow the fit's covariance settings.
"""

from __future__ import annotations

import itertools
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from mepspool.analysis.regression import WeightedFit
from mepspool.config import ALPHA


def _levels(series: pd.Series) -> list:
    if isinstance(series.dtype, pd.CategoricalDtype):
        return [c for c in series.cat.categories if (series == c).any()]
    return sorted(series.dropna().unique().tolist())


def _set_level(frame: pd.DataFrame, variable: str, level) -> pd.DataFrame:
    out = frame.copy()
    col = frame[variable]
    if isinstance(col.dtype, pd.CategoricalDtype):
        if level not in col.cat.categories:
            raise ValueError(f"{level!r} is not a level of {variable}: {list(col.cat.categories)}")
        out[variable] = pd.Categorical([level] * len(out), categories=col.cat.categories, ordered=col.cat.ordered)
    else:
        out[variable] = level
    return out


def _slices(fit: WeightedFit, by: Optional[str]) -> List[Tuple[object, np.ndarray]]:
    n = len(fit.frame)
    if by is None:
        return [(None, np.ones(n, dtype=bool))]
    col = fit.frame[by]
    return [(level, (col == level).to_numpy()) for level in _levels(col)]


def _weighted_jacobian(X: np.ndarray, w: np.ndarray) -> np.ndarray:
    return (w @ X) / w.sum()


def _row(fit: WeightedFit, jac: np.ndarray, alpha: float) -> dict:
    test = fit.result.t_test(np.atleast_2d(jac))
    ci_low, ci_high = np.asarray(test.conf_int(alpha=alpha), dtype=float).ravel()
    return {
        "estimate": float(np.squeeze(test.effect)),
        "std_error": float(np.squeeze(test.sd)),
        "statistic": float(np.squeeze(test.tvalue)),
        "p_value": float(np.squeeze(test.pvalue)),
        "ci_low": float(ci_low),
        "ci_high": float(ci_high),
    }


def avg_predictions(fit: WeightedFit, by: Optional[Sequence[str]] = None, alpha: float = ALPHA) -> pd.DataFrame:
    """Weighted mean fitted value within each combination of the `by` columns."""

    by = [by] if isinstance(by, str) else list(by or [])
    frame = fit.frame
    X = fit.design_matrix(frame)
    w = fit.weights

    rows = []
    for combo in itertools.product(*[_levels(frame[col]) for col in by]):
        mask = np.ones(len(frame), dtype=bool)
        for col, level in zip(by, combo):
            mask &= (frame[col] == level).to_numpy()
        if not mask.any():
            continue
        jac = _weighted_jacobian(X[mask], w[mask])
        rows.append({**dict(zip(by, combo)), **_row(fit, jac, alpha), "n": int(mask.sum())})
    return pd.DataFrame(rows)


def _comparison_jacobians(
    fit: WeightedFit, variable: str, contrast: Tuple[object, object], by: Optional[str]
) -> List[Tuple[object, np.ndarray, int]]:
    reference, alternative = contrast
    X0 = fit.design_matrix(_set_level(fit.frame, variable, reference))
    X1 = fit.design_matrix(_set_level(fit.frame, variable, alternative))
    dX = X1 - X0
    out = []
    for level, mask in _slices(fit, by):
        out.append((level, _weighted_jacobian(dX[mask], fit.weights[mask]), int(mask.sum())))
    return out


def avg_comparisons(
    fit: WeightedFit,
    variable: str,
    contrast: Tuple[object, object],
    by: Optional[str] = None,
    alpha: float = ALPHA,
) -> pd.DataFrame:
    """Average marginal effect of moving `variable` from contrast[0] to contrast[1].

    Every row of the fitted sample is predicted at both levels, holding its
    other covariates at observed values; the weighted mean difference is
    reported per level of `by`.
    """

    label = f"{contrast[1]} - {contrast[0]}"
    rows = []
    for level, jac, n in _comparison_jacobians(fit, variable, contrast, by):
        row = {"term": variable, "contrast": label}
        if by is not None:
            row[by] = level
        rows.append({**row, **_row(fit, jac, alpha), "n": n})
    return pd.DataFrame(rows)


def difference_in_differences(
    fit: WeightedFit,
    variable: str,
    contrast: Tuple[object, object],
    by: str,
    reference=None,
    alpha: float = ALPHA,
) -> pd.DataFrame:
    """Change in the `variable` marginal effect for each `by` level relative to `reference`."""

    slices = _comparison_jacobians(fit, variable, contrast, by)
    levels = [level for level, _, _ in slices]
    if reference is None:
        reference = levels[0]
    if reference not in levels:
        raise ValueError(f"Reference {reference!r} is not an observed level of {by}: {levels}")
    ref_jac = next(jac for level, jac, _ in slices if level == reference)

    label = f"{contrast[1]} - {contrast[0]}"
    rows = []
    for level, jac, n in slices:
        if level == reference:
            continue
        rows.append(
            {
                "term": variable,
                "contrast": label,
                by: level,
                "reference": reference,
                **_row(fit, jac - ref_jac, alpha),
                "n": n,
            }
        )
    return pd.DataFrame(rows)

