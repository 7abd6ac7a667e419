from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm

from mepspool.config import ALPHA
from mepspool.survey.design import SurveyDesign


@dataclass(frozen=True)
class WeightedFit:
    formula: str
    result: object = field(repr=False)
    design_info: object = field(repr=False)
    frame: pd.DataFrame = field(repr=False)
    weights: np.ndarray = field(repr=False)
    groups: np.ndarray = field(repr=False)
    n_dropped: int = 0

    @property
    def params(self) -> np.ndarray:
        return np.asarray(self.result.params, dtype=float)

    def design_matrix(self, frame: pd.DataFrame) -> np.ndarray:
        (X,) = patsy.build_design_matrices([self.design_info], frame, NA_action="raise")
        return np.asarray(X, dtype=float)


def fit_weighted_ols(design: SurveyDesign, formula: str) -> WeightedFit:
    """Weighted least squares with design-based standard errors.

    Point estimates use the pooled weights; the covariance is cluster-robust
    over (stratum, PSU) clusters. Rows with missing model variables are dropped
    and counted.
    """

    data = design.data
    y, X = patsy.dmatrices(formula, data, return_type="dataframe", NA_action="drop")
    keep = y.index

    weights = data.loc[keep, design.weight].to_numpy(dtype=float)
    groups = design.cluster_codes().loc[keep].to_numpy(dtype=int)

    model = sm.WLS(y, X, weights=weights)
    result = model.fit(cov_type="cluster", cov_kwds={"groups": groups})

    return WeightedFit(
        formula=formula,
        result=result,
        design_info=X.design_info,
        frame=data.loc[keep].reset_index(drop=True),
        weights=weights,
        groups=groups,
        n_dropped=int(len(data) - len(keep)),
    )


def coefficient_table(fit: WeightedFit, alpha: float = ALPHA) -> pd.DataFrame:
    res = fit.result
    ci = np.asarray(res.conf_int(alpha=alpha), dtype=float)
    return pd.DataFrame(
        {
            "term": list(fit.design_info.column_names),
            "estimate": np.asarray(res.params, dtype=float),
            "std_error": np.asarray(res.bse, dtype=float),
            "statistic": np.asarray(res.tvalues, dtype=float),
            "p_value": np.asarray(res.pvalues, dtype=float),
            "ci_low": ci[:, 0],
            "ci_high": ci[:, 1],
        }
    )


def fit_summary(fit: WeightedFit) -> dict:
    res = fit.result
    return {
        "formula": fit.formula,
        "nobs": int(res.nobs),
        "n_dropped": fit.n_dropped,
        "n_clusters": int(len(np.unique(fit.groups))),
        "r_squared": float(res.rsquared),
        "cov_type": str(res.cov_type),
    }
