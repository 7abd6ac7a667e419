from __future__ import annotations

from typing import Sequence

import pandas as pd

from mepspool.config import ID_COLS, PERSON_WEIGHT_COL, POOLED_WEIGHT_COL, YEAR_COL
from mepspool.errors import DataQualityError


def pool_extracts(extracts: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Stack normalised yearly extracts and derive the pooled weight.

    The weight divisor is the number of extracts pooled, so adding or removing
    a year rescales every weight consistently. Input order is kept.
    """

    extracts = list(extracts)
    if not extracts:
        raise ValueError("pool_extracts requires at least one extract.")

    years = []
    for df in extracts:
        stamped = df[YEAR_COL].unique().tolist()
        if len(stamped) > 1:
            raise DataQualityError(f"Extract carries more than one survey year: {sorted(stamped)}")
        years.extend(int(y) for y in stamped)
    duplicated_years = sorted({y for y in years if years.count(y) > 1})
    if duplicated_years:
        raise DataQualityError(f"Survey years pooled more than once: {duplicated_years}")

    n_years = len(extracts)
    pooled = pd.concat(extracts, ignore_index=True)

    key = ID_COLS + [YEAR_COL]
    dup_mask = pooled.duplicated(subset=key, keep=False)
    if dup_mask.any():
        sample = pooled.loc[dup_mask, key].drop_duplicates().head(5).to_dict(orient="records")
        raise DataQualityError(
            f"{int(dup_mask.sum())} pooled rows share a (dupersid, panel, year) triple; examples: {sample}"
        )

    pooled[POOLED_WEIGHT_COL] = pooled[PERSON_WEIGHT_COL].astype(float) / n_years
    return pooled
