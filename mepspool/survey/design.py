"""Survey design descriptor for the pooled MEPS table.

The descriptor is a frozen binding of a table to its PSU, stratum and weight
columns plus the design options. Statistical calls read from it and never
modify it; `data` is a private copy taken at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from mepspool.config import (
    LONELY_PSU_DEFAULT,
    LONELY_PSU_POLICIES,
    POOLED_PSU_COL,
    POOLED_STRATUM_COL,
    POOLED_WEIGHT_COL,
)
from mepspool.data.validate import assert_required_columns
from mepspool.errors import DesignError


@dataclass(frozen=True)
class DesignConfig:
    psu: str = POOLED_PSU_COL
    strata: str = POOLED_STRATUM_COL
    weight: str = POOLED_WEIGHT_COL
    # "keep": a single-PSU stratum stays in as one cluster; "remove": drop it; "fail": raise.
    lonely_psu: str = LONELY_PSU_DEFAULT
    # Drop rows with null design fields instead of raising.
    drop_incomplete: bool = False

    def __post_init__(self) -> None:
        if self.lonely_psu not in LONELY_PSU_POLICIES:
            raise DesignError(
                f"Unknown lonely_psu option: {self.lonely_psu!r}; expected one of {LONELY_PSU_POLICIES}"
            )


@dataclass(frozen=True)
class SurveyDesign:
    """A table bound to its design columns.

    The dataclass is frozen but `data` is an ordinary DataFrame: treat it as
    read-only. Filter or derive columns on a copy and build a new design.
    """

    data: pd.DataFrame = field(repr=False)
    config: DesignConfig
    dropped_incomplete: int = 0
    dropped_lonely_psu: int = 0
    lonely_strata: tuple = ()

    @property
    def psu(self) -> str:
        return self.config.psu

    @property
    def strata(self) -> str:
        return self.config.strata

    @property
    def weight(self) -> str:
        return self.config.weight

    @property
    def n(self) -> int:
        return int(len(self.data))

    def weights(self) -> np.ndarray:
        return self.data[self.weight].to_numpy(dtype=float)

    def cluster_codes(self) -> pd.Series:
        """Integer cluster id per row: one cluster per (stratum, PSU) pair."""
        codes = self.data.groupby([self.strata, self.psu], sort=True).ngroup()
        return codes.rename("cluster")

    def summary(self) -> dict:
        return {
            "n": self.n,
            "psu": self.psu,
            "strata": self.strata,
            "weight": self.weight,
            "n_strata": int(self.data[self.strata].nunique()),
            "n_clusters": int(self.cluster_codes().nunique()),
            "sum_weights": float(self.weights().sum()),
            "lonely_psu": self.config.lonely_psu,
            "lonely_strata": [str(s) for s in self.lonely_strata],
            "dropped_incomplete": self.dropped_incomplete,
            "dropped_lonely_psu": self.dropped_lonely_psu,
        }


def find_lonely_strata(df: pd.DataFrame, strata: str, psu: str) -> list:
    n_psu = df.groupby(strata, sort=True)[psu].nunique()
    return n_psu.loc[n_psu < 2].index.tolist()


def build_design(data: pd.DataFrame, config: Optional[DesignConfig] = None) -> SurveyDesign:
    config = config or DesignConfig()
    design_cols = [config.psu, config.strata, config.weight]
    assert_required_columns(data, design_cols, source="design table")

    df = data.copy()

    incomplete = df[design_cols].isna().any(axis=1)
    n_incomplete = int(incomplete.sum())
    if n_incomplete:
        if not config.drop_incomplete:
            raise DesignError(
                f"{n_incomplete} rows have null design fields {design_cols}; "
                "fix the linkage or build with drop_incomplete=True."
            )
        df = df.loc[~incomplete]

    if df.empty:
        raise DesignError("No rows left to build the survey design from.")

    nonpositive = df[config.weight].astype(float) <= 0
    if nonpositive.any():
        raise DesignError(f"{int(nonpositive.sum())} rows have non-positive weight in {config.weight!r}.")

    lonely = find_lonely_strata(df, config.strata, config.psu)
    n_lonely_dropped = 0
    if lonely:
        if config.lonely_psu == "fail":
            raise DesignError(f"Strata with a single PSU: {[str(s) for s in lonely[:10]]} (total {len(lonely)}).")
        if config.lonely_psu == "remove":
            in_lonely = df[config.strata].isin(lonely)
            n_lonely_dropped = int(in_lonely.sum())
            df = df.loc[~in_lonely]
            if df.empty:
                raise DesignError("Every stratum has a single PSU; nothing left after removal.")

    return SurveyDesign(
        data=df.reset_index(drop=True),
        config=config,
        dropped_incomplete=n_incomplete if config.drop_incomplete else 0,
        dropped_lonely_psu=n_lonely_dropped,
        lonely_strata=tuple(lonely),
    )
