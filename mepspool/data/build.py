from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Iterable, Mapping, Optional

import pandas as pd

from mepspool.config import (
    POOLED_WEIGHT_COL,
    SEX_COL,
    SEX_LABELS,
    SURVEY_YEARS,
    YEAR_COL,
)
from mepspool.data.coding import check_levels, encode_year, recode_sex
from mepspool.data.linkage import merge_linkage
from mepspool.data.normalize import normalize_extract, normalize_linkage
from mepspool.data.pool import pool_extracts
from mepspool.data.validate import assert_required_columns


def encode_factors(
    merged: pd.DataFrame,
    years: Optional[Iterable[int]] = None,
    sex_labels: Mapping[int, str] = SEX_LABELS,
) -> pd.DataFrame:
    assert_required_columns(merged, [SEX_COL, YEAR_COL], source="merged table")
    out = merged.copy()
    out[SEX_COL] = recode_sex(out[SEX_COL], sex_labels)
    out[YEAR_COL] = encode_year(out[YEAR_COL], years if years is not None else SURVEY_YEARS)
    return out


def load_modeling_table(path: Path, years: Optional[Iterable[int]] = None) -> pd.DataFrame:
    """Read the pooled parquet and restore factor levels and their order."""
    years = [int(y) for y in (years if years is not None else SURVEY_YEARS)]
    df = pd.read_parquet(path)
    assert_required_columns(df, [SEX_COL, YEAR_COL], source=str(path))

    sex = check_levels(df[SEX_COL], list(SEX_LABELS.values()))
    df[SEX_COL] = pd.Categorical(sex, categories=list(SEX_LABELS.values()))
    year = check_levels(df[YEAR_COL], years)
    df[YEAR_COL] = pd.Categorical(year.astype("int64"), categories=years, ordered=True)
    return df


def build_pooled_table(
    raw_extracts: Mapping[int, pd.DataFrame],
    raw_linkage: pd.DataFrame,
    *,
    unmatched: str = "retain",
    years: Optional[Iterable[int]] = None,
) -> tuple[pd.DataFrame, dict]:
    """Run normalise -> pool -> link -> encode over loaded extracts.

    Returns the encoded table and a decisions dict recording row counts at
    every stage.
    """

    years = list(years) if years is not None else list(SURVEY_YEARS)

    decisions: dict = {
        "survey_years": [int(y) for y in raw_extracts],
        "rows_by_year": {},
        "pooled_weight": {},
        "linkage": {},
    }

    normalized = []
    for year, raw in raw_extracts.items():
        df = normalize_extract(raw, year)
        decisions["rows_by_year"][str(year)] = int(len(df))
        normalized.append(df)

    pooled = pool_extracts(normalized)
    decisions["pooled_weight"] = {
        "column": POOLED_WEIGHT_COL,
        "rule": "perwt / number_of_pooled_years",
        "n_years": len(normalized),
    }
    decisions["pooled_rows"] = int(len(pooled))

    linkage = normalize_linkage(raw_linkage)
    merged, summary = merge_linkage(pooled, linkage, unmatched=unmatched)
    decisions["linkage"] = asdict(summary)

    encoded = encode_factors(merged, years)
    decisions["modeling_rows"] = int(len(encoded))
    return encoded, decisions
