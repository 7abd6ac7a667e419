from __future__ import annotations

import re
from typing import Dict, Iterable, Mapping

import numpy as np
import pandas as pd

from mepspool.errors import DataQualityError, SchemaError


_NORMALIZE_RE = re.compile(r"[^0-9a-zA-Z]+")


def _normalize_name(name: str) -> str:
    return _NORMALIZE_RE.sub("_", name).strip("_").lower()


def normalize_column_names(df: pd.DataFrame) -> Dict[str, str]:
    """Return a normalized-name -> exact-name mapping for df columns.

    MEPS releases ship upper-case names in Stata files and lower-case names in
    some other formats; lookups go through the normalized form.
    """

    mapping: Dict[str, str] = {}
    collisions: Dict[str, list[str]] = {}

    for col in df.columns.astype(str).tolist():
        norm = _normalize_name(col)
        if norm in mapping and mapping[norm] != col:
            collisions.setdefault(norm, sorted({mapping[norm], col}))
        mapping[norm] = col

    if collisions:
        raise SchemaError(f"Normalized column name collisions: {collisions}")

    return mapping


def lowercase_columns(df: pd.DataFrame) -> pd.DataFrame:
    mapping = normalize_column_names(df)
    return df.rename(columns={exact: norm for norm, exact in mapping.items()})


def recode_sex(series: pd.Series, labels: Mapping[int, str]) -> pd.Series:
    """Recode numeric sex codes to a categorical with categories in `labels` order.

    Raises DataQualityError for any other value, missing values included.
    """

    s = series
    valid = s.isin(list(labels.keys()))
    if not valid.all():
        bad = s.loc[~valid]
        observed = sorted(map(str, bad.dropna().unique().tolist()))
        raise DataQualityError(
            "Unexpected codes in sex variable. "
            f"Observed {int(len(bad))} invalid rows (values: {observed}, missing: {int(bad.isna().sum())}); "
            f"expected {sorted(labels.keys())}."
        )

    categories = list(labels.values())
    out = s.astype("int64").map(dict(labels))
    return pd.Series(pd.Categorical(out, categories=categories), index=s.index, name=s.name)


def encode_year(series: pd.Series, years: Iterable[int]) -> pd.Series:
    """Recast survey year to an ordered categorical over the fixed year set."""

    years = [int(y) for y in years]
    s = series
    valid = s.isin(years)
    if not valid.all():
        observed = sorted(map(str, s.loc[~valid].unique().tolist()))
        raise DataQualityError(f"Survey year outside {years[0]}..{years[-1]}: {observed}")

    return pd.Series(
        pd.Categorical(s.astype("int64"), categories=years, ordered=True),
        index=s.index,
        name=s.name,
    )


def check_levels(series: pd.Series, allowed: Iterable) -> pd.Series:
    """Return `series` as plain values, raising DataQualityError on any value outside `allowed`.

    Missing values count as out of domain.
    """

    allowed = list(allowed)
    values = series.astype(object)
    valid = values.isin(allowed)
    if not valid.all():
        bad = values.loc[~valid]
        observed = sorted(map(str, bad.dropna().unique().tolist()))
        raise DataQualityError(
            f"Unexpected values in {series.name}: {int(len(bad))} rows "
            f"(values: {observed}, missing: {int(bad.isna().sum())}); expected {allowed}."
        )
    return values


def summarize_missingness(df: pd.DataFrame) -> pd.DataFrame:
    """Return per-column missingness summary in stable column order."""

    n = len(df)
    rows = []
    for col in df.columns.astype(str).tolist():
        n_missing = int(df[col].isna().sum())
        missing_rate = round(n_missing / n, 6) if n else np.nan
        rows.append({"column": col, "n": n, "n_missing": n_missing, "missing_rate": missing_rate})
    return pd.DataFrame(rows)
