from __future__ import annotations

from typing import Dict, Mapping

import pandas as pd

from mepspool.config import (
    ID_COLS,
    LINKAGE_PSU_FIELD,
    LINKAGE_STRATUM_FIELD,
    POOLED_PSU_COL,
    POOLED_STRATUM_COL,
    YEAR_COL,
    YEAR_SUFFIXED_FIELDS,
    YEARLY_COLS,
)
from mepspool.data.coding import lowercase_columns
from mepspool.data.validate import assert_required_columns
from mepspool.errors import SchemaError


def year_suffixed_renames(year: int, fields: Mapping[str, str] = YEAR_SUFFIXED_FIELDS) -> Dict[str, str]:
    """Map the source field names for `year` to their canonical names.

    >>> year_suffixed_renames(2019)
    {'perwt19f': 'perwt', 'totexp19': 'totexp'}
    """
    yy = f"{int(year) % 100:02d}"
    return {template.format(yy=yy): canonical for template, canonical in fields.items()}


def coerce_id_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Give the join keys one dtype across releases: string person id, integer panel."""
    out = df.copy()
    ids = out["dupersid"]
    if pd.api.types.is_float_dtype(ids):
        ids = ids.astype("Int64")
    out["dupersid"] = ids.astype("string").str.strip()
    out["panel"] = pd.to_numeric(out["panel"], errors="raise").astype("Int64")
    return out


def normalize_extract(raw: pd.DataFrame, year: int) -> pd.DataFrame:
    """Lowercase, rename year-suffixed fields, project and stamp one FYC extract."""
    df = lowercase_columns(raw)

    renames = year_suffixed_renames(year)
    missing = [src for src in renames if src not in df.columns]
    if missing:
        raise SchemaError(
            f"FYC {year} extract is missing year-suffixed fields {missing}; "
            "the release schema does not match the configured survey year."
        )
    df = df.rename(columns=renames)

    assert_required_columns(df, YEARLY_COLS, source=f"FYC {year} extract")
    out = coerce_id_columns(df[YEARLY_COLS])
    out[YEAR_COL] = int(year)
    return out.reset_index(drop=True)


def normalize_linkage(raw: pd.DataFrame) -> pd.DataFrame:
    """Project the pooled linkage file to its key and pooled variance fields."""
    df = lowercase_columns(raw)
    required = ID_COLS + [LINKAGE_STRATUM_FIELD, LINKAGE_PSU_FIELD]
    assert_required_columns(df, required, source="linkage extract")

    out = coerce_id_columns(df[required])
    out = out.rename(columns={LINKAGE_STRATUM_FIELD: POOLED_STRATUM_COL, LINKAGE_PSU_FIELD: POOLED_PSU_COL})
    return out.reset_index(drop=True)
