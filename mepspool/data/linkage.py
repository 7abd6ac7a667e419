from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from mepspool.config import ID_COLS, POOLED_PSU_COL, POOLED_STRATUM_COL, UNMATCHED_POLICIES
from mepspool.errors import LinkageError


@dataclass(frozen=True)
class LinkageSummary:
    pooled_rows: int
    merged_rows: int
    matched_rows: int
    unmatched_rows: int
    dropped_rows: int
    policy: str


def _assert_unique_keys(linkage: pd.DataFrame) -> None:
    dup_mask = linkage.duplicated(subset=ID_COLS, keep=False)
    if dup_mask.any():
        sample = linkage.loc[dup_mask, ID_COLS].drop_duplicates().head(5).to_dict(orient="records")
        raise LinkageError(
            f"Linkage extract has {int(dup_mask.sum())} rows with a repeated (dupersid, panel) key; "
            f"examples: {sample}"
        )


def merge_linkage(
    pooled: pd.DataFrame,
    linkage: pd.DataFrame,
    *,
    unmatched: str = "retain",
) -> tuple[pd.DataFrame, LinkageSummary]:
    """Left-join pooled rows to the pooled variance linkage on (dupersid, panel).

    unmatched:
      - "retain": keep unmatched rows with null pooled stratum/PSU
      - "drop": remove unmatched rows
      - "fail": raise LinkageError if any row is unmatched
    """

    if unmatched not in UNMATCHED_POLICIES:
        raise ValueError(f"Unknown unmatched policy: {unmatched!r}; expected one of {UNMATCHED_POLICIES}")

    _assert_unique_keys(linkage)

    cols = ID_COLS + [POOLED_STRATUM_COL, POOLED_PSU_COL]
    merged = pooled.merge(
        linkage[cols],
        on=ID_COLS,
        how="left",
        validate="many_to_one",
        indicator="_link",
    )

    is_matched = merged["_link"].eq("both")
    n_unmatched = int((~is_matched).sum())

    if n_unmatched and unmatched == "fail":
        sample = merged.loc[~is_matched, ID_COLS].head(5).to_dict(orient="records")
        raise LinkageError(f"{n_unmatched} pooled rows have no linkage record; examples: {sample}")

    n_before = len(merged)
    if unmatched == "drop":
        merged = merged.loc[is_matched].reset_index(drop=True)

    merged = merged.drop(columns="_link")
    summary = LinkageSummary(
        pooled_rows=int(len(pooled)),
        merged_rows=int(len(merged)),
        matched_rows=int(is_matched.sum()),
        unmatched_rows=n_unmatched,
        dropped_rows=n_before - int(len(merged)),
        policy=unmatched,
    )
    return merged, summary
