import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import argparse

import pandas as pd

from mepspool.config import (
    DATASET_VERSION,
    FYC_FILES,
    LINKAGE_FILE,
    LOGS_DIR,
    MODELING_FILE,
    POOLED_PSU_COL,
    POOLED_WEIGHT_COL,
    RAW_DIR,
    SURVEY_YEARS,
    TABLES_DIR,
    UNMATCHED_POLICIES,
    UNMATCHED_POLICY_DEFAULT,
    YEAR_COL,
)
from mepspool.data.build import build_pooled_table
from mepspool.data.coding import summarize_missingness
from mepspool.data.ingest import load_linkage_extract, load_yearly_extracts
from mepspool.errors import MepsPoolError
from mepspool.utils.logging import sha256_df, write_json


def audit_by_year(modeling: pd.DataFrame) -> pd.DataFrame:
    rows = []
    for year, gdf in modeling.groupby(YEAR_COL, observed=True, sort=True):
        rows.append(
            {
                "year": int(year),
                "rows": int(len(gdf)),
                "linked_rows": int(gdf[POOLED_PSU_COL].notna().sum()),
                "unlinked_rows": int(gdf[POOLED_PSU_COL].isna().sum()),
                "weighted_population": round(float(gdf[POOLED_WEIGHT_COL].sum()), 3),
            }
        )
    return pd.DataFrame(rows)


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the pooled MEPS 2016-2021 analysis table.")
    parser.add_argument("--raw-dir", type=Path, default=RAW_DIR, help="Directory of cached extracts.")
    parser.add_argument("--offline", action="store_true", help="Never download; require cached extracts.")
    parser.add_argument(
        "--unmatched",
        choices=UNMATCHED_POLICIES,
        default=UNMATCHED_POLICY_DEFAULT,
        help="Policy for pooled rows without a linkage record.",
    )
    parser.add_argument("--out-parquet", type=Path, default=MODELING_FILE, help="Output parquet path.")
    parser.add_argument(
        "--audit-csv",
        type=Path,
        default=TABLES_DIR / "pooled_table_audit.csv",
        help="Output audit CSV path.",
    )
    parser.add_argument(
        "--missingness-csv",
        type=Path,
        default=TABLES_DIR / "missingness_pooled.csv",
        help="Output missingness summary CSV path.",
    )
    parser.add_argument(
        "--decisions-json",
        type=Path,
        default=LOGS_DIR / "decisions.json",
        help="Output JSON file for pooling/linkage decisions.",
    )
    args = parser.parse_args()

    try:
        raw_extracts = load_yearly_extracts(args.raw_dir, SURVEY_YEARS, offline=args.offline)
        raw_linkage = load_linkage_extract(args.raw_dir, offline=args.offline)
        modeling, decisions = build_pooled_table(raw_extracts, raw_linkage, unmatched=args.unmatched)
    except MepsPoolError as exc:
        raise SystemExit(f"{exc.error_code}: {exc}")

    content_hash = sha256_df(modeling)

    args.missingness_csv.parent.mkdir(parents=True, exist_ok=True)
    summarize_missingness(modeling).to_csv(args.missingness_csv, index=False)

    args.audit_csv.parent.mkdir(parents=True, exist_ok=True)
    audit_by_year(modeling).to_csv(args.audit_csv, index=False)

    decisions_payload = {
        **decisions,
        "dataset_version": DATASET_VERSION,
        "inputs": {
            "raw_dir": str(args.raw_dir),
            "fyc_files": {str(y): FYC_FILES[y][1] for y in SURVEY_YEARS},
            "linkage_file": LINKAGE_FILE[1],
        },
        "output_parquet": str(args.out_parquet),
        "missingness_csv": str(args.missingness_csv),
        "audit_csv": str(args.audit_csv),
        "content_hash_sha256": content_hash,
    }
    write_json(args.decisions_json, decisions_payload)

    args.out_parquet.parent.mkdir(parents=True, exist_ok=True)
    modeling.to_parquet(args.out_parquet, index=False)

    print(f"Wrote {args.out_parquet}")
    print(f"Wrote {args.audit_csv}")
    print(f"Wrote {args.missingness_csv}")
    print(f"Wrote {args.decisions_json}")


if __name__ == "__main__":
    main()
