from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mepspool.analysis.descriptives import weighted_mean_table  # noqa: E402
from mepspool.config import (  # noqa: E402
    LONELY_PSU_DEFAULT,
    LONELY_PSU_POLICIES,
    MODELING_FILE,
    OUTCOME_COL,
    SEX_COL,
    YEAR_COL,
)
from mepspool.data.build import load_modeling_table  # noqa: E402
from mepspool.errors import MepsPoolError  # noqa: E402
from mepspool.reporting.figures import plot_grouped_estimates  # noqa: E402
from mepspool.survey.design import DesignConfig, build_design  # noqa: E402
from mepspool.utils.logging import run_metadata, write_json  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Survey-weighted mean expenditure by year and sex.")
    parser.add_argument("--in-parquet", type=Path, default=MODELING_FILE, help="Pooled analysis table.")
    parser.add_argument("--outdir", type=Path, default=Path("outputs"), help="Output directory (default: outputs/).")
    parser.add_argument("--lonely-psu", choices=LONELY_PSU_POLICIES, default=LONELY_PSU_DEFAULT)
    parser.add_argument("--drop-incomplete", action="store_true", help="Drop rows with null design fields.")
    args = parser.parse_args()

    if not args.in_parquet.exists():
        raise SystemExit(f"Pooled table not found: {args.in_parquet}. Run scripts/01_build_dataset.py first.")

    tables_dir = args.outdir / "tables"
    figures_dir = args.outdir / "figures"
    logs_dir = args.outdir / "logs"
    tables_dir.mkdir(parents=True, exist_ok=True)

    try:
        df = load_modeling_table(args.in_parquet)
        design = build_design(df, DesignConfig(lonely_psu=args.lonely_psu, drop_incomplete=args.drop_incomplete))
    except MepsPoolError as exc:
        raise SystemExit(f"{exc.error_code}: {exc}")

    by_year = weighted_mean_table(design, OUTCOME_COL, [YEAR_COL])
    by_year.to_csv(tables_dir / "weighted_mean_totexp_by_year.csv", index=False)

    by_year_sex = weighted_mean_table(design, OUTCOME_COL, [YEAR_COL, SEX_COL])
    by_year_sex.to_csv(tables_dir / "weighted_mean_totexp_by_year_sex.csv", index=False)

    plot_grouped_estimates(
        by_year_sex,
        x=YEAR_COL,
        group=SEX_COL,
        estimate=f"{OUTCOME_COL}_weighted_mean",
        title="Weighted Mean Total Expenditure by Year and Sex (Approx. 95% CI)",
        ylabel="Total expenditure (USD)",
        out_path=figures_dir / "weighted_mean_totexp_by_year_sex.png",
    )

    write_json(
        logs_dir / "descriptives_run_metadata.json",
        run_metadata(
            input_parquet=str(args.in_parquet),
            outdir=str(args.outdir),
            design=design.summary(),
            notes=["Weighted means use pooled weights; CIs are weight-only t intervals, not design-based."],
        ),
    )

    print(f"Wrote descriptive artifacts to {args.outdir}/")


if __name__ == "__main__":
    main()
