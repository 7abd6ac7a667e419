from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mepspool.analysis.margins import (  # noqa: E402
    avg_comparisons,
    avg_predictions,
    difference_in_differences,
)
from mepspool.analysis.regression import coefficient_table, fit_summary, fit_weighted_ols  # noqa: E402
from mepspool.config import (  # noqa: E402
    ALPHA,
    CONTRAST_LEVELS,
    CONTRAST_VARIABLE,
    DATASET_VERSION,
    LONELY_PSU_DEFAULT,
    LONELY_PSU_POLICIES,
    MODEL_FORMULA,
    MODELING_FILE,
    SLICE_VARIABLE,
)
from mepspool.data.build import load_modeling_table  # noqa: E402
from mepspool.errors import MepsPoolError  # noqa: E402
from mepspool.reporting.figures import plot_estimates_by_slice, plot_grouped_estimates  # noqa: E402
from mepspool.survey.design import DesignConfig, build_design  # noqa: E402
from mepspool.utils.logging import run_metadata, write_json  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Weighted regression and marginal effects on pooled MEPS data.")
    parser.add_argument("--in-parquet", type=Path, default=MODELING_FILE, help="Pooled analysis table.")
    parser.add_argument("--outdir", type=Path, default=Path("outputs"), help="Output directory (default: outputs/).")
    parser.add_argument("--formula", default=MODEL_FORMULA, help=f"Model formula (default: {MODEL_FORMULA!r}).")
    parser.add_argument("--lonely-psu", choices=LONELY_PSU_POLICIES, default=LONELY_PSU_DEFAULT)
    parser.add_argument("--drop-incomplete", action="store_true", help="Drop rows with null design fields.")
    parser.add_argument("--alpha", type=float, default=ALPHA, help="1 - confidence level for intervals.")
    args = parser.parse_args()

    if not args.in_parquet.exists():
        raise SystemExit(f"Pooled table not found: {args.in_parquet}. Run scripts/01_build_dataset.py first.")
    if not 0.0 < args.alpha < 1.0:
        raise SystemExit("--alpha must be in (0, 1).")

    tables_dir = args.outdir / "tables"
    figures_dir = args.outdir / "figures"
    logs_dir = args.outdir / "logs"
    tables_dir.mkdir(parents=True, exist_ok=True)

    try:
        df = load_modeling_table(args.in_parquet)
        design = build_design(df, DesignConfig(lonely_psu=args.lonely_psu, drop_incomplete=args.drop_incomplete))
    except MepsPoolError as exc:
        raise SystemExit(f"{exc.error_code}: {exc}")

    fit = fit_weighted_ols(design, args.formula)

    coefs = coefficient_table(fit, alpha=args.alpha)
    coefs.to_csv(tables_dir / "wls_coefficients.csv", index=False)

    effects = avg_comparisons(fit, CONTRAST_VARIABLE, CONTRAST_LEVELS, by=SLICE_VARIABLE, alpha=args.alpha)
    effects.to_csv(tables_dir / "marginal_effects_sex_by_year.csv", index=False)

    overall = avg_comparisons(fit, CONTRAST_VARIABLE, CONTRAST_LEVELS, alpha=args.alpha)
    overall.to_csv(tables_dir / "marginal_effects_sex_overall.csv", index=False)

    did = difference_in_differences(fit, CONTRAST_VARIABLE, CONTRAST_LEVELS, by=SLICE_VARIABLE, alpha=args.alpha)
    did.to_csv(tables_dir / "did_sex_gap_vs_reference_year.csv", index=False)

    predictions = avg_predictions(fit, by=[SLICE_VARIABLE, CONTRAST_VARIABLE], alpha=args.alpha)
    predictions.to_csv(tables_dir / "predictions_by_year_sex.csv", index=False)

    plot_estimates_by_slice(
        effects,
        x=SLICE_VARIABLE,
        title=f"Average Marginal Effect of Sex ({CONTRAST_LEVELS[1]} - {CONTRAST_LEVELS[0]}) by Year",
        ylabel="Difference in total expenditure (USD)",
        out_path=figures_dir / "marginal_effects_sex_by_year.png",
    )
    plot_grouped_estimates(
        predictions,
        x=SLICE_VARIABLE,
        group=CONTRAST_VARIABLE,
        title="Adjusted Predicted Total Expenditure by Year and Sex",
        ylabel="Predicted total expenditure (USD)",
        out_path=figures_dir / "predictions_by_year_sex.png",
    )

    write_json(
        logs_dir / "fit_run_metadata.json",
        run_metadata(
            dataset_version=DATASET_VERSION,
            input_parquet=str(args.in_parquet),
            outdir=str(args.outdir),
            alpha=args.alpha,
            design=design.summary(),
            fit=fit_summary(fit),
            notes=[
                "Point estimates: WLS with pooled weights.",
                "Standard errors: cluster-robust over (pooled stratum, pooled PSU) clusters.",
            ],
        ),
    )

    print(f"Wrote model artifacts to {args.outdir}/")


if __name__ == "__main__":
    main()
