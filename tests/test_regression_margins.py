import numpy as np
import pandas as pd
import pytest

from mepspool.analysis.descriptives import weighted_mean_table
from mepspool.analysis.margins import avg_comparisons, avg_predictions, difference_in_differences
from mepspool.analysis.regression import coefficient_table, fit_summary, fit_weighted_ols
from mepspool.config import MODEL_FORMULA
from mepspool.data.build import build_pooled_table
from mepspool.survey.design import build_design


@pytest.fixture
def fit(raw_extracts, raw_linkage):
    table, _ = build_pooled_table(raw_extracts, raw_linkage)
    return fit_weighted_ols(build_design(table), MODEL_FORMULA)


def _coef(table: pd.DataFrame, term: str) -> pd.Series:
    return table.set_index("term").loc[term]


def test_coefficient_table_shape_and_intervals(fit):
    coefs = coefficient_table(fit)
    assert coefs.columns.tolist() == ["term", "estimate", "std_error", "statistic", "p_value", "ci_low", "ci_high"]
    # intercept + female + 5 years + 5 interactions
    assert len(coefs) == 12
    assert "sex[T.female]:year[T.2021]" in coefs["term"].tolist()
    assert (coefs["std_error"] > 0).all()
    assert (coefs["ci_low"] < coefs["estimate"]).all()
    assert (coefs["estimate"] < coefs["ci_high"]).all()


def test_recovers_simulated_sex_gap(fit):
    coefs = coefficient_table(fit)
    assert _coef(coefs, "sex[T.female]")["estimate"] == pytest.approx(1500.0, abs=500.0)
    assert _coef(coefs, "Intercept")["estimate"] == pytest.approx(4000.0, abs=500.0)


def test_marginal_effect_by_year_matches_coefficients(fit):
    coefs = coefficient_table(fit)
    effects = avg_comparisons(fit, "sex", ("male", "female"), by="year").set_index("year")

    assert effects.index.tolist() == [2016, 2017, 2018, 2019, 2020, 2021]
    base = _coef(coefs, "sex[T.female]")["estimate"]
    assert effects.loc[2016, "estimate"] == pytest.approx(base)
    assert effects.loc[2016, "std_error"] == pytest.approx(_coef(coefs, "sex[T.female]")["std_error"])
    for year in (2017, 2021):
        inter = _coef(coefs, f"sex[T.female]:year[T.{year}]")["estimate"]
        assert effects.loc[year, "estimate"] == pytest.approx(base + inter)


def test_overall_marginal_effect_is_weighted_average_of_slices(fit):
    by_year = avg_comparisons(fit, "sex", ("male", "female"), by="year")
    overall = avg_comparisons(fit, "sex", ("male", "female"))
    w = np.array([fit.weights[(fit.frame["year"] == y).to_numpy()].sum() for y in by_year["year"]])
    expected = float(np.sum(w * by_year["estimate"].to_numpy()) / w.sum())
    assert overall.loc[0, "estimate"] == pytest.approx(expected)
    assert overall.loc[0, "contrast"] == "female - male"


def test_did_equals_interaction_terms(fit):
    coefs = coefficient_table(fit)
    did = difference_in_differences(fit, "sex", ("male", "female"), by="year").set_index("year")

    assert 2016 not in did.index
    assert (did["reference"] == 2016).all()
    for year in did.index:
        inter = _coef(coefs, f"sex[T.female]:year[T.{year}]")
        assert did.loc[year, "estimate"] == pytest.approx(inter["estimate"])
        assert did.loc[year, "std_error"] == pytest.approx(inter["std_error"], rel=1e-6)


def test_did_rejects_unknown_reference(fit):
    with pytest.raises(ValueError):
        difference_in_differences(fit, "sex", ("male", "female"), by="year", reference=2010)


def test_unknown_contrast_level(fit):
    with pytest.raises(ValueError, match="nonbinary"):
        avg_comparisons(fit, "sex", ("male", "nonbinary"))


def test_predictions_for_reference_cell_equal_intercept(fit):
    coefs = coefficient_table(fit)
    preds = avg_predictions(fit, by=["year", "sex"])
    assert len(preds) == 12
    cell = preds.loc[(preds["year"] == 2016) & (preds["sex"] == "male")].iloc[0]
    assert cell["estimate"] == pytest.approx(_coef(coefs, "Intercept")["estimate"])


def test_fit_summary(fit):
    summary = fit_summary(fit)
    assert summary["nobs"] == 360
    assert summary["n_dropped"] == 0
    assert summary["n_clusters"] == 20
    assert summary["cov_type"] == "cluster"


def test_slice_inference_matches_coefficient_inference(fit):
    coefs = coefficient_table(fit, alpha=0.1)
    effects = avg_comparisons(fit, "sex", ("male", "female"), by="year", alpha=0.1).set_index("year")
    female = _coef(coefs, "sex[T.female]")
    for col in ("statistic", "p_value", "ci_low", "ci_high"):
        assert effects.loc[2016, col] == pytest.approx(female[col])


def test_analysis_leaves_design_data_untouched(raw_extracts, raw_linkage):
    table, _ = build_pooled_table(raw_extracts, raw_linkage)
    design = build_design(table)
    before = design.data.copy()

    fitted = fit_weighted_ols(design, MODEL_FORMULA)
    avg_predictions(fitted, by=["year", "sex"])
    avg_comparisons(fitted, "sex", ("male", "female"), by="year")
    difference_in_differences(fitted, "sex", ("male", "female"), by="year")
    weighted_mean_table(design, "totexp", ["year", "sex"])

    pd.testing.assert_frame_equal(design.data, before)
