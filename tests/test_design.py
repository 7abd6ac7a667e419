import dataclasses

import numpy as np
import pandas as pd
import pytest

from mepspool.survey.design import DesignConfig, build_design, find_lonely_strata
from mepspool.errors import DesignError


def _table():
    return pd.DataFrame(
        {
            "totexp": [100.0, 200.0, 300.0, 400.0, 500.0, 600.0],
            "pooled_stratum": [1, 1, 2, 2, 3, 3],
            "pooled_psu": [1, 2, 1, 2, 1, 1],
            "poolwt": [1.0, 2.0, 1.5, 2.5, 3.0, 1.0],
        }
    )


def test_build_design_binds_fields():
    design = build_design(_table())
    assert design.psu == "pooled_psu"
    assert design.strata == "pooled_stratum"
    assert design.weight == "poolwt"
    assert design.n == 6
    np.testing.assert_allclose(design.weights(), [1.0, 2.0, 1.5, 2.5, 3.0, 1.0])


def test_design_is_frozen_and_copies_data():
    table = _table()
    design = build_design(table)
    with pytest.raises(dataclasses.FrozenInstanceError):
        design.config = DesignConfig(lonely_psu="fail")
    table.loc[0, "poolwt"] = 99.0
    assert design.data.loc[0, "poolwt"] == 1.0


def test_cluster_codes_are_psu_within_stratum():
    codes = build_design(_table()).cluster_codes()
    # stratum 3 has a single PSU: its two rows share one cluster
    assert codes.tolist() == [0, 1, 2, 3, 4, 4]


def test_null_design_fields_raise_by_default():
    table = _table()
    table.loc[2, "pooled_psu"] = np.nan
    with pytest.raises(DesignError, match="null design fields"):
        build_design(table)


def test_drop_incomplete_records_count():
    table = _table()
    table.loc[2, "pooled_stratum"] = np.nan
    design = build_design(table, DesignConfig(drop_incomplete=True))
    assert design.n == 5
    assert design.dropped_incomplete == 1


def test_nonpositive_weights_rejected():
    table = _table()
    table.loc[0, "poolwt"] = 0.0
    with pytest.raises(DesignError, match="non-positive"):
        build_design(table)


def test_lonely_psu_policies():
    table = _table()
    assert find_lonely_strata(table, "pooled_stratum", "pooled_psu") == [3]

    kept = build_design(table, DesignConfig(lonely_psu="keep"))
    assert kept.n == 6
    assert kept.lonely_strata == (3,)
    # the single PSU of stratum 3 forms one cluster
    assert kept.cluster_codes().tolist()[-2:] == [4, 4]

    removed = build_design(table, DesignConfig(lonely_psu="remove"))
    assert removed.n == 4
    assert removed.dropped_lonely_psu == 2

    with pytest.raises(DesignError, match="single PSU"):
        build_design(table, DesignConfig(lonely_psu="fail"))


@pytest.mark.parametrize("option", ["adjust", "certainty"])
def test_unknown_lonely_psu_option(option):
    with pytest.raises(DesignError, match="keep"):
        DesignConfig(lonely_psu=option)


def test_missing_design_column():
    with pytest.raises(ValueError, match="pooled_psu"):
        build_design(_table().drop(columns="pooled_psu"))


def test_summary_reports_design():
    summary = build_design(_table()).summary()
    assert summary["n_strata"] == 3
    assert summary["n_clusters"] == 5
    assert summary["sum_weights"] == pytest.approx(11.0)
