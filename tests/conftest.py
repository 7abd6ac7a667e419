from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from mepspool.config import FYC_FILES, LINKAGE_FILE, SURVEY_YEARS


def make_fyc_extract(year: int, n: int = 60, seed: int = 0) -> pd.DataFrame:
    """Synthetic FYC extract with MEPS-style upper-case, year-suffixed names."""
    rng = np.random.default_rng(seed + year)
    yy = f"{year % 100:02d}"
    idx = np.arange(n)
    sex = np.where(idx % 2 == 0, 1, 2)
    female = (sex == 2).astype(float)
    t = year - SURVEY_YEARS[0]
    totexp = 4000.0 + 1500.0 * female + 200.0 * t + 100.0 * female * t + rng.normal(0.0, 300.0, size=n)
    return pd.DataFrame(
        {
            "DUPERSID": [f"{year}{i:05d}" for i in idx],
            "PANEL": np.full(n, year - 1995),
            "VARSTR": 2000 + (idx % 10),
            "VARPSU": 1 + (idx // 10) % 2,
            "SEX": sex,
            f"AGE{yy}X": rng.integers(0, 85, size=n),
            f"TOTEXP{yy}": totexp.round(0),
            f"PERWT{yy}F": rng.uniform(500.0, 5000.0, size=n).round(2),
        }
    )


def make_linkage(extracts) -> pd.DataFrame:
    frames = []
    for raw in extracts.values():
        frames.append(
            pd.DataFrame(
                {
                    "DUPERSID": raw["DUPERSID"],
                    "PANEL": raw["PANEL"],
                    "STRA9621": 1 + raw["VARSTR"] % 10,
                    "PSU9621": raw["VARPSU"],
                }
            )
        )
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def raw_extracts():
    return {year: make_fyc_extract(year) for year in SURVEY_YEARS}


@pytest.fixture
def raw_linkage(raw_extracts):
    return make_linkage(raw_extracts)


@pytest.fixture
def raw_dir(tmp_path: Path, raw_extracts, raw_linkage) -> Path:
    out = tmp_path / "raw"
    out.mkdir()
    for year, df in raw_extracts.items():
        df.to_parquet(out / f"{FYC_FILES[year][1]}.parquet", index=False)
    raw_linkage.to_parquet(out / f"{LINKAGE_FILE[1]}.parquet", index=False)
    return out
