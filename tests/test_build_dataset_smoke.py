import json
import subprocess
import sys
from pathlib import Path

import pandas as pd


def test_build_dataset_smoke(tmp_path: Path, raw_dir: Path):
    repo_root = Path(__file__).resolve().parents[1]

    out_parquet = tmp_path / "pooled.parquet"
    audit_csv = tmp_path / "pooled_table_audit.csv"
    missingness_csv = tmp_path / "missingness_pooled.csv"
    decisions_json = tmp_path / "decisions.json"

    cmd = [
        sys.executable,
        str(repo_root / "scripts" / "01_build_dataset.py"),
        "--raw-dir",
        str(raw_dir),
        "--offline",
        "--out-parquet",
        str(out_parquet),
        "--audit-csv",
        str(audit_csv),
        "--missingness-csv",
        str(missingness_csv),
        "--decisions-json",
        str(decisions_json),
    ]
    subprocess.run(cmd, cwd=repo_root, check=True)

    assert out_parquet.exists()
    df = pd.read_parquet(out_parquet)

    expected_cols = [
        "dupersid",
        "panel",
        "varstr",
        "varpsu",
        "sex",
        "totexp",
        "perwt",
        "year",
        "poolwt",
        "pooled_stratum",
        "pooled_psu",
    ]
    assert df.columns.tolist() == expected_cols
    assert len(df) == 360
    assert set(df["sex"].astype(str)) == {"male", "female"}
    assert df["pooled_psu"].notna().all()

    audit = pd.read_csv(audit_csv)
    assert audit["year"].tolist() == [2016, 2017, 2018, 2019, 2020, 2021]
    assert audit["rows"].tolist() == [60] * 6
    assert audit["unlinked_rows"].sum() == 0
    assert missingness_csv.exists()

    payload = json.loads(decisions_json.read_text(encoding="utf-8"))
    assert payload["pooled_weight"]["n_years"] == 6
    assert payload["linkage"]["policy"] == "retain"
    assert payload["linkage"]["unmatched_rows"] == 0
    assert payload["modeling_rows"] == 360


def test_build_dataset_fails_on_unmatched(tmp_path: Path, raw_dir: Path, raw_linkage):
    repo_root = Path(__file__).resolve().parents[1]
    raw_linkage.iloc[10:].to_parquet(raw_dir / "h36u21.parquet", index=False)

    cmd = [
        sys.executable,
        str(repo_root / "scripts" / "01_build_dataset.py"),
        "--raw-dir",
        str(raw_dir),
        "--offline",
        "--unmatched",
        "fail",
        "--out-parquet",
        str(tmp_path / "pooled.parquet"),
        "--decisions-json",
        str(tmp_path / "decisions.json"),
        "--audit-csv",
        str(tmp_path / "audit.csv"),
        "--missingness-csv",
        str(tmp_path / "missingness.csv"),
    ]
    proc = subprocess.run(cmd, cwd=repo_root, capture_output=True, text=True)

    assert proc.returncode != 0
    assert "LINKAGE_ERROR" in proc.stderr
    assert not (tmp_path / "pooled.parquet").exists()
