from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
PROCESSED_DIR = DATA_DIR / "processed"

OUTPUTS_DIR = PROJECT_ROOT / "outputs"
FIGURES_DIR = OUTPUTS_DIR / "figures"
TABLES_DIR = OUTPUTS_DIR / "tables"
LOGS_DIR = OUTPUTS_DIR / "logs"

MODELING_FILE = PROCESSED_DIR / "meps_2016_2021_pooled.parquet"

# Dataset identifier (used in outputs/ metadata)
DATASET_VERSION = "meps_fyc_2016_2021_pooled_v1"

# Source provider: AHRQ MEPS public-use files, Stata archives.
MEPS_BASE_URL = "https://meps.ahrq.gov/mepsweb/data_files/pufs"
MEPS_URL_TEMPLATE = "{base}/{puf}/{file}dta.zip"
HTTP_TIMEOUT_SECONDS = 120

# Full-year consolidated (FYC) files by survey year: year -> (puf id, file stem)
SURVEY_YEARS = [2016, 2017, 2018, 2019, 2020, 2021]
FYC_FILES = {
    2016: ("h192", "h192"),
    2017: ("h201", "h201"),
    2018: ("h209", "h209"),
    2019: ("h216", "h216"),
    2020: ("h224", "h224"),
    2021: ("h233", "h233"),
}

# Pooled variance linkage file (1996-2021 release).
LINKAGE_FILE = ("h036", "h36u21")
LINKAGE_STRATUM_FIELD = "stra9621"
LINKAGE_PSU_FIELD = "psu9621"

# Normalised schema (analysis-column names)
ID_COLS = ["dupersid", "panel"]
YEARLY_COLS = ["dupersid", "panel", "varstr", "varpsu", "sex", "totexp", "perwt"]
YEAR_COL = "year"
SEX_COL = "sex"
OUTCOME_COL = "totexp"
PERSON_WEIGHT_COL = "perwt"
POOLED_WEIGHT_COL = "poolwt"
POOLED_STRATUM_COL = "pooled_stratum"
POOLED_PSU_COL = "pooled_psu"

# Year-suffixed source fields; {yy} is the two-digit survey year.
YEAR_SUFFIXED_FIELDS = {
    "perwt{yy}f": PERSON_WEIGHT_COL,
    "totexp{yy}": OUTCOME_COL,
}

SEX_LABELS = {1: "male", 2: "female"}

# Survey design options
UNMATCHED_POLICIES = ["retain", "drop", "fail"]
UNMATCHED_POLICY_DEFAULT = "retain"
LONELY_PSU_POLICIES = ["keep", "remove", "fail"]
LONELY_PSU_DEFAULT = "keep"

# Model: difference-in-differences of the sex gap across survey years.
MODEL_FORMULA = "totexp ~ sex * year"
CONTRAST_VARIABLE = "sex"
CONTRAST_LEVELS = ("male", "female")
SLICE_VARIABLE = "year"
ALPHA = 0.05
