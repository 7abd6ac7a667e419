from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mepspool.config import (
    FYC_FILES,
    HTTP_TIMEOUT_SECONDS,
    LINKAGE_FILE,
    MEPS_BASE_URL,
    MEPS_URL_TEMPLATE,
)
from mepspool.errors import SourceError


def build_retry_session() -> requests.Session:
    """Build a requests Session with conservative retries for the MEPS file server."""
    session = requests.Session()

    retry = Retry(
        total=5,
        connect=5,
        read=5,
        status=5,
        backoff_factor=0.6,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def puf_url(puf: str, file: str, base: str = MEPS_BASE_URL) -> str:
    return MEPS_URL_TEMPLATE.format(base=base, puf=puf, file=file)


def cached_path(raw_dir: Path, file: str) -> Optional[Path]:
    """Return the first cached copy of `file` under raw_dir (parquet wins over dta)."""
    for suffix in (".parquet", ".dta"):
        path = raw_dir / f"{file}{suffix}"
        if path.exists():
            return path
    return None


def _read_cached(path: Path) -> pd.DataFrame:
    if path.suffix == ".parquet":
        return pd.read_parquet(path)
    # Keep numeric codes; value labels are applied by the factor encoder.
    return pd.read_stata(path, convert_categoricals=False)


def _extract_dta(content: bytes, file: str) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            members = [n for n in zf.namelist() if n.lower().endswith(".dta")]
            if not members:
                raise SourceError(f"Archive for {file} contains no .dta member: {zf.namelist()}")
            return zf.read(members[0])
    except zipfile.BadZipFile as exc:
        raise SourceError(f"Downloaded archive for {file} is not a valid zip file.") from exc


def download_puf(
    puf: str,
    file: str,
    raw_dir: Path,
    *,
    session: Optional[requests.Session] = None,
    timeout_seconds: int = HTTP_TIMEOUT_SECONDS,
) -> Path:
    """Download a MEPS Stata archive and cache the .dta under raw_dir."""
    session = session or build_retry_session()
    url = puf_url(puf, file)
    try:
        resp = session.get(url, timeout=timeout_seconds)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise SourceError(f"Failed to download {url}: {exc}") from exc

    payload = _extract_dta(resp.content, file)
    raw_dir.mkdir(parents=True, exist_ok=True)
    out_path = raw_dir / f"{file}.dta"
    out_path.write_bytes(payload)
    return out_path


def load_puf(
    puf: str,
    file: str,
    raw_dir: Path,
    *,
    offline: bool = False,
    session: Optional[requests.Session] = None,
) -> pd.DataFrame:
    path = cached_path(raw_dir, file)
    if path is None:
        if offline:
            raise SourceError(f"No cached copy of {file} under {raw_dir} and downloads are disabled (--offline).")
        path = download_puf(puf, file, raw_dir, session=session)
    return _read_cached(path)


def load_yearly_extracts(
    raw_dir: Path,
    years,
    *,
    offline: bool = False,
    session: Optional[requests.Session] = None,
) -> Dict[int, pd.DataFrame]:
    """Load the FYC extract for each survey year, in the order given."""
    unknown = [y for y in years if y not in FYC_FILES]
    if unknown:
        raise SourceError(f"No FYC file registered for years: {unknown}")

    if session is None and not offline:
        session = build_retry_session()

    out: Dict[int, pd.DataFrame] = {}
    for year in years:
        puf, file = FYC_FILES[year]
        out[int(year)] = load_puf(puf, file, raw_dir, offline=offline, session=session)
    return out


def load_linkage_extract(
    raw_dir: Path,
    *,
    offline: bool = False,
    session: Optional[requests.Session] = None,
) -> pd.DataFrame:
    puf, file = LINKAGE_FILE
    return load_puf(puf, file, raw_dir, offline=offline, session=session)
