import platform
import sys

from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mepspool.config import FYC_FILES, LINKAGE_FILE, LOGS_DIR, RAW_DIR  # noqa: E402
from mepspool.data.ingest import cached_path  # noqa: E402
from mepspool.utils.logging import package_versions, write_json  # noqa: E402


def main() -> None:
    cached = {file: str(cached_path(RAW_DIR, file)) for _, file in list(FYC_FILES.values()) + [LINKAGE_FILE]}
    info = {
        "python_version": sys.version,
        "platform": platform.platform(),
        "packages": package_versions(),
        "raw_dir": str(RAW_DIR),
        "cached_extracts": cached,
    }
    write_json(LOGS_DIR / "environment_check.json", info)
    print("Wrote outputs/logs/environment_check.json")


if __name__ == "__main__":
    main()
