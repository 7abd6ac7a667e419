from typing import Iterable

from mepspool.errors import SchemaError


def assert_required_columns(df, required: Iterable[str], *, source: str = "table") -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(f"Missing required columns in {source}: {missing}")
