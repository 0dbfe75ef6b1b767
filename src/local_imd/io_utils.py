"""
I/O utilities with atomic writes and safe reads.

All outputs are written via temp file -> rename/replace, so a failed run never
leaves a half-written decile table behind.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Union

import geopandas as gpd
import pandas as pd
import yaml

from local_imd.schemas import DECILE_OUTPUT_SCHEMA, validate_schema

# Fixed CSV dialect for the decile table
CSV_SEPARATOR = ","
CSV_LINE_TERMINATOR = "\n"
CSV_ENCODING = "utf-8"

OUTPUT_COLUMNS = ["entity_id", "local_decile"]


# =============================================================================
# Atomic Write Utilities
# =============================================================================

@contextmanager
def atomic_write(
    target_path: Union[str, Path],
    mode: str = "w",
    suffix: Optional[str] = None,
):
    """
    Context manager for atomic file writes.

    Writes to a temporary file first, then atomically renames to target.
    If an exception occurs, the temp file is cleaned up and target unchanged.

    Args:
        target_path: Final destination path
        mode: File mode ('w' for text, 'wb' for binary)
        suffix: Optional suffix for temp file (e.g., '.json')

    Yields:
        File handle for writing
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    if suffix is None:
        suffix = target_path.suffix or ".tmp"

    # Temp file in same directory (for atomic rename)
    fd, temp_path = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.stem}_",
        dir=target_path.parent,
    )
    temp_path = Path(temp_path)

    try:
        os.close(fd)

        encoding = None if "b" in mode else "utf-8"
        with open(temp_path, mode, encoding=encoding) as f:
            yield f

        temp_path.replace(target_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_df(
    df: pd.DataFrame,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write a DataFrame to CSV or Parquet.

    File format determined by extension.

    Args:
        df: DataFrame to write
        target_path: Destination path (.csv or .parquet)
        **kwargs: Additional arguments passed to to_csv/to_parquet
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = target_path.suffix.lower()
    if suffix not in (".csv", ".parquet"):
        raise ValueError(f"Unsupported format: {suffix}")

    fd, temp_path = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.stem}_",
        dir=target_path.parent,
    )
    os.close(fd)
    temp_path = Path(temp_path)

    try:
        if suffix == ".parquet":
            df.to_parquet(temp_path, **kwargs)
        else:
            df.to_csv(temp_path, **kwargs)

        temp_path.replace(target_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_json(
    data: Any,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write JSON data.

    Args:
        data: JSON-serializable data
        target_path: Destination path
        **kwargs: Additional arguments passed to json.dump
    """
    kwargs.setdefault("indent", 2)
    kwargs.setdefault("default", str)

    with atomic_write(target_path, mode="w", suffix=".json") as f:
        json.dump(data, f, **kwargs)


# =============================================================================
# Decile Table Writer
# =============================================================================

def write_table(
    rows: pd.DataFrame,
    destination: Union[str, Path],
    column_names: Optional[Dict[str, str]] = None,
) -> Path:
    """
    Write the entity_id -> local_decile table as CSV.

    Only `entity_id` and `local_decile` are persisted, in that order, with a
    header row and no index column. The file is replaced atomically if it
    already exists. An empty table produces a header-only file.

    Args:
        rows: Ranked entities (must carry entity_id and local_decile)
        destination: Output CSV path
        column_names: Optional rename of the two output columns,
            e.g. {"entity_id": "LSOA11CD", "local_decile": "IMD_2019_decile_bfd"}

    Returns:
        The destination path

    Raises:
        SchemaError: If rows lack the output columns or deciles are invalid
        OSError: If the destination cannot be written
    """
    destination = Path(destination)
    validate_schema(rows, DECILE_OUTPUT_SCHEMA, context=str(destination))

    out = rows[OUTPUT_COLUMNS].copy()
    out["entity_id"] = out["entity_id"].astype(str)
    out["local_decile"] = out["local_decile"].astype("int64")
    if column_names:
        out = out.rename(columns=column_names)

    atomic_write_df(
        out,
        destination,
        index=False,
        sep=CSV_SEPARATOR,
        lineterminator=CSV_LINE_TERMINATOR,
        encoding=CSV_ENCODING,
    )
    return destination


# =============================================================================
# Read Utilities
# =============================================================================

def read_yaml(path: Union[str, Path]) -> dict:
    """Read a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def read_json(path: Union[str, Path]) -> Any:
    """Read a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_gdf(
    path: Union[str, Path],
    **kwargs,
) -> gpd.GeoDataFrame:
    """
    Read a GeoDataFrame from file.

    Supports GeoParquet, GeoJSON, GeoPackage, Shapefile.

    Args:
        path: Path to geo file
        **kwargs: Additional arguments passed to reader

    Returns:
        GeoDataFrame
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Geometry file not found: {path}")

    if path.suffix.lower() == ".parquet":
        return gpd.read_parquet(path, **kwargs)
    return gpd.read_file(path, **kwargs)


DELIMITED_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def read_df(
    path: Union[str, Path],
    **kwargs,
) -> pd.DataFrame:
    """
    Read a DataFrame from CSV, TSV or Parquet.

    Args:
        path: Path to data file (.csv, .tsv/.txt tab-delimited, .parquet)
        **kwargs: Additional arguments passed to reader

    Returns:
        DataFrame

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the extension is not a supported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    elif suffix in DELIMITED_SUFFIXES:
        kwargs.setdefault("sep", DELIMITED_SUFFIXES[suffix])
        return pd.read_csv(path, **kwargs)
    else:
        raise ValueError(f"Unsupported format: {suffix}")
