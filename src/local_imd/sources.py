"""
Loaders for the two pipeline inputs.

Supplier column names (e.g. "FeatureCode", "Indices of Deprivation",
"LSOA11CD") are renamed to canonical names at this boundary; everything
downstream only sees entity_id, indicator_category, measurement_type, value
and entity_name.
"""

from pathlib import Path
from typing import Dict, Union

import pandas as pd

from local_imd.io_utils import DELIMITED_SUFFIXES, read_df, read_gdf
from local_imd.region import drop_geometry
from local_imd.schemas import (
    GEOMETRY_SCHEMA,
    SCORE_SCHEMA,
    SchemaError,
    require_columns,
    validate_schema,
)

SCORE_COLUMNS = ["entity_id", "indicator_category", "measurement_type", "value"]
GEOMETRY_COLUMNS = ["entity_id", "entity_name"]


def _rename_and_select(
    df: pd.DataFrame,
    column_map: Dict[str, str],
    canonical: list,
    context: str,
) -> pd.DataFrame:
    require_columns(df, list(column_map.keys()), context=context)
    out = df.rename(columns=column_map)
    require_columns(out, canonical, context=context)
    return out[canonical].copy()


def load_scores(
    path: Union[str, Path],
    column_map: Dict[str, str],
) -> pd.DataFrame:
    """
    Load the long-format national score table.

    Entity codes are read as text from delimited files, so codes with
    leading zeros survive unchanged.

    Args:
        path: CSV, TSV or Parquet file
        column_map: Supplier -> canonical column names

    Returns:
        DataFrame with entity_id, indicator_category, measurement_type, value

    Raises:
        FileNotFoundError: If the file does not exist
        SchemaError: If the file is unreadable or of an unsupported format,
            columns are missing, or values are not numeric
    """
    path = Path(path)
    kwargs = {}
    if path.suffix.lower() in DELIMITED_SUFFIXES:
        id_columns = [src for src, dst in column_map.items() if dst == "entity_id"]
        kwargs["dtype"] = {col: str for col in id_columns}
    try:
        raw = read_df(path, **kwargs)
    except ValueError as e:
        raise SchemaError(f"Cannot read scores ({path}): {e}") from e
    scores = _rename_and_select(raw, column_map, SCORE_COLUMNS, context=str(path))

    scores["entity_id"] = scores["entity_id"].astype("string")
    try:
        scores["value"] = pd.to_numeric(scores["value"])
    except (ValueError, TypeError) as e:
        raise SchemaError(f"Non-numeric value column ({path}): {e}") from e

    validate_schema(scores, SCORE_SCHEMA, context=str(path))
    return scores


def load_geometry_table(
    path: Union[str, Path],
    column_map: Dict[str, str],
) -> pd.DataFrame:
    """
    Load the attribute table of a boundary file, discarding geometry.

    Multi-part entities keep all their records here; deduplication happens
    in extract_region.

    Args:
        path: Shapefile, GeoPackage, GeoJSON or GeoParquet
        column_map: Supplier -> canonical column names

    Returns:
        DataFrame with entity_id, entity_name

    Raises:
        FileNotFoundError: If the file does not exist
        SchemaError: If columns are missing
    """
    path = Path(path)
    attributes = drop_geometry(read_gdf(path))
    table = _rename_and_select(attributes, column_map, GEOMETRY_COLUMNS, context=str(path))

    table["entity_id"] = table["entity_id"].astype("string")

    validate_schema(table, GEOMETRY_SCHEMA, context=str(path))
    return table
