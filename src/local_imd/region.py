"""
Region extraction from a geometry attribute table.

A boundary file carries one record per geometry fragment, so an LSOA with a
multi-part polygon appears more than once. The region is the deduplicated
set of entities whose name matches a predicate (e.g. "contains 'Bradford'").
"""

from typing import Callable, Dict, Union

import geopandas as gpd
import pandas as pd

from local_imd.schemas import GEOMETRY_SCHEMA, REGION_SCHEMA, validate_schema

NamePredicate = Callable[[str], bool]

REGION_COLUMNS = ["entity_id", "entity_name"]


def name_contains(substring: str, case_sensitive: bool = True) -> NamePredicate:
    """
    Build a predicate matching names that contain `substring`.

    Matching is a plain substring test, not a regex.
    """
    if not substring:
        raise ValueError("Region name substring must be non-empty")

    if case_sensitive:
        def predicate(name: str) -> bool:
            return substring in name
    else:
        needle = substring.casefold()

        def predicate(name: str) -> bool:
            return needle in name.casefold()

    return predicate


def drop_geometry(gdf: Union[gpd.GeoDataFrame, pd.DataFrame]) -> pd.DataFrame:
    """Return the attribute table of a GeoDataFrame as a plain DataFrame."""
    if isinstance(gdf, gpd.GeoDataFrame):
        return pd.DataFrame(gdf.drop(columns=gdf.geometry.name))
    return pd.DataFrame(gdf)


def extract_region(
    geometry_records: pd.DataFrame,
    name_predicate: NamePredicate,
) -> pd.DataFrame:
    """
    Narrow geometry records to the unique entities whose name matches.

    Deduplication keeps the first record per entity_id in input order, so the
    result order is reproducible. Records with a missing name never match.
    An empty result is returned as an empty frame, not an error.

    Args:
        geometry_records: Table with entity_id and entity_name columns
            (a GeoDataFrame is accepted; its geometry is ignored)
        name_predicate: Callable str -> bool applied to entity_name

    Returns:
        DataFrame with columns entity_id, entity_name (one row per entity)

    Raises:
        SchemaError: If entity_id or entity_name is missing
    """
    records = drop_geometry(geometry_records)
    validate_schema(records, GEOMETRY_SCHEMA, context="extract_region")

    entities = records.drop_duplicates(subset="entity_id", keep="first")[REGION_COLUMNS].copy()
    entities["entity_id"] = entities["entity_id"].astype(str)

    matches = entities["entity_name"].map(
        lambda name: isinstance(name, str) and bool(name_predicate(name))
    )
    region = entities.loc[matches.astype(bool)].reset_index(drop=True)

    validate_schema(region, REGION_SCHEMA, context="extract_region")
    return region


def region_mapping(region: pd.DataFrame) -> Dict[str, str]:
    """Convert a region frame to an entity_id -> entity_name dict."""
    return dict(zip(region["entity_id"], region["entity_name"]))
