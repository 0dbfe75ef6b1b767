"""
Local decile engine.

Re-ranks the entities of one region on a single national measurement and
splits the ranking into equal-sized ordinal bands ("ntile" semantics):

- Filter the long-format score table to one (indicator, measurement) pair.
- Inner-join with the region; entities missing on either side are dropped.
- Sort by value ascending, ties broken by entity_id ascending.
- local_rank is 1..n in that order.
- local_decile partitions ranks 1..n into n_bands contiguous bands whose sizes
  differ by at most one; the first n % n_bands bands get the extra entity.

Everything here is a pure function of its inputs.
"""

from typing import List, Mapping, Union

import numpy as np
import pandas as pd

from local_imd.schemas import (
    RANKED_SCHEMA,
    SCORE_SCHEMA,
    SchemaError,
    validate_merge,
    validate_schema,
)

N_DECILES = 10

# Secondary sort key applied to equal values
TIE_BREAK_COLUMN = "entity_id"

RegionLike = Union[Mapping[str, str], pd.DataFrame]


# =============================================================================
# Banding
# =============================================================================

def band_sizes(n: int, n_bands: int = N_DECILES) -> List[int]:
    """
    Sizes of each band when n ranked entities are split into n_bands.

    >>> band_sizes(25)
    [3, 3, 3, 3, 3, 2, 2, 2, 2, 2]
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    if n_bands < 1:
        raise ValueError(f"n_bands must be positive, got {n_bands}")
    base, extra = divmod(n, n_bands)
    return [base + 1 if band < extra else base for band in range(n_bands)]


def ntile_band(rank: int, n: int, n_bands: int = N_DECILES) -> int:
    """
    Band (1-based) of a 1-based rank among n entities.

    The first n % n_bands bands hold ceil(n / n_bands) entities, the rest
    floor(n / n_bands). With n < n_bands, rank k lands in band k.
    """
    if n_bands < 1:
        raise ValueError(f"n_bands must be positive, got {n_bands}")
    if not 1 <= rank <= n:
        raise ValueError(f"rank must be in [1, {n}], got {rank}")

    small, n_large = divmod(n, n_bands)
    large = small + 1 if n_large else small
    threshold = large * n_large

    if rank <= threshold:
        return (rank - 1) // large + 1
    return (rank - threshold - 1) // small + n_large + 1


def assign_bands(ranks: Union[np.ndarray, pd.Series], n_bands: int = N_DECILES) -> np.ndarray:
    """
    Vectorized ntile_band over a full ranking 1..n.

    Args:
        ranks: 1-based ranks; n is taken as len(ranks)
        n_bands: Number of bands

    Returns:
        int64 array of bands, aligned with `ranks`
    """
    ranks = np.asarray(ranks, dtype=np.int64)
    n = len(ranks)
    if n == 0:
        return np.empty(0, dtype=np.int64)
    if n_bands < 1:
        raise ValueError(f"n_bands must be positive, got {n_bands}")
    if ranks.min() < 1 or ranks.max() > n:
        raise ValueError(f"ranks must be in [1, {n}]")

    small, n_large = divmod(n, n_bands)
    large = small + 1 if n_large else small
    threshold = large * n_large

    in_large = ranks <= threshold
    bands = np.empty(n, dtype=np.int64)
    bands[in_large] = (ranks[in_large] - 1) // large + 1
    if small:
        rest = ranks[~in_large]
        bands[~in_large] = (rest - threshold - 1) // small + n_large + 1
    return bands


# =============================================================================
# Filtering and joining
# =============================================================================

def select_measurement(
    scores: pd.DataFrame,
    indicator_category: str,
    measurement_type: str,
) -> pd.DataFrame:
    """
    Keep rows for one indicator category and measurement type.

    Matching is exact and case-sensitive; the labels are the supplier's fixed
    vocabulary (e.g. "a. Index of Multiple Deprivation (IMD)", "Rank").
    """
    mask = (
        (scores["indicator_category"] == indicator_category)
        & (scores["measurement_type"] == measurement_type)
    )
    return scores.loc[mask].reset_index(drop=True)


def describe_indicators(scores: pd.DataFrame) -> pd.DataFrame:
    """Row counts per (indicator_category, measurement_type) pair."""
    return (
        scores.groupby(["indicator_category", "measurement_type"], sort=True)
        .size()
        .rename("rows")
        .reset_index()
    )


def _region_ids(region: RegionLike) -> pd.DataFrame:
    if isinstance(region, pd.DataFrame):
        ids = region["entity_id"]
    else:
        ids = pd.Series(list(region.keys()), dtype=object)
    return pd.DataFrame({"entity_id": ids.astype(str)}).drop_duplicates()


# =============================================================================
# Engine
# =============================================================================

def empty_ranked() -> pd.DataFrame:
    """Empty result frame with the ranked columns and dtypes."""
    return pd.DataFrame({
        "entity_id": pd.Series(dtype=object),
        "value": pd.Series(dtype="float64"),
        "local_rank": pd.Series(dtype="int64"),
        "local_decile": pd.Series(dtype="int64"),
    })


def rank_local(joined: pd.DataFrame, n_bands: int = N_DECILES) -> pd.DataFrame:
    """
    Rank already-joined records by value and assign bands.

    Args:
        joined: Frame with unique entity_id and numeric value
        n_bands: Number of bands

    Returns:
        DataFrame with entity_id, value, local_rank, local_decile
    """
    if joined.empty:
        return empty_ranked()

    ranked = joined.sort_values(
        ["value", TIE_BREAK_COLUMN],
        ascending=[True, True],
        kind="mergesort",
    ).reset_index(drop=True)[["entity_id", "value"]].copy()

    ranked["local_rank"] = np.arange(1, len(ranked) + 1, dtype=np.int64)
    ranked["local_decile"] = assign_bands(ranked["local_rank"].to_numpy(), n_bands)
    return ranked


def compute_local_deciles(
    scores: pd.DataFrame,
    region: RegionLike,
    indicator_category: str,
    measurement_type: str,
    n_bands: int = N_DECILES,
) -> pd.DataFrame:
    """
    Re-rank the region's entities on one measurement and band them.

    Args:
        scores: Long-format scores (entity_id, indicator_category,
            measurement_type, value)
        region: entity_id -> entity_name mapping, or a region DataFrame
        indicator_category: Indicator label to keep
        measurement_type: Measurement label to keep
        n_bands: Number of bands (10 for deciles)

    Returns:
        DataFrame with entity_id, value, local_rank, local_decile sorted by
        local_rank. Empty (with columns) when nothing intersects.

    Raises:
        SchemaError: If scores lack canonical columns, or an entity has more
            than one row for the selected measurement
    """
    validate_schema(scores, SCORE_SCHEMA, context="compute_local_deciles")

    selected = select_measurement(scores, indicator_category, measurement_type)
    selected = selected[["entity_id", "value"]].copy()
    selected["entity_id"] = selected["entity_id"].astype(str)

    dupes = selected["entity_id"][selected["entity_id"].duplicated()]
    if not dupes.empty:
        raise SchemaError(
            f"{dupes.nunique()} entities have more than one "
            f"'{indicator_category}' / '{measurement_type}' row, "
            f"e.g. {sorted(dupes.unique())[:5]}"
        )

    joined = validate_merge(
        selected,
        _region_ids(region),
        on="entity_id",
        how="inner",
        validate="one_to_one",
        context="scores x region",
    )

    ranked = rank_local(joined, n_bands)
    validate_schema(ranked, RANKED_SCHEMA, context="compute_local_deciles")
    return ranked


def decile_counts(ranked: pd.DataFrame, n_bands: int = N_DECILES) -> pd.Series:
    """Observed entity count per band, including empty bands."""
    return (
        ranked["local_decile"]
        .value_counts()
        .reindex(range(1, n_bands + 1), fill_value=0)
        .astype("int64")
        .rename_axis("local_decile")
        .rename("count")
    )
