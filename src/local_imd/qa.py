"""
Quality assurance checks for the local decile table.

These run after ranking and before writing. Any failure is a hard error:
a decile table that breaks its own invariants is never written.

- Deciles within [1, n_bands]
- Ranks dense 1..n
- Band sizes floor/ceil of n / n_bands, larger bands first
- Monotonic: a lower value never lands in a higher decile
"""

from typing import Any, Dict

import numpy as np
import pandas as pd

from local_imd.deciles import N_DECILES, band_sizes, decile_counts


class DecileQAError(Exception):
    """Raised when a ranked table violates a decile invariant."""
    pass


def check_decile_range(
    ranked: pd.DataFrame,
    n_bands: int = N_DECILES,
    context: str = "",
) -> None:
    """
    Assert every local_decile lies in [1, n_bands].

    Raises:
        DecileQAError: If any decile is out of range
    """
    deciles = ranked["local_decile"]
    bad = deciles[(deciles < 1) | (deciles > n_bands)]
    if not bad.empty:
        msg = f"{len(bad)} deciles outside [1, {n_bands}]: {sorted(bad.unique())[:5]}"
        if context:
            msg = f"{msg} ({context})"
        raise DecileQAError(msg)


def check_ranks_dense(ranked: pd.DataFrame, context: str = "") -> None:
    """
    Assert local_rank is exactly 1..n in row order.

    Raises:
        DecileQAError: If ranks have gaps, repeats or are out of order
    """
    expected = np.arange(1, len(ranked) + 1)
    if not np.array_equal(ranked["local_rank"].to_numpy(), expected):
        msg = "local_rank is not a dense 1..n sequence"
        if context:
            msg = f"{msg} ({context})"
        raise DecileQAError(msg)


def check_band_sizes(
    ranked: pd.DataFrame,
    n_bands: int = N_DECILES,
    context: str = "",
) -> None:
    """
    Assert observed band counts match the ntile partition of n.

    Raises:
        DecileQAError: If any band holds the wrong number of entities
    """
    observed = decile_counts(ranked, n_bands).tolist()
    expected = band_sizes(len(ranked), n_bands)
    if observed != expected:
        msg = f"Band sizes {observed} != expected {expected}"
        if context:
            msg = f"{msg} ({context})"
        raise DecileQAError(msg)


def check_monotonic(ranked: pd.DataFrame, context: str = "") -> None:
    """
    Assert deciles never decrease as value increases.

    Equal values may straddle a band boundary (the tie-break decides), so
    only strictly lower values are compared.

    Raises:
        DecileQAError: If a lower value sits in a higher decile
    """
    if ranked.empty:
        return

    # Highest decile reached by each distinct value vs lowest decile of the next
    by_value = ranked.groupby("value", sort=True)["local_decile"].agg(["min", "max"])
    prev_max = by_value["max"].shift(1)
    violations = by_value[by_value["min"] < prev_max]
    if not violations.empty:
        msg = f"Decile decreases with value at {list(violations.index[:5])}"
        if context:
            msg = f"{msg} ({context})"
        raise DecileQAError(msg)


def run_decile_qa(
    ranked: pd.DataFrame,
    n_bands: int = N_DECILES,
    context: str = "",
) -> Dict[str, Any]:
    """
    Run every decile check and return a summary for logging.

    Raises:
        DecileQAError: On the first failed check
    """
    check_decile_range(ranked, n_bands, context)
    check_ranks_dense(ranked, context)
    check_band_sizes(ranked, n_bands, context)
    check_monotonic(ranked, context)

    counts = decile_counts(ranked, n_bands)
    return {
        "n_ranked": int(len(ranked)),
        "n_bands": n_bands,
        "band_counts": {int(k): int(v) for k, v in counts.items()},
        "value_min": float(ranked["value"].min()) if len(ranked) else None,
        "value_max": float(ranked["value"].max()) if len(ranked) else None,
        "tied_values": int(ranked["value"].duplicated().sum()),
    }
