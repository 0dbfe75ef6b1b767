"""
Tests for the local decile engine.

- ntile banding: floor/ceil band sizes, larger bands first
- Ranking by value ascending, ties broken by entity_id
- Inner-join semantics between scores and region
- Empty and single-entity boundaries
"""

import numpy as np
import pandas as pd
import pytest

from local_imd.deciles import (
    assign_bands,
    band_sizes,
    compute_local_deciles,
    decile_counts,
    describe_indicators,
    ntile_band,
    select_measurement,
)
from local_imd.schemas import SchemaError

IMD = "a. Index of Multiple Deprivation (IMD)"
INCOME = "b. Income Deprivation Domain"


def make_scores(values: dict, category: str = IMD, measurement: str = "Rank") -> pd.DataFrame:
    return pd.DataFrame({
        "entity_id": list(values.keys()),
        "indicator_category": category,
        "measurement_type": measurement,
        "value": list(values.values()),
    })


def make_region(ids) -> dict:
    return {entity_id: "Bradford 001A" for entity_id in ids}


@pytest.fixture
def long_scores():
    """Long-format table: several indicators and measurements per LSOA."""
    frames = [
        make_scores({"L1": 30, "L2": 10, "L3": 20, "X9": 5}),
        make_scores({"L1": 1.5, "L2": 9.0, "L3": 4.2, "X9": 0.1}, measurement="Score"),
        make_scores({"L1": 3, "L2": 1, "L3": 2, "X9": 1}, measurement="Decile"),
        make_scores({"L1": 100, "L2": 300, "L3": 200, "X9": 50}, category=INCOME),
    ]
    return pd.concat(frames, ignore_index=True)


class TestBandSizes:
    """Tests for band_sizes."""

    def test_divisible(self):
        assert band_sizes(20) == [2] * 10

    def test_remainder_goes_to_lowest_bands(self):
        assert band_sizes(25) == [3, 3, 3, 3, 3, 2, 2, 2, 2, 2]

    def test_fewer_entities_than_bands(self):
        assert band_sizes(3) == [1, 1, 1, 0, 0, 0, 0, 0, 0, 0]

    def test_zero(self):
        assert band_sizes(0) == [0] * 10

    @pytest.mark.parametrize("n", [1, 7, 10, 11, 99, 310, 1001])
    def test_sizes_sum_and_spread(self, n):
        sizes = band_sizes(n)
        assert sum(sizes) == n
        assert max(sizes) - min(sizes) <= 1
        assert sizes == sorted(sizes, reverse=True)

    def test_negative_n_rejected(self):
        with pytest.raises(ValueError):
            band_sizes(-1)


class TestNtileBand:
    """Tests for the scalar rank -> band function."""

    def test_single_entity_is_band_one(self):
        assert ntile_band(1, 1) == 1

    def test_small_n_maps_rank_to_band(self):
        assert [ntile_band(r, 3) for r in (1, 2, 3)] == [1, 2, 3]

    def test_n_25_boundaries(self):
        bands = [ntile_band(r, 25) for r in range(1, 26)]
        assert bands[:3] == [1, 1, 1]
        assert bands[12:15] == [5, 5, 5]
        assert bands[15:17] == [6, 6]
        assert bands[-2:] == [10, 10]

    def test_n_20_even_split(self):
        bands = [ntile_band(r, 20) for r in range(1, 21)]
        assert bands == [b for b in range(1, 11) for _ in range(2)]

    def test_rank_out_of_range(self):
        with pytest.raises(ValueError):
            ntile_band(0, 5)
        with pytest.raises(ValueError):
            ntile_band(6, 5)

    def test_custom_band_count(self):
        assert [ntile_band(r, 5, n_bands=4) for r in range(1, 6)] == [1, 1, 2, 3, 4]


class TestAssignBands:
    """The vectorized banding must agree with ntile_band everywhere."""

    @pytest.mark.parametrize("n", [1, 2, 9, 10, 11, 19, 25, 37, 100, 313])
    def test_agrees_with_scalar(self, n):
        ranks = np.arange(1, n + 1)
        expected = [ntile_band(int(r), n) for r in ranks]
        assert assign_bands(ranks).tolist() == expected

    def test_empty(self):
        out = assign_bands(np.array([], dtype=np.int64))
        assert out.dtype == np.int64
        assert len(out) == 0

    def test_rejects_ranks_beyond_n(self):
        with pytest.raises(ValueError):
            assign_bands(np.array([1, 2, 5]))


class TestSelectMeasurement:
    """Tests for the long-format filter."""

    def test_exact_match_only(self, long_scores):
        selected = select_measurement(long_scores, IMD, "Rank")
        assert len(selected) == 4
        assert set(selected["measurement_type"]) == {"Rank"}
        assert set(selected["indicator_category"]) == {IMD}

    def test_case_sensitive(self, long_scores):
        assert select_measurement(long_scores, IMD, "rank").empty

    def test_describe_indicators(self, long_scores):
        described = describe_indicators(long_scores)
        assert list(described.columns) == ["indicator_category", "measurement_type", "rows"]
        assert len(described) == 4
        assert (described["rows"] == 4).all()


class TestComputeLocalDeciles:
    """Tests for compute_local_deciles."""

    def test_three_entity_example(self):
        scores = make_scores({"L1": 30, "L2": 10, "L3": 20})
        result = compute_local_deciles(scores, make_region(["L1", "L2", "L3"]), IMD, "Rank")

        assert result["entity_id"].tolist() == ["L2", "L3", "L1"]
        assert result["local_rank"].tolist() == [1, 2, 3]
        assert result["local_decile"].tolist() == [1, 2, 3]

    def test_filters_other_measurements(self, long_scores):
        result = compute_local_deciles(long_scores, make_region(["L1", "L2", "L3"]), IMD, "Rank")
        assert result["value"].tolist() == [10, 20, 30]

    def test_join_is_intersection(self, long_scores):
        # X9 has scores but is outside the region; R7 is in the region without scores
        region = make_region(["L1", "L2", "R7"])
        result = compute_local_deciles(long_scores, region, IMD, "Rank")
        assert set(result["entity_id"]) == {"L1", "L2"}
        assert len(result) == 2

    def test_accepts_region_dataframe(self, long_scores):
        region = pd.DataFrame({"entity_id": ["L3", "L1"], "entity_name": ["a", "b"]})
        result = compute_local_deciles(long_scores, region, IMD, "Rank")
        assert result["entity_id"].tolist() == ["L3", "L1"]

    def test_ties_broken_by_entity_id(self):
        scores = make_scores({"E03": 5, "E01": 5, "E02": 5, "E00": 1})
        result = compute_local_deciles(scores, make_region(["E00", "E01", "E02", "E03"]), IMD, "Rank")
        assert result["entity_id"].tolist() == ["E00", "E01", "E02", "E03"]

    def test_tie_break_independent_of_input_order(self):
        values = {f"E{i:02d}": i % 3 for i in range(30)}
        forward = make_scores(values)
        backward = forward.iloc[::-1].reset_index(drop=True)
        region = make_region(values)

        a = compute_local_deciles(forward, region, IMD, "Rank")
        b = compute_local_deciles(backward, region, IMD, "Rank")
        pd.testing.assert_frame_equal(a, b)

    def test_n_25_band_sizes(self):
        values = {f"E{i:02d}": float(i) for i in range(25)}
        result = compute_local_deciles(make_scores(values), make_region(values), IMD, "Rank")
        counts = decile_counts(result).tolist()
        assert counts == [3, 3, 3, 3, 3, 2, 2, 2, 2, 2]

    def test_monotonic_in_value(self):
        rng = np.random.default_rng(7)
        values = {f"E{i:03d}": float(v) for i, v in enumerate(rng.integers(0, 50, size=137))}
        result = compute_local_deciles(make_scores(values), make_region(values), IMD, "Rank")

        for _, a in result.iterrows():
            lower = result[result["value"] > a["value"]]
            assert (lower["local_decile"] >= a["local_decile"]).all()

    def test_deciles_in_range(self):
        values = {f"E{i:03d}": float(i) for i in range(57)}
        result = compute_local_deciles(make_scores(values), make_region(values), IMD, "Rank")
        assert result["local_decile"].between(1, 10).all()
        assert result["local_decile"].dtype == np.int64
        assert result["local_rank"].dtype == np.int64

    def test_single_entity(self):
        result = compute_local_deciles(make_scores({"L1": 42}), make_region(["L1"]), IMD, "Rank")
        assert result["local_decile"].tolist() == [1]

    def test_empty_region(self, long_scores):
        result = compute_local_deciles(long_scores, {}, IMD, "Rank")
        assert result.empty
        assert list(result.columns) == ["entity_id", "value", "local_rank", "local_decile"]

    def test_unmatched_measurement_is_empty(self, long_scores):
        result = compute_local_deciles(long_scores, make_region(["L1"]), IMD, "Percentile")
        assert result.empty

    def test_inputs_not_mutated(self, long_scores):
        before = long_scores.copy()
        compute_local_deciles(long_scores, make_region(["L1", "L2"]), IMD, "Rank")
        pd.testing.assert_frame_equal(long_scores, before)

    def test_duplicate_measurement_rows_rejected(self):
        scores = pd.concat([make_scores({"L1": 1}), make_scores({"L1": 2})], ignore_index=True)
        with pytest.raises(SchemaError, match="more than one"):
            compute_local_deciles(scores, make_region(["L1"]), IMD, "Rank")

    def test_missing_column_rejected(self):
        scores = make_scores({"L1": 1}).drop(columns=["measurement_type"])
        with pytest.raises(SchemaError):
            compute_local_deciles(scores, make_region(["L1"]), IMD, "Rank")


class TestDecileCounts:
    """Tests for decile_counts."""

    def test_includes_empty_bands(self):
        scores = make_scores({"L1": 3, "L2": 1})
        result = compute_local_deciles(scores, make_region(["L1", "L2"]), IMD, "Rank")
        counts = decile_counts(result)
        assert counts.index.tolist() == list(range(1, 11))
        assert counts.tolist() == [1, 1, 0, 0, 0, 0, 0, 0, 0, 0]
