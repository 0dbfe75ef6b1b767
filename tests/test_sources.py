"""
Tests for input loaders.

- Supplier columns renamed to canonical names
- Geometry payload dropped, multi-part records kept
- Missing columns / non-numeric values are input-format errors
"""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Point

from local_imd.schemas import SchemaError
from local_imd.sources import load_geometry_table, load_scores

SCORE_MAP = {
    "FeatureCode": "entity_id",
    "Indices of Deprivation": "indicator_category",
    "Measurement": "measurement_type",
    "Value": "value",
}
GEOMETRY_MAP = {"LSOA11CD": "entity_id", "LSOA11NM": "entity_name"}

IMD = "a. Index of Multiple Deprivation (IMD)"


@pytest.fixture
def scores_csv(tmp_path):
    """Small long-format file in the supplier's layout."""
    df = pd.DataFrame({
        "FeatureCode": ["E01010568", "E01010568", "E01010569"],
        "DateCode": [2019, 2019, 2019],
        "Measurement": ["Rank", "Score", "Rank"],
        "Units": ["", "", ""],
        "Value": [1204, 55.3, 30011],
        "Indices of Deprivation": [IMD, IMD, IMD],
    })
    path = tmp_path / "imd2019lsoa.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def geometry_file(tmp_path):
    """GeoJSON boundary file with a repeated LSOA."""
    gdf = gpd.GeoDataFrame(
        {
            "LSOA11CD": ["E01010568", "E01010569", "E01010568"],
            "LSOA11NM": ["Bradford 001A", "Bradford 001B", "Bradford 001A"],
            "Shape__Are": [1.0, 2.0, 3.0],
        },
        geometry=[Point(0, 0), Point(1, 1), Point(2, 2)],
        crs="EPSG:27700",
    )
    path = tmp_path / "lsoa.geojson"
    gdf.to_file(path, driver="GeoJSON")
    return path


class TestLoadScores:
    """Tests for load_scores."""

    def test_canonical_columns(self, scores_csv):
        scores = load_scores(scores_csv, SCORE_MAP)
        assert list(scores.columns) == ["entity_id", "indicator_category", "measurement_type", "value"]
        assert len(scores) == 3

    def test_entity_id_is_string(self, scores_csv):
        scores = load_scores(scores_csv, SCORE_MAP)
        assert pd.api.types.is_string_dtype(scores["entity_id"])
        assert scores["entity_id"].iloc[0] == "E01010568"

    def test_value_is_numeric(self, scores_csv):
        scores = load_scores(scores_csv, SCORE_MAP)
        assert pd.api.types.is_numeric_dtype(scores["value"])

    def test_missing_supplier_column(self, scores_csv):
        bad_map = dict(SCORE_MAP)
        bad_map["Indices.of.Deprivation"] = bad_map.pop("Indices of Deprivation")
        with pytest.raises(SchemaError, match="Indices.of.Deprivation"):
            load_scores(scores_csv, bad_map)

    def test_non_numeric_value(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({
            "FeatureCode": ["E1"],
            "Indices of Deprivation": [IMD],
            "Measurement": ["Rank"],
            "Value": ["n/a"],
        }).to_csv(path, index=False)
        with pytest.raises(SchemaError):
            load_scores(path, SCORE_MAP)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_scores(tmp_path / "nope.csv", SCORE_MAP)

    def test_leading_zero_ids_preserved(self, tmp_path):
        path = tmp_path / "numeric_codes.csv"
        path.write_text(
            "FeatureCode,Indices of Deprivation,Measurement,Value\n"
            f"00123,{IMD},Rank,5\n"
            f"0456,{IMD},Rank,7\n"
        )
        scores = load_scores(path, SCORE_MAP)
        assert list(scores["entity_id"]) == ["00123", "0456"]

    def test_tab_delimited(self, tmp_path):
        path = tmp_path / "imd2019lsoa.tsv"
        path.write_text(
            "FeatureCode\tIndices of Deprivation\tMeasurement\tValue\n"
            f"E01010568\t{IMD}\tRank\t1204\n"
        )
        scores = load_scores(path, SCORE_MAP)
        assert scores["entity_id"].iloc[0] == "E01010568"
        assert scores["value"].iloc[0] == 1204

    def test_unsupported_format_is_schema_error(self, tmp_path):
        path = tmp_path / "imd2019lsoa.xlsx"
        path.write_bytes(b"not a spreadsheet")
        with pytest.raises(SchemaError, match="Unsupported format"):
            load_scores(path, SCORE_MAP)


class TestLoadGeometryTable:
    """Tests for load_geometry_table."""

    def test_attributes_only(self, geometry_file):
        table = load_geometry_table(geometry_file, GEOMETRY_MAP)
        assert list(table.columns) == ["entity_id", "entity_name"]
        assert not isinstance(table, gpd.GeoDataFrame)

    def test_multipart_records_kept(self, geometry_file):
        table = load_geometry_table(geometry_file, GEOMETRY_MAP)
        assert len(table) == 3
        assert table["entity_id"].nunique() == 2

    def test_missing_column(self, geometry_file):
        with pytest.raises(SchemaError, match="LSOA21CD"):
            load_geometry_table(geometry_file, {"LSOA21CD": "entity_id", "LSOA11NM": "entity_name"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_geometry_table(tmp_path / "missing.shp", GEOMETRY_MAP)
