"""
Run configuration loaded from configs/params.yml.

The indicator/measurement labels, the region name and the supplier column
names are configuration constants; nothing in the ranking code hardcodes them.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from local_imd.io_utils import read_yaml
from local_imd.paths import PARAMS_FILE

SCORE_FIELDS = ("entity_id", "indicator_category", "measurement_type", "value")
GEOMETRY_FIELDS = ("entity_id", "entity_name")
OUTPUT_FIELDS = ("entity_id", "local_decile")


class ConfigError(Exception):
    """Raised for invalid or missing configuration."""
    pass


@dataclass(frozen=True)
class DecileConfig:
    """Validated settings for one local decile run."""
    region_name: str
    indicator_category: str
    measurement_type: str
    score_columns: Dict[str, str]
    geometry_columns: Dict[str, str]
    case_sensitive: bool = True
    n_bands: int = 10
    output_columns: Dict[str, str] = field(default_factory=dict)
    scores_path: Optional[str] = None
    geometry_path: Optional[str] = None
    output_path: Optional[str] = None

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "DecileConfig":
        """
        Build a config from the parsed params.yml dict.

        Raises:
            ConfigError: If a required section or key is missing or invalid
        """
        if not isinstance(params, dict):
            raise ConfigError("params must be a mapping")

        region = _section(params, "region")
        indicator = _section(params, "indicator")
        columns = _section(params, "columns")
        banding = params.get("banding") or {}
        output = params.get("output") or {}
        paths = params.get("paths") or {}

        score_columns = _column_map(columns, "scores", SCORE_FIELDS)
        geometry_columns = _column_map(columns, "geometry", GEOMETRY_FIELDS)

        output_columns = dict(output.get("columns") or {})
        unknown = set(output_columns) - set(OUTPUT_FIELDS)
        if unknown:
            raise ConfigError(f"output.columns has unknown keys: {sorted(unknown)}")

        n_bands = banding.get("n_bands", 10)
        if not isinstance(n_bands, int) or isinstance(n_bands, bool) or n_bands < 1:
            raise ConfigError(f"banding.n_bands must be a positive integer, got {n_bands!r}")

        case_sensitive = region.get("case_sensitive", True)
        if not isinstance(case_sensitive, bool):
            raise ConfigError("region.case_sensitive must be true or false")

        return cls(
            region_name=_required_str(region, "name_contains", "region"),
            indicator_category=_required_str(indicator, "category", "indicator"),
            measurement_type=_required_str(indicator, "measurement", "indicator"),
            score_columns=score_columns,
            geometry_columns=geometry_columns,
            case_sensitive=case_sensitive,
            n_bands=n_bands,
            output_columns=output_columns,
            scores_path=paths.get("scores"),
            geometry_path=paths.get("geometry"),
            output_path=paths.get("output"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _section(params: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = params.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"Missing config section: {name}")
    return section


def _required_str(section: Dict[str, Any], key: str, section_name: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{section_name}.{key} must be a non-empty string")
    return value


def _column_map(columns: Dict[str, Any], name: str, fields: tuple) -> Dict[str, str]:
    """Supplier -> canonical rename map that covers every canonical field."""
    mapping = columns.get(name)
    if not isinstance(mapping, dict):
        raise ConfigError(f"Missing config section: columns.{name}")

    mapping = {str(k): str(v) for k, v in mapping.items()}
    missing = [f for f in fields if f not in mapping.values()]
    if missing:
        raise ConfigError(f"columns.{name} does not map to {missing}")
    return mapping


def load_config(path: Union[str, Path, None] = None) -> DecileConfig:
    """
    Read and validate params.yml.

    Args:
        path: Params file (defaults to configs/params.yml under the project root)

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the content is invalid
    """
    path = Path(path) if path is not None else PARAMS_FILE
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    return DecileConfig.from_params(read_yaml(path))
