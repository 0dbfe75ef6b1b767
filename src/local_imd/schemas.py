"""
Schema validation for pipeline inputs and outputs.

Input tables are validated immediately after the supplier columns are renamed
to canonical names; a schema failure is an input-format error and stops the
run before anything is written.

Canonical keys:
- entity_id is always a string (LSOA codes such as "E01010568").
- local_rank and local_decile are always plain int64.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import pandas as pd


# =============================================================================
# Schema Definition
# =============================================================================

@dataclass
class ColumnSpec:
    """Specification for a single column."""
    name: str
    dtype: Optional[str] = None  # "string", "numeric" or "int"
    nullable: bool = True
    unique: bool = False
    min_value: Optional[float] = None


@dataclass
class Schema:
    """Schema specification for a DataFrame."""
    name: str
    columns: List[ColumnSpec]
    required_columns: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.required_columns:
            self.required_columns = [c.name for c in self.columns]


class SchemaError(Exception):
    """Raised when an input or output table does not match its schema."""
    pass


# =============================================================================
# Predefined Schemas
# =============================================================================

# Long-format national scores, one row per (entity, indicator, measurement)
SCORE_SCHEMA = Schema(
    name="scores",
    columns=[
        ColumnSpec("entity_id", nullable=False),
        ColumnSpec("indicator_category", dtype="string", nullable=False),
        ColumnSpec("measurement_type", dtype="string", nullable=False),
        ColumnSpec("value", dtype="numeric", nullable=False),
    ],
)

# Attribute table of the geometry file; entity_id may repeat (multi-part)
GEOMETRY_SCHEMA = Schema(
    name="geometry_attributes",
    columns=[
        ColumnSpec("entity_id", nullable=False),
        ColumnSpec("entity_name", nullable=True),
    ],
)

# Deduplicated region entities
REGION_SCHEMA = Schema(
    name="region",
    columns=[
        ColumnSpec("entity_id", dtype="string", nullable=False, unique=True),
        ColumnSpec("entity_name", nullable=True),
    ],
)

# Ranked local entities produced by the decile engine
RANKED_SCHEMA = Schema(
    name="ranked_local",
    columns=[
        ColumnSpec("entity_id", dtype="string", nullable=False, unique=True),
        ColumnSpec("value", dtype="numeric", nullable=False),
        ColumnSpec("local_rank", dtype="int", nullable=False, unique=True, min_value=1),
        ColumnSpec("local_decile", dtype="int", nullable=False, min_value=1),
    ],
)

# Persisted decile table
DECILE_OUTPUT_SCHEMA = Schema(
    name="decile_output",
    columns=[
        ColumnSpec("entity_id", nullable=False, unique=True),
        ColumnSpec("local_decile", dtype="int", nullable=False, min_value=1),
    ],
)


# =============================================================================
# Validation Functions
# =============================================================================

def _dtype_errors(col: pd.Series, spec: ColumnSpec) -> List[str]:
    # An empty column carries no evidence about its dtype
    if spec.dtype is None or len(col) == 0:
        return []
    if spec.dtype == "string":
        if not pd.api.types.is_string_dtype(col):
            return [f"Column {spec.name}: expected string, got {col.dtype}"]
    elif spec.dtype == "numeric":
        if pd.api.types.is_bool_dtype(col) or not pd.api.types.is_numeric_dtype(col):
            return [f"Column {spec.name}: expected numeric, got {col.dtype}"]
    elif spec.dtype == "int":
        if not pd.api.types.is_integer_dtype(col):
            return [f"Column {spec.name}: expected integer, got {col.dtype}"]
    return []


def validate_column(
    df: pd.DataFrame,
    spec: ColumnSpec,
) -> List[str]:
    """
    Validate a single column against its specification.

    Args:
        df: DataFrame containing the column
        spec: Column specification

    Returns:
        List of error messages (empty if valid)
    """
    col_name = spec.name

    if col_name not in df.columns:
        return [f"Missing column: {col_name}"]

    col = df[col_name]
    errors = _dtype_errors(col, spec)

    if not spec.nullable and col.isna().any():
        na_count = col.isna().sum()
        errors.append(f"Column {col_name}: {na_count} NA values not allowed")

    if spec.unique and col.duplicated().any():
        dup_count = col.duplicated().sum()
        errors.append(f"Column {col_name}: {dup_count} duplicate values not allowed")

    # Range checks only make sense once the dtype is right
    if errors:
        return errors

    if spec.min_value is not None:
        below_min = (col < spec.min_value) & col.notna()
        if below_min.any():
            errors.append(f"Column {col_name}: values below min {spec.min_value}")

    return errors


def validate_schema(
    df: pd.DataFrame,
    schema: Schema,
    context: str = "",
    raise_on_error: bool = True,
) -> List[str]:
    """
    Validate a DataFrame against a schema.

    Args:
        df: DataFrame to validate
        schema: Schema specification
        context: Optional context for error messages (usually the file path)
        raise_on_error: If True, raise SchemaError on validation failure

    Returns:
        List of error messages (empty if valid)

    Raises:
        SchemaError: If raise_on_error=True and validation fails
    """
    errors = []
    ctx = f" ({context})" if context else ""

    missing = [c for c in schema.required_columns if c not in df.columns]
    if missing:
        errors.append(f"Missing required columns: {missing}{ctx}")
    else:
        for col_spec in schema.columns:
            errors.extend(validate_column(df, col_spec))

    if errors and raise_on_error:
        raise SchemaError(f"Schema validation failed for '{schema.name}':\n" + "\n".join(errors))

    return errors


def require_columns(
    df: pd.DataFrame,
    columns: List[str],
    context: str = "",
) -> None:
    """
    Fail fast if supplier columns are absent, listing what the file does have.

    Raises:
        SchemaError: If any of `columns` is missing from `df`
    """
    missing = [c for c in columns if c not in df.columns]
    if missing:
        ctx = f" ({context})" if context else ""
        raise SchemaError(
            f"Missing expected columns {missing}{ctx}. "
            f"Available: {list(df.columns)}"
        )


# =============================================================================
# Merge Validation
# =============================================================================

def validate_merge(
    left: pd.DataFrame,
    right: pd.DataFrame,
    on: Union[str, List[str]],
    how: str = "inner",
    validate: str = "one_to_one",
    context: str = "",
) -> pd.DataFrame:
    """
    Perform a merge with validation.

    All key joins use validate= to catch duplicates.

    Args:
        left: Left DataFrame
        right: Right DataFrame
        on: Column(s) to merge on
        how: Merge type
        validate: Merge validation ('one_to_one', 'one_to_many', 'many_to_one')
        context: Context for error messages

    Returns:
        Merged DataFrame

    Raises:
        SchemaError: If merge validation fails
    """
    try:
        return pd.merge(left, right, on=on, how=how, validate=validate)
    except pd.errors.MergeError as e:
        raise SchemaError(f"Merge validation failed ({context}): {e}") from e


# =============================================================================
# Schema Registry
# =============================================================================

SCHEMAS: Dict[str, Schema] = {
    "scores": SCORE_SCHEMA,
    "geometry_attributes": GEOMETRY_SCHEMA,
    "region": REGION_SCHEMA,
    "ranked_local": RANKED_SCHEMA,
    "decile_output": DECILE_OUTPUT_SCHEMA,
}


def get_schema(name: str) -> Schema:
    """Get a registered schema by name."""
    if name not in SCHEMAS:
        raise KeyError(f"Unknown schema: {name}. Available: {list(SCHEMAS.keys())}")
    return SCHEMAS[name]
