"""
End-to-end local decile run: load -> extract region -> rank -> QA -> write.

Every path is passed in explicitly; the run never depends on the current
working directory. An empty region or an empty indicator filter is logged as
a warning and still produces a header-only output table.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from local_imd.config import DecileConfig
from local_imd.deciles import compute_local_deciles, describe_indicators, select_measurement
from local_imd.hashing import write_metadata_sidecar
from local_imd.io_utils import write_table
from local_imd.logging_utils import JSONLLogger
from local_imd.qa import run_decile_qa
from local_imd.region import extract_region, name_contains
from local_imd.sources import load_geometry_table, load_scores


def run_pipeline(
    scores_path: Union[str, Path],
    geometry_path: Union[str, Path],
    output_path: Union[str, Path],
    config: DecileConfig,
    logger: JSONLLogger,
    metadata_dir: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Build the local decile table for one region.

    Args:
        scores_path: National long-format score CSV/Parquet
        geometry_path: Boundary file carrying entity codes and names
        output_path: Destination CSV (overwritten)
        config: Validated run configuration
        logger: JSONL logger for this run
        metadata_dir: Where to write the sidecar (default: METADATA_DIR)

    Returns:
        Run summary with stage row counts, band counts and output paths

    Raises:
        FileNotFoundError / OSError: On unreadable inputs or unwritable output
        SchemaError: If an input lacks the expected columns
        DecileQAError: If the ranked table breaks a decile invariant
    """
    scores_path = Path(scores_path)
    geometry_path = Path(geometry_path)
    output_path = Path(output_path)

    inputs = {"scores": str(scores_path), "geometry": str(geometry_path)}
    logger.log_inputs(inputs)

    # Stage 0: inputs
    scores = load_scores(scores_path, config.score_columns)
    logger.info(f"Loaded {len(scores)} score rows from {scores_path.name}")

    geometry = load_geometry_table(geometry_path, config.geometry_columns)
    logger.info(f"Loaded {len(geometry)} geometry records from {geometry_path.name}")

    # Stage 1: region
    region = extract_region(
        geometry,
        name_contains(config.region_name, case_sensitive=config.case_sensitive),
    )
    logger.info(f"Region '{config.region_name}': {len(region)} entities")
    if region.empty:
        logger.warning(
            f"No entities matched region name '{config.region_name}'; "
            "output will be empty",
            extra={"unique_entities": int(geometry["entity_id"].nunique())},
        )

    # Stage 2: local deciles
    selected = select_measurement(scores, config.indicator_category, config.measurement_type)
    logger.info(
        f"Selected {len(selected)} rows for "
        f"'{config.indicator_category}' / '{config.measurement_type}'"
    )
    if selected.empty:
        logger.warning(
            "Indicator/measurement filter matched no rows; output will be empty",
            extra={"available": describe_indicators(scores).to_dict(orient="records")},
        )

    ranked = compute_local_deciles(
        scores,
        region,
        config.indicator_category,
        config.measurement_type,
        n_bands=config.n_bands,
    )
    if ranked.empty and not region.empty and not selected.empty:
        logger.warning("Region and selected scores share no entity_id; output will be empty")

    qa_summary = run_decile_qa(ranked, config.n_bands, context=str(output_path))
    logger.info(f"Ranked {len(ranked)} entities into {config.n_bands} bands")
    logger.info(f"Band counts: {qa_summary['band_counts']}")

    # Stage 3: write
    write_table(ranked, output_path, column_names=config.output_columns or None)
    logger.info(f"Wrote {output_path}")
    logger.log_outputs({"deciles_csv": str(output_path)})

    stage_counts = {
        "score_rows": len(scores),
        "geometry_records": len(geometry),
        "region_entities": len(region),
        "selected_scores": len(selected),
        "ranked_entities": len(ranked),
    }
    logger.log_stage_counts(stage_counts)

    sidecar = write_metadata_sidecar(
        output_path=output_path,
        inputs=inputs,
        config=config.to_dict(),
        run_id=logger.run_id,
        extra={"stage_counts": stage_counts, "qa": qa_summary},
        metadata_dir=metadata_dir,
    )

    summary = {
        "output": str(output_path),
        "sidecar": str(sidecar),
        "stage_counts": stage_counts,
        "band_counts": qa_summary["band_counts"],
        "empty_result": ranked.empty,
    }
    logger.log_metrics(summary)
    return summary
