#!/usr/bin/env python3
"""
01_build_local_deciles.py

Derive a localised IMD decile for one region (default: Bradford) by
re-ranking only that region's LSOAs on the national IMD rank and splitting
them into ten equal-sized bands.

Inputs:
    - data/raw/imd2019lsoa.csv (long-format English Indices of Deprivation 2019)
    - data/raw/LSOA_2011_full_extent/*.shp (LSOA boundaries with codes + names)
    - configs/params.yml

Outputs:
    - data/processed/imd_2019_bfd_deciles.csv (LSOA code, local decile)
    - data/processed/metadata/imd_2019_bfd_deciles_metadata.json

Notes:
    - Local deciles are only comparable within the region, never with the
      national deciles.
    - Ties on the national value are broken by LSOA code ascending.
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

import argparse

from local_imd.config import load_config
from local_imd.hashing import hash_dict
from local_imd.logging_utils import get_logger
from local_imd.paths import PARAMS_FILE, resolve_project_path
from local_imd.pipeline import run_pipeline

SCRIPT_NAME = "01_build_local_deciles"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build localised IMD deciles for one region")
    parser.add_argument("--config", type=Path, default=PARAMS_FILE, help="params.yml to use")
    parser.add_argument("--scores", type=Path, help="Override the national scores CSV")
    parser.add_argument("--geometry", type=Path, help="Override the boundary file")
    parser.add_argument("--output", type=Path, help="Override the output CSV")
    return parser.parse_args(argv)


def _resolve(override, configured, name: str) -> Path:
    if override is not None:
        return override.resolve()
    if configured is None:
        raise ValueError(f"No {name} path given and paths.{name} is not set in config")
    return resolve_project_path(configured)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    with get_logger(SCRIPT_NAME) as logger:
        logger.info(f"Starting {SCRIPT_NAME}.py")

        # Failures are logged once, as FAILED, by the logger's __exit__
        config = load_config(args.config)
        logger.log_config(config.to_dict(), config_digest=hash_dict(config.to_dict()))

        scores_path = _resolve(args.scores, config.scores_path, "scores")
        geometry_path = _resolve(args.geometry, config.geometry_path, "geometry")
        output_path = _resolve(args.output, config.output_path, "output")

        summary = run_pipeline(
            scores_path=scores_path,
            geometry_path=geometry_path,
            output_path=output_path,
            config=config,
            logger=logger,
        )

        if summary["empty_result"]:
            logger.warning(f"DONE WITH EMPTY RESULT: wrote header-only {output_path}")
        else:
            n = summary["stage_counts"]["ranked_entities"]
            logger.info(f"SUCCESS: Wrote local deciles for {n} entities to {output_path}")


if __name__ == "__main__":
    main()
