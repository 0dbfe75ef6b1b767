"""
Canonical path resolution for the local IMD deciles project.

This module provides the default locations for config, data and logs.
Pipeline functions never read these implicitly: every load/write takes an
explicit path, and scripts resolve defaults from here.

- Detect root via `.project-root` (primary) and fallback markers
- Expose canonical Paths: RAW_DIR, PROCESSED_DIR, CONFIG_DIR, etc.
"""

from pathlib import Path
from typing import Optional, Union

# Markers to detect project root (in priority order)
ROOT_MARKERS = [".project-root", "pyproject.toml", ".git"]


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """
    Find the project root by searching upward for marker files.

    Args:
        start_path: Starting directory for search. Defaults to this file's location.

    Returns:
        Path to project root directory.

    Raises:
        FileNotFoundError: If no root marker is found.
    """
    if start_path is None:
        start_path = Path(__file__).resolve().parent

    current = start_path

    # Search upward until we find a marker or hit filesystem root
    while current != current.parent:
        for marker in ROOT_MARKERS:
            if (current / marker).exists():
                return current
        current = current.parent

    for marker in ROOT_MARKERS:
        if (current / marker).exists():
            return current

    raise FileNotFoundError(
        f"Could not find project root. Searched for markers {ROOT_MARKERS} "
        f"starting from {start_path}"
    )


# =============================================================================
# Canonical paths (resolved at import time)
# =============================================================================

PROJECT_ROOT = find_project_root()

# Config
CONFIG_DIR = PROJECT_ROOT / "configs"
PARAMS_FILE = CONFIG_DIR / "params.yml"

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
PROCESSED_DIR = DATA_DIR / "processed"
METADATA_DIR = PROCESSED_DIR / "metadata"

# Logs
LOGS_DIR = PROJECT_ROOT / "logs"

# Entry-point scripts
SCRIPTS_DIR = PROJECT_ROOT / "scripts"


def resolve_project_path(path: Union[str, Path], root: Optional[Path] = None) -> Path:
    """
    Resolve a config-supplied path against the project root.

    Absolute paths are returned unchanged; relative paths are anchored at
    `root` (default: PROJECT_ROOT), never at the current working directory.
    """
    path = Path(path)
    if path.is_absolute():
        return path
    return (root or PROJECT_ROOT) / path
