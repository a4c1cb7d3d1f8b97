"""Configuration helpers for the anatomical marker clustering engine."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables early so downstream modules can rely on them.
load_dotenv(ENV_PATH, override=False)

ANATOMICAL_ROOT_ENV = "ANATOMAP_ANATOMICAL_ROOT"
MIN_MARKER_ZOOM_ENV = "ANATOMAP_MIN_MARKER_ZOOM"
MAX_MARKER_ZOOM_ENV = "ANATOMAP_MAX_MARKER_ZOOM"
LOG_DIR_ENV = "ANATOMAP_LOG_DIR"

BODY_PROPER = "UBERON:0013702"
ANATOMICAL_ROOT = BODY_PROPER

MIN_MARKER_ZOOM = 2
MAX_MARKER_ZOOM = 12
DEFAULT_LOG_DIR = Path("logs")


@dataclass(frozen=True)
class ClusterSettings:
    """Zoom range and hierarchy root used when placing dataset markers."""

    anatomical_root: str = ANATOMICAL_ROOT
    min_marker_zoom: int = MIN_MARKER_ZOOM
    max_marker_zoom: int = MAX_MARKER_ZOOM

    @property
    def zoom_levels(self) -> range:
        """Every integer zoom a per-term record is indexed by."""
        return range(self.max_marker_zoom + 1)


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_int_env(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer; received '{raw}'.") from exc


def get_cluster_settings() -> ClusterSettings:
    """Resolve marker zoom configuration from environment with sensible defaults."""

    root = _get_env(ANATOMICAL_ROOT_ENV, ANATOMICAL_ROOT)
    min_zoom = _get_int_env(MIN_MARKER_ZOOM_ENV, MIN_MARKER_ZOOM)
    max_zoom = _get_int_env(MAX_MARKER_ZOOM_ENV, MAX_MARKER_ZOOM)
    if min_zoom < 0 or min_zoom >= max_zoom:
        raise RuntimeError(
            f"Marker zooms must satisfy 0 <= {MIN_MARKER_ZOOM_ENV} < {MAX_MARKER_ZOOM_ENV}; "
            f"received {min_zoom} and {max_zoom}."
        )
    return ClusterSettings(anatomical_root=root, min_marker_zoom=min_zoom, max_marker_zoom=max_zoom)


def get_log_dir() -> Path:
    """Resolve the directory that receives the verbose clustering log."""

    raw_path = _get_env(LOG_DIR_ENV, str(DEFAULT_LOG_DIR))
    return Path(raw_path).expanduser()
