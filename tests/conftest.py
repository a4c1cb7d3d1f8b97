"""Shared pytest configuration and fixtures for the test suite.

This module centralizes:
- Path setup (eliminates sys.path hacks in individual test files)
- Pytest markers for test categorization (unit, integration)
- Small anatomical hierarchies, feature indexes and zoom settings
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


# ==============================================================================
# Path Setup - Ensures anatomap/ is importable
# ==============================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from anatomap.config import ClusterSettings  # noqa: E402
from anatomap.graph.features import MapFeatures  # noqa: E402
from anatomap.graph.terms import TermGraph  # noqa: E402


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "unit: Fast tests with no I/O",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests touching the file system or several components together",
    )


# ==============================================================================
# Hierarchy Fixtures
# ==============================================================================
#
# Chain hierarchy (edges point child -> parent):
#
#   BODY (depth 0)
#     └── ORGAN (1)
#           └── LOBE (2)
#                 ├── CELL (3)
#                 └── NEURON (3)
#

CHAIN_EDGES = [
    ("ORGAN", "BODY"),
    ("LOBE", "ORGAN"),
    ("CELL", "LOBE"),
    ("NEURON", "LOBE"),
]

# Aggregation hierarchy:
#
#   BODY (0)
#     └── LOBE (1)
#           └── SEGMENT (2)
#                 ├── CELL (3)
#                 └── NEURON (3)
#
AGGREGATE_EDGES = [
    ("LOBE", "BODY"),
    ("SEGMENT", "LOBE"),
    ("CELL", "SEGMENT"),
    ("NEURON", "SEGMENT"),
]


def _make_features(*terms: str) -> MapFeatures:
    """One polygon feature per term, numbered from 1."""
    return MapFeatures({
        str(index): {"models": term, "label": term.title(), "geometry": "Polygon"}
        for index, term in enumerate(terms, start=1)
    })


@pytest.fixture
def make_features():
    """Factory for feature indexes in which only the given terms are drawn."""
    return _make_features


@pytest.fixture
def settings() -> ClusterSettings:
    return ClusterSettings(anatomical_root="BODY", min_marker_zoom=2, max_marker_zoom=12)


@pytest.fixture
def chain_graph() -> TermGraph:
    return TermGraph("BODY").load(CHAIN_EDGES)


@pytest.fixture
def aggregate_graph() -> TermGraph:
    return TermGraph("BODY").load(AGGREGATE_EDGES)


@pytest.fixture
def aggregate_features() -> MapFeatures:
    """LOBE and CELL are drawn on the map; SEGMENT and NEURON are not."""
    return MapFeatures({
        1: {"models": "LOBE", "label": "Left lobe", "geometry": "Polygon"},
        2: {"models": "CELL", "label": "Cell", "geometry": "Point", "markerPosition": [1.0, 2.0]},
        3: {"models": "CELL", "label": "Cell outline", "geometry": "LineString", "centreline": True},
        4: {"models": "LOBE", "label": "Lobe boundary", "geometry": "LineString"},
    })


# ==============================================================================
# Logging Fixtures
# ==============================================================================

@pytest.fixture
def restore_root_logging():
    """Put the root logger's handlers and level back after a test."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
