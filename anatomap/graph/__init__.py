"""Term graph construction and clustering utilities for anatomical markers."""

from .features import FeatureOracle, MapFeatures
from .hierarchy import (
    ClusterAggregator,
    DatasetCluster,
    DatasetClusterSet,
    DatasetTerms,
    MarkerPoint,
    MarkerTerm,
    depth_to_zoom_range,
)
from .terms import TermGraph, TermGraphError, TermSubgraph, load_term_graph

__all__ = [
    "ClusterAggregator",
    "DatasetCluster",
    "DatasetClusterSet",
    "DatasetTerms",
    "FeatureOracle",
    "MapFeatures",
    "MarkerPoint",
    "MarkerTerm",
    "TermGraph",
    "TermGraphError",
    "TermSubgraph",
    "depth_to_zoom_range",
    "load_term_graph",
]
