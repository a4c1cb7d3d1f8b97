"""Hierarchy package for zoom-adaptive dataset markers."""
from anatomap.graph.hierarchy.models import (
    DATASET_KIND,
    MULTISCALE_KIND,
    DatasetCluster,
    DatasetTerms,
    MarkerPoint,
    MarkerTerm,
)
from anatomap.graph.hierarchy.zoom import (
    depth_to_zoom_range,
    zoom_index,
)
from anatomap.graph.hierarchy.dataset_clusters import DatasetClusterSet
from anatomap.graph.hierarchy.aggregator import ClusterAggregator
