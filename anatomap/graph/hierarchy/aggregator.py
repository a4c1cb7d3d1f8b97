"""Cross-dataset aggregation of zoom-banded clusters.

The aggregator keeps, for every term shown by any loaded dataset, one set of
dataset ids per integer zoom level plus a per-zoom multiscale flag. Marker
points for the rendering layer are rebuilt wholesale after every mutation.
"""
from __future__ import annotations

import logging
import time
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

import numpy as np
import pandas as pd

from anatomap.config import ClusterSettings, get_cluster_settings
from anatomap.graph.features import FeatureOracle
from anatomap.graph.hierarchy.dataset_clusters import DatasetClusterSet
from anatomap.graph.hierarchy.models import (
    MULTISCALE_KIND,
    DatasetTerms,
    MarkerPoint,
    MarkerTerm,
)
from anatomap.graph.hierarchy.zoom import zoom_index
from anatomap.graph.terms import TermGraph

logger = logging.getLogger(__name__)

CLUSTER_FRAME_COLUMNS = ["dataset_id", "term", "min_zoom", "max_zoom", "terminal"]


class ClusterAggregator:
    """Per-term, per-zoom dataset presence for all loaded datasets."""

    def __init__(
        self,
        term_graph: TermGraph,
        features: FeatureOracle,
        settings: Optional[ClusterSettings] = None,
    ):
        self._term_graph = term_graph
        self._features = features
        self._settings = settings or get_cluster_settings()
        if self._settings.anatomical_root != term_graph.root:
            logger.warning(
                "Configured anatomical root %s differs from term graph root %s; using %s",
                self._settings.anatomical_root,
                term_graph.root,
                term_graph.root,
            )
        self._cluster_sets: Dict[str, DatasetClusterSet] = {}
        self._datasets_by_zoom_term: Dict[str, List[Set[str]]] = {}
        self._multiscale_by_zoom_term: Dict[str, np.ndarray] = {}
        self._dataset_feature_ids: Dict[str, Set[int]] = {}
        self._marker_points: List[MarkerPoint] = []
        self._feature_to_term: Dict[int, str] = {}
        self._next_marker_id = 0
        self._current_zoom = 0.0

    @property
    def settings(self) -> ClusterSettings:
        return self._settings

    @property
    def current_zoom(self) -> float:
        return self._current_zoom

    @current_zoom.setter
    def current_zoom(self, zoom: float) -> None:
        self._current_zoom = float(zoom)

    @property
    def cluster_sets(self) -> Mapping[str, DatasetClusterSet]:
        return MappingProxyType(self._cluster_sets)

    @property
    def terms(self) -> List[str]:
        return list(self._datasets_by_zoom_term)

    @property
    def marker_points(self) -> List[MarkerPoint]:
        return list(self._marker_points)

    def dataset_feature_ids(self) -> Dict[str, Set[int]]:
        return self._dataset_feature_ids

    def add_dataset_markers(
        self, datasets: Iterable[Union[DatasetTerms, Mapping[str, Any]]]
    ) -> List[DatasetClusterSet]:
        """Cluster each dataset with terms and merge it into the zoom records.

        Descriptors that cannot be read are dropped with a warning before any
        record changes. Re-adding an id replaces its earlier contribution, and
        re-adding it with no terms just removes it.
        """
        t_start = time.time()
        max_zoom = self._settings.max_marker_zoom
        parsed: List[DatasetTerms] = []
        for dataset in datasets:
            if isinstance(dataset, DatasetTerms):
                parsed.append(dataset)
                continue
            try:
                parsed.append(DatasetTerms.from_dict(dataset))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable dataset descriptor %r: %s", dataset, exc)

        added: List[DatasetClusterSet] = []
        for dataset in parsed:
            if dataset.id in self._cluster_sets:
                self._remove_contribution(dataset.id)
            if not dataset.terms:
                logger.debug("Skipping dataset %s with no terms", dataset.id)
                continue

            cluster_set = DatasetClusterSet(dataset, self._term_graph, self._features, self._settings)
            self._cluster_sets[dataset.id] = cluster_set
            for cluster in cluster_set.clusters:
                zoom_datasets = self._zoom_datasets(cluster.term)
                multiscale = self._multiscale_by_zoom_term[cluster.term]
                zooms = list(range(cluster.min_zoom, cluster.max_zoom))
                if cluster.terminal:
                    zooms.append(max_zoom)
                for zoom in zooms:
                    zoom_datasets[zoom].add(cluster.dataset_id)
                    multiscale[zoom] |= dataset.multiscale
                if cluster.terminal:
                    feature_ids = self._dataset_feature_ids.setdefault(cluster.dataset_id, set())
                    feature_ids.update(int(fid) for fid in self._features.model_feature_ids(cluster.term))
            added.append(cluster_set)

        self._update()
        logger.info(
            "Added %d datasets (%d held, %d terms) in %.3fs",
            len(added),
            len(self._cluster_sets),
            len(self._datasets_by_zoom_term),
            time.time() - t_start,
        )
        return added

    def remove_dataset_marker(self, dataset_id: str) -> None:
        """Drop a dataset's contribution and re-derive affected multiscale flags."""
        if self._remove_contribution(dataset_id):
            logger.info("Removed dataset %s (%d held)", dataset_id, len(self._cluster_sets))
        else:
            logger.debug("Dataset %s is not loaded; nothing to remove", dataset_id)
        self._update()

    def clear_dataset_markers(self) -> None:
        self._cluster_sets.clear()
        self._dataset_feature_ids.clear()
        self._datasets_by_zoom_term.clear()
        self._multiscale_by_zoom_term.clear()
        self._update()
        logger.info("Cleared all dataset markers")

    def dataset_ids(self, term: str, zoom_level: float) -> List[str]:
        zoom_datasets = self._datasets_by_zoom_term.get(term)
        if zoom_datasets is None:
            return []
        return sorted(zoom_datasets[zoom_index(zoom_level, self._settings.max_marker_zoom)])

    def is_multiscale(self, term: str, zoom_level: float) -> bool:
        multiscale = self._multiscale_by_zoom_term.get(term)
        if multiscale is None:
            return False
        return bool(multiscale[zoom_index(zoom_level, self._settings.max_marker_zoom)])

    def zoom_counts(self, term: str) -> List[int]:
        """Number of datasets present at ``term`` for every integer zoom."""
        zoom_datasets = self._datasets_by_zoom_term.get(term)
        if zoom_datasets is None:
            return [0] * len(self._settings.zoom_levels)
        return [len(datasets) for datasets in zoom_datasets]

    def feature_term(self, feature_id: int) -> Optional[str]:
        return self._feature_to_term.get(int(feature_id))

    def marker_terms(self, term: str, zoom_level: Optional[float] = None) -> List[MarkerTerm]:
        """Original dataset terms represented under ``term`` at a zoom.

        Uses the current zoom unless ``zoom_level`` is given. Each term is
        labelled from its map feature, falling back to the term itself.
        """
        zoom = self._current_zoom if zoom_level is None else zoom_level
        kinds: Dict[str, str] = {}
        for dataset_id in self.dataset_ids(term, zoom):
            cluster_set = self._cluster_sets.get(dataset_id)
            if cluster_set is None:
                continue
            for original in cluster_set.descendants.get(term, ()):
                if cluster_set.kind == MULTISCALE_KIND or original not in kinds:
                    kinds[original] = cluster_set.kind
        return [
            MarkerTerm(term=original, label=self._features.label(original), kind=kinds[original])
            for original in sorted(kinds)
        ]

    def clusters_frame(self) -> pd.DataFrame:
        """One row per cluster of every held dataset."""
        rows = [
            {
                "dataset_id": cluster.dataset_id,
                "term": cluster.term,
                "min_zoom": cluster.min_zoom,
                "max_zoom": cluster.max_zoom,
                "terminal": cluster.terminal,
            }
            for cluster_set in self._cluster_sets.values()
            for cluster in cluster_set.clusters
        ]
        return pd.DataFrame(rows, columns=CLUSTER_FRAME_COLUMNS)

    def _zoom_datasets(self, term: str) -> List[Set[str]]:
        zoom_datasets = self._datasets_by_zoom_term.get(term)
        if zoom_datasets is None:
            levels = len(self._settings.zoom_levels)
            zoom_datasets = [set() for _ in range(levels)]
            self._datasets_by_zoom_term[term] = zoom_datasets
            self._multiscale_by_zoom_term[term] = np.zeros(levels, dtype=bool)
        return zoom_datasets

    def _remove_contribution(self, dataset_id: str) -> bool:
        cluster_set = self._cluster_sets.pop(dataset_id, None)
        self._dataset_feature_ids.pop(dataset_id, None)
        multiscale_ids = {
            ds_id for ds_id, held in self._cluster_sets.items() if held.kind == MULTISCALE_KIND
        }
        for term in list(self._datasets_by_zoom_term):
            zoom_datasets = self._datasets_by_zoom_term[term]
            multiscale = self._multiscale_by_zoom_term[term]
            for zoom, datasets in enumerate(zoom_datasets):
                if dataset_id in datasets:
                    datasets.discard(dataset_id)
                    multiscale[zoom] = not multiscale_ids.isdisjoint(datasets)
            if not any(zoom_datasets):
                del self._datasets_by_zoom_term[term]
                del self._multiscale_by_zoom_term[term]
        return cluster_set is not None

    def _update(self) -> None:
        """Rebuild the marker points shown by the rendering layer."""
        marker_points: List[MarkerPoint] = []
        self._feature_to_term.clear()
        for term, zoom_datasets in self._datasets_by_zoom_term.items():
            zoom_count = [len(datasets) for datasets in zoom_datasets]
            multiscale = self._multiscale_by_zoom_term[term].tolist()
            for feature_id in self._features.model_feature_ids(term):
                annotation = self._features.annotation(feature_id)
                if annotation.get("centreline") or (
                    "markerPosition" not in annotation
                    and "Polygon" not in str(annotation.get("geometry", ""))
                ):
                    continue
                marker_points.append(MarkerPoint(
                    marker_id=self._next_marker_id,
                    feature_id=int(feature_id),
                    term=term,
                    label=str(annotation.get("label") or term),
                    zoom_count=zoom_count,
                    multiscale=multiscale,
                    position=annotation.get("markerPosition"),
                ))
                self._next_marker_id += 1
                self._feature_to_term[int(feature_id)] = term
        self._marker_points = marker_points
        logger.debug("Rebuilt %d marker points", len(marker_points))
