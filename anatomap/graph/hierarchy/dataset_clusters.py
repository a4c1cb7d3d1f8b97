"""Per-dataset zoom bands over the anatomical term hierarchy.

A :class:`DatasetClusterSet` is built once for a dataset:

1. each dataset term is validated against the map's features, and unmapped
   terms are replaced by their most specific mapped ancestor;
2. the connected subgraph spanning the root and those marker terms is taken
   from the shared :class:`~anatomap.graph.terms.TermGraph`;
3. every subgraph node gets a default zoom band from its depth;
4. leaves of the subgraph become terminal and their zoom and original terms
   are pushed up every ancestor path.
"""
from __future__ import annotations

import logging
from collections import deque
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from anatomap.config import ClusterSettings, get_cluster_settings
from anatomap.graph.features import FeatureOracle
from anatomap.graph.hierarchy.models import DatasetCluster, DatasetKind, DatasetTerms
from anatomap.graph.hierarchy.zoom import depth_to_zoom_range
from anatomap.graph.terms import TermGraph, TermSubgraph

logger = logging.getLogger(__name__)

TERMS_ATTRIBUTE = "terms"


class DatasetClusterSet:
    """Zoom-banded clusters for one dataset's anatomical terms."""

    def __init__(
        self,
        dataset: Union[DatasetTerms, Mapping[str, Any]],
        term_graph: TermGraph,
        features: FeatureOracle,
        settings: Optional[ClusterSettings] = None,
    ):
        if not isinstance(dataset, DatasetTerms):
            dataset = DatasetTerms.from_dict(dataset)
        self._dataset = dataset
        self._term_graph = term_graph
        self._features = features
        self._settings = settings or get_cluster_settings()
        self._root = term_graph.root

        self._marker_terms: Dict[str, Set[str]] = {}
        self._dropped_terms: List[str] = []
        self._validate_terms(dataset.terms)

        self._subgraph = term_graph.connected_subgraph(self._marker_terms)
        for term in self._subgraph.nodes():
            self._subgraph.set_node_attribute(
                term, TERMS_ATTRIBUTE, set(self._marker_terms.get(term, ()))
            )

        min_marker_zoom = self._settings.min_marker_zoom
        max_marker_zoom = self._settings.max_marker_zoom
        bands: Dict[str, List[int]] = {
            term: list(depth_to_zoom_range(
                term_graph.depth(term), term_graph.max_depth, min_marker_zoom, max_marker_zoom
            ))
            for term in self._subgraph.nodes()
        }

        self._terminals = [term for term in self._subgraph.nodes() if self._is_terminal(term)]
        for term in self._terminals:
            bands[term][1] = max_marker_zoom
        self._propagate_from_terminals(bands)
        bands[self._root][0] = 0

        self._clusters_by_term: Dict[str, DatasetCluster] = {
            term: DatasetCluster(
                term=term,
                dataset_id=dataset.id,
                min_zoom=min_zoom,
                max_zoom=max_zoom,
                terminal=max_zoom == max_marker_zoom,
            )
            for term, (min_zoom, max_zoom) in bands.items()
        }
        self._descendants = MappingProxyType({
            term: frozenset(self._subgraph.get_node_attribute(term, TERMS_ATTRIBUTE, ()))
            for term in self._subgraph.nodes()
        })
        logger.debug(
            "Built %d clusters for dataset %s (%d terminal, %d dropped terms)",
            len(self._clusters_by_term),
            dataset.id,
            len(self._terminals),
            len(self._dropped_terms),
        )

    @property
    def id(self) -> str:
        return self._dataset.id

    @property
    def kind(self) -> DatasetKind:
        return self._dataset.kind

    @property
    def dataset(self) -> DatasetTerms:
        return self._dataset

    @property
    def clusters(self) -> List[DatasetCluster]:
        return list(self._clusters_by_term.values())

    @property
    def descendants(self) -> Mapping[str, frozenset]:
        """Original dataset terms represented by each subgraph term."""
        return self._descendants

    @property
    def marker_terms(self) -> Dict[str, frozenset]:
        """Retained marker term -> original terms validated onto it."""
        return {term: frozenset(originals) for term, originals in self._marker_terms.items()}

    @property
    def dropped_terms(self) -> Tuple[str, ...]:
        return tuple(self._dropped_terms)

    @property
    def terminals(self) -> List[str]:
        return list(self._terminals)

    @property
    def subgraph(self) -> TermSubgraph:
        return self._subgraph

    def cluster(self, term: str) -> Optional[DatasetCluster]:
        return self._clusters_by_term.get(term)

    def validated_term(self, term: str) -> Optional[str]:
        """The marker term ``term`` is shown as, or None if it has no place on the map."""
        if self._is_mapped(term):
            return term
        return self.substitute_term(term)

    def substitute_term(self, term: str) -> Optional[str]:
        """Nearest mapped ancestor of ``term``, preferring the deepest parent.

        Parents of equal depth are resolved in the order the hierarchy lists
        them. When no parent is mapped the walk continues from the first
        parent; reaching the root or running out of parents gives None.
        """
        seen = {term}
        current = term
        while True:
            parents = self._term_graph.parents(current)
            if not parents:
                return None
            substitute = None
            substitute_depth = -1
            for parent in parents:
                if parent == self._root or not self._is_mapped(parent):
                    continue
                depth = self._term_graph.depth(parent)
                if depth > substitute_depth:
                    substitute = parent
                    substitute_depth = depth
            if substitute is not None:
                return substitute
            current = parents[0]
            if current == self._root or current in seen:
                return None
            seen.add(current)

    def _is_mapped(self, term: str) -> bool:
        return self._features.has_anatomical_identifier(term) and self._term_graph.depth(term) >= 0

    def _is_terminal(self, term: str) -> bool:
        if term == self._root:
            return False
        if self._subgraph.degree(term) == 1:
            return True
        # A leaf with several parents still represents concrete features
        return not self._subgraph.children(term)

    def _validate_terms(self, terms: Iterable[str]) -> None:
        for raw_term in terms:
            term = str(raw_term).strip()
            if term == "":
                continue
            marker_term = self.validated_term(term)
            if marker_term is None:
                logger.warning(
                    "No feature for %s on map; can't find substitute (dataset %s)",
                    term,
                    self._dataset.id,
                )
                self._dropped_terms.append(term)
                continue
            if marker_term != term:
                logger.info(
                    "No feature for %s on map; substituting %s (dataset %s)",
                    term,
                    marker_term,
                    self._dataset.id,
                )
            self._marker_terms.setdefault(marker_term, set()).add(term)

    def _propagate_from_terminals(self, bands: Dict[str, List[int]]) -> None:
        """Push terminal zooms and original terms up every ancestor path.

        A parent's max zoom is raised to at least each child's min zoom and
        its term set becomes the union of its children's. A term is queued
        again whenever either value changes, so the walk ends once every
        ancestor path is reconciled.
        """
        subgraph = self._subgraph
        pending = deque(self._terminals)
        queued = set(self._terminals)
        visited: Set[str] = set()
        while pending:
            term = pending.popleft()
            queued.discard(term)
            visited.add(term)
            min_zoom = bands[term][0]
            terms = subgraph.get_node_attribute(term, TERMS_ATTRIBUTE)
            for parent in subgraph.parents(term):
                parent_band = bands[parent]
                parent_terms = subgraph.get_node_attribute(parent, TERMS_ATTRIBUTE)
                changed = parent not in visited
                if parent_band[1] < min_zoom:
                    parent_band[1] = min_zoom
                    changed = True
                if not terms <= parent_terms:
                    parent_terms |= terms
                    changed = True
                if changed and parent not in queued:
                    pending.append(parent)
                    queued.add(parent)
