"""Anatomical term hierarchy and per-dataset connected subgraphs.

The hierarchy is a directed graph whose edges point from a child term to each
of its parents. It is loaded once from a node-link description, frozen, and
then only queried. Clustering works on :class:`TermSubgraph` copies so the
shared hierarchy never carries per-dataset state.
"""
from __future__ import annotations

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import networkx as nx

from anatomap.config import get_cluster_settings

logger = logging.getLogger(__name__)

GraphData = Union[Mapping[str, Any], Iterable[Tuple[str, str]]]


class TermGraphError(ValueError):
    """Raised for malformed hierarchy input or misuse of a loaded graph."""


class TermSubgraph:
    """Connected subgraph spanning a set of terms and the anatomical root."""

    def __init__(self, root: str):
        self.root = root
        self._parents: Dict[str, List[str]] = {}
        self._children: Dict[str, List[str]] = {}
        self._attributes: Dict[str, Dict[str, Any]] = {}

    def __contains__(self, term: object) -> bool:
        return term in self._parents

    def __len__(self) -> int:
        return len(self._parents)

    def add_node(self, term: str) -> None:
        if term not in self._parents:
            self._parents[term] = []
            self._children[term] = []
            self._attributes[term] = {}

    def add_edge(self, child: str, parent: str) -> None:
        self.add_node(child)
        self.add_node(parent)
        if parent not in self._parents[child]:
            self._parents[child].append(parent)
            self._children[parent].append(child)

    def nodes(self) -> List[str]:
        return list(self._parents)

    def has_node(self, term: str) -> bool:
        return term in self._parents

    def parents(self, term: str) -> List[str]:
        return list(self._parents.get(term, []))

    def children(self, term: str) -> List[str]:
        return list(self._children.get(term, []))

    def degree(self, term: str) -> int:
        """Number of subgraph edges touching ``term``."""
        return len(self._parents.get(term, [])) + len(self._children.get(term, []))

    def get_node_attribute(self, term: str, name: str, default: Any = None) -> Any:
        return self._attributes.get(term, {}).get(name, default)

    def set_node_attribute(self, term: str, name: str, value: Any) -> None:
        if term not in self._attributes:
            raise TermGraphError(f"{term} is not in the subgraph")
        self._attributes[term][name] = value


class TermGraph:
    """Immutable-after-load hierarchy of anatomical terms."""

    def __init__(self, root: Optional[str] = None):
        self.root = root or get_cluster_settings().anatomical_root
        self._hierarchy = nx.DiGraph()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def max_depth(self) -> int:
        return int(self._hierarchy.graph.get("depth", 0))

    def __len__(self) -> int:
        return self._hierarchy.number_of_nodes()

    def load(self, graph_data: GraphData) -> "TermGraph":
        """Populate the hierarchy and compute node depths from the root.

        ``graph_data`` is either a node-link mapping whose links run from
        ``source`` (child) to ``target`` (parent), or an iterable of
        ``(child, parent)`` pairs. Nodes that cannot reach the root are kept
        but get no depth.
        """
        if self._loaded:
            raise TermGraphError("Term graph is already loaded")

        max_depth_attr = None
        if isinstance(graph_data, Mapping):
            nodes, edges, graph_attrs = _parse_node_link(graph_data)
            max_depth_attr = graph_attrs.get("depth")
        else:
            nodes, edges = [], _parse_edge_pairs(graph_data)

        hierarchy = self._hierarchy
        hierarchy.add_nodes_from(nodes)
        hierarchy.add_edges_from(edges)
        if self.root in hierarchy:
            depths = nx.single_source_shortest_path_length(hierarchy.reverse(copy=False), self.root)
        else:
            # Every term reports depth -1 and is dropped when clustered
            logger.warning("Anatomical root %s is not in the term graph", self.root)
            depths = {}
            max_depth_attr = 0
        nx.set_node_attributes(hierarchy, depths, "depth")
        unreachable = hierarchy.number_of_nodes() - len(depths)
        if unreachable:
            logger.warning("%d terms cannot reach %s and have no depth", unreachable, self.root)

        if max_depth_attr is None:
            max_depth_attr = max(depths.values())
        hierarchy.graph["depth"] = int(max_depth_attr)

        nx.freeze(hierarchy)
        self._loaded = True
        logger.info(
            "Loaded term graph: %d terms, %d edges, max depth %d",
            hierarchy.number_of_nodes(),
            hierarchy.number_of_edges(),
            self.max_depth,
        )
        return self

    def has_term(self, term: str) -> bool:
        return self._hierarchy.has_node(term)

    def depth(self, term: str) -> int:
        """Distance from the root, or -1 for absent or unreachable terms."""
        if self.has_term(term):
            depth = self._hierarchy.nodes[term].get("depth")
            if depth is not None:
                return int(depth)
        return -1

    def parents(self, term: str) -> List[str]:
        if not self.has_term(term):
            return []
        return list(self._hierarchy.successors(term))

    def children(self, term: str) -> List[str]:
        if not self.has_term(term):
            return []
        return list(self._hierarchy.predecessors(term))

    def connected_subgraph(self, terms: Iterable[str]) -> TermSubgraph:
        """Minimal subgraph holding the root, ``terms`` and their ancestors.

        Only ancestors that themselves reach the root are followed, so every
        node of the result has a parent chain ending at the root.
        """
        subgraph = TermSubgraph(self.root)
        subgraph.add_node(self.root)

        pending: deque[str] = deque()
        for term in terms:
            if self.depth(term) < 0:
                logger.warning("Term %s is not connected to %s; leaving it out", term, self.root)
                continue
            if term not in subgraph:
                subgraph.add_node(term)
                pending.append(term)

        while pending:
            term = pending.popleft()
            for parent in self._hierarchy.successors(term):
                if self.depth(parent) < 0:
                    continue
                is_new = parent not in subgraph
                subgraph.add_edge(term, parent)
                if is_new:
                    pending.append(parent)
        return subgraph


def _parse_node_link(data: Mapping[str, Any]) -> Tuple[List[str], List[Tuple[str, str]], Dict[str, Any]]:
    try:
        nodes = [str(node["id"]) for node in data.get("nodes", [])]
        raw_links = data.get("links", data.get("edges", []))
        edges = [(str(link["source"]), str(link["target"])) for link in raw_links]
    except (KeyError, TypeError) as exc:
        raise TermGraphError(f"Malformed node-link term graph: {exc}") from exc
    graph_attrs = dict(data.get("graph") or {})
    return nodes, edges, graph_attrs


def _parse_edge_pairs(pairs: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    edges = []
    for pair in pairs:
        try:
            child, parent = pair
        except (TypeError, ValueError) as exc:
            raise TermGraphError(f"Expected (child, parent) pair, got {pair!r}") from exc
        edges.append((str(child), str(parent)))
    return edges


def load_term_graph(path: Path, root: Optional[str] = None) -> TermGraph:
    """Load a node-link JSON term hierarchy from ``path``."""
    with Path(path).open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    graph = TermGraph(root)
    return graph.load(data)
