"""Tests for anatomap/graph/terms.py - the anatomical term hierarchy.

These tests verify loading, depth computation and connected subgraph
extraction that every dataset clustering starts from.
"""
from __future__ import annotations

import json
import logging
import os
from unittest.mock import patch

import pytest

from anatomap.config import ANATOMICAL_ROOT_ENV
from anatomap.graph.hierarchy.dataset_clusters import DatasetClusterSet
from anatomap.graph.terms import TermGraph, TermGraphError, TermSubgraph, load_term_graph


class TestLoad:
    """Tests for building the hierarchy from edge lists and node-link data."""

    def test_depths_from_edge_pairs(self, chain_graph):
        """Depth is the distance from the root along parent edges."""
        assert chain_graph.depth("BODY") == 0
        assert chain_graph.depth("ORGAN") == 1
        assert chain_graph.depth("LOBE") == 2
        assert chain_graph.depth("CELL") == 3
        assert chain_graph.max_depth == 3

    def test_node_link_links(self):
        """Node-link links run from child (source) to parent (target)."""
        graph = TermGraph("BODY").load({
            "nodes": [{"id": "BODY"}, {"id": "ORGAN"}],
            "links": [{"source": "ORGAN", "target": "BODY"}],
        })
        assert graph.parents("ORGAN") == ["BODY"]
        assert graph.children("BODY") == ["ORGAN"]

    def test_node_link_edges_key(self):
        """Newer node-link output names the edge list 'edges'."""
        graph = TermGraph("BODY").load({
            "nodes": [{"id": "BODY"}, {"id": "ORGAN"}],
            "edges": [{"source": "ORGAN", "target": "BODY"}],
        })
        assert graph.depth("ORGAN") == 1

    def test_graph_depth_attribute_is_used_as_max_depth(self):
        """A precomputed graph depth wins over the computed one."""
        graph = TermGraph("BODY").load({
            "graph": {"depth": 7},
            "nodes": [{"id": "BODY"}, {"id": "ORGAN"}],
            "links": [{"source": "ORGAN", "target": "BODY"}],
        })
        assert graph.max_depth == 7

    def test_shortest_distance_with_multiple_parents(self):
        """A term reachable by two paths takes the shorter one."""
        graph = TermGraph("BODY").load([
            ("A", "BODY"),
            ("B", "A"),
            ("C", "B"),
            ("C", "BODY"),
        ])
        assert graph.depth("C") == 1
        assert sorted(graph.parents("C")) == ["B", "BODY"]

    def test_unreachable_term_has_no_depth(self):
        """Terms disconnected from the root load but report depth -1."""
        graph = TermGraph("BODY").load([("ORGAN", "BODY"), ("ORPHAN", "ELSEWHERE")])
        assert graph.has_term("ORPHAN")
        assert graph.depth("ORPHAN") == -1
        assert graph.depth("ELSEWHERE") == -1

    def test_absent_term(self, chain_graph):
        assert not chain_graph.has_term("UNKNOWN")
        assert chain_graph.depth("UNKNOWN") == -1
        assert chain_graph.parents("UNKNOWN") == []

    def test_root_has_no_parents(self, chain_graph):
        assert chain_graph.parents("BODY") == []

    def test_load_twice_raises(self, chain_graph):
        with pytest.raises(TermGraphError):
            chain_graph.load([("ORGAN", "BODY")])

    def test_missing_root_leaves_terms_without_depth(self, caplog):
        """A hierarchy without the root still loads; nothing gets a depth."""
        with caplog.at_level(logging.WARNING, logger="anatomap.graph.terms"):
            graph = TermGraph("BODY").load([("CELL", "LOBE")])
        assert graph.loaded
        assert graph.max_depth == 0
        assert graph.depth("CELL") == -1
        assert graph.depth("LOBE") == -1
        assert "BODY is not in the term graph" in caplog.text

    def test_missing_root_drops_every_term(self, make_features, settings):
        graph = TermGraph("BODY").load([("CELL", "LOBE")])
        cluster_set = DatasetClusterSet(
            {"id": "d", "terms": ["CELL", "LOBE"]}, graph, make_features("CELL", "LOBE"), settings
        )
        assert cluster_set.dropped_terms == ("CELL", "LOBE")
        assert [c.term for c in cluster_set.clusters] == ["BODY"]
        assert cluster_set.cluster("BODY").min_zoom == 0

    def test_default_root_from_environment(self):
        with patch.dict(os.environ, {ANATOMICAL_ROOT_ENV: "BODY"}, clear=True):
            graph = TermGraph()
        assert graph.root == "BODY"

    def test_malformed_node_link_raises(self):
        with pytest.raises(TermGraphError):
            TermGraph("BODY").load({"nodes": [{"name": "BODY"}], "links": []})

    def test_malformed_edge_pair_raises(self):
        with pytest.raises(TermGraphError):
            TermGraph("BODY").load([("A", "B", "C")])

    def test_load_term_graph_from_file(self, tmp_path):
        path = tmp_path / "terms.json"
        path.write_text(json.dumps({
            "nodes": [{"id": "BODY"}, {"id": "ORGAN"}, {"id": "LOBE"}],
            "links": [
                {"source": "ORGAN", "target": "BODY"},
                {"source": "LOBE", "target": "ORGAN"},
            ],
        }))
        graph = load_term_graph(path, root="BODY")
        assert graph.loaded
        assert len(graph) == 3
        assert graph.depth("LOBE") == 2


class TestConnectedSubgraph:
    """Tests for extracting the subgraph spanning a dataset's terms."""

    def test_chain_to_root(self, chain_graph):
        """A single deep term pulls in its whole ancestor chain."""
        subgraph = chain_graph.connected_subgraph(["CELL"])
        assert set(subgraph.nodes()) == {"BODY", "ORGAN", "LOBE", "CELL"}
        assert subgraph.parents("CELL") == ["LOBE"]
        assert subgraph.children("LOBE") == ["CELL"]

    def test_degrees(self, chain_graph):
        subgraph = chain_graph.connected_subgraph(["CELL"])
        assert subgraph.degree("CELL") == 1
        assert subgraph.degree("LOBE") == 2
        assert subgraph.degree("BODY") == 1

    def test_shared_ancestors_are_merged(self, chain_graph):
        """Two terms under the same parent share a single chain."""
        subgraph = chain_graph.connected_subgraph(["CELL", "NEURON"])
        assert len(subgraph) == 5
        assert sorted(subgraph.children("LOBE")) == ["CELL", "NEURON"]
        assert subgraph.degree("LOBE") == 3
        assert subgraph.parents("ORGAN") == ["BODY"]

    def test_root_only(self, chain_graph):
        subgraph = chain_graph.connected_subgraph([])
        assert subgraph.nodes() == ["BODY"]
        assert subgraph.degree("BODY") == 0

    def test_unusable_terms_left_out(self):
        graph = TermGraph("BODY").load([("ORGAN", "BODY"), ("ORPHAN", "ELSEWHERE")])
        subgraph = graph.connected_subgraph(["ORGAN", "ORPHAN", "UNKNOWN"])
        assert set(subgraph.nodes()) == {"BODY", "ORGAN"}

    def test_unreachable_parents_not_followed(self):
        """Only parents with a chain to the root become subgraph nodes."""
        graph = TermGraph("BODY").load([
            ("ORGAN", "BODY"),
            ("ORGAN", "ELSEWHERE"),
        ])
        subgraph = graph.connected_subgraph(["ORGAN"])
        assert set(subgraph.nodes()) == {"BODY", "ORGAN"}
        assert subgraph.degree("ORGAN") == 1

    def test_subgraph_does_not_mutate_term_graph(self, chain_graph):
        subgraph = chain_graph.connected_subgraph(["CELL"])
        subgraph.set_node_attribute("CELL", "terms", {"CELL"})
        other = chain_graph.connected_subgraph(["CELL"])
        assert other.get_node_attribute("CELL", "terms") is None
        assert subgraph.get_node_attribute("CELL", "terms") == {"CELL"}


class TestTermSubgraph:
    """Tests for the explicit subgraph value type."""

    def test_attributes_default(self):
        subgraph = TermSubgraph("BODY")
        subgraph.add_node("BODY")
        assert subgraph.get_node_attribute("BODY", "terms", frozenset()) == frozenset()

    def test_set_attribute_on_missing_node_raises(self):
        subgraph = TermSubgraph("BODY")
        with pytest.raises(TermGraphError):
            subgraph.set_node_attribute("CELL", "terms", set())

    def test_duplicate_edges_ignored(self):
        subgraph = TermSubgraph("BODY")
        subgraph.add_edge("ORGAN", "BODY")
        subgraph.add_edge("ORGAN", "BODY")
        assert subgraph.degree("ORGAN") == 1
        assert "ORGAN" in subgraph
        assert subgraph.has_node("BODY")
