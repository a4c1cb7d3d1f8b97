#!/usr/bin/env python
"""
Human-friendly verifier for dataset marker zoom bands.

Loads a node-link term hierarchy, a map's feature annotations and a list of
dataset descriptors, clusters the datasets and prints:
- the zoom band of every cluster, per dataset;
- per-term dataset counts at each integer zoom;
- propagation checks (parents visible until children appear, root at zoom 0).

Usage: python scripts/verify_marker_zooms.py --term-graph terms.json \
           --features annotations.json --datasets datasets.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from anatomap.config import get_cluster_settings
from anatomap.graph import ClusterAggregator, MapFeatures, load_term_graph
from anatomap.logging_utils import setup_cluster_logging

logger = logging.getLogger("verify_marker_zooms")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify dataset marker zoom bands")
    parser.add_argument(
        "--term-graph",
        type=Path,
        required=True,
        help="Node-link JSON with child -> parent links.",
    )
    parser.add_argument(
        "--features",
        type=Path,
        required=True,
        help="JSON object mapping feature id to annotation (needs 'models').",
    )
    parser.add_argument(
        "--datasets",
        type=Path,
        required=True,
        help="JSON list of {id, kind?, terms} dataset descriptors.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only write the file log.",
    )
    return parser.parse_args()


def check_propagation(aggregator: ClusterAggregator) -> List[str]:
    """Return a description of every violated zoom invariant."""
    problems = []
    max_zoom = aggregator.settings.max_marker_zoom
    for dataset_id, cluster_set in aggregator.cluster_sets.items():
        subgraph = cluster_set.subgraph
        for cluster in cluster_set.clusters:
            if not 0 <= cluster.min_zoom <= cluster.max_zoom <= max_zoom:
                problems.append(f"{dataset_id}: {cluster.term} has band {cluster.min_zoom}-{cluster.max_zoom}")
            for parent in subgraph.parents(cluster.term):
                parent_cluster = cluster_set.cluster(parent)
                if parent_cluster.max_zoom < cluster.min_zoom:
                    problems.append(
                        f"{dataset_id}: {parent} hidden at {parent_cluster.max_zoom} "
                        f"before {cluster.term} appears at {cluster.min_zoom}"
                    )
        root_cluster = cluster_set.cluster(subgraph.root)
        if root_cluster is not None and root_cluster.min_zoom != 0:
            problems.append(f"{dataset_id}: root starts at zoom {root_cluster.min_zoom}")
    return problems


def main() -> int:
    args = parse_args()
    setup_cluster_logging(quiet=args.quiet)
    settings = get_cluster_settings()

    term_graph = load_term_graph(args.term_graph, settings.anatomical_root)
    features = MapFeatures(json.loads(args.features.read_text(encoding="utf-8")))
    datasets = json.loads(args.datasets.read_text(encoding="utf-8"))

    aggregator = ClusterAggregator(term_graph, features, settings)
    aggregator.add_dataset_markers(datasets)

    frame = aggregator.clusters_frame()
    print("\n=== Cluster zoom bands ===")
    if frame.empty:
        print("(no clusters)")
    else:
        print(frame.sort_values(["dataset_id", "min_zoom", "term"]).to_string(index=False))

    print("\n=== Datasets per zoom ===")
    for term in sorted(aggregator.terms):
        counts = " ".join(f"{count:2d}" for count in aggregator.zoom_counts(term))
        print(f"{term:<24} {counts}")

    for dataset_id, cluster_set in aggregator.cluster_sets.items():
        if cluster_set.dropped_terms:
            logger.warning("%s dropped terms: %s", dataset_id, ", ".join(cluster_set.dropped_terms))

    problems = check_propagation(aggregator)
    if problems:
        for problem in problems:
            logger.error(problem)
        return 1
    logger.info("All %d datasets satisfy the zoom invariants", len(aggregator.cluster_sets))
    return 0


if __name__ == "__main__":
    sys.exit(main())
