"""Map feature lookups used to validate terms and resolve markers."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Protocol

logger = logging.getLogger(__name__)


class FeatureOracle(Protocol):
    """What the clustering engine needs to know about the map's features."""

    def has_anatomical_identifier(self, term: str) -> bool:
        ...

    def model_feature_ids(self, term: str) -> List[int]:
        ...

    def annotation(self, feature_id: int) -> Mapping[str, Any]:
        ...

    def label(self, term: str) -> str:
        ...


class MapFeatures:
    """In-memory index of a map's feature annotations by the term they model.

    ``annotations`` maps feature id to its annotation properties; the
    ``models`` property names the anatomical term a feature represents.
    """

    def __init__(self, annotations: Mapping[Any, Mapping[str, Any]]):
        self._annotations: Dict[int, Dict[str, Any]] = {}
        self._features_by_term: Dict[str, List[int]] = {}
        for raw_id, annotation in annotations.items():
            feature_id = int(raw_id)
            self._annotations[feature_id] = dict(annotation)
            term = annotation.get("models")
            if term:
                self._features_by_term.setdefault(str(term).strip(), []).append(feature_id)
        logger.debug(
            "Indexed %d features modelling %d terms",
            len(self._annotations),
            len(self._features_by_term),
        )

    def __len__(self) -> int:
        return len(self._annotations)

    def has_anatomical_identifier(self, term: str) -> bool:
        return term in self._features_by_term

    def model_feature_ids(self, term: str) -> List[int]:
        return list(self._features_by_term.get(term, []))

    def annotation(self, feature_id: int) -> Mapping[str, Any]:
        return self._annotations.get(int(feature_id), {})

    def label(self, term: str) -> str:
        """Label of the first feature modelling ``term``, else the term itself."""
        for feature_id in self._features_by_term.get(term, []):
            label = self._annotations[feature_id].get("label")
            if label:
                return str(label)
        return term
