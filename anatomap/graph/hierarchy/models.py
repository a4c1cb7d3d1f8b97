"""Data models for zoom-adaptive dataset markers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Literal, Mapping

DatasetKind = Literal["dataset", "multiscale"]

DATASET_KIND: DatasetKind = "dataset"
MULTISCALE_KIND: DatasetKind = "multiscale"


@dataclass
class DatasetTerms:
    """A dataset and the anatomical terms it is annotated with."""

    id: str
    terms: List[str] = field(default_factory=list)
    kind: DatasetKind = DATASET_KIND

    @property
    def multiscale(self) -> bool:
        return self.kind == MULTISCALE_KIND

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DatasetTerms":
        kind = data.get("kind") or DATASET_KIND
        if kind not in (DATASET_KIND, MULTISCALE_KIND):
            raise ValueError(f"Unknown dataset kind {kind!r} for dataset {data.get('id')!r}")
        return cls(id=str(data["id"]), terms=list(data.get("terms") or []), kind=kind)


@dataclass(frozen=True)
class DatasetCluster:
    """Zoom band over which a dataset's marker is shown at ``term``."""

    term: str
    dataset_id: str
    min_zoom: int
    max_zoom: int
    terminal: bool = False  # Represents concrete features at full detail


@dataclass(frozen=True)
class MarkerTerm:
    """An original dataset term represented under a marker."""

    term: str
    label: str
    kind: DatasetKind


@dataclass
class MarkerPoint:
    """A renderable clustered marker for one feature of a term."""

    marker_id: int
    feature_id: int
    term: str  # Term the feature models
    label: str
    zoom_count: List[int]  # Datasets present at each integer zoom
    multiscale: List[bool]  # Whether any multiscale dataset is present at each zoom
    position: Any = None  # Annotation markerPosition, if any

    def to_properties(self) -> dict:
        return {
            "featureId": self.feature_id,
            "label": self.label,
            "models": self.term,
            "zoom-count": list(self.zoom_count),
            "multiscale": list(self.multiscale),
        }
