"""
Pydantic models used across the pipeline for validation and serialization.
These are pure data objects with no trie or database coupling.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ── Enums ──────────────────────────────────────────────────────────────

class BranchingClass(str, Enum):
    LONELY = "lonely"                # out-degree 1; leaves (0) too, so the classes cover every node
    NORMAL = "normal"                # 2-5
    FREQUENT = "frequent"            # 6-15
    VERY_FREQUENT = "very_frequent"  # 16+


class ClusterStrategy(str, Enum):
    PROPORTION = "proportion"
    NGRAMS = "ngrams"


# ── Corpus models ──────────────────────────────────────────────────────

class CityRecord(BaseModel):
    """One row of the corpus: a place name and its coordinates."""
    name: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def reject_blank_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v


# ── Clustering results ─────────────────────────────────────────────────

class GeoStatistics(BaseModel):
    """Descriptive statistics of the pairwise distances inside one cluster."""
    min: float
    max: float
    mean: float
    stddev: float

    model_config = {"frozen": True}


class ClusterRecord(BaseModel):
    """One exported cluster."""
    suffix: str
    # exported as "subsumedCities"; the attribute keeps the snake_case name
    subsumed_cities: int = Field(..., ge=0, serialization_alias="subsumedCities")
    min: float
    max: float
    mean: float
    stddev: float

    @classmethod
    def from_statistics(cls, suffix: str, subsumed_cities: int, stats: GeoStatistics) -> "ClusterRecord":
        return cls(suffix=suffix, subsumed_cities=subsumed_cities, **stats.model_dump())


class GraphSummary(BaseModel):
    count_suffix_nodes: int = 0
    count_city_records: int = 0
    count_name_nodes: int = 0
    count_edges: int = 0
    count_roots: int = 0
    branching: dict[BranchingClass, int] = Field(default_factory=dict)
    roots: list[str] = Field(default_factory=list)


# ── API response models ───────────────────────────────────────────────

class SuffixResponse(BaseModel):
    suffix: str
    subsumed_cities: Optional[int] = None
    branching_class: BranchingClass
    is_root: bool = False
    is_name: bool = False
    is_cluster_candidate: bool = False
    children: list[str] = Field(default_factory=list)


class ClusterListResponse(BaseModel):
    clusters: list[ClusterRecord]
    total: int
    limit: int
    offset: int


class HealthResponse(BaseModel):
    status: str = "ok"
    graph_loaded: bool = False
    summary: Optional[GraphSummary] = None
