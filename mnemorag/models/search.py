"""
Retrieval configuration schemas.

The graph engine does not run retrieval; these only parameterize the local,
global and drift strategies that read the finished graph.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ReportSelectionStrategy(str, Enum):
    """How global search picks community reports."""

    EMBEDDING = "embedding"
    SIZE = "size"
    CENTRALITY = "centrality"


class LocalSearchConfig(BaseModel):
    """Entity-neighbourhood traversal settings."""

    max_depth: int = Field(default=2, ge=1)
    min_edge_weight: int = Field(default=3, ge=1, le=10)
    entity_similarity_boost: bool = True


class GlobalSearchConfig(BaseModel):
    """Community-report map-reduce settings."""

    community_level: int = Field(default=1, ge=0)
    max_reports: int = Field(default=5, ge=1)
    report_selection_strategy: ReportSelectionStrategy = ReportSelectionStrategy.EMBEDDING


class DriftSearchConfig(BaseModel):
    """Iterative refinement settings."""

    max_iterations: int = Field(default=3, ge=1)
    convergence_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    memory_window: int = Field(default=5, ge=1)


class SearchConfig(BaseModel):
    local: LocalSearchConfig = Field(default_factory=LocalSearchConfig)
    global_: GlobalSearchConfig = Field(default_factory=GlobalSearchConfig, alias="global")
    drift: DriftSearchConfig = Field(default_factory=DriftSearchConfig)

    model_config = {"populate_by_name": True}
