"""
Data models for mnemorag.

Core models:
- Memory, MemoryFingerprint: raw input records and their last-processed marker
- Entity, Relationship, Community, CommunityReport: the knowledge graph
- ExtractedEntity, ExtractedRelationship, ExtractionResult: validated extraction output
- BuildOptions, BuildResult, BuildJobResult: build pass contract
- LocalSearchConfig, GlobalSearchConfig, DriftSearchConfig: retrieval schemas
"""

from mnemorag.models.build import BuildJobResult, BuildJobStatus, BuildOptions, BuildResult
from mnemorag.models.extraction import (
    ExtractedEntity,
    ExtractedRelationship,
    ExtractionResult,
    parse_extraction_payload,
)
from mnemorag.models.graph import (
    Community,
    CommunityReplacement,
    CommunityReport,
    Entity,
    EntityMemoryLink,
    EntityType,
    GraphStats,
    Relationship,
    RelationshipDirection,
)
from mnemorag.models.memory import Memory, MemoryFingerprint, MemoryKind, compute_content_hash
from mnemorag.models.search import (
    DriftSearchConfig,
    GlobalSearchConfig,
    LocalSearchConfig,
    ReportSelectionStrategy,
    SearchConfig,
)

__all__ = [
    # Memory
    "Memory",
    "MemoryFingerprint",
    "MemoryKind",
    "compute_content_hash",
    # Graph
    "Entity",
    "EntityType",
    "EntityMemoryLink",
    "Relationship",
    "RelationshipDirection",
    "Community",
    "CommunityReport",
    "CommunityReplacement",
    "GraphStats",
    # Extraction
    "ExtractedEntity",
    "ExtractedRelationship",
    "ExtractionResult",
    "parse_extraction_payload",
    # Build
    "BuildOptions",
    "BuildResult",
    "BuildJobResult",
    "BuildJobStatus",
    # Search
    "LocalSearchConfig",
    "GlobalSearchConfig",
    "DriftSearchConfig",
    "ReportSelectionStrategy",
    "SearchConfig",
]
