"""
Knowledge graph models: entities, relationships, communities and reports.

The graph store owns every record defined here. Vectors are mirrored
elsewhere and referenced only through `embedding_id`.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class EntityType(str, Enum):
    """Kinds of entities extracted from memories."""

    PERSON = "PERSON"
    ORGANIZATION = "ORGANIZATION"
    TECHNOLOGY = "TECHNOLOGY"
    CONCEPT = "CONCEPT"
    LOCATION = "LOCATION"
    EVENT = "EVENT"
    PRODUCT = "PRODUCT"
    OTHER = "OTHER"


class RelationshipDirection(str, Enum):
    """Which incident edges to return for an entity."""

    SOURCE = "source"
    TARGET = "target"
    BOTH = "both"


class Entity(BaseModel):
    """
    Canonical graph node for a concept recurring across memories.

    `mention_count` is the number of distinct live memories attributing the
    entity; it never drops below 1 because an entity losing its last memory
    is deleted instead.
    """

    id: str = Field(..., description="Unique entity ID (ent_xxx)")
    canonical_name: str = Field(..., description="Unique name, case-insensitive")
    entity_type: EntityType = Field(default=EntityType.OTHER)
    description: str | None = Field(default=None)
    mention_count: int = Field(default=1, ge=1)
    extraction_confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    extraction_version: str | None = Field(default=None)
    first_seen_at: datetime = Field(default_factory=datetime.now)
    last_seen_at: datetime = Field(default_factory=datetime.now)
    embedding_id: str | None = Field(default=None, description="Vector store ID, if indexed")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("canonical_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("canonical_name cannot be empty")
        return value


class Relationship(BaseModel):
    """Directed, typed, weighted edge between two entities."""

    id: str = Field(..., description="Unique relationship ID (rel_xxx)")
    source_entity_id: str
    target_entity_id: str
    relationship_type: str
    description: str | None = None
    strength: int = Field(default=5, ge=1, le=10, description="Edge weight for clustering")
    created_at: datetime = Field(default_factory=datetime.now)


class EntityMemoryLink(BaseModel):
    """Attribution of an entity to one memory."""

    entity_id: str
    memory_id: str
    mention_text: str | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class Community(BaseModel):
    """
    Cluster of entities at one hierarchy level.

    Level 0 groups entities directly; level k groups the level k-1
    communities. `parent_id` is set only when level > 0 and points at the
    level k-1 community contributing most of this community's members.
    """

    id: str
    level: int = Field(..., ge=0)
    parent_id: str | None = None
    entity_count: int = Field(default=0, ge=0)
    resolution: float | None = None
    modularity: float | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    member_ids: list[str] = Field(
        default_factory=list, description="Entity IDs, populated on rebuild plans"
    )


class CommunityReport(BaseModel):
    """Narrative summary of one community."""

    id: str = Field(..., description="Unique report ID (rep_xxx)")
    community_id: str
    title: str
    summary: str
    full_content: str
    key_findings: list[str] = Field(default_factory=list)
    rating: float | None = None
    rating_explanation: str | None = None
    prompt_version: str | None = None
    embedding_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class CommunityReplacement(BaseModel):
    """Outcome of atomically swapping in a freshly computed partition."""

    created_ids: list[str] = Field(default_factory=list)
    retained_ids: list[str] = Field(default_factory=list)
    removed_ids: list[str] = Field(default_factory=list)
    removed_reports: list[CommunityReport] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_ids or self.removed_ids)


class GraphStats(BaseModel):
    """Counts describing the stored graph."""

    entities: int = 0
    relationships: int = 0
    communities: int = 0
    reports: int = 0
    processed_memories: int = 0
    communities_per_level: dict[int, int] = Field(default_factory=dict)
