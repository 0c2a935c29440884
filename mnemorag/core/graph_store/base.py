"""
Base interface for knowledge graph storage.

The graph store exclusively owns entities, relationships, communities and
community reports, plus the attribution tables tying them to memories.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from mnemorag.models.graph import (
    Community,
    CommunityReplacement,
    CommunityReport,
    Entity,
    GraphStats,
    Relationship,
    RelationshipDirection,
)
from mnemorag.models.memory import MemoryFingerprint


class GraphStore(ABC):
    """Abstract base class for graph storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the graph store (create tables/schema)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Group writes into one atomic unit.

        Nested calls join the outermost transaction; an exception anywhere
        inside rolls the whole unit back.
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # ENTITY OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_entity(self, entity: Entity) -> Entity:
        """
        Insert a new entity.

        Raises:
            StorageError: If an entity with the same canonical name exists
        """
        pass

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Entity | None:
        pass

    @abstractmethod
    async def get_entity_by_name(self, canonical_name: str) -> Entity | None:
        """
        Look up an entity by canonical name (exact, case-insensitive).

        Args:
            canonical_name: Name to match

        Returns:
            Entity or None if not found
        """
        pass

    @abstractmethod
    async def get_entities(self, entity_ids: list[str]) -> list[Entity]:
        pass

    @abstractmethod
    async def list_entities(self) -> list[Entity]:
        """All entities ordered by id."""
        pass

    @abstractmethod
    async def update_entity(self, entity: Entity) -> None:
        """
        Persist changes to an existing entity.

        Raises:
            NotFoundError: If the entity does not exist
        """
        pass

    @abstractmethod
    async def set_entity_embedding_id(self, entity_id: str, embedding_id: str | None) -> None:
        pass

    @abstractmethod
    async def delete_entity(self, entity_id: str) -> bool:
        """
        Delete an entity, cascading to incident relationships and attributions.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    async def find_entities_by_memory(self, memory_id: str) -> list[Entity]:
        """
        Entities currently attributed to a memory.

        Args:
            memory_id: Memory identifier

        Returns:
            List of entities linked to the memory
        """
        pass

    @abstractmethod
    async def link_entity_memory(
        self,
        entity_id: str,
        memory_id: str,
        mention_text: str | None = None,
        confidence: float = 1.0,
    ) -> bool:
        """
        Attribute an entity to a memory and refresh its mention count.

        Returns:
            True if the link is new
        """
        pass

    @abstractmethod
    async def unlink_entity_memory(self, entity_id: str, memory_id: str) -> int:
        """
        Drop an entity's attribution to a memory.

        Returns:
            Number of memories still attributing the entity
        """
        pass

    @abstractmethod
    async def get_memory_ids_for_entity(self, entity_id: str) -> list[str]:
        pass

    # ═══════════════════════════════════════════════════════════
    # RELATIONSHIP OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def create_relationship(self, relationship: Relationship) -> Relationship:
        """
        Insert a new relationship.

        Raises:
            StorageError: If an endpoint is missing or the triple already exists
        """
        pass

    @abstractmethod
    async def get_relationship(self, relationship_id: str) -> Relationship | None:
        pass

    @abstractmethod
    async def find_relationship(
        self, source_entity_id: str, target_entity_id: str, relationship_type: str
    ) -> Relationship | None:
        """Find the relationship for a (source, target, type) triple."""
        pass

    @abstractmethod
    async def update_relationship(self, relationship: Relationship) -> None:
        pass

    @abstractmethod
    async def delete_relationship(self, relationship_id: str) -> bool:
        pass

    @abstractmethod
    async def list_relationships(self) -> list[Relationship]:
        """All relationships ordered by id."""
        pass

    @abstractmethod
    async def get_relationships_for_entity(
        self,
        entity_id: str,
        direction: RelationshipDirection = RelationshipDirection.BOTH,
    ) -> list[Relationship]:
        pass

    @abstractmethod
    async def find_relationships_by_memory(self, memory_id: str) -> list[Relationship]:
        pass

    @abstractmethod
    async def link_relationship_source(
        self, relationship_id: str, memory_id: str, evidence_text: str | None = None
    ) -> bool:
        """
        Record a memory as evidence for a relationship.

        Returns:
            True if the link is new
        """
        pass

    @abstractmethod
    async def unlink_relationship_source(self, relationship_id: str, memory_id: str) -> int:
        """
        Drop a memory as evidence for a relationship.

        Returns:
            Number of memories still supporting the relationship
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # COMMUNITY OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def replace_communities(self, communities: list[Community]) -> CommunityReplacement:
        """
        Atomically swap in a complete hierarchy of communities.

        Communities absent from `communities` are deleted with their reports,
        including whole levels that are no longer requested. Communities whose
        id already exists keep their row and report.

        Args:
            communities: Every community of every level, with member_ids set

        Returns:
            CommunityReplacement describing created/retained/removed ids
        """
        pass

    @abstractmethod
    async def get_community(self, community_id: str) -> Community | None:
        pass

    @abstractmethod
    async def list_communities(self, level: int | None = None) -> list[Community]:
        pass

    @abstractmethod
    async def get_community_members(self, community_id: str) -> list[str]:
        pass

    @abstractmethod
    async def get_entity_community(self, entity_id: str, level: int) -> Community | None:
        pass

    # ═══════════════════════════════════════════════════════════
    # REPORT OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def save_report(self, report: CommunityReport) -> CommunityReport | None:
        """
        Insert or replace the report of a community.

        Returns:
            The report it replaced, if any
        """
        pass

    @abstractmethod
    async def get_report(self, report_id: str) -> CommunityReport | None:
        pass

    @abstractmethod
    async def get_report_for_community(self, community_id: str) -> CommunityReport | None:
        pass

    @abstractmethod
    async def list_reports(self, level: int | None = None) -> list[CommunityReport]:
        pass

    @abstractmethod
    async def set_report_embedding_id(self, report_id: str, embedding_id: str | None) -> None:
        pass

    # ═══════════════════════════════════════════════════════════
    # FINGERPRINTS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_fingerprint(self, memory_id: str) -> MemoryFingerprint | None:
        pass

    @abstractmethod
    async def list_fingerprints(self) -> dict[str, MemoryFingerprint]:
        pass

    @abstractmethod
    async def save_fingerprint(self, fingerprint: MemoryFingerprint) -> None:
        pass

    @abstractmethod
    async def delete_fingerprint(self, memory_id: str) -> None:
        pass

    # ═══════════════════════════════════════════════════════════
    # PENDING VECTOR DELETES
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def queue_vector_delete(self, vector_id: str) -> None:
        """Remember a vector whose delete failed so a later build can retry it."""
        pass

    @abstractmethod
    async def list_pending_vector_deletes(self) -> list[str]:
        pass

    @abstractmethod
    async def clear_vector_delete(self, vector_id: str) -> None:
        pass

    # ═══════════════════════════════════════════════════════════
    # STATS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_stats(self) -> GraphStats:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""
        pass
