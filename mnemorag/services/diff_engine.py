"""
Diff Engine - decides what a build pass must (re)process and what it orphans.

A memory is processed when it has no fingerprint, when its content hash or
the extraction version changed, or when the caller forces a reindex. After
a memory is re-resolved, its previous attribution sets are compared with
the new ones; nodes losing their last attributing memory become orphans.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.core.memory_store.base import MemoryStore
from mnemorag.models.build import BuildOptions
from mnemorag.models.graph import Entity
from mnemorag.models.memory import Memory, MemoryFingerprint
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class BuildPlan(BaseModel):
    """Scope of one build pass, classified."""

    scope_size: int = 0
    to_process: list[Memory] = Field(default_factory=list)
    skipped_ids: list[str] = Field(default_factory=list)
    # Memories that were processed before but no longer exist
    retired_ids: list[str] = Field(default_factory=list)


class AttributionSnapshot(BaseModel):
    """Entity and relationship ids attributed to a memory at one point in time."""

    entity_ids: set[str] = Field(default_factory=set)
    relationship_ids: set[str] = Field(default_factory=set)


class OrphanSet(BaseModel):
    """Graph nodes that lost their last attributing memory."""

    entities: list[Entity] = Field(default_factory=list)
    relationship_ids: list[str] = Field(default_factory=list)

    def merge(self, other: "OrphanSet") -> None:
        self.entities.extend(other.entities)
        self.relationship_ids.extend(other.relationship_ids)

    @property
    def empty(self) -> bool:
        return not self.entities and not self.relationship_ids


class DiffEngine:
    """
    Scope resolution and orphan detection for incremental builds.

    Example:
        >>> diff = DiffEngine(graph_store, memory_store, extraction_version="v1")
        >>> plan = await diff.plan(BuildOptions(memory_ids=["m1"]))
        >>> before = await diff.snapshot("m1")
        >>> # ... re-resolve m1 ...
        >>> orphans = await diff.collect_orphans("m1", before, after_entities, after_rels)
    """

    def __init__(
        self,
        graph_store: GraphStore,
        memory_store: MemoryStore,
        extraction_version: str = "v1",
    ):
        self.graph_store = graph_store
        self.memory_store = memory_store
        self.extraction_version = extraction_version

    async def plan(self, options: BuildOptions) -> BuildPlan:
        """
        Classify every in-scope memory as process or skip.

        With `memory_ids`, the scope is exactly those ids; ids missing from the
        memory store are skipped, and retired if they were processed before.
        Without it, the scope is every stored memory, and fingerprints of
        memories that no longer exist are retired.
        """
        fingerprints = await self.graph_store.list_fingerprints()
        plan = BuildPlan()

        if options.memory_ids is not None:
            memories = await self.memory_store.get_memories_by_ids(options.memory_ids)
            found = {memory.id for memory in memories}
            plan.scope_size = len(options.memory_ids)
            for memory_id in options.memory_ids:
                if memory_id in found:
                    continue
                plan.skipped_ids.append(memory_id)
                if memory_id in fingerprints:
                    plan.retired_ids.append(memory_id)
        else:
            memories = await self.memory_store.list_memories()
            found = {memory.id for memory in memories}
            plan.scope_size = len(memories)
            plan.retired_ids = sorted(set(fingerprints) - found)

        for memory in sorted(memories, key=lambda m: m.id):
            if options.reindex_all or self.needs_processing(memory, fingerprints.get(memory.id)):
                plan.to_process.append(memory)
            else:
                plan.skipped_ids.append(memory.id)

        logger.bind(
            scope_size=plan.scope_size,
            to_process=len(plan.to_process),
            skipped=len(plan.skipped_ids),
            retired=len(plan.retired_ids),
            reindex_all=options.reindex_all,
        ).info(
            f"Build plan: {len(plan.to_process)} to process, {len(plan.skipped_ids)} skipped, "
            f"{len(plan.retired_ids)} retired",
        )
        return plan

    def needs_processing(self, memory: Memory, fingerprint: MemoryFingerprint | None) -> bool:
        if fingerprint is None:
            return True
        return (
            fingerprint.content_hash != memory.content_hash
            or fingerprint.extraction_version != self.extraction_version
        )

    async def snapshot(self, memory_id: str) -> AttributionSnapshot:
        """Record what a memory is attributed to before it is re-resolved."""
        entities = await self.graph_store.find_entities_by_memory(memory_id)
        relationships = await self.graph_store.find_relationships_by_memory(memory_id)
        return AttributionSnapshot(
            entity_ids={entity.id for entity in entities},
            relationship_ids={relationship.id for relationship in relationships},
        )

    async def collect_orphans(
        self,
        memory_id: str,
        before: AttributionSnapshot,
        entity_ids: set[str],
        relationship_ids: set[str],
    ) -> OrphanSet:
        """
        Drop stale attributions of a memory and return the nodes left unattributed.

        Args:
            memory_id: Memory that was re-resolved
            before: Attribution sets recorded before re-resolution
            entity_ids: Entities the memory resolves to now
            relationship_ids: Relationships the memory supports now

        Returns:
            OrphanSet; entities still carry their embedding_id for vector cleanup
        """
        orphans = OrphanSet()

        for relationship_id in sorted(before.relationship_ids - relationship_ids):
            remaining = await self.graph_store.unlink_relationship_source(relationship_id, memory_id)
            if remaining == 0:
                orphans.relationship_ids.append(relationship_id)

        for entity_id in sorted(before.entity_ids - entity_ids):
            entity = await self.graph_store.get_entity(entity_id)
            remaining = await self.graph_store.unlink_entity_memory(entity_id, memory_id)
            if remaining == 0 and entity is not None:
                orphans.entities.append(entity)

        if not orphans.empty:
            logger.bind(
                memory_id=memory_id,
                orphan_entities=[entity.id for entity in orphans.entities],
                orphan_relationships=orphans.relationship_ids,
            ).debug(
                f"Memory {memory_id} orphaned {len(orphans.entities)} entities, "
                f"{len(orphans.relationship_ids)} relationships",
            )
        return orphans

    async def retire(self, memory_id: str) -> OrphanSet:
        """Drop every attribution of a memory that no longer exists."""
        before = await self.snapshot(memory_id)
        orphans = await self.collect_orphans(memory_id, before, set(), set())
        await self.graph_store.delete_fingerprint(memory_id)
        logger.bind(memory_id=memory_id, orphan_entities=len(orphans.entities)).info(
            f"Retired removed memory {memory_id}",
        )
        return orphans

    async def delete_orphans(self, orphans: OrphanSet) -> None:
        """Delete orphaned relationships, then orphaned entities, from the graph."""
        for relationship_id in orphans.relationship_ids:
            await self.graph_store.delete_relationship(relationship_id)
        for entity in orphans.entities:
            # Incident relationships cascade
            await self.graph_store.delete_entity(entity.id)

    async def mark_processed(self, memory: Memory) -> None:
        await self.graph_store.save_fingerprint(
            MemoryFingerprint(
                memory_id=memory.id,
                content_hash=memory.content_hash,
                extraction_version=self.extraction_version,
                processed_at=datetime.now(),
            )
        )
