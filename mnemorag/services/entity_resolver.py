"""
Entity Resolver - merges extracted mentions into canonical graph nodes.

Handles:
- Case-insensitive lookup by canonical name
- Optional fuzzy merging of near-duplicate names (difflib ratio)
- Create-or-merge of entities with mention attribution per memory
- Create-or-merge of (source, target, type) relationship triples
- Tracking the entity/relationship ids each memory resolves to
"""

from datetime import datetime
from difflib import SequenceMatcher

from pydantic import BaseModel, Field

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.models.extraction import ExtractedEntity, ExtractedRelationship, ExtractionResult
from mnemorag.models.graph import Entity, EntityType, Relationship
from mnemorag.utils.id_generator import generate_entity_id, generate_relationship_id
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

# Weight given to new evidence when nudging an existing relationship's strength
STRENGTH_NUDGE = 0.5


class ResolutionResult(BaseModel):
    """Outcome of resolving one memory's extraction into the graph."""

    memory_id: str
    entity_ids: set[str] = Field(default_factory=set)
    relationship_ids: set[str] = Field(default_factory=set)
    entities_created: list[str] = Field(default_factory=list)
    entities_merged: list[str] = Field(default_factory=list)
    relationships_created: list[str] = Field(default_factory=list)
    relationships_merged: list[str] = Field(default_factory=list)
    relationships_skipped: int = 0
    # Entities whose searchable profile changed and needs a fresh vector
    changed_entity_ids: set[str] = Field(default_factory=set)
    # True when an entity, relationship or attribution link was added
    topology_changed: bool = False


class EntityResolver:
    """
    Resolves extracted entities and relationships against the graph store.

    Entities are keyed by canonical name (case-insensitive). A re-mention
    from a new memory raises mention_count; a description is replaced only
    by one extracted with higher confidence. Relationships are keyed by
    (source, target, type) and their strength moves toward new evidence
    each time another memory supports them.

    Must run inside the caller's transaction for the memory.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        extraction_version: str = "v1",
        name_similarity_threshold: float | None = None,
    ):
        self.graph_store = graph_store
        self.extraction_version = extraction_version
        self.name_similarity_threshold = name_similarity_threshold

    async def resolve(self, memory_id: str, extraction: ExtractionResult) -> ResolutionResult:
        """
        Merge one memory's extraction into the graph.

        Args:
            memory_id: Memory the extraction came from
            extraction: Validated extraction output

        Returns:
            ResolutionResult with the memory's new attribution sets

        Raises:
            StorageError: If a graph write fails
        """
        result = ResolutionResult(memory_id=memory_id)
        by_name: dict[str, Entity] = {}

        for extracted in self._dedupe_entities(extraction.entities):
            entity = await self._resolve_entity(memory_id, extracted, result)
            by_name[entity.canonical_name.lower()] = entity
            by_name.setdefault(extracted.canonical_name.lower(), entity)
            result.entity_ids.add(entity.id)

        for extracted in extraction.relationships:
            relationship = await self._resolve_relationship(memory_id, extracted, by_name, result)
            if relationship is not None:
                result.relationship_ids.add(relationship.id)

        logger.bind(
            memory_id=memory_id,
            entities_created=len(result.entities_created),
            entities_merged=len(result.entities_merged),
            relationships_created=len(result.relationships_created),
            relationships_merged=len(result.relationships_merged),
            relationships_skipped=result.relationships_skipped,
        ).debug(
            f"Resolved memory {memory_id}: {len(result.entities_created)} new entities, "
            f"{len(result.entities_merged)} merged, "
            f"{len(result.relationships_created)} new relationships",
        )
        return result

    def _dedupe_entities(self, entities: list[ExtractedEntity]) -> list[ExtractedEntity]:
        """Keep the most confident mention of each name, in first-seen order."""
        best: dict[str, ExtractedEntity] = {}
        for entity in entities:
            key = entity.canonical_name.lower()
            current = best.get(key)
            if current is None or entity.confidence > current.confidence:
                best[key] = entity
        return list(best.values())

    async def _resolve_entity(
        self, memory_id: str, extracted: ExtractedEntity, result: ResolutionResult
    ) -> Entity:
        now = datetime.now()
        existing = await self.graph_store.get_entity_by_name(extracted.canonical_name)
        if existing is None and self.name_similarity_threshold is not None:
            existing = await self._find_similar(extracted.canonical_name)

        if existing is None:
            entity = await self.graph_store.create_entity(
                Entity(
                    id=generate_entity_id(),
                    canonical_name=extracted.canonical_name,
                    entity_type=extracted.entity_type,
                    description=extracted.description,
                    mention_count=1,
                    extraction_confidence=extracted.confidence,
                    extraction_version=self.extraction_version,
                    first_seen_at=now,
                    last_seen_at=now,
                )
            )
            await self.graph_store.link_entity_memory(
                entity.id, memory_id, extracted.mention_text, extracted.confidence
            )
            result.entities_created.append(entity.id)
            result.changed_entity_ids.add(entity.id)
            result.topology_changed = True
            return entity

        changed = False
        if extracted.description and (
            not existing.description or extracted.confidence > existing.extraction_confidence
        ):
            changed = extracted.description != existing.description
            existing.description = extracted.description
        if extracted.confidence > existing.extraction_confidence:
            existing.extraction_confidence = extracted.confidence
            changed = True
        if existing.entity_type == EntityType.OTHER and extracted.entity_type != EntityType.OTHER:
            existing.entity_type = extracted.entity_type
            changed = True

        existing.last_seen_at = now
        existing.extraction_version = self.extraction_version
        # Written before linking so the refreshed mention_count is not overwritten
        await self.graph_store.update_entity(existing)

        is_new_link = await self.graph_store.link_entity_memory(
            existing.id, memory_id, extracted.mention_text, extracted.confidence
        )
        if is_new_link:
            result.topology_changed = True
            result.entities_merged.append(existing.id)
        if changed:
            result.changed_entity_ids.add(existing.id)
        return existing

    async def _find_similar(self, name: str) -> Entity | None:
        """Most similar existing entity at or above the threshold; ties go to the lowest id."""
        best: tuple[float, str] | None = None
        match = None
        for entity in await self.graph_store.list_entities():
            score = name_similarity(name, entity.canonical_name)
            if score < self.name_similarity_threshold:
                continue
            key = (-score, entity.id)
            if best is None or key < best:
                best, match = key, entity
        if match is not None:
            logger.bind(similarity=-best[0], entity_id=match.id).debug(
                f"Merging '{name}' into similar entity '{match.canonical_name}'"
            )
        return match

    async def _lookup(self, name: str, by_name: dict[str, Entity]) -> Entity | None:
        entity = by_name.get(name.lower())
        if entity is None:
            entity = await self.graph_store.get_entity_by_name(name)
        return entity

    async def _resolve_relationship(
        self,
        memory_id: str,
        extracted: ExtractedRelationship,
        by_name: dict[str, Entity],
        result: ResolutionResult,
    ) -> Relationship | None:
        source = await self._lookup(extracted.source_entity, by_name)
        target = await self._lookup(extracted.target_entity, by_name)

        if source is None or target is None:
            logger.bind(
                memory_id=memory_id,
                relationship_type=extracted.relationship_type,
            ).debug(
                f"Skipping relationship with unresolved endpoint: "
                f"{extracted.source_entity} -> {extracted.target_entity}",
            )
            result.relationships_skipped += 1
            return None
        if source.id == target.id:
            result.relationships_skipped += 1
            return None

        existing = await self.graph_store.find_relationship(
            source.id, target.id, extracted.relationship_type
        )
        if existing is None:
            relationship = await self.graph_store.create_relationship(
                Relationship(
                    id=generate_relationship_id(),
                    source_entity_id=source.id,
                    target_entity_id=target.id,
                    relationship_type=extracted.relationship_type,
                    description=extracted.description,
                    strength=extracted.strength,
                )
            )
            await self.graph_store.link_relationship_source(
                relationship.id, memory_id, extracted.description
            )
            result.relationships_created.append(relationship.id)
            result.topology_changed = True
            return relationship

        is_new_link = await self.graph_store.link_relationship_source(
            existing.id, memory_id, extracted.description
        )
        if is_new_link:
            existing.strength = nudge_strength(existing.strength, extracted.strength)
            if not existing.description and extracted.description:
                existing.description = extracted.description
            await self.graph_store.update_relationship(existing)
            result.relationships_merged.append(existing.id)
            result.topology_changed = True
        return existing


def nudge_strength(existing: int, incoming: int) -> int:
    """Move `existing` halfway toward `incoming`, rounding half up, within 1..10."""
    value = existing + (incoming - existing) * STRENGTH_NUDGE
    return max(1, min(10, int(value + 0.5)))


def name_similarity(left: str, right: str) -> float:
    """Case-insensitive difflib ratio of two entity names."""
    left, right = left.lower().strip(), right.lower().strip()
    if left == right:
        return 1.0
    return SequenceMatcher(None, left, right).ratio()
