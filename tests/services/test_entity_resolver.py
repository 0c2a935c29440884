"""
Tests for EntityResolver.

Tests cover:
1. Entity creation and case-insensitive merging
2. Description and confidence upgrade rules
3. Relationship triple merging and strength nudging
4. Skipped relationships (unresolved endpoints, self-loops)
5. Optional fuzzy merging of near-duplicate names
"""

import pytest

from mnemorag.models.extraction import ExtractedEntity, ExtractedRelationship, ExtractionResult
from mnemorag.models.graph import EntityType
from mnemorag.services.entity_resolver import EntityResolver, name_similarity, nudge_strength


def mention(name, entity_type=EntityType.TECHNOLOGY, confidence=0.8, description=None):
    return ExtractedEntity(
        canonical_name=name,
        entity_type=entity_type,
        confidence=confidence,
        description=description,
        mention_text=name,
    )


def relation(source, target, strength=6, relationship_type="USES", description=None):
    return ExtractedRelationship(
        source_entity=source,
        target_entity=target,
        relationship_type=relationship_type,
        strength=strength,
        confidence=0.8,
        description=description,
    )


@pytest.fixture
def resolver(graph_store):
    return EntityResolver(graph_store, extraction_version="v1")


@pytest.mark.unit
@pytest.mark.asyncio
class TestEntityResolution:
    """Entity create-or-merge."""

    async def test_creates_new_entities(self, resolver, graph_store):
        result = await resolver.resolve(
            "m1", ExtractionResult(entities=[mention("React"), mention("Redis")])
        )

        assert len(result.entities_created) == 2
        assert result.topology_changed is True
        assert result.changed_entity_ids == result.entity_ids
        react = await graph_store.get_entity_by_name("react")
        assert react.mention_count == 1
        assert react.extraction_version == "v1"

    async def test_merges_case_insensitively_across_memories(self, resolver, graph_store):
        await resolver.resolve("m1", ExtractionResult(entities=[mention("React")]))
        result = await resolver.resolve("m2", ExtractionResult(entities=[mention("REACT")]))

        assert result.entities_created == []
        assert len(result.entities_merged) == 1
        assert len(await graph_store.list_entities()) == 1
        entity = await graph_store.get_entity_by_name("React")
        assert entity.canonical_name == "React"
        assert entity.mention_count == 2

    async def test_duplicate_mentions_in_one_memory_count_once(self, resolver, graph_store):
        await resolver.resolve(
            "m1",
            ExtractionResult(
                entities=[mention("Redis", confidence=0.4), mention("redis", confidence=0.9)]
            ),
        )

        entity = await graph_store.get_entity_by_name("Redis")
        assert entity.mention_count == 1
        assert entity.extraction_confidence == 0.9

    async def test_reprocessing_same_memory_is_stable(self, resolver, graph_store):
        extraction = ExtractionResult(entities=[mention("React")])
        await resolver.resolve("m1", extraction)

        result = await resolver.resolve("m1", extraction)

        assert result.topology_changed is False
        assert result.changed_entity_ids == set()
        assert (await graph_store.get_entity_by_name("React")).mention_count == 1

    async def test_higher_confidence_replaces_description(self, resolver, graph_store):
        cache = mention("Redis", confidence=0.5, description="A cache")
        store = mention("Redis", confidence=0.9, description="In-memory data store")
        await resolver.resolve("m1", ExtractionResult(entities=[cache]))
        result = await resolver.resolve("m2", ExtractionResult(entities=[store]))

        entity = await graph_store.get_entity_by_name("Redis")
        assert entity.description == "In-memory data store"
        assert entity.id in result.changed_entity_ids

    async def test_lower_confidence_keeps_description(self, resolver, graph_store):
        confident = mention("Redis", confidence=0.9, description="Data store")
        vague = mention("Redis", confidence=0.3, description="Something")
        await resolver.resolve("m1", ExtractionResult(entities=[confident]))
        await resolver.resolve("m2", ExtractionResult(entities=[vague]))

        assert (await graph_store.get_entity_by_name("Redis")).description == "Data store"

    async def test_other_type_is_upgraded(self, resolver, graph_store):
        await resolver.resolve("m1", ExtractionResult(entities=[mention("Nova", EntityType.OTHER)]))
        await resolver.resolve(
            "m2", ExtractionResult(entities=[mention("Nova", EntityType.PRODUCT)])
        )

        assert (await graph_store.get_entity_by_name("Nova")).entity_type == EntityType.PRODUCT


@pytest.mark.unit
@pytest.mark.asyncio
class TestRelationshipResolution:
    """Relationship create-or-merge."""

    async def test_creates_relationship(self, resolver, graph_store):
        result = await resolver.resolve(
            "m1",
            ExtractionResult(
                entities=[mention("React"), mention("Redis")],
                relationships=[relation("React", "Redis", strength=7)],
            ),
        )

        assert len(result.relationships_created) == 1
        relationship = (await graph_store.list_relationships())[0]
        assert relationship.strength == 7
        assert await graph_store.find_relationships_by_memory("m1") == [relationship]

    async def test_merging_triple_nudges_strength(self, resolver, graph_store):
        entities = [mention("React"), mention("Redis")]
        await resolver.resolve(
            "m1", ExtractionResult(entities=entities, relationships=[relation("React", "Redis", 4)])
        )
        result = await resolver.resolve(
            "m2",
            ExtractionResult(
                entities=entities,
                relationships=[relation("React", "Redis", 9, description="Caches sessions")],
            ),
        )

        assert len(result.relationships_merged) == 1
        relationships = await graph_store.list_relationships()
        assert len(relationships) == 1
        assert relationships[0].strength == 7
        assert relationships[0].description == "Caches sessions"

    async def test_distinct_types_are_distinct_relationships(self, resolver, graph_store):
        await resolver.resolve(
            "m1",
            ExtractionResult(
                entities=[mention("React"), mention("Redis")],
                relationships=[
                    relation("React", "Redis", relationship_type="USES"),
                    relation("React", "Redis", relationship_type="DEPENDS_ON"),
                ],
            ),
        )

        assert len(await graph_store.list_relationships()) == 2

    async def test_endpoint_resolved_from_existing_graph(self, resolver, graph_store):
        await resolver.resolve("m1", ExtractionResult(entities=[mention("Redis")]))

        result = await resolver.resolve(
            "m2",
            ExtractionResult(
                entities=[mention("React")], relationships=[relation("React", "redis")]
            ),
        )

        assert len(result.relationships_created) == 1

    async def test_unresolved_and_self_relationships_skipped(self, resolver, graph_store):
        result = await resolver.resolve(
            "m1",
            ExtractionResult(
                entities=[mention("React")],
                relationships=[relation("React", "Unknown"), relation("React", "react")],
            ),
        )

        assert result.relationships_skipped == 2
        assert await graph_store.list_relationships() == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestFuzzyNameMerging:
    """Near-duplicate names merge only when a similarity threshold is set."""

    @pytest.fixture
    def fuzzy_resolver(self, graph_store):
        return EntityResolver(graph_store, extraction_version="v1", name_similarity_threshold=0.85)

    async def test_exact_matching_by_default(self, resolver, graph_store):
        await resolver.resolve("m1", ExtractionResult(entities=[mention("PostgreSQL")]))
        await resolver.resolve("m2", ExtractionResult(entities=[mention("Postgres SQL")]))

        assert len(await graph_store.list_entities()) == 2

    async def test_similar_name_merges_into_existing(self, fuzzy_resolver, graph_store):
        await fuzzy_resolver.resolve("m1", ExtractionResult(entities=[mention("PostgreSQL")]))

        result = await fuzzy_resolver.resolve(
            "m2", ExtractionResult(entities=[mention("Postgres SQL")])
        )

        entities = await graph_store.list_entities()
        assert [entity.canonical_name for entity in entities] == ["PostgreSQL"]
        assert entities[0].mention_count == 2
        assert result.entities_merged == [entities[0].id]
        assert result.entities_created == []

    async def test_relationship_resolves_through_similar_name(self, fuzzy_resolver, graph_store):
        await fuzzy_resolver.resolve("m1", ExtractionResult(entities=[mention("PostgreSQL")]))

        result = await fuzzy_resolver.resolve(
            "m2",
            ExtractionResult(
                entities=[mention("React"), mention("Postgres SQL")],
                relationships=[relation("React", "Postgres SQL")],
            ),
        )

        postgres = await graph_store.get_entity_by_name("PostgreSQL")
        relationship = (await graph_store.list_relationships())[0]
        assert len(result.relationships_created) == 1
        assert relationship.target_entity_id == postgres.id

    async def test_dissimilar_names_stay_separate(self, fuzzy_resolver, graph_store):
        await fuzzy_resolver.resolve(
            "m1", ExtractionResult(entities=[mention("React"), mention("Redis")])
        )

        assert len(await graph_store.list_entities()) == 2


def test_name_similarity():
    assert name_similarity("Redis", " REDIS ") == 1.0
    assert name_similarity("PostgreSQL", "Postgres SQL") >= 0.85
    assert name_similarity("React", "Redis") < 0.85


class TestNudgeStrength:
    @pytest.mark.parametrize(
        "existing,incoming,expected",
        [(4, 9, 7), (9, 4, 7), (5, 5, 5), (1, 2, 2), (10, 10, 10)],
    )
    def test_moves_halfway_rounding_half_up(self, existing, incoming, expected):
        assert nudge_strength(existing, incoming) == expected
