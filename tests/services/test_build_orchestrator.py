"""
Tests for the incremental build pass.

Tests cover:
1. Idempotence: an unchanged store is a no-op
2. Change propagation into entities, vectors and reports
3. Scope containment for explicit memory_ids
4. Counter consistency and per-memory failure isolation
5. Retry of vector deletes that failed in an earlier build
6. Retirement of removed memories
7. Option validation before any side effect
"""

import pytest

from mnemorag.core.extraction import HeuristicExtractor
from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.graph_store.sqlite_store import SQLiteGraphStore
from mnemorag.core.memory_store.sqlite_store import SQLiteMemoryStore
from mnemorag.core.reports import StatisticalSummarizer
from mnemorag.models.build import BuildOptions
from mnemorag.models.extraction import ExtractionResult
from mnemorag.services.build_orchestrator import build, get_build_lock
from mnemorag.services.vector_sync import entity_vector_id
from mnemorag.utils.exceptions import ExtractionError, StorageError, ValidationError


@pytest.fixture
def run_build(memory_store, graph_store, embedder, vector_store, extractor, test_config):
    """Build against the shared fixtures with a statistical summarizer."""

    async def _run(options=None, **overrides):
        return await build(
            options,
            memory_store,
            embedder,
            vector_store,
            extractor=overrides.get("extractor", extractor),
            summarizer=StatisticalSummarizer(),
            graph_store=graph_store,
            config=test_config,
        )

    return _run


@pytest.fixture
async def seeded(memory_store, make_memory):
    await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))
    await memory_store.upsert_memory(make_memory("m2", "Alice deploys Docker on Kubernetes."))
    return memory_store


class MalformedJSONExtractor(ExtractionProvider):
    """Fails with an error message that contains format braces."""

    async def extract(self, text: str) -> ExtractionResult:
        raise ExtractionError('LLM returned invalid JSON: {"entities": 3}')


async def names(graph_store) -> set[str]:
    return {entity.canonical_name for entity in await graph_store.list_entities()}


@pytest.mark.unit
@pytest.mark.asyncio
class TestFirstBuild:
    async def test_builds_graph_vectors_and_reports(
        self, seeded, run_build, graph_store, vector_store
    ):
        result = await run_build(BuildOptions(generate_reports=True))

        assert result.memories_processed == 2
        assert result.memories_skipped == 0
        assert result.entities_extracted == 5
        assert result.relationships_extracted == 4
        assert result.entity_vectors_indexed == 5
        assert result.community_rebuild_skipped is False
        assert result.communities_detected >= 2
        assert result.reports_generated == result.communities_detected
        assert result.report_vectors_indexed == result.reports_generated
        assert result.no_op is False

        assert await names(graph_store) == {"React", "Redis", "Alice", "Docker", "Kubernetes"}
        assert len(vector_store.ids_of_type("graphrag_entity")) == 5
        assert len(vector_store.ids_of_type("graphrag_report")) == result.reports_generated
        for entity in await graph_store.list_entities():
            assert entity.embedding_id == entity_vector_id(entity.id)

    async def test_empty_store_is_no_op(self, run_build, vector_store):
        result = await run_build()

        assert result.no_op is True
        assert vector_store.upserts == []

    async def test_accepts_dict_options(self, seeded, run_build):
        result = await run_build({"memory_ids": ["m1"]})

        assert result.memories_processed == 1

    async def test_single_memory_scenario(
        self, memory_store, make_memory, run_build, vector_store
    ):
        await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))

        result = await run_build(BuildOptions(), extractor=HeuristicExtractor())

        assert result.entities_extracted >= 2
        assert result.relationships_extracted >= 1
        assert result.entity_vectors_indexed >= 2
        assert result.community_rebuild_skipped is False
        assert result.report_generation_skipped is True
        assert len(vector_store.ids_of_type("graphrag_entity")) >= 2

    async def test_heuristic_extraction(self, memory_store, make_memory, run_build, graph_store):
        await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))

        result = await run_build(extractor=HeuristicExtractor())

        assert result.memories_processed == 1
        react = await graph_store.get_entity_by_name("React")
        redis = await graph_store.get_entity_by_name("Redis")
        relationships = await graph_store.get_relationships_for_entity(react.id)
        assert len(relationships) == 1
        assert {relationships[0].source_entity_id, relationships[0].target_entity_id} == {
            react.id,
            redis.id,
        }
        assert relationships[0].relationship_type == "CO_OCCURS_WITH"


@pytest.mark.unit
@pytest.mark.asyncio
class TestIncrementalBuild:
    async def test_unchanged_store_is_no_op(self, seeded, run_build, extractor, vector_store):
        await run_build(BuildOptions(generate_reports=True))
        upserts = len(vector_store.upserts)

        result = await run_build(BuildOptions(generate_reports=True))

        assert result.no_op is True
        assert result.memories_processed == 0
        assert result.memories_skipped == 2
        assert result.community_rebuild_skipped is True
        assert result.report_generation_skipped is True
        assert len(extractor.calls) == 2
        assert len(vector_store.upserts) == upserts

    async def test_changed_memory_propagates(
        self, seeded, run_build, graph_store, vector_store, make_memory
    ):
        await run_build(BuildOptions(generate_reports=True))
        redis = await graph_store.get_entity_by_name("Redis")
        reports_before = {r.community_id for r in await graph_store.list_reports()}

        await seeded.upsert_memory(make_memory("m1", "React integrates with PostgreSQL."))
        result = await run_build(BuildOptions(generate_reports=True))

        assert result.memories_processed == 1
        assert result.memories_skipped == 1
        assert result.entity_vectors_deleted >= 1
        assert result.community_rebuild_skipped is False
        assert await names(graph_store) == {
            "React",
            "PostgreSQL",
            "Alice",
            "Docker",
            "Kubernetes",
        }
        assert entity_vector_id(redis.id) not in vector_store.vectors
        assert await graph_store.get_entity(redis.id) is None

        # The React community changed membership, so its report was replaced
        reports_after = {r.community_id for r in await graph_store.list_reports()}
        assert reports_after != reports_before
        assert result.report_vectors_deleted >= 1
        assert {c.id for c in await graph_store.list_communities()} == reports_after

    async def test_shared_entity_survives_when_one_memory_drops_it(
        self, memory_store, run_build, graph_store, vector_store, make_memory
    ):
        await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))
        await memory_store.upsert_memory(make_memory("m2", "Redis backs Stripe webhooks."))
        await run_build()
        redis = await graph_store.get_entity_by_name("Redis")
        assert redis.mention_count == 2

        await memory_store.upsert_memory(make_memory("m1", "React renders the dashboard."))
        result = await run_build()

        redis = await graph_store.get_entity_by_name("Redis")
        assert redis is not None
        assert redis.mention_count == 1
        assert entity_vector_id(redis.id) in vector_store.vectors
        assert result.entity_vectors_deleted == 0
        assert await graph_store.get_memory_ids_for_entity(redis.id) == ["m2"]

    async def test_reindex_all_is_deterministic(self, seeded, run_build, graph_store):
        await run_build()
        communities = {c.id: c.member_ids for c in await graph_store.list_communities()}
        entity_ids = {e.id for e in await graph_store.list_entities()}

        result = await run_build(BuildOptions(reindex_all=True))

        assert result.memories_processed == 2
        assert {c.id: c.member_ids for c in await graph_store.list_communities()} == communities
        assert {e.id for e in await graph_store.list_entities()} == entity_ids

    async def test_same_input_same_partition_across_stores(
        self, tmp_path, make_memory, embedder, vector_store, extractor
    ):
        partitions = []
        for name in ("first", "second"):
            memory_store = SQLiteMemoryStore(str(tmp_path / name / "graph.db"))
            await memory_store.initialize()
            await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))
            await memory_store.upsert_memory(
                make_memory("m2", "Alice deploys Docker on Kubernetes.")
            )
            graph_store = SQLiteGraphStore(connection=await memory_store.get_database())
            await graph_store.initialize()

            await build(
                None,
                memory_store,
                embedder,
                vector_store,
                extractor=extractor,
                summarizer=StatisticalSummarizer(),
                graph_store=graph_store,
            )

            by_id = {e.id: e.canonical_name for e in await graph_store.list_entities()}
            partitions.append(
                {
                    frozenset(by_id[member] for member in community.member_ids)
                    for community in await graph_store.list_communities(level=0)
                }
            )
            await memory_store.close()

        assert partitions[0] == partitions[1]

    async def test_unindexed_entities_retried_next_build(
        self, seeded, run_build, graph_store, vector_store
    ):
        vector_store.fail_upserts = 1000
        first = await run_build()
        assert first.vector_failures == 5
        assert first.entity_vectors_indexed == 0
        assert all(e.embedding_id is None for e in await graph_store.list_entities())

        vector_store.fail_upserts = 0
        second = await run_build()

        assert second.memories_processed == 0
        assert second.entity_vectors_indexed == 5
        assert len(vector_store.ids_of_type("graphrag_entity")) == 5

    async def test_failed_vector_delete_retried_next_build(
        self, seeded, run_build, graph_store, vector_store, make_memory
    ):
        await run_build()
        redis = await graph_store.get_entity_by_name("Redis")
        redis_vector = entity_vector_id(redis.id)

        await seeded.upsert_memory(make_memory("m1", "React integrates with PostgreSQL."))
        vector_store.fail_deletes = 1000
        changed = await run_build()

        assert changed.vector_failures == 1
        assert changed.entity_vectors_deleted == 0
        assert await graph_store.get_entity(redis.id) is None
        assert redis_vector in vector_store.vectors
        assert await graph_store.list_pending_vector_deletes() == [redis_vector]

        vector_store.fail_deletes = 0
        retry = await run_build()

        assert retry.entity_vectors_deleted == 1
        assert retry.vector_failures == 0
        assert redis_vector not in vector_store.vectors
        assert await graph_store.list_pending_vector_deletes() == []
        assert len(vector_store.ids_of_type("graphrag_entity")) == len(
            await graph_store.list_entities()
        )

    async def test_report_prompt_version_change_regenerates(
        self, seeded, run_build, graph_store, test_config
    ):
        await run_build(BuildOptions(generate_reports=True))
        test_config.graph.prompt_version = "v2"

        result = await run_build(BuildOptions(generate_reports=True))

        assert result.community_rebuild_skipped is True
        assert result.report_generation_skipped is False
        assert result.reports_generated == len(await graph_store.list_communities())
        assert {r.prompt_version for r in await graph_store.list_reports()} == {"v2"}

    async def test_new_level_count_triggers_rebuild(self, seeded, run_build, graph_store):
        await run_build()

        result = await run_build(BuildOptions(community_levels=2))

        assert result.community_rebuild_skipped is False
        assert (await graph_store.get_stats()).communities_per_level.keys() == {0, 1}


@pytest.mark.unit
@pytest.mark.asyncio
class TestScopeAndFailures:
    async def test_scope_limits_processing(self, seeded, run_build, extractor, graph_store):
        result = await run_build(BuildOptions(memory_ids=["m1"]))

        assert result.memories_processed == 1
        assert extractor.calls == ["React integrates with Redis."]
        assert await graph_store.get_fingerprint("m2") is None
        assert await names(graph_store) == {"React", "Redis"}

    async def test_scope_leaves_other_memories_untouched(
        self, seeded, run_build, graph_store, make_memory
    ):
        await run_build()
        await seeded.upsert_memory(make_memory("m1", "React integrates with PostgreSQL."))

        result = await run_build(BuildOptions(memory_ids=["m2"]))

        assert result.memories_processed == 0
        assert result.memories_skipped == 1
        assert "Redis" in await names(graph_store)

    async def test_unknown_scoped_id_is_skipped(self, seeded, run_build):
        result = await run_build(BuildOptions(memory_ids=["m1", "ghost"]))

        assert result.memories_processed == 1
        assert result.memories_skipped == 1

    async def test_counters_add_up_with_failures(
        self, memory_store, run_build, extractor, graph_store, make_memory
    ):
        await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))
        await memory_store.upsert_memory(make_memory("m2", "BROKEN Docker notes."))
        await memory_store.upsert_memory(make_memory("m3", "Bob pays with Stripe."))
        extractor.failing = {"BROKEN"}

        result = await run_build()

        assert result.memories_processed == 2
        assert result.memories_failed == 1
        assert result.memories_processed + result.memories_skipped == 3
        assert any("m2" in error for error in result.errors)
        assert await graph_store.get_fingerprint("m2") is None
        assert "Docker" not in await names(graph_store)

        extractor.failing = set()
        retry = await run_build()

        assert retry.memories_processed == 1
        assert retry.memories_skipped == 2
        assert "Docker" in await names(graph_store)

    async def test_storage_failure_rolls_back_only_that_memory(
        self, memory_store, run_build, graph_store, vector_store, make_memory, monkeypatch
    ):
        await memory_store.upsert_memory(make_memory("m1", "React integrates with Redis."))
        await memory_store.upsert_memory(make_memory("m2", "Alice deploys Docker on Kubernetes."))
        await memory_store.upsert_memory(make_memory("m3", "Bob pays with Stripe."))
        create_relationship = graph_store.create_relationship

        async def failing_create_relationship(relationship):
            source = await graph_store.get_entity(relationship.source_entity_id)
            if source.canonical_name == "Alice":
                raise StorageError("disk I/O error")
            return await create_relationship(relationship)

        monkeypatch.setattr(graph_store, "create_relationship", failing_create_relationship)

        result = await run_build()

        assert result.memories_processed == 2
        assert result.memories_failed == 1
        assert result.memories_processed + result.memories_skipped == 3
        assert await graph_store.get_fingerprint("m2") is None
        assert await graph_store.find_entities_by_memory("m2") == []
        assert await graph_store.find_relationships_by_memory("m2") == []
        assert await names(graph_store) == {"React", "Redis", "Bob", "Stripe"}
        assert len(vector_store.ids_of_type("graphrag_entity")) == 4

    async def test_error_text_with_braces_is_logged_not_raised(
        self, memory_store, run_build, graph_store, make_memory
    ):
        await memory_store.upsert_memory(make_memory("note-{1}", "React integrates with Redis."))

        result = await run_build(extractor=MalformedJSONExtractor())

        assert result.memories_failed == 1
        assert result.memories_skipped == 1
        assert result.errors == ['memory note-{1}: LLM returned invalid JSON: {"entities": 3}']
        assert await graph_store.get_fingerprint("note-{1}") is None

    async def test_removed_memory_is_retired(self, seeded, run_build, graph_store, vector_store):
        await run_build()
        react = await graph_store.get_entity_by_name("React")

        await seeded.delete_memory("m1")
        result = await run_build()

        assert result.memories_processed == 0
        assert result.entity_vectors_deleted == 2
        assert result.community_rebuild_skipped is False
        assert result.no_op is False
        assert await graph_store.get_fingerprint("m1") is None
        assert await names(graph_store) == {"Alice", "Docker", "Kubernetes"}
        assert entity_vector_id(react.id) not in vector_store.vectors

    async def test_scoped_removed_memory_is_retired(self, seeded, run_build, graph_store):
        await run_build()
        await seeded.delete_memory("m2")

        result = await run_build(BuildOptions(memory_ids=["m2"]))

        assert result.memories_skipped == 1
        assert await names(graph_store) == {"React", "Redis"}

    @pytest.mark.parametrize(
        "options",
        [{"community_levels": 0}, {"memory_ids": "m1"}, {"rebuild": True}],
    )
    async def test_invalid_options_rejected_before_side_effects(
        self, seeded, run_build, extractor, graph_store, options
    ):
        with pytest.raises(ValidationError, match="Invalid build options"):
            await run_build(options)

        assert extractor.calls == []
        assert (await graph_store.get_stats()).processed_memories == 0


@pytest.mark.unit
@pytest.mark.asyncio
class TestBuildLock:
    async def test_one_lock_per_database(self, memory_store, tmp_path):
        database = await memory_store.get_database()
        other = SQLiteMemoryStore(str(tmp_path / "other.db"))
        try:
            assert get_build_lock(database) is get_build_lock(database)
            assert get_build_lock(database) is not get_build_lock(await other.get_database())
        finally:
            await other.close()
